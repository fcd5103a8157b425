import threading
import time
import types

import wpstack.install.stream as stream_mod
from wpstack.install.stream import stream_installation
from wpstack.observers.events import Stage, Status


def _wait_for(pred, limit=5.0):
    end = time.monotonic() + limit
    while time.monotonic() < end:
        if pred():
            return True
        time.sleep(0.01)
    return False


def test_stream_yields_every_event_and_ends_with_complete(connection, site, make_session):
    sess = make_session()
    events = list(stream_installation(connection, site, session_factory=lambda c, s: sess, run_id="r-1"))

    assert (events[0].stage, events[0].status) == (Stage.CONNECTING, Status.RUNNING)
    assert events[-1].stage is Stage.COMPLETE
    assert events[-1].result["siteUrl"] == "http://example.com"
    assert sum(1 for e in events if e.ends_run) == 1
    assert {e.run_id for e in events} == {"r-1"}


def test_stream_gives_up_after_outer_ceiling(connection, site, make_session):
    sess = make_session()
    release = threading.Event()

    def slow_connect(c, s):
        release.wait(5)
        return sess

    try:
        events = list(stream_installation(connection, site, timeout=0.2, session_factory=slow_connect))
    finally:
        release.set()

    last = events[-1]
    assert last.stage is Stage.ERROR
    assert last.status is Status.FAILED
    assert last.detail == "transport"
    assert "0.2s" in last.message

    # the worker finishes on its own and still cleans up
    assert _wait_for(lambda: sess.close_count == 1)
    assert sess.ran("ufw --force enable")


def test_consumer_leaving_early_does_not_abort_the_install(connection, site, make_session):
    sess = make_session()
    gen = stream_installation(connection, site, session_factory=lambda c, s: sess)
    first = next(gen)
    gen.close()

    assert first.stage is Stage.CONNECTING
    assert _wait_for(lambda: sess.close_count == 1)
    assert sess.ran("php8.3-fpm")


def test_terminal_event_queued_at_the_deadline_is_not_replaced(connection, site, make_session, monkeypatch):
    sess = make_session()
    finished = threading.Event()
    real_install = stream_mod.install

    def install_then_signal(*a, **kw):
        try:
            return real_install(*a, **kw)
        finally:
            finished.set()

    monkeypatch.setattr(stream_mod, "install", install_then_signal)

    # the reader only looks at the clock after the run is over
    clock = iter([0.0] + [1000.0] * 1000)

    def fake_monotonic():
        finished.wait(5)
        return next(clock)

    monkeypatch.setattr(stream_mod, "time", types.SimpleNamespace(monotonic=fake_monotonic))
    events = list(stream_installation(connection, site, timeout=10, session_factory=lambda c, s: sess))

    assert events[-1].stage is Stage.COMPLETE
    assert not any(e.detail == "transport" for e in events)
