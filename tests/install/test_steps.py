import pytest

from wpstack.errors import CommandFailure, StageError
from wpstack.install.steps import Reporter, StepResult, ensure_package, run_step
from wpstack.observers.events import Stage, Status
from wpstack.observers.sinks import CallbackSink, QueueSink, SinkClosed
from wpstack.utils.ssh_runner import SSHRunner


class Capture:
    def __init__(self): self.events = []
    def emit(self, ev): self.events.append(ev)
    writable = True


def _pairs(events):
    return [(e.stage, e.status) for e in events]


def test_successful_step_emits_running_then_completed():
    cap = Capture()
    res = run_step(Reporter(cap), Stage.NGINX, "Installing Nginx", lambda: "Nginx installed and running")
    assert res.ok
    assert _pairs(cap.events) == [(Stage.NGINX, Status.RUNNING), (Stage.NGINX, Status.COMPLETED)]
    assert cap.events[-1].message == "Nginx installed and running"


def test_step_result_detail_is_passed_through():
    cap = Capture()
    run_step(Reporter(cap), Stage.PHP, "Installing PHP", lambda: StepResult("done", detail="imagick skipped"))
    assert cap.events[-1].detail == "imagick skipped"


def test_mandatory_failure_is_annotated_and_reraised():
    cap = Capture()

    def boom():
        raise CommandFailure("Installing MariaDB", 100, "E: broken packages")

    with pytest.raises(StageError) as ei:
        run_step(Reporter(cap), Stage.DATABASE, "Installing MariaDB", boom)
    assert ei.value.stage == "database"
    assert str(ei.value).startswith("Installing MariaDB failed:")
    assert isinstance(ei.value.__cause__, CommandFailure)
    assert _pairs(cap.events) == [(Stage.DATABASE, Status.RUNNING), (Stage.DATABASE, Status.FAILED)]
    assert "broken packages" in cap.events[-1].detail


def test_best_effort_failure_is_downgraded():
    cap = Capture()

    def boom():
        raise CommandFailure("Certificate issuance", 1, "DNS problem: NXDOMAIN")

    res = run_step(Reporter(cap), Stage.SSL, "Setting up SSL", boom, best_effort=True, hint="fix DNS")
    assert not res.ok
    assert _pairs(cap.events) == [(Stage.SSL, Status.RUNNING), (Stage.SSL, Status.COMPLETED)]
    assert "NXDOMAIN" in cap.events[-1].detail
    assert cap.events[-1].detail.endswith("fix DNS")


def test_best_effort_does_not_hide_programming_errors():
    cap = Capture()
    with pytest.raises(StageError):
        run_step(Reporter(cap), Stage.SSL, "Setting up SSL", lambda: 1 / 0, best_effort=True)
    assert cap.events[-1].status is Status.FAILED


def test_reporter_stops_emitting_once_reader_is_gone():
    sink = QueueSink()
    rep = Reporter(sink)
    rep.emit(Stage.NGINX, Status.RUNNING, "a")
    sink.close()
    rep.emit(Stage.NGINX, Status.COMPLETED, "b")
    rep.emit(Stage.DATABASE, Status.RUNNING, "c")
    assert rep.detached
    assert sink.get(timeout=0).message == "a"
    assert len(rep.history) == 3


def test_reporter_survives_a_sink_that_raises():
    calls = []

    def fn(ev):
        calls.append(ev)
        raise SinkClosed("gone")

    rep = Reporter(CallbackSink(fn))
    rep.emit(Stage.NGINX, Status.RUNNING, "a")
    rep.emit(Stage.NGINX, Status.COMPLETED, "b")
    assert len(calls) == 1
    assert rep.detached


def test_ensure_package_skips_install_when_present(make_session):
    sess = make_session()
    installed = ensure_package(SSHRunner(sess), "nginx", "command -v nginx", "apt-get install -y nginx", "systemctl start nginx")
    assert installed is False
    assert sess.ran("apt-get install") == []
    assert sess.ran("systemctl start nginx")


def test_ensure_package_installs_when_absent(make_session):
    sess = make_session([("command -v nginx", ("", "", 1))])
    installed = ensure_package(SSHRunner(sess), "nginx", "command -v nginx", "apt-get install -y nginx", "systemctl start nginx")
    assert installed is True
    assert sess.index_of("apt-get install") < sess.index_of("systemctl start nginx")


def test_reporter_survives_a_callback_with_a_bug():
    def fn(ev):
        raise KeyError("stage")

    rep = Reporter(CallbackSink(fn))
    res = run_step(rep, Stage.NGINX, "Installing Nginx", lambda: "Nginx installed and running")
    assert res.ok
    assert rep.detached
    assert [e.status for e in rep.history] == [Status.RUNNING, Status.COMPLETED]
