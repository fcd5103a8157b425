import json
import logging
import stat

from wpstack.observers.dispatcher import EventBus
from wpstack.observers.events import ProgressEvent, Stage, Status
from wpstack.observers.jsonfile import JsonFileObserver
from wpstack.observers.logger import LoggerObserver
from wpstack.observers.sinks import BusSink


def _complete():
    return ProgressEvent(
        stage=Stage.COMPLETE, status=Status.COMPLETED, message="WordPress installation complete!",
        result={"siteUrl": "http://example.com", "dbPassword": "x" * 32}, run_id="r-1",
    )


def test_wire_record_shape():
    ev = ProgressEvent(stage=Stage.PHP, status=Status.COMPLETED, message="PHP 8.3 installed", detail="imagick skipped")
    assert ev.to_wire() == {
        "step": "php", "status": "completed", "message": "PHP 8.3 installed", "details": "imagick skipped",
    }
    running = ProgressEvent(stage=Stage.PHP, status=Status.RUNNING, message="Installing PHP...")
    assert set(running.to_wire()) == {"step", "status", "message"}
    assert _complete().to_wire()["result"]["siteUrl"] == "http://example.com"


def test_only_run_level_records_end_the_run():
    assert _complete().ends_run
    assert ProgressEvent(stage=Stage.ERROR, status=Status.FAILED, message="x").ends_run
    assert not ProgressEvent(stage=Stage.SSL, status=Status.COMPLETED, message="x").ends_run


def test_json_file_is_private_and_line_per_event(tmp_path):
    path = tmp_path / "runs" / "events.jsonl"
    ob = JsonFileObserver(path)
    ob.notify(ProgressEvent(stage=Stage.NGINX, status=Status.RUNNING, message="Installing Nginx...", run_id="r-1"))
    ob.notify(_complete())

    assert stat.S_IMODE(path.stat().st_mode) == 0o600
    lines = [json.loads(l) for l in path.read_text().splitlines()]
    assert [l["step"] for l in lines] == ["nginx", "complete"]
    assert all(l["run_id"] == "r-1" and l["ts"] for l in lines)


def test_event_bus_keeps_going_when_an_observer_breaks():
    seen = []

    class Broken:
        def notify(self, ev): raise RuntimeError("boom")

    class Good:
        def notify(self, ev): seen.append(ev)

    bus = EventBus([Broken(), Good()])
    bus.emit(_complete())
    assert len(seen) == 1


def test_logger_observer_never_logs_the_completion_record(caplog):
    logger = logging.getLogger("wpstack-test-observer")
    with caplog.at_level(logging.DEBUG, logger="wpstack-test-observer"):
        LoggerObserver(logger).notify(_complete())
        LoggerObserver(logger).notify(
            ProgressEvent(stage=Stage.DATABASE, status=Status.FAILED, message="Installing MariaDB failed", detail="dpkg error")
        )
    assert "x" * 32 not in caplog.text
    assert [r.levelno for r in caplog.records] == [logging.INFO, logging.ERROR]


def test_bus_sink_fans_out_and_stays_writable():
    seen = []

    class Good:
        def notify(self, ev): seen.append(ev.stage)

    sink = BusSink(EventBus([Good(), Good()]))
    sink.emit(_complete())
    assert sink.writable
    assert seen == [Stage.COMPLETE, Stage.COMPLETE]
