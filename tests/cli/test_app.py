import json
import logging
import textwrap

import pytest
from typer.testing import CliRunner

import wpstack.cli.app as app_mod
from wpstack.install.models import ProbeResult, ServerInfo
from wpstack.observers.events import ProgressEvent, Stage, Status

runner = CliRunner()


@pytest.fixture
def request_file(tmp_path):
    f = tmp_path / "request.yaml"
    f.write_text(textwrap.dedent("""
        connection:
          host: 203.0.113.10
          username: ubuntu
          password: pw
        site:
          domain: example.com
    """))
    return f


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch, tmp_path):
    monkeypatch.setattr(
        app_mod, "init_logging",
        lambda verbose=False: (logging.getLogger("wpstack-cli-test"), "run-1", tmp_path / "run.log"),
    )


def _events(final):
    yield ProgressEvent(stage=Stage.CONNECTING, status=Status.RUNNING, message="Connecting to server...")
    yield final


def test_install_prints_completion_record(monkeypatch, request_file, tmp_path):
    record = {"siteUrl": "http://example.com", "adminUser": "admin"}
    final = ProgressEvent(stage=Stage.COMPLETE, status=Status.COMPLETED, message="done", result=record)
    monkeypatch.setattr(app_mod, "stream_installation", lambda *a, **kw: _events(final))

    events_file = tmp_path / "events.jsonl"
    res = runner.invoke(app_mod.app, ["install", str(request_file), "--events-file", str(events_file)])

    assert res.exit_code == 0, res.output
    assert '"siteUrl": "http://example.com"' in res.output
    assert len(events_file.read_text().splitlines()) == 2
    assert json.loads(events_file.read_text().splitlines()[-1])["step"] == "complete"


def test_install_failure_exits_nonzero(monkeypatch, request_file):
    final = ProgressEvent(stage=Stage.ERROR, status=Status.FAILED, message="Installing MariaDB failed", detail="database")
    monkeypatch.setattr(app_mod, "stream_installation", lambda *a, **kw: _events(final))
    res = runner.invoke(app_mod.app, ["install", str(request_file)])
    assert res.exit_code == 1


def test_invalid_request_exits_2(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("connection: {host: h.example}\nsite: {domain: nope}\n")
    res = runner.invoke(app_mod.app, ["install", str(bad)])
    assert res.exit_code == 2


def test_probe_reports_server(monkeypatch, request_file):
    monkeypatch.setattr(
        app_mod, "probe_host",
        lambda conn, settings: ProbeResult(success=True, server=ServerInfo("Ubuntu 24.04 LTS", "7.7Gi", "80G")),
    )
    res = runner.invoke(app_mod.app, ["probe", str(request_file)])
    assert res.exit_code == 0
    assert "Ubuntu 24.04 LTS" in res.output
    assert "80G" in res.output
