from pathlib import Path

import pytest

from app.harvester import logging_utils, utils
from tests.test_app_api import _configure_temp_paths


def test_harvest_event_label_and_phase(monkeypatch):
    events: list[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg: events.append(msg))

    logging_utils._harvest_event("state", phase="loader", kind="grow_finished")

    assert events
    line = events[-1]
    assert line.startswith("[HARVEST][STATE]")
    assert "phase='loader'" in line
    assert "kind='grow_finished'" in line


def test_harvest_event_phase_only_becomes_label(monkeypatch):
    events: list[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg: events.append(msg))

    logging_utils._harvest_event(phase="pipeline", emitted=3)

    assert events == ["[HARVEST][PIPELINE] emitted=3"]


def test_harvest_event_never_raises(monkeypatch):
    def broken(msg: str) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(logging_utils, "log_line", broken)

    logging_utils._harvest_event("error", phase="run", error_code="sink_unavailable")


def test_setup_run_logger_writes_timestamped_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)

    log_path = utils.setup_run_logger()
    utils.log_line("hello from the harvester")

    assert log_path.name.startswith("harvest_")
    assert utils.get_current_log_path() == log_path
    assert "hello from the harvester" in log_path.read_text(encoding="utf-8")
