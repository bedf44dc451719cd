from __future__ import annotations

from pathlib import Path

import pytest

from app.harvester import config, healthcheck
from tests.test_app_api import _configure_temp_paths, _reload_main_module, _write_state


def test_run_health_checks_happy_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    _write_state(2, ["/maps/place/A"])

    result = healthcheck.run_health_checks(entrypoint="tests")

    assert result.ok is True
    assert result.checks["config"]["ok"] is True
    assert result.checks["filesystem"]["ok"] is True
    assert result.checks["progress"]["cursor"] == 2
    assert result.checks["progress"]["seen_count"] == 1
    assert result.checks["sink"]["ok"] is True


def test_run_health_checks_with_sqlite_backends(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    monkeypatch.setattr(config, "PROGRESS_BACKEND", "sqlite")
    monkeypatch.setattr(config, "SINK_BACKEND", "sqlite")

    result = healthcheck.run_health_checks(entrypoint="tests")

    assert result.ok is True
    assert result.checks["progress"]["backend"] == "sqlite"
    assert config.DB_PATH.exists()


def test_run_health_checks_handles_invalid_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    monkeypatch.setattr(config, "MIN_FREE_MB", -1)

    result = healthcheck.run_health_checks(entrypoint="cli")

    assert result.ok is False
    assert result.checks["config"]["ok"] is False


def test_run_health_checks_flags_corrupt_progress(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    config.STATE_DIR.mkdir(parents=True, exist_ok=True)
    (config.STATE_DIR / "STATE.json").write_text("[]", encoding="utf-8")

    result = healthcheck.run_health_checks(entrypoint="tests")

    assert result.ok is False
    assert result.checks["progress"]["ok"] is False


def test_health_api_reports_status(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)

    main = _reload_main_module()
    client = main.app.test_client()

    resp = client.get("/api/health")
    assert resp.status_code == 200
    payload = resp.get_json()
    assert payload["ok"] is True
    assert "filesystem" in payload["checks"]

    config.STATE_DIR.mkdir(parents=True, exist_ok=True)
    (config.STATE_DIR / "STATE.json").write_text("{broken", encoding="utf-8")

    resp_unhealthy = client.get("/api/health")
    assert resp_unhealthy.status_code == 503
    data_unhealthy = resp_unhealthy.get_json()
    assert data_unhealthy["ok"] is False
    assert data_unhealthy["checks"]["progress"]["ok"] is False
