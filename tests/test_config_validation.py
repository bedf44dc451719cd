from __future__ import annotations

from pathlib import Path

import pytest

from app.harvester import config
from app.harvester.config_validation import validate_runtime_config
from tests.test_app_api import _configure_temp_paths


def test_valid_config_passes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)

    validate_runtime_config("tests")


@pytest.mark.parametrize(
    "field, value",
    [
        ("PROGRESS_BACKEND", "redis"),
        ("SINK_BACKEND", "s3"),
        ("RUN_QUOTA", -1),
        ("MIN_FREE_MB", -5),
        ("PLAYWRIGHT_NAV_TIMEOUT_SECONDS", 0),
        ("PANEL_TIMEOUT_MS", 0),
        ("GENERATION_TIMEOUT_SECONDS", -1),
    ],
)
def test_blocking_misconfiguration_raises(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, field: str, value
) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    monkeypatch.setattr(config, field, value)

    with pytest.raises(ValueError):
        validate_runtime_config("cli")


@pytest.mark.parametrize("field", ["STABLE_ROUNDS", "MAX_GROW_ROUNDS", "MAX_CANDIDATES", "LISTING_RETRY_BUDGET"])
def test_soft_knobs_are_clamped(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, field: str) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    monkeypatch.setattr(config, field, 0)

    validate_runtime_config("api")

    assert getattr(config, field) == 1


def test_parse_timeout_seconds_bounds(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HARVEST_TEST_TIMEOUT", "-4")
    assert config._parse_timeout_seconds("HARVEST_TEST_TIMEOUT", 30) == 1

    monkeypatch.setenv("HARVEST_TEST_TIMEOUT", "soon")
    assert config._parse_timeout_seconds("HARVEST_TEST_TIMEOUT", 30) == 30
