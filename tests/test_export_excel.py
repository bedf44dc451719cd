from __future__ import annotations

import json
import os
from pathlib import Path

import pandas as pd
import pytest

from app.harvester import config, telemetry
from app.harvester.export_excel import export_records_to_excel
from app.harvester.sink import JsonLinesSink
from app.harvester.telemetry import RunTelemetry, latest_run_json_path, prune_old_exports
from tests.test_app_api import _configure_temp_paths, _reload_main_module
from tests.test_storage import _record


def _seed_run() -> RunTelemetry:
    run = RunTelemetry("tests", run_id="20240101_000000_abcd1234")
    run.add("emitted", "fallback", {"index": 0, "place_id": "/maps/place/A", "industry": "food"})
    run.add("skipped", "seen", {"index": 1, "place_id": "/maps/place/B"})
    run.add("failed", "extraction_timeout", {"index": 2, "place_id": "/maps/place/C"})
    run.finalize({"result": {"status": "exhausted"}})
    return run


def test_finalize_writes_run_json(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)

    run = _seed_run()

    path = latest_run_json_path()
    assert path is not None and path.endswith(f"run_{run.run_id}.json")
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    assert payload["summary"] == {"count_emitted": 1, "count_skipped": 1, "count_failed": 1}
    assert payload["result"]["status"] == "exhausted"


def test_latest_run_json_path_without_runs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)

    assert latest_run_json_path() is None


def test_export_writes_records_and_run_sheets(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    sink = JsonLinesSink(config.RECORDS_LOG)
    sink.append(_record("A"))
    sink.append(_record("B"))
    _seed_run()

    path = export_records_to_excel()

    assert os.path.basename(path) == "places_20240101_000000_abcd1234.xlsx"
    sheets = pd.read_excel(path, sheet_name=None)
    assert {"Records", "Latest_Run", "Summary_Status", "Summary_Reason"} <= set(sheets)
    records = sheets["Records"]
    assert list(records["title"]) == ["Place A", "Place B"]
    assert list(records.columns[:3]) == ["title", "category", "industry"]
    assert set(sheets["Summary_Status"]["status"]) == {"emitted", "skipped", "failed"}


def test_export_without_records_or_runs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    dest = tmp_path / "empty.xlsx"

    path = export_records_to_excel(str(dest))

    assert path == str(dest)
    sheets = pd.read_excel(path, sheet_name=None)
    assert sheets["Records"].empty
    assert "info" in sheets["Latest_Run"].columns


def test_prune_old_exports_keeps_newest(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    config.EXPORTS_DIR.mkdir(parents=True, exist_ok=True)
    for idx in range(7):
        (config.EXPORTS_DIR / f"places_{idx:02d}.xlsx").write_bytes(b"x")

    prune_old_exports(keep=5)

    remaining = sorted(p.name for p in config.EXPORTS_DIR.iterdir())
    assert remaining == [f"places_{idx:02d}.xlsx" for idx in range(2, 7)]


def test_export_api_returns_workbook(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    JsonLinesSink(config.RECORDS_LOG).append(_record("A"))
    _seed_run()

    main = _reload_main_module()
    resp = main.app.test_client().get("/api/exports/latest.xlsx")

    assert resp.status_code == 200
    assert "places_20240101_000000_abcd1234.xlsx" in resp.headers["Content-Disposition"]
    resp.close()


def test_new_run_ids_are_unique() -> None:
    assert telemetry.new_run_id() != telemetry.new_run_id()
