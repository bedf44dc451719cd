from __future__ import annotations

import os
import threading
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request, send_file

from app.harvester import config
from app.harvester.config_validation import validate_runtime_config
from app.harvester.errors import ProgressStoreError
from app.harvester.export_excel import export_records_to_excel
from app.harvester.healthcheck import run_health_checks
from app.harvester.logging_utils import _harvest_event
from app.harvester.progress import ProgressStore
from app.harvester.run import run_harvest
from app.harvester.sink import build_record_sink
from app.harvester.storage import build_key_value_store
from app.harvester.utils import ensure_dirs, load_json_file, log_line

app = Flask(__name__)

# Only one harvest may drive the browser and mutate progress at a time.
_RUN_LOCK = threading.Lock()


def _progress_store() -> ProgressStore:
    return ProgressStore(build_key_value_store(), key=config.PROGRESS_KEY)


def _progress_payload(store: ProgressStore) -> Dict[str, Any]:
    state = store.snapshot()
    return {
        "cursor": state.cursor,
        "seen_count": len(state.seen),
        "backend": config.PROGRESS_BACKEND,
    }


def _progress_error(exc: ProgressStoreError) -> Response:
    _harvest_event("error", phase="api", error_code=exc.error_code, error=str(exc))
    return jsonify({"ok": False, "error": exc.error_code, "detail": str(exc)}), 500


def _parse_quota(raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise ValueError("quota must be an integer")
    quota = int(raw)
    if quota < 0:
        raise ValueError("quota must be non-negative")
    return quota


@app.get("/api/health")
def api_health() -> Response:
    """Return a JSON health summary for configuration, filesystem and storage."""

    result = run_health_checks(entrypoint="api")
    status = 200 if result.ok else 503
    return jsonify({"ok": result.ok, "checks": result.checks}), status


@app.get("/api/progress")
def api_progress() -> Response:
    ensure_dirs()
    try:
        store = _progress_store()
        store.load()
    except ProgressStoreError as exc:
        return _progress_error(exc)
    return jsonify({"ok": True, "running": _RUN_LOCK.locked(), **_progress_payload(store)})


def _mutate_progress(action: str) -> Response:
    if not _RUN_LOCK.acquire(blocking=False):
        return jsonify({"ok": False, "error": "run_in_progress"}), 409
    try:
        ensure_dirs()
        store = _progress_store()
        if action == "reset":
            store.reset()
        else:
            store.clear()
    except ProgressStoreError as exc:
        return _progress_error(exc)
    finally:
        _RUN_LOCK.release()
    log_line(f"[API] Progress {action} requested")
    return jsonify({"ok": True, "action": action, **_progress_payload(store)})


@app.post("/api/progress/reset")
def api_progress_reset() -> Response:
    """Rewind the cursor to 0 while keeping the seen set."""

    return _mutate_progress("reset")


@app.post("/api/progress/clear")
def api_progress_clear() -> Response:
    """Forget both the cursor and the seen set."""

    return _mutate_progress("clear")


@app.post("/api/runs")
def api_start_run() -> Response:
    payload = request.get_json(silent=True) or {}
    seed_url = str(payload.get("seed_url") or "").strip() or None
    reset_progress = bool(payload.get("reset_progress"))
    try:
        quota = _parse_quota(payload.get("quota"))
    except (TypeError, ValueError) as exc:
        return jsonify({"ok": False, "error": "invalid_quota", "detail": str(exc)}), 400

    try:
        validate_runtime_config("api")
    except ValueError as exc:
        return jsonify({"ok": False, "error": "invalid_config", "detail": str(exc)}), 400

    if not _RUN_LOCK.acquire(blocking=False):
        _harvest_event("state", phase="api", kind="run_rejected", reason="run_in_progress")
        return jsonify({"ok": False, "error": "run_in_progress"}), 409

    def _run() -> None:
        try:
            summary = run_harvest(
                seed_url=seed_url,
                quota=quota,
                reset_progress=reset_progress,
                trigger="api",
            )
            app.config["LAST_SUMMARY"] = summary.to_dict()
        except Exception as exc:  # noqa: BLE001
            log_line(f"Harvest thread failed: {exc}")
        finally:
            _RUN_LOCK.release()

    try:
        threading.Thread(target=_run, daemon=True).start()
    except RuntimeError:
        _RUN_LOCK.release()
        raise

    return (
        jsonify(
            {
                "ok": True,
                "accepted": True,
                "seed_url": seed_url or config.DEFAULT_SEED_URL,
                "quota": config.RUN_QUOTA if quota is None else quota,
            }
        ),
        202,
    )


@app.get("/api/runs/latest")
def api_runs_latest() -> Response:
    """Return the summary of the most recent completed run."""

    summary = app.config.get("LAST_SUMMARY") or load_json_file(config.SUMMARY_FILE)
    running = _RUN_LOCK.locked()
    if not summary:
        return jsonify({"ok": False, "error": "no runs", "running": running}), 404
    return jsonify({"ok": True, "running": running, "run": summary})


@app.get("/api/records")
def api_records() -> Response:
    """Return the most recent emitted records, newest last."""

    limit = request.args.get("limit", type=int) or config.RECORDS_PAGE_MAX
    limit = max(1, min(limit, config.RECORDS_PAGE_MAX))
    records = build_record_sink().read_records(limit=limit)
    return jsonify({"ok": True, "count": len(records), "records": records})


@app.get("/api/exports/latest.xlsx")
def api_export_latest_xlsx() -> Response:
    path = export_records_to_excel()
    return send_file(path, as_attachment=True, download_name=os.path.basename(path))


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=8080)
