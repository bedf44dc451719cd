from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from . import config
from .config_validation import Entrypoint, validate_runtime_config
from .errors import HarvestError
from .logging_utils import _harvest_event
from .progress import ProgressStore
from .sink import build_record_sink
from .storage import build_key_value_store
from .utils import disk_has_room, ensure_dirs, log_line


@dataclass
class HealthResult:
    ok: bool
    checks: dict[str, dict[str, Any]]


def run_health_checks(entrypoint: Entrypoint = "cli") -> HealthResult:
    checks: dict[str, dict[str, Any]] = {}

    try:
        validate_runtime_config(entrypoint or "cli")
        checks["config"] = {"ok": True}
    except ValueError as exc:
        checks["config"] = {"ok": False, "error": str(exc)}

    ensure_dirs()
    fs_ok = disk_has_room(config.MIN_FREE_MB, config.DATA_DIR)
    checks["filesystem"] = {
        "ok": fs_ok,
        "data_dir": str(config.DATA_DIR),
        "min_free_mb": config.MIN_FREE_MB,
    }

    try:
        state = ProgressStore(build_key_value_store(), key=config.PROGRESS_KEY).load()
        checks["progress"] = {
            "ok": True,
            "backend": config.PROGRESS_BACKEND,
            "cursor": state.cursor,
            "seen_count": len(state.seen),
        }
    except (HarvestError, ValueError) as exc:
        checks["progress"] = {"ok": False, "backend": config.PROGRESS_BACKEND, "error": str(exc)}

    try:
        sink = build_record_sink()
        sink.read_records(limit=1)
        writable = os.access(config.DATA_DIR, os.W_OK)
        checks["sink"] = {"ok": writable, "backend": config.SINK_BACKEND, "writable": writable}
    except Exception as exc:  # noqa: BLE001
        checks["sink"] = {"ok": False, "backend": config.SINK_BACKEND, "error": str(exc)}

    overall_ok = all(check.get("ok", False) for check in checks.values())

    _harvest_event(
        "state" if overall_ok else "error",
        phase="health",
        context="healthcheck",
        ok=overall_ok,
        checks=checks,
    )

    return HealthResult(ok=overall_ok, checks=checks)


if __name__ == "__main__":  # pragma: no cover
    result = run_health_checks(entrypoint="cli")
    for name, info in result.checks.items():
        status = "OK" if info.get("ok") else "FAIL"
        log_line(f"[HEALTH] {name}: {status} {info}")
    raise SystemExit(0 if result.ok else 1)
