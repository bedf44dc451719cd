"""Run telemetry and analytics helpers."""

from __future__ import annotations

import json
import os
import time
import uuid
from collections import defaultdict
from typing import Any, Dict, List, Optional

from . import config


def _ts() -> str:
    return time.strftime("%Y%m%d_%H%M%S")


def new_run_id() -> str:
    return f"{_ts()}_{uuid.uuid4().hex[:8]}"


class RunTelemetry:
    """Collect per-entry outcomes for analytics and export."""

    def __init__(self, trigger: str, run_id: Optional[str] = None) -> None:
        self.run_id = run_id or new_run_id()
        self.trigger = trigger
        self.started_at = time.time()
        self.entries: List[Dict[str, Any]] = []
        self.summary: Dict[str, Any] = defaultdict(int)

    def add(self, status: str, reason: str, meta: Dict[str, Any]) -> None:
        self.entries.append(
            {
                "status": status,
                "reason": reason,
                **meta,
            }
        )
        self.summary[f"count_{status}"] += 1

    def finalize(self, extra: Optional[Dict[str, Any]] = None) -> str:
        runs_dir = str(config.RUNS_DIR)
        os.makedirs(runs_dir, exist_ok=True)
        payload = {
            "run_id": self.run_id,
            "trigger": self.trigger,
            "started_at": self.started_at,
            "ended_at": time.time(),
            "summary": dict(self.summary),
            "entries": self.entries,
            **(extra or {}),
        }
        path = os.path.join(runs_dir, f"run_{self.run_id}.json")
        with open(path, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2, default=str)
        return path


def latest_run_json_path() -> Optional[str]:
    """Return the most recent run telemetry JSON path, if any."""

    runs_dir = str(config.RUNS_DIR)
    if not os.path.isdir(runs_dir):
        return None

    runs = sorted(
        os.path.join(runs_dir, path) for path in os.listdir(runs_dir) if path.endswith(".json")
    )
    return runs[-1] if runs else None


def prune_old_exports(keep: Optional[int] = None) -> None:
    exports_dir = str(config.EXPORTS_DIR)
    max_exports = int(os.environ.get("EXPORTS_KEEP_MAX", "5")) if keep is None else keep
    files = sorted(
        [os.path.join(exports_dir, p) for p in os.listdir(exports_dir) if p.endswith(".xlsx")]
    )
    while len(files) > max_exports:
        old = files.pop(0)
        try:
            os.remove(old)
        except OSError:
            continue


__all__ = [
    "RunTelemetry",
    "new_run_id",
    "latest_run_json_path",
    "prune_old_exports",
]
