"""Excel export helpers for harvested records and run telemetry."""

from __future__ import annotations

import json
import os
import time
from typing import Any, Dict, List, Optional

import pandas as pd

from . import config
from .sink import RecordSink, build_record_sink
from .telemetry import latest_run_json_path, prune_old_exports

RECORD_COLUMNS = [
    "title",
    "category",
    "industry",
    "rating",
    "reviews_count",
    "sentiment",
    "phone",
    "website",
    "address",
    "has_website",
    "has_phone",
    "whatsapp",
    "email_subject",
    "email_body",
    "outreach_source",
    "place_id",
    "source_url",
    "extracted_at",
]


def _load_latest_run() -> Dict[str, Any]:
    run_path = latest_run_json_path()
    if not run_path:
        return {}
    with open(run_path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _records_frame(records: List[Dict[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame(records)
    if df.empty:
        return pd.DataFrame(columns=RECORD_COLUMNS)
    ordered = [col for col in RECORD_COLUMNS if col in df.columns]
    extra = [col for col in df.columns if col not in RECORD_COLUMNS]
    return df[ordered + extra]


def export_records_to_excel(
    dest_path: Optional[str] = None, *, sink: Optional[RecordSink] = None
) -> str:
    """Write every emitted record plus the latest run's outcomes to a workbook."""

    records = (sink or build_record_sink()).read_records()
    run_payload = _load_latest_run()

    records_df = _records_frame(records)
    entries_df = pd.DataFrame(run_payload.get("entries", []))
    if entries_df.empty:
        entries_df = pd.DataFrame([{"info": "No entries in latest run"}])

    def safe_pivot(frame: pd.DataFrame, by: List[str]) -> pd.DataFrame:
        if frame.empty or not all(col in frame.columns for col in by):
            return pd.DataFrame()
        return frame.groupby(by).size().reset_index(name="count").sort_values("count", ascending=False)

    summary_status = safe_pivot(entries_df, ["status"])
    summary_reason = safe_pivot(entries_df, ["status", "reason"])
    summary_industry = safe_pivot(records_df, ["industry"])

    exports_dir = str(config.EXPORTS_DIR)
    os.makedirs(exports_dir, exist_ok=True)
    if not dest_path:
        label = run_payload.get("run_id") or time.strftime("%Y%m%d_%H%M%S")
        dest_path = os.path.join(exports_dir, f"places_{label}.xlsx")

    with pd.ExcelWriter(dest_path, engine="openpyxl") as writer:
        records_df.to_excel(writer, index=False, sheet_name="Records")
        entries_df.to_excel(writer, index=False, sheet_name="Latest_Run")
        summary_status.to_excel(writer, index=False, sheet_name="Summary_Status")
        if not summary_reason.empty:
            summary_reason.to_excel(writer, index=False, sheet_name="Summary_Reason")
        if not summary_industry.empty:
            summary_industry.to_excel(writer, index=False, sheet_name="Summary_Industry")

    prune_old_exports()
    return dest_path


__all__ = ["export_records_to_excel", "RECORD_COLUMNS"]
