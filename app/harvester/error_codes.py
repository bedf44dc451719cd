"""Centralised error code taxonomy for harvest failures.

These codes appear in run summaries, telemetry entries and structured logs so
that we can explain why an entry was skipped or a run stopped. They should
stay stable for reporting.
"""
from __future__ import annotations


class ErrorCode:
    # Entry-scoped: the position is skipped and the run continues.
    MISSING_REFERENCE = "missing_reference"
    EXTRACTION_TIMEOUT = "extraction_timeout"
    PANEL_NOT_LOADED = "panel_not_loaded"
    EXTRACTION_ERROR = "extraction_error"
    # Entry-scoped: fallback outreach text is substituted.
    GENERATION_ERROR = "generation_error"
    # Run-scoped: the run stops.
    LISTING_UNAVAILABLE = "listing_unavailable"
    SINK_UNAVAILABLE = "sink_unavailable"
    PROGRESS_STORE = "progress_store_error"
    BROWSER_UNAVAILABLE = "browser_unavailable"
    INTERNAL = "internal_error"


__all__ = ["ErrorCode"]
