from __future__ import annotations

from typing import Optional

from .error_codes import ErrorCode


class HarvestError(Exception):
    """Base class for harvester failures carrying a stable error code."""

    error_code: str = ErrorCode.INTERNAL

    def __init__(self, message: str = "", *, error_code: Optional[str] = None) -> None:
        super().__init__(message)
        if error_code:
            self.error_code = error_code

    def __str__(self) -> str:  # pragma: no cover - inherited behaviour
        return str(self.args[0]) if self.args else ""


class EntryError(HarvestError):
    """Failure scoped to a single listing entry; the run continues."""


class MissingReference(EntryError):
    error_code = ErrorCode.MISSING_REFERENCE


class ExtractionTimeout(EntryError):
    error_code = ErrorCode.EXTRACTION_TIMEOUT


class PanelNotLoaded(EntryError):
    error_code = ErrorCode.PANEL_NOT_LOADED


class GenerationError(EntryError):
    error_code = ErrorCode.GENERATION_ERROR

    def __init__(self, message: str = "", *, http_status: int | None = None) -> None:
        super().__init__(message)
        self.http_status = http_status


class RunError(HarvestError):
    """Failure that stops the current run."""


class ListingUnavailable(RunError):
    error_code = ErrorCode.LISTING_UNAVAILABLE


class SinkUnavailable(RunError):
    error_code = ErrorCode.SINK_UNAVAILABLE


class ProgressStoreError(RunError):
    error_code = ErrorCode.PROGRESS_STORE


__all__ = [
    "HarvestError",
    "EntryError",
    "MissingReference",
    "ExtractionTimeout",
    "PanelNotLoaded",
    "GenerationError",
    "RunError",
    "ListingUnavailable",
    "SinkUnavailable",
    "ProgressStoreError",
]
