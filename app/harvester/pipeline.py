"""Sequential per-entry processing: resolve, dedup, extract, emit, checkpoint."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Iterable, Iterator, Optional, Sequence, Tuple

from .driver import ListingDriver
from .enrichment import Enricher
from .error_codes import ErrorCode
from .errors import EntryError, MissingReference, RunError
from .identity import resolve
from .logging_utils import _harvest_event
from .models import (
    STATUS_EXHAUSTED,
    STATUS_QUOTA_REACHED,
    RawEntry,
    RunSummary,
)
from .outreach import TextGenerator, generate_outreach
from .progress import ProgressStore
from .sink import RecordSink
from .telemetry import RunTelemetry
from .utils import log_line


def _iter_candidates(candidates: Iterable[RawEntry], start: int) -> Iterator[Tuple[int, RawEntry]]:
    iter_from = getattr(candidates, "iter_from", None)
    if callable(iter_from):
        yield from iter_from(start)
        return
    for index, entry in enumerate(candidates):
        if index >= start:
            yield index, entry


class EntryPipeline:
    """Walks candidates one at a time from a start index until the quota is met.

    Every handled position advances the cursor exactly once. Entry-scoped
    failures become skips; run-scoped failures end the walk with a fatal
    summary. A record is checkpointed only after the sink accepted it.
    """

    def __init__(
        self,
        driver: ListingDriver,
        store: ProgressStore,
        sink: RecordSink,
        *,
        enricher: Optional[Enricher] = None,
        generator: Optional[TextGenerator] = None,
        services: Optional[Sequence[str]] = None,
        sender: Optional[str] = None,
        telemetry: Optional[RunTelemetry] = None,
    ) -> None:
        self.driver = driver
        self.store = store
        self.sink = sink
        self.enricher = enricher or Enricher()
        self.generator = generator
        self.services = services
        self.sender = sender
        self.telemetry = telemetry

    def _record(self, status: str, reason: str, **meta: Any) -> None:
        if self.telemetry is not None:
            self.telemetry.add(status, reason, meta)

    def _extract(self, index: int, entry: RawEntry) -> Tuple[Optional[dict], Optional[str], str]:
        try:
            return self.driver.open_entry(entry), None, ""
        except EntryError as exc:
            return None, exc.error_code, str(exc)
        except RunError:
            raise
        except Exception as exc:  # noqa: BLE001
            return None, ErrorCode.EXTRACTION_ERROR, repr(exc)
        finally:
            self._close(index)

    def _close(self, index: int) -> None:
        try:
            self.driver.close_entry()
        except Exception as exc:  # noqa: BLE001
            # Closing is best effort; the next open starts from the listing anyway.
            _harvest_event("error", phase="pipeline", kind="close_failed", index=index, error=repr(exc))

    def process(
        self,
        candidates: Iterable[RawEntry],
        start_index: int,
        quota: int,
        *,
        summary: Optional[RunSummary] = None,
    ) -> RunSummary:
        summary = summary or RunSummary()
        summary.quota = quota
        summary.cursor_start = start_index
        if hasattr(candidates, "__len__"):
            summary.discovered = len(candidates)  # type: ignore[arg-type]

        if quota <= 0:
            summary.status = STATUS_QUOTA_REACHED
            summary.cursor_end = self.store.snapshot().cursor
            return summary

        summary.status = STATUS_EXHAUSTED
        try:
            for index, entry in _iter_candidates(candidates, start_index):
                if self._handle(index, entry, summary) and summary.emitted >= quota:
                    summary.status = STATUS_QUOTA_REACHED
                    break
        except RunError as exc:
            summary.mark_fatal(exc.error_code)
            _harvest_event("error", phase="pipeline", error_code=exc.error_code, error=str(exc))

        summary.cursor_end = self.store.snapshot().cursor
        _harvest_event(
            "state",
            phase="pipeline",
            kind="finished",
            status=summary.status,
            emitted=summary.emitted,
            skipped=summary.skipped,
            unresolved=summary.unresolved,
            failed=summary.failed,
            cursor=summary.cursor_end,
        )
        return summary

    def _handle(self, index: int, entry: RawEntry, summary: RunSummary) -> bool:
        """Process one position; return ``True`` when a record was emitted."""

        try:
            identity = resolve(entry)
        except MissingReference as exc:
            summary.unresolved += 1
            self.store.mark_skipped(index)
            self._record("unresolved", exc.error_code, index=index)
            return False

        if self.store.is_seen(identity):
            summary.skipped += 1
            self.store.mark_skipped(index)
            self._record("skipped", "seen", index=index, place_id=identity)
            return False

        summary.attempted += 1
        fields, error_code, error_message = self._extract(index, entry)
        if fields is None:
            summary.failed += 1
            summary.bump_failure(error_code or ErrorCode.EXTRACTION_ERROR)
            self.store.mark_skipped(index)
            log_line(f"Skipped index {index}: {error_message}")
            self._record("failed", error_code or ErrorCode.EXTRACTION_ERROR, index=index, place_id=identity)
            return False

        record = self.enricher.enrich(fields, identity)
        outreach = generate_outreach(
            self.generator, record, services=self.services, sender=self.sender
        )
        record = replace(record, outreach=outreach)

        self.sink.append(record)
        self.store.mark_processed(identity, index)
        summary.emitted += 1

        log_line(f"Extracted {summary.emitted}: {record.title}")
        self._record(
            "emitted",
            outreach.source,
            index=index,
            place_id=identity,
            title=record.title,
            category=record.category,
            industry=record.industry,
        )
        return True


__all__ = ["EntryPipeline"]
