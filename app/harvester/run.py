from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from playwright.sync_api import Error as PWError

from . import config
from .browser import browser_session
from .config_validation import validate_runtime_config
from .driver import ListingDriver, PlaywrightListingDriver
from .enrichment import Enricher
from .error_codes import ErrorCode
from .errors import HarvestError
from .loader import LazyListLoader
from .logging_utils import _harvest_event
from .models import STATUS_EXHAUSTED, STATUS_QUOTA_REACHED, RunSummary
from .outreach import TextGenerator, build_text_generator
from .pipeline import EntryPipeline
from .progress import ProgressStore
from .sink import RecordSink, build_record_sink
from .storage import build_key_value_store
from .telemetry import RunTelemetry
from .utils import (
    disk_has_room,
    ensure_dirs,
    log_line,
    now_iso,
    save_json_file,
    setup_run_logger,
)


@dataclass
class HarvestSettings:
    max_candidates: int = 500
    stable_rounds: int = 3
    settle_seconds: float = 1.5
    max_grow_rounds: int = 60
    listing_retry_budget: int = 3
    services: Tuple[str, ...] = ()
    sender: str = ""

    @classmethod
    def from_config(cls) -> "HarvestSettings":
        return cls(
            max_candidates=config.MAX_CANDIDATES,
            stable_rounds=config.STABLE_ROUNDS,
            settle_seconds=config.GROW_SETTLE_SECONDS,
            max_grow_rounds=config.MAX_GROW_ROUNDS,
            listing_retry_budget=config.LISTING_RETRY_BUDGET,
            services=tuple(config.SERVICE_NAMES),
            sender=config.SENDER_NAME,
        )


@dataclass
class HarvestContext:
    """Everything one run needs; nothing here outlives the run."""

    driver: ListingDriver
    store: ProgressStore
    sink: RecordSink
    enricher: Enricher = field(default_factory=Enricher)
    generator: Optional[TextGenerator] = None
    telemetry: Optional[RunTelemetry] = None
    settings: HarvestSettings = field(default_factory=HarvestSettings.from_config)


class RunController:
    """Drives one bounded harvest: load progress, grow, process, auto-stop."""

    def __init__(self, context: HarvestContext) -> None:
        self.context = context

    def _refresh_cursor_end(self, summary: RunSummary) -> None:
        try:
            summary.cursor_end = self.context.store.snapshot().cursor
        except HarvestError as exc:
            log_line(f"[RUN][WARN] Unable to read final cursor: {exc}")

    def run_once(self, seed_url: str, quota: int) -> RunSummary:
        """Run one harvest pass. Failures are reported in the summary, never raised."""

        ctx = self.context
        summary = RunSummary(
            seed_url=seed_url,
            quota=quota,
            run_id=ctx.telemetry.run_id if ctx.telemetry is not None else "",
            started_at=now_iso(),
        )
        _harvest_event("state", phase="run", kind="started", seed_url=seed_url, quota=quota)

        try:
            state = ctx.store.load()
            summary.cursor_start = summary.cursor_end = state.cursor

            if quota <= 0:
                summary.status = STATUS_QUOTA_REACHED
            else:
                ctx.driver.open_listing(seed_url)
                loader = LazyListLoader(
                    ctx.driver,
                    stable_rounds=ctx.settings.stable_rounds,
                    settle_seconds=ctx.settings.settle_seconds,
                    max_rounds=ctx.settings.max_grow_rounds,
                    listing_retry_budget=ctx.settings.listing_retry_budget,
                )
                pipeline = EntryPipeline(
                    ctx.driver,
                    ctx.store,
                    ctx.sink,
                    enricher=ctx.enricher,
                    generator=ctx.generator,
                    services=ctx.settings.services,
                    sender=ctx.settings.sender,
                    telemetry=ctx.telemetry,
                )

                cursor = state.cursor
                while True:
                    target = min(cursor + quota - summary.emitted, ctx.settings.max_candidates)
                    candidates = loader.grow(target)
                    pipeline.process(candidates, cursor, quota, summary=summary)
                    if summary.status != STATUS_EXHAUSTED or candidates.converged:
                        break
                    if len(candidates) >= ctx.settings.max_candidates or summary.cursor_end <= cursor:
                        break
                    # The window ran dry before the quota; the listing may hold more.
                    cursor = summary.cursor_end
                summary.cursor_start = state.cursor

                if summary.status == STATUS_EXHAUSTED and summary.emitted == 0:
                    # Nothing new anywhere past the cursor; restart from the top next time.
                    ctx.store.reset()
                    summary.reset_applied = True
        except HarvestError as exc:
            summary.mark_fatal(exc.error_code)
            _harvest_event("error", phase="run", error_code=exc.error_code, error=str(exc))
        except Exception as exc:  # noqa: BLE001
            summary.mark_fatal(ErrorCode.INTERNAL)
            _harvest_event("error", phase="run", error_code=ErrorCode.INTERNAL, error=repr(exc))

        self._refresh_cursor_end(summary)
        summary.ended_at = now_iso()
        _harvest_event(
            "state",
            phase="run",
            kind="finished",
            status=summary.status,
            reason=summary.reason,
            emitted=summary.emitted,
            cursor_start=summary.cursor_start,
            cursor_end=summary.cursor_end,
            reset_applied=summary.reset_applied,
        )
        return summary


def _fatal_summary(seed_url: str, quota: int, run_id: str, started_at: str, reason: str) -> RunSummary:
    summary = RunSummary(seed_url=seed_url, quota=quota, run_id=run_id, started_at=started_at)
    summary.mark_fatal(reason)
    summary.ended_at = now_iso()
    return summary


def run_harvest(
    seed_url: Optional[str] = None,
    quota: Optional[int] = None,
    *,
    headless: Optional[bool] = None,
    reset_progress: bool = False,
    trigger: str = "cli",
) -> RunSummary:
    """Open a browser, run one harvest and persist the summary and telemetry."""

    ensure_dirs()
    setup_run_logger()

    seed = seed_url or config.DEFAULT_SEED_URL
    run_quota = config.RUN_QUOTA if quota is None else int(quota)
    telemetry = RunTelemetry(trigger)
    started_at = now_iso()

    if not disk_has_room(config.MIN_FREE_MB, config.DATA_DIR):
        log_line(f"[RUN][WARN] Less than {config.MIN_FREE_MB} MB free under {config.DATA_DIR}")

    summary: Optional[RunSummary] = None
    try:
        store = ProgressStore(build_key_value_store(), key=config.PROGRESS_KEY)
        sink = build_record_sink()
        if reset_progress:
            store.reset()
        with browser_session(headless=headless) as page:
            context = HarvestContext(
                driver=PlaywrightListingDriver(page),
                store=store,
                sink=sink,
                generator=build_text_generator(),
                telemetry=telemetry,
            )
            summary = RunController(context).run_once(seed, run_quota)
    except HarvestError as exc:
        _harvest_event("error", phase="run", error_code=exc.error_code, error=str(exc))
        summary = _fatal_summary(seed, run_quota, telemetry.run_id, started_at, exc.error_code)
    except PWError as exc:
        _harvest_event("error", phase="browser", error_code=ErrorCode.BROWSER_UNAVAILABLE, error=str(exc))
        if summary is None:
            summary = _fatal_summary(
                seed, run_quota, telemetry.run_id, started_at, ErrorCode.BROWSER_UNAVAILABLE
            )

    summary.operator_reset = reset_progress
    payload = summary.to_dict()
    run_json = telemetry.finalize({"result": payload})
    save_json_file(config.SUMMARY_FILE, payload)
    log_line(
        f"Run {summary.run_id} finished: status={summary.status} emitted={summary.emitted} "
        f"cursor={summary.cursor_start}->{summary.cursor_end} telemetry={run_json}"
    )
    return summary


def _cli_entrypoint(argv: Optional[List[str]] = None) -> None:  # pragma: no cover
    parser = argparse.ArgumentParser(description="Harvest places from a maps listing")
    parser.add_argument("--seed-url", default=None)
    parser.add_argument("--quota", type=int, default=None)
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument(
        "--reset-progress",
        action="store_true",
        help="Rewind the cursor to 0 before running; the seen set is kept",
    )
    args = parser.parse_args(argv)

    ensure_dirs()
    validate_runtime_config("cli")

    summary = run_harvest(
        seed_url=args.seed_url,
        quota=args.quota,
        headless=False if args.headed else None,
        reset_progress=args.reset_progress,
        trigger="cli",
    )
    print(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False))
    if summary.fatal:
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    _cli_entrypoint()

__all__ = [
    "HarvestSettings",
    "HarvestContext",
    "RunController",
    "run_harvest",
    "_cli_entrypoint",
]
