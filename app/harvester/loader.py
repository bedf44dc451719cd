"""Incremental growth of the infinitely-scrolling listing."""

from __future__ import annotations

from typing import Iterator, Optional, Tuple

from . import config
from .driver import ListingDriver
from .errors import ListingUnavailable
from .logging_utils import _harvest_event
from .models import RawEntry

STOP_TARGET_REACHED = "target_reached"
STOP_STABILIZED = "stabilized"
STOP_MAX_ROUNDS = "max_rounds"


class CandidateSequence:
    """Finite, lazily materialised view over the grown listing.

    Handles are fetched from the driver at iteration time rather than cached,
    because the listing re-renders after every detail panel is closed. Each
    call to :meth:`iter_from` starts over, so the sequence can be walked more
    than once.
    """

    def __init__(self, driver: ListingDriver, size: int, stop_reason: str = STOP_STABILIZED) -> None:
        self._driver = driver
        self._size = max(0, int(size))
        self.stop_reason = stop_reason

    def __len__(self) -> int:
        return self._size

    @property
    def converged(self) -> bool:
        """``False`` when growth stopped only because the target was met."""

        return self.stop_reason != STOP_TARGET_REACHED

    def iter_from(self, start: int) -> Iterator[Tuple[int, RawEntry]]:
        for index in range(max(0, start), self._size):
            entry = self._driver.entry_at(index)
            if entry is None:
                # Listing shrank underneath us; treat as the end of the sequence.
                _harvest_event("state", phase="loader", kind="sequence_truncated", index=index, size=self._size)
                return
            yield index, entry

    def __iter__(self) -> Iterator[RawEntry]:
        for _, entry in self.iter_from(0):
            yield entry


class LazyListLoader:
    def __init__(
        self,
        driver: ListingDriver,
        *,
        stable_rounds: Optional[int] = None,
        settle_seconds: Optional[float] = None,
        max_rounds: Optional[int] = None,
        listing_retry_budget: Optional[int] = None,
    ) -> None:
        self.driver = driver
        self.stable_rounds = config.STABLE_ROUNDS if stable_rounds is None else stable_rounds
        self.settle_seconds = (
            config.GROW_SETTLE_SECONDS if settle_seconds is None else settle_seconds
        )
        self.max_rounds = config.MAX_GROW_ROUNDS if max_rounds is None else max_rounds
        self.listing_retry_budget = (
            config.LISTING_RETRY_BUDGET if listing_retry_budget is None else listing_retry_budget
        )

    def _ensure_listing(self) -> None:
        attempts = max(1, self.listing_retry_budget)
        for attempt in range(1, attempts + 1):
            if self.driver.listing_present():
                return
            _harvest_event("error", phase="loader", kind="listing_missing", attempt=attempt, budget=attempts)
            if attempt < attempts:
                self.driver.settle(self.settle_seconds)
        raise ListingUnavailable(f"listing container absent after {attempts} attempts")

    def grow(self, target_count: int) -> CandidateSequence:
        """Scroll until ``target_count`` entries exist or growth stalls.

        Growth has stalled once the count failed to increase for more than
        ``stable_rounds`` consecutive measurements. At least one grow attempt
        is always made, so a slow first render is not mistaken for an empty
        listing.
        """

        self._ensure_listing()

        best = -1
        stable = 0
        grow_attempts = 0
        rounds = 0
        stop_reason = STOP_MAX_ROUNDS

        while rounds < max(1, self.max_rounds):
            rounds += 1
            count = self.driver.count_entries()
            if count > best:
                best = count
                stable = 0
            else:
                stable += 1

            if best >= target_count:
                stop_reason = STOP_TARGET_REACHED
                break
            if stable > self.stable_rounds and grow_attempts > 0:
                stop_reason = STOP_STABILIZED
                break

            self.driver.grow_listing()
            grow_attempts += 1
            self.driver.settle(self.settle_seconds)

        discovered = max(0, best)
        _harvest_event(
            "state",
            phase="loader",
            kind="grow_finished",
            reason=stop_reason,
            discovered=discovered,
            target=target_count,
            rounds=rounds,
            grow_attempts=grow_attempts,
        )
        return CandidateSequence(self.driver, discovered, stop_reason)


__all__ = [
    "STOP_TARGET_REACHED",
    "STOP_STABILIZED",
    "STOP_MAX_ROUNDS",
    "CandidateSequence",
    "LazyListLoader",
]
