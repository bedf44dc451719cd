from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from app.harvester.errors import ListingUnavailable
from app.harvester.loader import CandidateSequence, LazyListLoader
from tests.test_app_api import _configure_temp_paths


class FakeEntry:
    def __init__(self, index: int, ref: Optional[str]) -> None:
        self.index = index
        self._ref = ref

    def reference(self) -> Optional[str]:
        return self._ref


class FakeDriver:
    """In-memory listing that reveals ``page_size`` more cards per grow call."""

    def __init__(
        self,
        refs: List[Optional[str]],
        *,
        page_size: Optional[int] = None,
        present: bool = True,
        failures: Optional[Dict[str, Exception]] = None,
    ) -> None:
        self.refs = list(refs)
        self.page_size = page_size or max(1, len(self.refs))
        self.visible = min(self.page_size, len(self.refs))
        self.present = present
        self.failures = dict(failures or {})
        self.listing_url: Optional[str] = None
        self.opened: List[Optional[str]] = []
        self.closed = 0
        self.grow_calls = 0
        self.presence_checks = 0
        self.settles: List[float] = []

    def open_listing(self, url: str) -> None:
        self.listing_url = url

    def listing_present(self) -> bool:
        self.presence_checks += 1
        return self.present

    def count_entries(self) -> int:
        return self.visible

    def grow_listing(self) -> None:
        self.grow_calls += 1
        self.visible = min(len(self.refs), self.visible + self.page_size)

    def settle(self, seconds: float) -> None:
        self.settles.append(seconds)

    def entry_at(self, index: int) -> Optional[FakeEntry]:
        if index < 0 or index >= self.visible:
            return None
        return FakeEntry(index, self.refs[index])

    def open_entry(self, entry: FakeEntry) -> Dict[str, Any]:
        ref = entry.reference()
        self.opened.append(ref)
        if ref in self.failures:
            raise self.failures[ref]
        name = (ref or "").rsplit("/", 1)[-1]
        return {
            "title": f"Place {name}",
            "category": "Restaurant",
            "rating": 4.6,
            "reviews_count": 120,
            "phone": "+351 21 000 0000",
            "website": "",
            "address": "Rua Augusta 1, Lisboa",
            "source_url": f"https://maps.example.test{ref}",
        }

    def close_entry(self) -> None:
        self.closed += 1


def places(*names: str) -> List[str]:
    return [f"/maps/place/{name}" for name in names]


def _loader(driver: FakeDriver, **overrides: Any) -> LazyListLoader:
    options = {"stable_rounds": 3, "settle_seconds": 0, "max_rounds": 60, "listing_retry_budget": 3}
    options.update(overrides)
    return LazyListLoader(driver, **options)


def test_grow_stops_once_target_is_reached(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    driver = FakeDriver(places(*[str(i) for i in range(50)]), page_size=20)

    candidates = _loader(driver).grow(30)

    assert driver.grow_calls == 1
    # Everything already rendered stays reachable, even past the target.
    assert len(candidates) == 40


def test_grow_skips_scrolling_when_target_already_rendered(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    driver = FakeDriver(places("A", "B", "C"))

    candidates = _loader(driver).grow(2)

    assert driver.grow_calls == 0
    assert len(candidates) == 3


def test_grow_terminates_when_count_stops_increasing(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    driver = FakeDriver(places(*[str(i) for i in range(10)]), page_size=10)

    candidates = _loader(driver, stable_rounds=3).grow(30)

    assert len(candidates) == 10
    assert driver.grow_calls == 4


def test_grow_bounded_by_max_rounds(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    driver = FakeDriver(places(*[str(i) for i in range(1000)]), page_size=1)

    candidates = _loader(driver, max_rounds=5).grow(1000)

    assert driver.grow_calls == 5
    assert len(candidates) == 5


def test_grow_on_empty_listing_returns_empty_sequence(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    driver = FakeDriver([])

    candidates = _loader(driver).grow(5)

    assert len(candidates) == 0
    assert list(candidates) == []
    assert driver.grow_calls >= 1


def test_grow_raises_when_listing_never_appears(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    driver = FakeDriver(places("A"), present=False)

    with pytest.raises(ListingUnavailable):
        _loader(driver, listing_retry_budget=3, settle_seconds=0.25).grow(5)

    assert driver.presence_checks == 3
    assert driver.settles == [0.25, 0.25]


def test_sequence_iter_from_stops_when_listing_shrinks(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    driver = FakeDriver(places("A", "B", "C"))
    sequence = CandidateSequence(driver, 5)

    walked = [(index, entry.reference()) for index, entry in sequence.iter_from(1)]

    assert walked == [(1, "/maps/place/B"), (2, "/maps/place/C")]
    assert len(sequence) == 5


def test_sequence_can_be_walked_twice(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    sequence = CandidateSequence(FakeDriver(places("A", "B")), 2)

    first = [entry.reference() for entry in sequence]
    second = [entry.reference() for entry in sequence]

    assert first == second == places("A", "B")
