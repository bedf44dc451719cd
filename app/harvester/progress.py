"""Persisted harvest progress: resume cursor plus the cross-run seen set."""

from __future__ import annotations

import json
from typing import Any, Optional

from .errors import ProgressStoreError
from .logging_utils import _harvest_event
from .models import PlaceIdentity, ProgressState
from .storage import KeyValueStore
from .utils import now_iso

DEFAULT_KEY = "STATE"


def _decode_state(raw: bytes) -> ProgressState:
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProgressStoreError(f"progress payload is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise ProgressStoreError("progress payload must be a JSON object")

    cursor = payload.get("cursor", 0)
    if isinstance(cursor, bool) or not isinstance(cursor, int) or cursor < 0:
        raise ProgressStoreError(f"progress cursor must be a non-negative integer, got {cursor!r}")

    seen_raw: Any = payload.get("seen", [])
    if isinstance(seen_raw, dict):
        seen = {str(key) for key, flag in seen_raw.items() if flag}
    elif isinstance(seen_raw, list):
        seen = {str(item) for item in seen_raw if isinstance(item, str) and item}
    else:
        raise ProgressStoreError("progress seen set must be an array or an object")

    return ProgressState(cursor=cursor, seen=frozenset(seen))


def _encode_state(state: ProgressState) -> bytes:
    payload = state.to_payload()
    payload["updated_at"] = now_iso()
    return json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")


class ProgressStore:
    """Owns the cursor and seen set; every mutation persists the full state.

    Both fields travel in a single ``put`` so a crash can never leave one
    updated without the other. The in-memory copy is only replaced after the
    backing accepted the write.
    """

    def __init__(self, backing: KeyValueStore, key: str = DEFAULT_KEY) -> None:
        self._backing = backing
        self._key = key
        self._state: Optional[ProgressState] = None

    def load(self) -> ProgressState:
        raw = self._backing.get(self._key)
        self._state = ProgressState() if raw is None else _decode_state(raw)
        return self._state

    def snapshot(self) -> ProgressState:
        if self._state is None:
            return self.load()
        return self._state

    def _persist(self, state: ProgressState) -> None:
        self._backing.put(self._key, _encode_state(state))
        self._state = state

    def mark_processed(self, identity: PlaceIdentity, at_index: int) -> ProgressState:
        current = self.snapshot()
        state = ProgressState(
            cursor=max(current.cursor, at_index + 1),
            seen=current.seen | {identity},
        )
        self._persist(state)
        return state

    def mark_skipped(self, at_index: int) -> ProgressState:
        current = self.snapshot()
        state = ProgressState(cursor=max(current.cursor, at_index + 1), seen=current.seen)
        self._persist(state)
        return state

    def reset(self) -> ProgressState:
        current = self.snapshot()
        state = ProgressState(cursor=0, seen=current.seen)
        self._persist(state)
        _harvest_event("state", phase="progress", kind="cursor_reset", seen=len(state.seen))
        return state

    def clear(self) -> ProgressState:
        self._backing.delete(self._key)
        self._state = ProgressState()
        _harvest_event("state", phase="progress", kind="cleared")
        return self._state

    def is_seen(self, identity: PlaceIdentity) -> bool:
        return identity in self.snapshot().seen


__all__ = ["ProgressStore", "DEFAULT_KEY"]
