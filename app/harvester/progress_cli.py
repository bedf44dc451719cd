from __future__ import annotations

"""CLI helper for inspecting and rewinding harvest progress."""

import argparse
import json
from typing import Sequence

from . import config
from .errors import ProgressStoreError
from .progress import ProgressStore
from .storage import build_key_value_store


def _build_parser() -> argparse.ArgumentParser:
    """Return an argument parser for the progress CLI."""

    parser = argparse.ArgumentParser(
        description="Show or rewind the persisted harvest progress.",
    )
    parser.add_argument(
        "action",
        choices=["show", "reset", "clear"],
        help="show: print cursor and seen count; reset: rewind cursor to 0; "
        "clear: forget cursor and seen set.",
    )
    parser.add_argument(
        "--backend",
        choices=list(config.PROGRESS_BACKENDS),
        default=None,
        help="Progress backend (defaults to HARVEST_PROGRESS_BACKEND).",
    )
    parser.add_argument(
        "--list-seen",
        action="store_true",
        help="Include every seen place identity when showing progress.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the progress CLI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    store = ProgressStore(build_key_value_store(args.backend), key=config.PROGRESS_KEY)
    try:
        if args.action == "reset":
            state = store.reset()
        elif args.action == "clear":
            state = store.clear()
        else:
            state = store.load()
    except ProgressStoreError as exc:
        print(f"Progress store error: {exc}")
        return 1

    payload = {"action": args.action, "cursor": state.cursor, "seen_count": len(state.seen)}
    if args.list_seen:
        payload["seen"] = sorted(state.seen)
    print(json.dumps(payload, ensure_ascii=False))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
