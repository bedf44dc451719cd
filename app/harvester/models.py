from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Protocol

PlaceIdentity = str

STATUS_QUOTA_REACHED = "quota_reached"
STATUS_EXHAUSTED = "exhausted"
STATUS_FATAL = "fatal"


class RawEntry(Protocol):
    """Handle to one listing card for the duration of a single run."""

    index: int

    def reference(self) -> Optional[str]:
        ...


@dataclass(frozen=True)
class OutreachCopy:
    whatsapp: str
    email_subject: str
    email_body: str
    source: str = "generated"


@dataclass(frozen=True)
class ExtractedRecord:
    """Fields captured for one unique place.

    Records are built once per place and never mutated after they reach the
    sink; attaching outreach copy produces a new instance.
    """

    place_id: PlaceIdentity
    title: str
    category: str = ""
    rating: Optional[float] = None
    reviews_count: Optional[int] = None
    phone: str = ""
    website: str = ""
    address: str = ""
    has_website: bool = False
    has_phone: bool = False
    industry: str = "other"
    sentiment: str = "unknown"
    source_url: str = ""
    extracted_at: str = ""
    outreach: Optional[OutreachCopy] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        outreach = payload.pop("outreach") or {}
        payload["whatsapp"] = outreach.get("whatsapp", "")
        payload["email_subject"] = outreach.get("email_subject", "")
        payload["email_body"] = outreach.get("email_body", "")
        payload["outreach_source"] = outreach.get("source", "")
        return payload


@dataclass(frozen=True)
class ProgressState:
    cursor: int = 0
    seen: FrozenSet[PlaceIdentity] = frozenset()

    def to_payload(self) -> Dict[str, Any]:
        return {"cursor": self.cursor, "seen": sorted(self.seen)}


@dataclass
class RunSummary:
    """Counters and outcome for one harvest run."""

    seed_url: str = ""
    quota: int = 0
    run_id: str = ""
    discovered: int = 0
    attempted: int = 0
    emitted: int = 0
    skipped: int = 0
    unresolved: int = 0
    failed: int = 0
    status: str = STATUS_EXHAUSTED
    fatal: bool = False
    reason: Optional[str] = None
    cursor_start: int = 0
    cursor_end: int = 0
    reset_applied: bool = False
    operator_reset: bool = False
    started_at: str = ""
    ended_at: str = ""
    failure_reasons: Dict[str, int] = field(default_factory=dict)

    def mark_fatal(self, reason: str) -> None:
        self.fatal = True
        self.status = STATUS_FATAL
        self.reason = reason

    def bump_failure(self, reason: str) -> None:
        self.failure_reasons[reason] = self.failure_reasons.get(reason, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = [
    "PlaceIdentity",
    "RawEntry",
    "OutreachCopy",
    "ExtractedRecord",
    "ProgressState",
    "RunSummary",
    "STATUS_QUOTA_REACHED",
    "STATUS_EXHAUSTED",
    "STATUS_FATAL",
]
