"""Derived attributes for extracted places.

Industry and sentiment tags come from plain ``(fields) -> tag`` callables so
callers can swap in their own heuristics without touching the pipeline.
"""
from __future__ import annotations

import re
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .models import ExtractedRecord, PlaceIdentity
from .parser import parse_count, parse_rating
from .utils import now_iso

Classifier = Callable[[Mapping[str, Any]], str]

# First matching keyword wins, so more specific industries come first.
# Keywords match whole words (plurals included); a trailing ``*`` marks a stem.
INDUSTRY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("dental", ("dentist", "dental", "orthodont*")),
    ("medical", ("clinic", "doctor", "physiotherap*", "hospital", "pharmacy", "medical")),
    ("beauty", ("salon", "barber", "day spa", "massage", "beauty", "nail", "hairdresser", "cosmetic*")),
    ("fitness", ("gym", "fitness", "yoga", "pilates", "crossfit")),
    ("food", ("restaurant", "cafe", "café", "coffee", "bakery", "bar", "pizza", "pizzeria", "bistro", "grill")),
    ("hospitality", ("hotel", "hostel", "guest house", "lodging", "apartment")),
    ("automotive", ("car repair", "mechanic", "auto repair", "auto parts", "auto body", "tyre", "tire", "car wash", "car dealer")),
    ("real_estate", ("real estate", "realtor", "estate agent", "property")),
    ("legal", ("lawyer", "attorney", "law firm", "notary", "solicitor")),
    ("retail", ("store", "shop", "boutique", "market", "supermarket", "florist")),
    ("trades", ("plumber", "electrician", "contractor", "roofing", "locksmith", "painter")),
    ("education", ("school", "academy", "tutor", "college", "driving school")),
)


def _keyword_pattern(keyword: str) -> "re.Pattern[str]":
    if keyword.endswith("*"):
        return re.compile(rf"\b{re.escape(keyword[:-1])}")
    return re.compile(rf"\b{re.escape(keyword)}(?:e?s)?\b")


_INDUSTRY_PATTERNS = tuple(
    (tag, tuple(_keyword_pattern(keyword) for keyword in keywords))
    for tag, keywords in INDUSTRY_KEYWORDS
)


def detect_industry(fields: Mapping[str, Any]) -> str:
    haystack = " ".join(
        str(fields.get(key) or "") for key in ("category", "title")
    ).lower()
    if not haystack.strip():
        return "other"
    for tag, patterns in _INDUSTRY_PATTERNS:
        if any(pattern.search(haystack) for pattern in patterns):
            return tag
    return "other"


def detect_sentiment(fields: Mapping[str, Any]) -> str:
    rating = parse_rating(fields.get("rating"))
    if rating is None:
        return "unknown"
    if rating >= 4.5:
        return "positive"
    if rating >= 3.5:
        return "neutral"
    return "negative"


class Enricher:
    def __init__(
        self,
        industry_classifier: Classifier = detect_industry,
        sentiment_classifier: Classifier = detect_sentiment,
    ) -> None:
        self.industry_classifier = industry_classifier
        self.sentiment_classifier = sentiment_classifier

    def enrich(
        self,
        fields: Dict[str, Any],
        identity: PlaceIdentity,
        *,
        source_url: Optional[str] = None,
    ) -> ExtractedRecord:
        phone = str(fields.get("phone") or "").strip()
        website = str(fields.get("website") or "").strip()
        return ExtractedRecord(
            place_id=identity,
            title=str(fields.get("title") or "").strip(),
            category=str(fields.get("category") or "").strip(),
            rating=parse_rating(fields.get("rating")),
            reviews_count=parse_count(fields.get("reviews_count")),
            phone=phone,
            website=website,
            address=str(fields.get("address") or "").strip(),
            has_website=bool(website),
            has_phone=bool(phone),
            industry=self.industry_classifier(fields) or "other",
            sentiment=self.sentiment_classifier(fields) or "unknown",
            source_url=source_url or str(fields.get("source_url") or identity),
            extracted_at=now_iso(),
        )


__all__ = [
    "Classifier",
    "INDUSTRY_KEYWORDS",
    "detect_industry",
    "detect_sentiment",
    "Enricher",
]
