"""HTML parsing for the place detail panel."""
from __future__ import annotations

import re
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup

_PHONE_CHARS = re.compile(r"[^0-9+()\-. ]+")
_DIGITS = re.compile(r"\d+")
_RATING = re.compile(r"(\d+(?:[.,]\d+)?)")
_LABEL_PREFIX = re.compile(r"^\s*(phone|address|website)\s*:\s*", re.I)

PANEL_FIELDS = ("title", "category", "rating", "reviews_count", "phone", "website", "address")


def _text(node) -> str:
    if node is None:
        return ""
    return re.sub(r"\s+", " ", node.get_text(" ", strip=True)).strip()


def _label(node) -> str:
    if node is None:
        return ""
    return _LABEL_PREFIX.sub("", str(node.get("aria-label") or "")).strip()


def clean_phone(raw: str) -> str:
    """Strip icon glyphs and labels from a phone string."""

    cleaned = _PHONE_CHARS.sub(" ", raw or "")
    cleaned = re.sub(r"\s+", " ", cleaned).strip(" .-")
    return cleaned if _DIGITS.search(cleaned) else ""


def parse_rating(raw: Any) -> Optional[float]:
    """Return a rating such as ``"4,5"`` or ``"4.5 stars"`` as a float."""

    if raw is None or raw == "":
        return None
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return float(raw)
    match = _RATING.search(str(raw))
    if not match:
        return None
    try:
        return float(match.group(1).replace(",", "."))
    except ValueError:
        return None


def parse_count(raw: Any) -> Optional[int]:
    """Return a review count such as ``"(1,234)"`` as an int."""

    if raw is None or raw == "":
        return None
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    digits = "".join(_DIGITS.findall(str(raw)))
    return int(digits) if digits else None


def parse_place_panel(panel_html: str) -> Dict[str, Any]:
    """Extract the flat field map from detail-panel HTML.

    Missing fields come back as empty strings (or ``None`` for numeric
    fields); the caller decides whether the panel actually loaded.
    """

    soup = BeautifulSoup(panel_html or "", "html5lib")

    phone_node = soup.select_one('button[data-item-id*="phone"]')
    phone = clean_phone(_text(phone_node)) or clean_phone(_label(phone_node))

    website_node = soup.select_one('a[data-item-id*="authority"]')
    website = str(website_node.get("href") or "").strip() if website_node else ""

    address_node = soup.select_one('button[data-item-id="address"]')
    address = _text(address_node) or _label(address_node)

    rating_node = soup.select_one('div.F7nice span[aria-hidden="true"]')
    reviews_node = soup.select_one('div.F7nice span[aria-label*="review" i]')
    reviews_raw = _text(reviews_node) or _label(reviews_node)

    return {
        "title": _text(soup.select_one("h1.DUwDvf")),
        "category": _text(soup.select_one("button.DkEaL")),
        "rating": parse_rating(_text(rating_node)),
        "reviews_count": parse_count(reviews_raw),
        "phone": phone,
        "website": website,
        "address": address,
    }


__all__ = [
    "PANEL_FIELDS",
    "clean_phone",
    "parse_rating",
    "parse_count",
    "parse_place_panel",
]
