"""Selectors and attribute hints for the map search results listing."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class MapsSelectors:
    """Selector hints for the scrollable results feed and the place panel.

    Cards carry their detail link on an overlay anchor; a few layouts only
    expose a plain ``/maps/place/`` link, so both selectors are tried in order.
    """

    feed_selector: str = 'div[role="feed"]'
    card_selector: str = 'div[role="feed"] div[role="article"]'
    card_link_selectors: Tuple[str, ...] = (
        "a.hfpxzc",
        'a[href*="/maps/place/"]',
    )
    card_link_attributes: Tuple[str, ...] = ("href", "data-href")
    panel_title_selector: str = "h1.DUwDvf"
    consent_buttons: Tuple[str, ...] = (
        "button:has-text('Accept all')",
        "button:has-text('Reject all')",
        "button[aria-label*='Accept' i]",
        "form[action*='consent'] button",
    )


MAPS_SELECTORS = MapsSelectors()

__all__ = [
    "MapsSelectors",
    "MAPS_SELECTORS",
]
