"""Automation driver over a Playwright page showing a map results feed.

The engine only talks to :class:`ListingDriver`; this module provides the
Playwright implementation. Every call blocks until the browser answers, and
only one call is ever in flight because the page models a single browsing
context.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from playwright.sync_api import (
    ElementHandle,
    Error as PWError,
    Page,
    TimeoutError as PWTimeout,
)

from . import config
from .errors import ExtractionTimeout, ListingUnavailable, PanelNotLoaded
from .logging_utils import _harvest_event
from .models import RawEntry
from .parser import parse_place_panel
from .selectors import MAPS_SELECTORS, MapsSelectors
from .utils import log_line

_SCROLL_FEED_JS = """
(args) => {
    const feed = document.querySelector(args.selector);
    if (!feed) {
        return false;
    }
    feed.scrollBy(0, args.pixels);
    return true;
}
"""


class ListingDriver(Protocol):
    def open_listing(self, url: str) -> None:
        ...

    def listing_present(self) -> bool:
        ...

    def count_entries(self) -> int:
        ...

    def grow_listing(self) -> None:
        ...

    def settle(self, seconds: float) -> None:
        ...

    def entry_at(self, index: int) -> Optional[RawEntry]:
        ...

    def open_entry(self, entry: RawEntry) -> Dict[str, Any]:
        ...

    def close_entry(self) -> None:
        ...


def _is_target_closed_error(exc: Exception) -> bool:
    """Return ``True`` if *exc* indicates the Playwright target is gone."""

    message = str(exc)
    return any(
        marker in message
        for marker in (
            "Target closed",
            "Target crashed",
            "has been closed",
            "Execution context was destroyed",
        )
    )


class ListingCard:
    """One result card, read lazily from a live element handle."""

    def __init__(self, handle: ElementHandle, index: int, selectors: MapsSelectors) -> None:
        self.handle = handle
        self.index = index
        self._selectors = selectors

    def reference(self) -> Optional[str]:
        try:
            for selector in self._selectors.card_link_selectors:
                link = self.handle.query_selector(selector)
                if link is None:
                    continue
                for attribute in self._selectors.card_link_attributes:
                    value = link.get_attribute(attribute)
                    if value and value.strip():
                        return value.strip()
        except PWError as exc:
            log_line(f"[DRIVER] Card {self.index} unreadable: {exc}")
        return None

    def __repr__(self) -> str:
        return f"ListingCard(index={self.index})"


class PlaywrightListingDriver:
    def __init__(self, page: Page, selectors: MapsSelectors = MAPS_SELECTORS) -> None:
        self.page = page
        self.selectors = selectors

    def settle(self, seconds: float) -> None:
        """Wait safely for ``seconds`` only if the page remains open."""

        if seconds is None or seconds <= 0:
            return
        if not self.page.is_closed():
            self.page.wait_for_timeout(int(seconds * 1000))

    def _accept_consent(self) -> None:
        """Best-effort click-through for consent banners."""

        for selector in self.selectors.consent_buttons:
            try:
                loc = self.page.locator(selector).first
                if loc.count():
                    loc.click(timeout=1500)
                    self.settle(0.5)
                    log_line(f"Clicked consent banner via {selector}")
                    return
            except PWError:
                continue

    def open_listing(self, url: str) -> None:
        try:
            _harvest_event("nav", step="goto", url=url)
            self.page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=config.PLAYWRIGHT_NAV_TIMEOUT_SECONDS * 1000,
            )
        except PWTimeout as exc:
            raise ListingUnavailable(f"navigation to {url!r} timed out: {exc}") from exc
        except PWError as exc:
            raise ListingUnavailable(f"navigation to {url!r} failed: {exc}") from exc

        self._accept_consent()
        self.settle(config.INITIAL_RENDER_SECONDS)

    def listing_present(self) -> bool:
        try:
            self.page.wait_for_selector(
                self.selectors.feed_selector,
                state="attached",
                timeout=config.PLAYWRIGHT_SELECTOR_TIMEOUT_SECONDS * 1000,
            )
            return True
        except PWTimeout:
            return False
        except PWError as exc:
            if _is_target_closed_error(exc):
                raise ListingUnavailable(f"page closed while waiting for listing: {exc}") from exc
            return False

    def count_entries(self) -> int:
        try:
            return int(self.page.locator(self.selectors.card_selector).count())
        except PWError as exc:
            raise ListingUnavailable(f"cannot count listing entries: {exc}") from exc

    def grow_listing(self) -> None:
        try:
            scrolled = self.page.evaluate(
                _SCROLL_FEED_JS,
                {"selector": self.selectors.feed_selector, "pixels": config.SCROLL_PIXELS},
            )
        except PWError as exc:
            if _is_target_closed_error(exc):
                raise ListingUnavailable(f"page closed while scrolling: {exc}") from exc
            log_line(f"[DRIVER] Scroll attempt failed: {exc}")
            return
        if not scrolled:
            log_line("[DRIVER] Feed container missing during scroll.")

    def entry_at(self, index: int) -> Optional[ListingCard]:
        try:
            handles = self.page.query_selector_all(self.selectors.card_selector)
        except PWError as exc:
            raise ListingUnavailable(f"cannot query listing entries: {exc}") from exc
        if index < 0 or index >= len(handles):
            return None
        return ListingCard(handles[index], index, self.selectors)

    def open_entry(self, entry: RawEntry) -> Dict[str, Any]:
        handle = getattr(entry, "handle", None)
        if handle is None:
            raise PanelNotLoaded(f"entry {entry.index} has no element handle")

        try:
            handle.click(timeout=config.CLICK_TIMEOUT_MS)
            self.page.wait_for_selector(
                self.selectors.panel_title_selector,
                timeout=config.PANEL_TIMEOUT_MS,
            )
        except PWTimeout as exc:
            raise ExtractionTimeout(f"panel for entry {entry.index} did not load: {exc}") from exc
        except PWError as exc:
            raise PanelNotLoaded(f"entry {entry.index} could not be opened: {exc}") from exc

        self.settle(config.POST_OPEN_SETTLE_SECONDS)

        try:
            html = self.page.content()
            source_url = self.page.url
        except PWError as exc:
            raise PanelNotLoaded(f"panel for entry {entry.index} unreadable: {exc}") from exc

        fields = parse_place_panel(html)
        if not fields.get("title"):
            raise PanelNotLoaded(f"panel for entry {entry.index} has no title")
        fields["source_url"] = source_url
        return fields

    def close_entry(self) -> None:
        try:
            self.page.keyboard.press("Escape")
            self.settle(config.POST_CLOSE_SETTLE_SECONDS)
        except PWError as exc:
            log_line(f"[DRIVER] Could not close detail panel: {exc}")


__all__ = ["ListingDriver", "ListingCard", "PlaywrightListingDriver"]
