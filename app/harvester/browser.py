"""Playwright browser session for one harvest run."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from playwright.sync_api import Page, Route, sync_playwright

from . import config
from .logging_utils import _harvest_event


def _block_heavy_assets(route: Route) -> None:
    if route.request.resource_type in config.BLOCKED_RESOURCE_TYPES:
        route.abort()
    else:
        route.continue_()


@contextmanager
def browser_session(headless: Optional[bool] = None) -> Iterator[Page]:
    """Yield a single page in a fresh Chromium context.

    One run drives exactly one page; images, media and fonts are aborted to
    keep the listing light.
    """

    use_headless = config.HEADLESS if headless is None else bool(headless)
    with sync_playwright() as pw:
        browser = pw.chromium.launch(
            headless=use_headless,
            args=["--no-sandbox", "--disable-dev-shm-usage"],
        )
        try:
            context = browser.new_context(
                user_agent=config.COMMON_HEADERS["User-Agent"],
                locale=config.BROWSER_LOCALE,
                viewport={"width": 1368, "height": 900},
            )
            context.set_default_timeout(config.PLAYWRIGHT_SELECTOR_TIMEOUT_SECONDS * 1000)
            page = context.new_page()
            page.route("**/*", _block_heavy_assets)
            _harvest_event("nav", step="browser_ready", headless=use_headless)
            try:
                yield page
            finally:
                context.close()
        finally:
            browser.close()


__all__ = ["browser_session"]
