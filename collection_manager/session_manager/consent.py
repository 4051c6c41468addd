"""Consent banner suppression and bot-challenge detection."""

from __future__ import annotations

import asyncio
import logging
import sys

from playwright.async_api import Page

from ..constants import (
    CHALLENGE_INDICATORS,
    CHALLENGE_TIMEOUT,
    CLICK_TIMEOUT,
    CONSENT_ACCEPT_SELECTORS,
    CONSENT_OVERLAY_SELECTORS,
    CONSENT_SETTLE_MS,
)

logger = logging.getLogger(__name__)
# MCP servers MUST NOT write to stdout
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

REMOVE_OVERLAYS_JS = """
(selectors) => {
    let removed = 0;
    for (const selector of selectors) {
        document.querySelectorAll(selector).forEach(el => { el.remove(); removed++; });
    }
    if (document.body) document.body.style.overflow = '';
    return removed;
}
"""


async def remove_overlays(page: Page) -> int:
    """Delete known consent overlays from the DOM. Returns how many went."""
    try:
        removed = await page.evaluate(REMOVE_OVERLAYS_JS, CONSENT_OVERLAY_SELECTORS)
        return int(removed or 0)
    except Exception as e:
        logger.debug(f"Overlay removal skipped: {e}")
        return 0


async def click_accept(page: Page) -> bool:
    """Click the first consent accept button present on the page."""
    for selector in CONSENT_ACCEPT_SELECTORS:
        try:
            button = await page.query_selector(selector)
            if button and await button.is_visible():
                await button.click(force=True, timeout=CLICK_TIMEOUT)
                await page.wait_for_timeout(500)
                logger.info(f"Accepted consent banner via {selector}")
                return True
        except Exception:
            continue
    return False


async def suppress(page: Page, settle_ms: int = CONSENT_SETTLE_MS) -> None:
    """Get cookie/consent overlays out of the way.

    Strategy:
    1. Short settle so a late banner has rendered
    2. Remove overlay nodes directly (fast, works when buttons are hidden)
    3. Click a known accept button in case the banner re-renders
    4. Remove whatever is left

    Safe to call after every navigation; finding nothing is normal.
    """
    try:
        await page.wait_for_timeout(settle_ms)
    except Exception:
        return

    removed = await remove_overlays(page)
    accepted = await click_accept(page)
    removed += await remove_overlays(page)

    if removed or accepted:
        logger.info(f"Consent overlays handled (removed={removed}, accepted={accepted})")


async def detect_challenge(page: Page) -> bool:
    """Check if the current page is a bot-detection interstitial."""
    try:
        content = await page.content()
        return any(indicator in content for indicator in CHALLENGE_INDICATORS)
    except Exception:
        return False


async def wait_for_challenge(page: Page, timeout_ms: int = CHALLENGE_TIMEOUT) -> bool:
    """Wait for a bot-detection interstitial to clear on its own.

    Returns True if the page is clear, False if it timed out.
    """
    if not await detect_challenge(page):
        return True

    logger.info("Bot-detection challenge detected, waiting for auto-resolution...")
    loop = asyncio.get_running_loop()
    deadline = loop.time() + (timeout_ms / 1000)

    while loop.time() < deadline:
        await asyncio.sleep(2)
        if not await detect_challenge(page):
            logger.info("Challenge resolved automatically.")
            return True

    logger.warning("Challenge did not auto-resolve within timeout.")
    return False
