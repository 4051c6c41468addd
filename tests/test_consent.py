"""Tests for consent banner suppression and challenge detection."""

from conftest import FakeElement, FakePage

from collection_manager.constants import CONSENT_ACCEPT_SELECTORS
from collection_manager.session_manager.consent import (
    REMOVE_OVERLAYS_JS,
    click_accept,
    detect_challenge,
    suppress,
    wait_for_challenge,
)


async def test_no_banner_is_fine():
    page = FakePage()
    await suppress(page, settle_ms=0)
    assert page.calls.count(("evaluate", REMOVE_OVERLAYS_JS)) == 2


async def test_accept_button_clicked():
    button = FakeElement()
    page = FakePage(elements={CONSENT_ACCEPT_SELECTORS[0]: button})

    assert await click_accept(page) is True
    assert button.clicks == 1


async def test_hidden_accept_button_ignored():
    hidden = FakeElement(visible=False)
    shown = FakeElement()
    page = FakePage(elements={CONSENT_ACCEPT_SELECTORS[0]: hidden, CONSENT_ACCEPT_SELECTORS[2]: shown})

    assert await click_accept(page) is True
    assert hidden.clicks == 0
    assert shown.clicks == 1


async def test_suppress_is_idempotent():
    button = FakeElement()
    page = FakePage(elements={CONSENT_ACCEPT_SELECTORS[0]: button})
    await suppress(page, settle_ms=0)
    await suppress(page, settle_ms=0)
    assert button.clicks == 2


async def test_suppress_survives_closed_page():
    class ClosedPage(FakePage):
        async def evaluate(self, script, arg=None):
            raise RuntimeError("Target page, context or browser has been closed")

    await suppress(ClosedPage(), settle_ms=0)


async def test_detect_challenge():
    assert await detect_challenge(FakePage(html="<title>Just a moment...</title>")) is True
    assert await detect_challenge(FakePage()) is False


async def test_clear_page_needs_no_wait():
    assert await wait_for_challenge(FakePage(), timeout_ms=10) is True
