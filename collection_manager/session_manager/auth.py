"""Two-step portal login: username, then password, then wait for the app."""

from __future__ import annotations

import asyncio
import logging
import sys
from enum import Enum
from typing import Optional
from urllib.parse import urlparse

from playwright.async_api import ElementHandle, Page

from ..constants import (
    AUTHENTICATED_HOST,
    CONTINUE_BUTTON_SELECTOR,
    LOGGED_IN_MARKERS,
    LOGIN_BUTTON_SELECTOR,
    LOGIN_NAVIGATION_TIMEOUT,
    LOGIN_RACE_TIMEOUT,
    PAGE_SETTLE_MS,
    PASSWORD_FIELD_TIMEOUT,
    PASSWORD_SELECTORS,
    PORTAL_LOGIN_URL,
    STEP_SETTLE_MS,
    USERNAME_FIELD_TIMEOUT,
    USERNAME_SELECTORS,
)
from ..errors import AuthFieldNotFound, LoginTimeout
from ..models.session import PortalCredentials
from .browser import SessionStore, capture, safe_capture
from .consent import suppress, wait_for_challenge

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class LoginStep(str, Enum):
    ANONYMOUS_PAGE = "anonymous_page"
    USERNAME_ENTERED = "username_entered"
    PASSWORD_ENTERED = "password_entered"
    AUTHENTICATED = "authenticated"


def is_authenticated_url(url: str) -> bool:
    """True once the browser is on the booking application's host.

    Matches on the host only: the login URL carries the application URL in
    its return parameter.
    """
    return urlparse(url).netloc.lower() == AUTHENTICATED_HOST


async def first_matching_field(page: Page, selectors: list[str], timeout: int) -> Optional[ElementHandle]:
    """Wait for each selector in turn; return the first field that appears."""
    for selector in selectors:
        try:
            field = await page.wait_for_selector(selector, timeout=timeout, state="visible")
            if field is not None:
                return field
        except Exception:
            continue
    return None


async def wait_for_any_success(page: Page, timeout: int = LOGIN_RACE_TIMEOUT) -> bool:
    """Race the app URL against a logged-in marker; first success wins."""
    tasks = {
        asyncio.ensure_future(page.wait_for_url(is_authenticated_url, timeout=timeout)),
        asyncio.ensure_future(page.wait_for_selector(LOGGED_IN_MARKERS, timeout=timeout)),
    }
    pending = tasks
    try:
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if not task.cancelled() and task.exception() is None:
                    return True
        return False
    finally:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)


class Authenticator:
    """Drives the login flow and records success in the session descriptor."""

    def __init__(self, store: SessionStore, credentials: PortalCredentials):
        self.store = store
        self.credentials = credentials
        self.step = LoginStep.ANONYMOUS_PAGE

    async def _already_authenticated(self, page: Page, check_markers: bool = False) -> bool:
        # Header markers can render on the login page itself, so they only
        # count once no login form is on screen
        if is_authenticated_url(page.url):
            return True
        if not check_markers:
            return False
        try:
            return await page.query_selector(LOGGED_IN_MARKERS) is not None
        except Exception:
            return False

    async def _click(self, page: Page, selector: str) -> None:
        button = await page.query_selector(selector)
        if button is not None:
            await button.click(force=True)
            await page.wait_for_timeout(STEP_SETTLE_MS)

    async def ensure_logged_in(self, page: Page) -> LoginStep:
        """Log in, or confirm the session is already past the login step.

        Raises:
            AuthFieldNotFound: username or password field never appeared.
            LoginTimeout: neither success condition appeared in time.
        """
        self.step = LoginStep.ANONYMOUS_PAGE
        logger.info(f"Opening login page {PORTAL_LOGIN_URL}")
        await page.goto(PORTAL_LOGIN_URL, wait_until="domcontentloaded", timeout=LOGIN_NAVIGATION_TIMEOUT)
        await page.wait_for_timeout(PAGE_SETTLE_MS)
        if not await wait_for_challenge(page):
            logger.warning(f"Login page still shows a bot-detection challenge: {page.url}")
        await suppress(page)

        if await self._already_authenticated(page):
            logger.info("Session already authenticated; login form skipped.")
            return self._succeed()

        await capture(page, "login-page")

        username = await first_matching_field(page, USERNAME_SELECTORS, USERNAME_FIELD_TIMEOUT)
        if username is None:
            if await self._already_authenticated(page, check_markers=True):
                return self._succeed()
            screenshot = await safe_capture(page, "login-error-no-username")
            raise AuthFieldNotFound(
                "Could not find username field.", screenshot=screenshot, details={"url": page.url}
            )
        await username.fill(self.credentials.username)
        await self._click(page, CONTINUE_BUTTON_SELECTOR)
        await suppress(page)
        self.step = LoginStep.USERNAME_ENTERED
        logger.info("Username entered.")

        password = await first_matching_field(page, PASSWORD_SELECTORS, PASSWORD_FIELD_TIMEOUT)
        if password is None:
            screenshot = await safe_capture(page, "login-error-no-password")
            raise AuthFieldNotFound(
                "Could not find password field.", screenshot=screenshot, details={"url": page.url}
            )
        await password.fill(self.credentials.password)
        button = await page.query_selector(LOGIN_BUTTON_SELECTOR)
        if button is not None:
            await button.click(force=True)
        self.step = LoginStep.PASSWORD_ENTERED
        logger.info("Password entered, waiting for the application...")

        if not await wait_for_any_success(page):
            screenshot = await safe_capture(page, "login-error")
            raise LoginTimeout(
                "Login failed: application did not load after sign-in.",
                screenshot=screenshot,
                details={"url": page.url},
            )
        return self._succeed()

    def _succeed(self) -> LoginStep:
        self.step = LoginStep.AUTHENTICATED
        self.store.update(logged_in=True)
        logger.info("Logged in.")
        return self.step
