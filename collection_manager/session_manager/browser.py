"""Chromium session store: launch, reconnect, persist, tear down.

The browser runs as a detached process with a CDP endpoint, so it outlives
the process that started it. The session descriptor on disk records that
endpoint plus the booking progress flags; a later invocation reconnects to
the same page and carries on from the recorded state.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import signal
import subprocess
import sys
import time
from pathlib import Path
from typing import Optional

import httpx
from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright_stealth import Stealth
from pydantic import ValidationError

from ..config import (
    BROWSER_HEADLESS,
    BROWSER_PROFILE_DIR,
    BROWSER_TIMEOUT,
    CDP_PORT,
    CDP_STARTUP_TIMEOUT,
    SCREENSHOT_DIR,
    SESSION_PATH,
)
from ..models.session import SessionDescriptor

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

# Left behind in the profile by an unclean Chromium shutdown; block a relaunch
LOCK_ARTIFACTS = ["SingletonLock", "SingletonSocket", "SingletonCookie"]

CHROMIUM_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-first-run",
    "--no-default-browser-check",
    "--no-sandbox",
    "--window-size=1280,800",
]


def screenshot_path(label: str, directory: Path = SCREENSHOT_DIR) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"ups-{label}-{int(time.time() * 1000)}.png"


async def capture(page: Page, label: str, full_page: bool = True) -> str:
    """Screenshot the page to a timestamped file and return its path."""
    path = screenshot_path(label)
    await page.screenshot(path=str(path), full_page=full_page)
    logger.info(f"Screenshot saved: {path}")
    return str(path)


async def safe_capture(page: Optional[Page], label: str) -> Optional[str]:
    """Like capture(), but for error paths: never raises."""
    if page is None:
        return None
    try:
        return await capture(page, label)
    except Exception as e:
        logger.warning(f"Could not capture '{label}' screenshot: {e}")
        return None


class SessionStore:
    """Owns the single browser session and its on-disk descriptor."""

    def __init__(
        self,
        session_path: Path = SESSION_PATH,
        profile_dir: Path = BROWSER_PROFILE_DIR,
        cdp_port: int = CDP_PORT,
        headless: Optional[bool] = None,
    ):
        self.session_path = Path(session_path)
        self.profile_dir = Path(profile_dir)
        self.cdp_port = cdp_port
        self.headless = BROWSER_HEADLESS if headless is None else headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    @property
    def page(self) -> Optional[Page]:
        return self._page

    @property
    def is_running(self) -> bool:
        return self._page is not None and not self._page.is_closed()

    # ── Descriptor ───────────────────────────────────────────────────────────

    def load(self) -> Optional[SessionDescriptor]:
        """Read the descriptor. Missing or unreadable means no session."""
        if not self.session_path.exists():
            return None
        try:
            raw = json.loads(self.session_path.read_text(encoding="utf-8"))
            return SessionDescriptor.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable session descriptor {self.session_path}: {e}")
            return None

    def save(self, descriptor: SessionDescriptor) -> None:
        """Overwrite the descriptor file as a whole."""
        self.session_path.parent.mkdir(parents=True, exist_ok=True)
        self.session_path.write_text(descriptor.to_json(), encoding="utf-8")

    def update(self, **fields) -> Optional[SessionDescriptor]:
        """Merge fields (snake_case names) into the descriptor.

        No-op when there is no descriptor; writing the same values twice
        leaves the same file.
        """
        descriptor = self.load()
        if descriptor is None:
            logger.debug(f"No session descriptor to update with {fields}")
            return None
        descriptor = descriptor.model_copy(update=fields)
        self.save(descriptor)
        logger.info(f"Session descriptor updated: {fields}")
        return descriptor

    def discard(self) -> None:
        try:
            self.session_path.unlink()
            logger.info(f"Session descriptor removed: {self.session_path}")
        except FileNotFoundError:
            pass

    # ── Acquire ──────────────────────────────────────────────────────────────

    async def acquire(self) -> Page:
        """Return the live page, reconnecting or launching as needed."""
        if self.is_running:
            return self._page

        descriptor = self.load()
        if descriptor is not None:
            page = await self._reconnect(descriptor)
            if page is not None:
                return page
            if descriptor.browser_pid:
                # Unreachable, possibly still holding the profile
                self._terminate(descriptor.browser_pid)
        if self.session_path.exists():
            # Stale endpoint, closed browser or malformed file
            self.discard()

        return await self._launch()

    async def _ensure_playwright(self) -> Playwright:
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return self._playwright

    async def _connect(self, endpoint: str) -> Browser:
        playwright = await self._ensure_playwright()
        self._browser = await playwright.chromium.connect_over_cdp(endpoint, timeout=BROWSER_TIMEOUT)
        return self._browser

    async def _reconnect(self, descriptor: SessionDescriptor) -> Optional[Page]:
        logger.info(f"Reconnecting to browser at {descriptor.ws_endpoint}...")
        try:
            browser = await self._connect(descriptor.ws_endpoint)
            if not browser.contexts:
                raise RuntimeError("browser has no context")
            context = browser.contexts[0]
            if not context.pages:
                raise RuntimeError("browser has no open page")
            self._context = context
            self._page = context.pages[0]
            self._page.set_default_timeout(BROWSER_TIMEOUT)
            logger.info(f"Reconnected (state={descriptor.state.value}, url={self._page.url})")
            return self._page
        except Exception as e:
            logger.warning(f"Reconnection failed, starting a fresh browser: {e}")
            await self._release()
            return None

    def clear_lock_artifacts(self) -> None:
        for name in LOCK_ARTIFACTS:
            path = self.profile_dir / name
            # SingletonLock is a dangling symlink after a crash, so exists() is not enough
            if path.exists() or path.is_symlink():
                try:
                    path.unlink()
                    logger.info(f"Removed stale profile lock: {path}")
                except OSError as e:
                    logger.warning(f"Could not remove {path}: {e}")

    def _spawn_browser(self, executable: str) -> int:
        """Start a detached Chromium with a CDP port. Returns its pid."""
        args = [
            executable,
            f"--remote-debugging-port={self.cdp_port}",
            f"--user-data-dir={self.profile_dir}",
            *CHROMIUM_ARGS,
        ]
        if self.headless:
            args.append("--headless=new")
        process = subprocess.Popen(
            args,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
        logger.info(f"Chromium launched (pid={process.pid}, headless={self.headless})")
        return process.pid

    async def _wait_for_endpoint(self, endpoint: str, timeout_s: float = CDP_STARTUP_TIMEOUT) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_s
        async with httpx.AsyncClient(timeout=2.0) as client:
            while True:
                try:
                    response = await client.get(f"{endpoint}/json/version")
                    if response.status_code == 200:
                        return
                except httpx.HTTPError:
                    pass
                if loop.time() >= deadline:
                    raise RuntimeError(f"Chromium CDP endpoint {endpoint} not ready after {timeout_s}s")
                await asyncio.sleep(0.5)

    async def _launch(self) -> Page:
        self.profile_dir.mkdir(parents=True, exist_ok=True)
        self.clear_lock_artifacts()

        playwright = await self._ensure_playwright()
        endpoint = f"http://127.0.0.1:{self.cdp_port}"
        pid = self._spawn_browser(playwright.chromium.executable_path)
        try:
            await self._wait_for_endpoint(endpoint)

            browser = await self._connect(endpoint)
            if browser.contexts:
                self._context = browser.contexts[0]
            else:
                self._context = await browser.new_context(viewport={"width": 1280, "height": 800})
            try:
                await Stealth().apply_stealth_async(self._context)
            except Exception as e:
                logger.warning(f"Stealth patches not applied: {e}")

            if self._context.pages:
                self._page = self._context.pages[0]
            else:
                self._page = await self._context.new_page()
            self._page.set_default_timeout(BROWSER_TIMEOUT)
        except Exception:
            # No descriptor records this pid
            logger.error(f"Browser launch failed; terminating pid {pid}")
            self._terminate(pid)
            await self._release()
            raise

        self.save(SessionDescriptor(ws_endpoint=endpoint, browser_pid=pid))
        logger.info(f"New browser session persisted to {self.session_path}")
        return self._page

    # ── Teardown ─────────────────────────────────────────────────────────────

    async def _release(self) -> None:
        """Drop in-process handles without touching the browser process."""
        self._page = None
        self._context = None
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.debug(f"Error dropping browser connection: {e}")
            self._browser = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug(f"Error stopping Playwright: {e}")
            self._playwright = None

    async def _close_browser(self) -> bool:
        """Ask Chromium to exit over CDP. True if the request went through."""
        if self._browser is None:
            return False
        try:
            cdp = await self._browser.new_browser_cdp_session()
            await cdp.send("Browser.close")
            return True
        except Exception as e:
            logger.warning(f"CDP Browser.close failed: {e}")
            return False

    @staticmethod
    def _terminate(pid: int) -> None:
        try:
            os.kill(pid, signal.SIGTERM)
            logger.info(f"Sent SIGTERM to browser pid {pid}")
        except ProcessLookupError:
            pass
        except PermissionError as e:
            logger.warning(f"Cannot terminate browser pid {pid}: {e}")

    async def teardown(self) -> None:
        """Close the browser and delete the descriptor. Fine with no session."""
        descriptor = self.load()
        if self._browser is None and descriptor is not None:
            try:
                await self._connect(descriptor.ws_endpoint)
            except Exception as e:
                logger.info(f"Browser at {descriptor.ws_endpoint} already gone: {e}")

        closed = await self._close_browser()
        if not closed and descriptor is not None and descriptor.browser_pid:
            self._terminate(descriptor.browser_pid)

        await self._release()
        self.discard()
        logger.info("Browser session torn down.")
