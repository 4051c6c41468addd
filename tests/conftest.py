"""Pytest configuration and common fixtures."""

import os
import tempfile
from pathlib import Path

# Set environment variables BEFORE any collection_manager imports: config
# reads them at module load time.
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="collection-manager-tests-"))
os.environ.setdefault("DATA_DIR", str(_TEST_ROOT / "data"))
os.environ.setdefault("SCREENSHOT_DIR", str(_TEST_ROOT / "screenshots"))
os.environ.setdefault("SESSION_PATH", str(_TEST_ROOT / "session.json"))
os.environ.setdefault("BROWSER_PROFILE_DIR", str(_TEST_ROOT / "profile"))
os.environ.setdefault("CREDENTIALS_PATH", str(_TEST_ROOT / "config.json"))

from typing import Any, Optional

import aiosqlite
import pytest
import pytest_asyncio

from collection_manager.database.models import initialize_db
from collection_manager.database.repository import BookingRepository
from collection_manager.models.booking import OriginAddress
from collection_manager.models.session import SessionDescriptor
from collection_manager.session_manager.browser import SessionStore
from collection_manager.session_manager.form_filler import OPTION_TEXTS_JS, OPTION_VALUES_JS, SELECT_LABEL_JS


class FakeElement:
    """Stand-in for a Playwright ElementHandle that records what was done to it."""

    def __init__(
        self,
        attrs: Optional[dict[str, str]] = None,
        visible: bool = True,
        options: Optional[list[str]] = None,
        values: Optional[list[str]] = None,
        label_text: str = "",
        children: Optional[dict[str, "FakeElement"]] = None,
        fill_error: Optional[Exception] = None,
    ):
        self.attrs = attrs or {}
        self.visible = visible
        self.options = options or []
        self.values = values if values is not None else list(self.options)
        self.label_text = label_text
        self.children = children or {}
        self.fill_error = fill_error
        self.filled: Optional[str] = None
        self.clicks = 0
        self.selected: Any = None

    async def fill(self, value: str) -> None:
        if self.fill_error:
            raise self.fill_error
        self.filled = value

    async def click(self, **kwargs) -> None:
        self.clicks += 1

    async def is_visible(self) -> bool:
        return self.visible

    async def scroll_into_view_if_needed(self) -> None:
        pass

    async def get_attribute(self, name: str) -> Optional[str]:
        return self.attrs.get(name)

    async def query_selector(self, selector: str) -> Optional["FakeElement"]:
        return self.children.get(selector)

    async def select_option(self, index: Optional[int] = None, label: Optional[str] = None) -> None:
        self.selected = index if index is not None else label

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if script == OPTION_TEXTS_JS:
            return list(self.options)
        if script == OPTION_VALUES_JS:
            return list(self.values)
        if script == SELECT_LABEL_JS:
            return self.label_text
        return None


class FakePage:
    """Stand-in for a Playwright Page.

    Elements are keyed by the exact selector string the code under test
    queries; anything else is "not on the page". Every call is logged in
    ``calls`` so tests can assert that no interaction happened at all.
    """

    def __init__(
        self,
        elements: Optional[dict[str, FakeElement]] = None,
        selects: Optional[list[FakeElement]] = None,
        url: str = "about:blank",
        html: str = "<html><body></body></html>",
        evaluate_results: Optional[dict[str, Any]] = None,
    ):
        self.elements = dict(elements or {})
        self.selects = list(selects or [])
        self.url = url
        self.html = html
        self.evaluate_results = dict(evaluate_results or {})
        self.calls: list[tuple[str, Any]] = []
        self.screenshots: list[str] = []
        self.closed = False

    async def goto(self, url: str, **kwargs) -> None:
        self.calls.append(("goto", url))
        self.url = url

    async def query_selector(self, selector: str) -> Optional[FakeElement]:
        self.calls.append(("query_selector", selector))
        return self.elements.get(selector)

    async def query_selector_all(self, selector: str) -> list[FakeElement]:
        self.calls.append(("query_selector_all", selector))
        return list(self.selects) if selector == "select" else []

    async def wait_for_timeout(self, ms: int) -> None:
        self.calls.append(("wait_for_timeout", ms))

    async def wait_for_load_state(self, state: str = "load", **kwargs) -> None:
        self.calls.append(("wait_for_load_state", state))

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.calls.append(("evaluate", script))
        return self.evaluate_results.get(script)

    async def content(self) -> str:
        self.calls.append(("content", None))
        return self.html

    async def screenshot(self, path: Optional[str] = None, full_page: bool = False) -> bytes:
        self.calls.append(("screenshot", path))
        self.screenshots.append(path)
        return b""

    def set_default_timeout(self, timeout: int) -> None:
        pass

    def is_closed(self) -> bool:
        return self.closed


@pytest.fixture
def fake_page():
    return FakePage()


@pytest.fixture
def store(tmp_path):
    """SessionStore with its descriptor and profile under tmp_path."""
    return SessionStore(
        session_path=tmp_path / "session.json",
        profile_dir=tmp_path / "profile",
        cdp_port=9444,
        headless=True,
    )


@pytest.fixture
def logged_in_store(store):
    store.save(SessionDescriptor(ws_endpoint="http://127.0.0.1:9444", logged_in=True))
    return store


@pytest.fixture
def filled_store(store):
    store.save(
        SessionDescriptor(ws_endpoint="http://127.0.0.1:9444", logged_in=True, form_filled=True)
    )
    return store


@pytest.fixture
def origin():
    return OriginAddress(
        company="Acme Parts Ltd",
        address="Unit 4, Riverside Park",
        city="Leeds",
        postal_code="LS1 4AB",
        telephone="0113 496 0000",
        email="logistics@example.com",
        collect_from="Front Door",
    )


@pytest_asyncio.fixture
async def repo(tmp_path):
    """BookingRepository on a fresh SQLite file."""
    db = await aiosqlite.connect(str(tmp_path / "bookings.db"))
    db.row_factory = aiosqlite.Row
    await initialize_db(db)
    yield BookingRepository(db)
    await db.close()
