"""Tests for the portal login flow."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from conftest import FakeElement, FakePage

from collection_manager.constants import (
    LOGGED_IN_MARKERS,
    LOGIN_BUTTON_SELECTOR,
    PASSWORD_SELECTORS,
    PORTAL_FORM_URL,
    PORTAL_LOGIN_URL,
    USERNAME_SELECTORS,
)
from collection_manager.errors import AuthFieldNotFound, LoginTimeout
from collection_manager.models.session import PortalCredentials, SessionDescriptor
from collection_manager.session_manager import auth
from collection_manager.session_manager.auth import (
    Authenticator,
    LoginStep,
    is_authenticated_url,
    wait_for_any_success,
)


class LoginPage(FakePage):
    """Login page whose fields appear via wait_for_selector."""

    def __init__(self, fields=None, url=PORTAL_LOGIN_URL, logged_in_after=None, **kwargs):
        super().__init__(url=url, **kwargs)
        self.fields = dict(fields or {})
        self.logged_in_after = logged_in_after

    async def wait_for_selector(self, selector, timeout=None, state=None):
        self.calls.append(("wait_for_selector", selector))
        if selector in self.fields:
            return self.fields[selector]
        if selector == LOGGED_IN_MARKERS and self.logged_in_after is not None:
            await asyncio.sleep(self.logged_in_after)
            return FakeElement()
        raise TimeoutError(f"waiting for {selector}")

    async def wait_for_url(self, predicate, timeout=None):
        raise TimeoutError("url never matched")


@pytest.fixture
def credentials():
    return PortalCredentials(username="ops@example.com", password="secret")


@pytest.mark.parametrize(
    "url,expected",
    [
        (PORTAL_FORM_URL, True),
        ("https://wwwapps.ups.com/pickup/review", True),
        (PORTAL_LOGIN_URL, False),
        ("https://www.ups.com/lasso/login?returnto=https://wwwapps.ups.com/pickup", False),
    ],
)
def test_is_authenticated_url(url, expected):
    assert is_authenticated_url(url) is expected


async def test_already_authenticated_skips_login(logged_in_store, credentials):
    page = LoginPage()

    async def goto(url, **kwargs):
        page.calls.append(("goto", url))
        page.url = PORTAL_FORM_URL

    page.goto = goto

    step = await Authenticator(logged_in_store, credentials).ensure_logged_in(page)

    assert step is LoginStep.AUTHENTICATED
    assert not any(call[0] == "wait_for_selector" for call in page.calls)


async def test_two_step_login(store, credentials):
    store.save(SessionDescriptor(ws_endpoint="http://127.0.0.1:9444"))
    username = FakeElement()
    password = FakeElement()
    login_button = FakeElement()
    page = LoginPage(
        fields={USERNAME_SELECTORS[0]: username, PASSWORD_SELECTORS[0]: password},
        elements={LOGIN_BUTTON_SELECTOR: login_button},
        logged_in_after=0,
    )

    step = await Authenticator(store, credentials).ensure_logged_in(page)

    assert step is LoginStep.AUTHENTICATED
    assert username.filled == "ops@example.com"
    assert password.filled == "secret"
    assert login_button.clicks == 1
    assert store.load().logged_in is True


async def test_header_marker_on_login_page_does_not_skip_login(store, credentials):
    store.save(SessionDescriptor(ws_endpoint="http://127.0.0.1:9444"))
    username = FakeElement()
    password = FakeElement()
    page = LoginPage(
        fields={USERNAME_SELECTORS[0]: username, PASSWORD_SELECTORS[0]: password},
        elements={LOGGED_IN_MARKERS: FakeElement(), LOGIN_BUTTON_SELECTOR: FakeElement()},
        logged_in_after=0,
    )

    step = await Authenticator(store, credentials).ensure_logged_in(page)

    assert step is LoginStep.AUTHENTICATED
    assert username.filled == "ops@example.com"
    assert password.filled == "secret"


async def test_marker_without_login_form_counts_as_authenticated(store, credentials):
    store.save(SessionDescriptor(ws_endpoint="http://127.0.0.1:9444"))
    page = LoginPage(elements={LOGGED_IN_MARKERS: FakeElement()})

    step = await Authenticator(store, credentials).ensure_logged_in(page)

    assert step is LoginStep.AUTHENTICATED
    assert store.load().logged_in is True


async def test_missing_username_field(store, credentials):
    page = LoginPage()

    with pytest.raises(AuthFieldNotFound) as exc_info:
        await Authenticator(store, credentials).ensure_logged_in(page)

    assert "username" in exc_info.value.message
    assert "login-error-no-username" in exc_info.value.screenshot


async def test_missing_password_field(store, credentials):
    page = LoginPage(fields={USERNAME_SELECTORS[0]: FakeElement()})

    with pytest.raises(AuthFieldNotFound) as exc_info:
        await Authenticator(store, credentials).ensure_logged_in(page)

    assert "password" in exc_info.value.message


async def test_login_race_timeout(store, credentials, monkeypatch):
    monkeypatch.setattr(auth, "wait_for_any_success", AsyncMock(return_value=False))
    page = LoginPage(fields={USERNAME_SELECTORS[0]: FakeElement(), PASSWORD_SELECTORS[0]: FakeElement()})

    with pytest.raises(LoginTimeout) as exc_info:
        await Authenticator(store, credentials).ensure_logged_in(page)

    assert "login-error" in exc_info.value.screenshot


async def test_race_succeeds_on_marker_when_url_fails():
    page = LoginPage(logged_in_after=0.01)
    assert await wait_for_any_success(page, timeout=1000) is True


async def test_race_fails_when_both_fail():
    page = LoginPage()
    assert await wait_for_any_success(page, timeout=1000) is False
