"""Booking orchestrator: fill_form, submit, book, take_screenshot, reset.

Every operation returns a JSON-shaped dict with either ``success`` or
``error`` set, and the screenshot path(s) of whatever page state existed.
"""

from __future__ import annotations

import datetime as dt
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Optional

from playwright.async_api import Page

from ..config import SCREENSHOT_DIR, load_credentials, origin_address
from ..database.repository import BookingRepository
from ..errors import CollectionError
from ..models.booking import BookingRecord, FormRequest, FormState, OriginAddress
from ..models.session import PortalCredentials, SessionStatus
from .auth import Authenticator
from .browser import SessionStore, safe_capture, screenshot_path
from .form_filler import FormFiller
from .submission import SubmissionOutcome, SubmissionPipeline, check_ready

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

BOOK_SETTLE_MS = 2000


class BookingOrchestrator:
    """Runs booking operations against one persisted browser session."""

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        repo: Optional[BookingRepository] = None,
        origin: Optional[OriginAddress] = None,
        credentials_loader: Callable[[], PortalCredentials] = load_credentials,
    ):
        self.store = store or SessionStore()
        self.repo = repo
        self.origin = origin or origin_address()
        self._credentials_loader = credentials_loader

    # ── Steps ────────────────────────────────────────────────────────────────

    async def _fill(self, request: FormRequest, now: Optional[dt.datetime] = None) -> tuple[Page, FormState, str]:
        credentials = self._credentials_loader()
        page = await self.store.acquire()
        self.store.update(form_filled=False)
        await Authenticator(self.store, credentials).ensure_logged_in(page)
        state, screenshot = await FormFiller(self.store, self.origin).fill(page, request, now=now)
        return page, state, screenshot

    async def _record(self, operation: str, result: dict[str, Any], request: Optional[FormRequest] = None,
                      state: Optional[FormState] = None) -> None:
        if self.repo is None:
            return
        confirmation = result.get("confirmation") or {}
        screenshots = [
            v for k, v in result.items()
            if k.lower().endswith("screenshot") and isinstance(v, str)
        ]
        requested = state.date if state else (request.date if request else None)
        record = BookingRecord(
            operation=operation,
            success=bool(result.get("success")),
            message=result.get("message", ""),
            confirmation_number=confirmation.get("confirmationNumber"),
            total_charges=confirmation.get("totalCharges"),
            collection_date=confirmation.get("collectionDate"),
            requested_date=requested.isoformat() if requested else None,
            packages=state.packages if state else (request.packages if request else None),
            weight=state.weight if state else (request.weight if request else None),
            screenshots=screenshots,
        )
        try:
            await self.repo.record(record)
        except Exception as e:
            logger.warning(f"Could not record {operation} in booking history: {e}")

    async def _unexpected(self, operation: str, error: Exception) -> dict[str, Any]:
        logger.error(f"{operation} failed: {error}", exc_info=True)
        screenshot = await safe_capture(self.store.page, f"{operation}-error")
        result: dict[str, Any] = {"error": True, "message": f"{operation} failed: {error}"}
        if screenshot:
            result["screenshot"] = screenshot
        return result

    # ── Operations ───────────────────────────────────────────────────────────

    async def fill_form(self, request: FormRequest, now: Optional[dt.datetime] = None) -> dict[str, Any]:
        """Log in and fill the form without submitting."""
        try:
            _, state, screenshot = await self._fill(request, now)
        except CollectionError as e:
            logger.error(f"fill_form failed: {e.message}")
            return e.to_result()
        except Exception as e:
            return await self._unexpected("fill-form", e)

        return {
            "success": True,
            "screenshot": screenshot,
            "formState": state.to_dict(),
            "message": "Form filled successfully. Please review the screenshot before calling submit.",
        }

    def _submission_result(self, outcome: SubmissionOutcome) -> dict[str, Any]:
        return {
            "success": True,
            "screenshot": outcome.confirmation_screenshot,
            "reviewScreenshot": outcome.review_screenshot,
            "confirmation": outcome.confirmation.to_dict(),
            "message": "Collection submitted successfully.",
        }

    async def submit(self) -> dict[str, Any]:
        """Submit the form filled by an earlier fill_form call."""
        try:
            # Checked before acquire() so a refused submit never touches a page
            check_ready(self.store)
        except CollectionError as e:
            logger.warning(f"submit refused: {e.message}")
            return e.to_result()

        try:
            page = await self.store.acquire()
            outcome = await SubmissionPipeline(self.store).run(page)
        except CollectionError as e:
            result = e.to_result()
        except Exception as e:
            result = await self._unexpected("submit", e)
        else:
            result = self._submission_result(outcome)

        await self._record("submit", result)
        return result

    async def book(self, request: FormRequest, now: Optional[dt.datetime] = None) -> dict[str, Any]:
        """Fill and submit in one call on the same page."""
        try:
            page, state, fill_screenshot = await self._fill(request, now)
        except CollectionError as e:
            result = e.to_result()
            await self._record("book", result, request=request)
            return result
        except Exception as e:
            result = await self._unexpected("book", e)
            await self._record("book", result, request=request)
            return result

        try:
            await page.wait_for_timeout(BOOK_SETTLE_MS)
            outcome = await SubmissionPipeline(self.store).run(page, requested_date=state.date)
        except CollectionError as e:
            result = e.to_result()
            result["message"] = f"Booking failed during submit: {e.message}"
            result["fillScreenshot"] = fill_screenshot
            stage_shots = e.details.get("screenshots") or []
            if stage_shots:
                result["reviewScreenshot"] = stage_shots[0]
            await self._record("book", result, state=state)
            return result
        except Exception as e:
            result = await self._unexpected("book", e)
            result["fillScreenshot"] = fill_screenshot
            await self._record("book", result, state=state)
            return result

        result = {
            "success": True,
            "fillScreenshot": fill_screenshot,
            "reviewScreenshot": outcome.review_screenshot,
            "confirmationScreenshot": outcome.confirmation_screenshot,
            "formState": state.to_dict(),
            "confirmation": outcome.confirmation.to_dict(),
            "message": "Collection booked successfully.",
        }
        await self._record("book", result, state=state)

        # A completed booking leaves nothing to resume
        await self.reset()
        return result

    async def take_screenshot(self, filename: Optional[str] = None, full_page: bool = False) -> dict[str, Any]:
        """Screenshot whatever the session's page currently shows."""
        try:
            page = await self.store.acquire()
            path = SCREENSHOT_DIR / Path(filename).name if filename else screenshot_path("page")
            path.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(path), full_page=full_page)
        except Exception as e:
            logger.error(f"Screenshot failed: {e}")
            return {"error": True, "message": f"Screenshot failed: {e}"}
        return {"success": True, "screenshot": str(path)}

    async def reset(self) -> dict[str, Any]:
        """Close the browser and clear saved state. Safe to repeat."""
        try:
            await self.store.teardown()
        except Exception as e:
            logger.error(f"Reset failed: {e}")
            return {"error": True, "message": f"Reset failed: {e}"}
        return {"success": True, "message": "Browser session closed and cleared."}

    async def status(self) -> SessionStatus:
        descriptor = self.store.load()
        last = await self.repo.last_booking() if self.repo else None
        if descriptor is None:
            return SessionStatus(
                message="No browser session.",
                last_booking=last.model_dump() if last else None,
            )
        return SessionStatus(
            is_active=self.store.is_running,
            state=descriptor.state.value,
            ws_endpoint=descriptor.ws_endpoint,
            created_at=descriptor.created_at,
            logged_in=descriptor.logged_in,
            form_filled=descriptor.form_filled,
            last_booking=last.model_dump() if last else None,
        )
