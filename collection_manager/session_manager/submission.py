"""Review and submit a filled collection form, then read the confirmation."""

from __future__ import annotations

import datetime as dt
import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..constants import (
    CONFIRMATION_SETTLE_MS,
    NETWORK_IDLE_TIMEOUT,
    NEXT_BUTTON_SELECTORS,
    NEXT_BUTTON_WORDS,
    STEP_SETTLE_MS,
    SUBMIT_BUTTON_SELECTORS,
    SUBMIT_BUTTON_WORDS,
)
from ..errors import CollectionError, PreconditionViolation, SubmissionStepFailure
from ..models.booking import ConfirmationRecord
from ..models.session import BookingState, require_transition
from .browser import SessionStore, capture, safe_capture
from .consent import suppress
from .parser import parse_confirmation
from .resolver import click_button_by_text, click_first_visible

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

SCROLL_TO_BOTTOM_JS = "() => window.scrollTo(0, document.body.scrollHeight)"


class SubmissionStage(str, Enum):
    FILLED = "filled"
    REVIEWING = "reviewing"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class SubmissionOutcome:
    review_screenshot: str
    confirmation_screenshot: str
    confirmation: ConfirmationRecord
    stage: SubmissionStage = SubmissionStage.CONFIRMED
    screenshots: list[str] = field(default_factory=list)


def check_ready(store: SessionStore) -> None:
    """Refuse to submit unless the descriptor says a fill completed.

    Reads only the file; no page is touched.
    """
    descriptor = store.load()
    current = descriptor.state if descriptor is not None else BookingState.ANONYMOUS
    if current is not BookingState.FILLED:
        raise PreconditionViolation(
            "Form has not been filled yet. Call fill-form first.",
            details={"state": current.value},
        )
    require_transition(current, BookingState.REVIEWING)


async def _settle(page: Page, extra_ms: int) -> None:
    """Wait for network idle, then a fixed pause. A busy page is not an error."""
    try:
        await page.wait_for_load_state("networkidle", timeout=NETWORK_IDLE_TIMEOUT)
    except PlaywrightTimeoutError:
        logger.warning("Network did not go idle; continuing")
    await page.wait_for_timeout(extra_ms)


async def _press(page: Page, selectors: list[str], words: list[str]) -> Optional[str]:
    await page.evaluate(SCROLL_TO_BOTTOM_JS)
    await page.wait_for_timeout(500)
    used = await click_first_visible(page, selectors)
    if used:
        return used
    return await click_button_by_text(page, words)


class SubmissionPipeline:
    """Filled -> Reviewing -> Submitted -> Confirmed, or Failed."""

    def __init__(self, store: SessionStore):
        self.store = store
        self.stage = SubmissionStage.FILLED

    def _advance(self, stage: SubmissionStage) -> None:
        logger.info(f"Submission stage: {self.stage.value} -> {stage.value}")
        self.stage = stage

    async def run(self, page: Page, requested_date: Optional[dt.date] = None) -> SubmissionOutcome:
        """Submit the filled form on page.

        Raises:
            PreconditionViolation: no completed fill recorded; page untouched.
            SubmissionStepFailure: a step failed; carries the stage and a
                screenshot. Never resume: start a new booking instead.
        """
        check_ready(self.store)
        self.stage = SubmissionStage.FILLED
        screenshots: list[str] = []

        try:
            await suppress(page)
            control = await _press(page, NEXT_BUTTON_SELECTORS, NEXT_BUTTON_WORDS)
            if not control:
                raise SubmissionStepFailure("Could not find the Next control.", stage=self.stage.value)
            logger.info(f"Proceeded to review via {control!r}")
            await _settle(page, STEP_SETTLE_MS)
            await suppress(page)
            review = await capture(page, "review")
            screenshots.append(review)
            self._advance(SubmissionStage.REVIEWING)

            control = await _press(page, SUBMIT_BUTTON_SELECTORS, SUBMIT_BUTTON_WORDS)
            if not control:
                raise SubmissionStepFailure(
                    "Could not find the final submit control.", stage=self.stage.value
                )
            # The booking may now exist; this filled form must never be sent again
            self.store.update(form_filled=False)
            logger.info(f"Submitted via {control!r}")
            self._advance(SubmissionStage.SUBMITTED)
            await _settle(page, CONFIRMATION_SETTLE_MS)
            confirmation_shot = await capture(page, "confirmation")
            screenshots.append(confirmation_shot)

            confirmation = parse_confirmation(await page.content(), requested_date)
            self._advance(SubmissionStage.CONFIRMED)

        except Exception as e:
            failed_at = self.stage
            self._advance(SubmissionStage.FAILED)
            # A retry has to start again from fill
            self.store.update(form_filled=False)
            screenshot = await safe_capture(page, "submit-error")
            message = e.message if isinstance(e, CollectionError) else str(e)
            logger.error(f"Submission failed at stage '{failed_at.value}': {message}")
            raise SubmissionStepFailure(
                f"Submit failed: {message}",
                stage=failed_at.value,
                screenshot=screenshot,
                details={"screenshots": screenshots},
            ) from e

        return SubmissionOutcome(
            review_screenshot=review,
            confirmation_screenshot=confirmation_shot,
            confirmation=confirmation,
            screenshots=screenshots,
        )
