"""Tests for the review/submit pipeline."""

import datetime as dt

import pytest
from conftest import FakeElement, FakePage

from collection_manager.constants import NEXT_BUTTON_SELECTORS, SUBMIT_BUTTON_SELECTORS
from collection_manager.errors import PreconditionViolation, SubmissionStepFailure
from collection_manager.session_manager.submission import (
    SubmissionPipeline,
    SubmissionStage,
    check_ready,
)

CONFIRMATION_HTML = """
<html><body>
  <p>Confirmation Number: 2929602E9CP</p>
  <p>Total Charges: £12.50</p>
  <p>Collection Date: Friday, 16 January 2026</p>
</body></html>
"""


def _review_page(next_button=True, submit_button=True):
    elements = {}
    if next_button:
        elements[NEXT_BUTTON_SELECTORS[0]] = FakeElement()
    if submit_button:
        elements[SUBMIT_BUTTON_SELECTORS[0]] = FakeElement()
    return FakePage(elements=elements, html=CONFIRMATION_HTML)


def test_check_ready_without_descriptor(store):
    with pytest.raises(PreconditionViolation) as exc_info:
        check_ready(store)
    assert exc_info.value.details == {"state": "anonymous"}


def test_check_ready_when_only_logged_in(logged_in_store):
    with pytest.raises(PreconditionViolation):
        check_ready(logged_in_store)


def test_check_ready_when_filled(filled_store):
    check_ready(filled_store)


async def test_refused_submit_touches_no_page(logged_in_store):
    page = FakePage()
    with pytest.raises(PreconditionViolation):
        await SubmissionPipeline(logged_in_store).run(page)
    assert page.calls == []


async def test_full_pipeline(filled_store):
    page = _review_page()
    pipeline = SubmissionPipeline(filled_store)

    outcome = await pipeline.run(page, requested_date=dt.date(2026, 1, 16))

    assert pipeline.stage is SubmissionStage.CONFIRMED
    assert page.elements[NEXT_BUTTON_SELECTORS[0]].clicks == 1
    assert page.elements[SUBMIT_BUTTON_SELECTORS[0]].clicks == 1
    assert "review" in outcome.review_screenshot
    assert "confirmation" in outcome.confirmation_screenshot
    assert outcome.screenshots == [outcome.review_screenshot, outcome.confirmation_screenshot]
    assert outcome.confirmation.confirmation_number == "2929602E9CP"
    assert outcome.confirmation.mismatches == []
    # The same filled form can never be submitted twice
    assert filled_store.load().form_filled is False


async def test_missing_next_control_fails_at_filled(filled_store):
    page = _review_page(next_button=False)

    with pytest.raises(SubmissionStepFailure) as exc_info:
        await SubmissionPipeline(filled_store).run(page)

    error = exc_info.value
    assert error.stage == "filled"
    assert "submit-error" in error.screenshot
    assert filled_store.load().form_filled is False


async def test_missing_submit_control_fails_at_reviewing(filled_store):
    page = _review_page(submit_button=False)
    pipeline = SubmissionPipeline(filled_store)

    with pytest.raises(SubmissionStepFailure) as exc_info:
        await pipeline.run(page)

    error = exc_info.value
    assert error.stage == "reviewing"
    assert pipeline.stage is SubmissionStage.FAILED
    assert len(error.details["screenshots"]) == 1
    # A retry of submit alone is refused; the caller must fill again
    with pytest.raises(PreconditionViolation):
        check_ready(filled_store)


async def test_unexpected_confirmation_date_is_reported(filled_store):
    page = _review_page()

    outcome = await SubmissionPipeline(filled_store).run(page, requested_date=dt.date(2026, 1, 19))

    assert outcome.confirmation.mismatches
