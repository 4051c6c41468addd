"""Fill the collection booking form from a FormRequest."""

from __future__ import annotations

import datetime as dt
import logging
import re
import sys
from typing import Optional

from playwright.async_api import ElementHandle, Page

from ..constants import (
    DIFFERENT_ADDRESS_SELECTORS,
    FIELD_LABELS,
    FORM_NAVIGATION_TIMEOUT,
    FORM_SETTLE_MS,
    PORTAL_FORM_URL,
)
from ..errors import CollectionError, StructuralFillFailure
from ..models.booking import FormRequest, FormState, OriginAddress
from .browser import SessionStore, capture, safe_capture
from .consent import suppress
from .resolver import fill_by_label, select_by_label
from .scheduling import smart_date, smart_earliest_time

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

SELECT_DIFFERENT_ADDRESS_JS = """
() => {
    for (const radio of document.querySelectorAll('input[type="radio"]')) {
        const label = radio.id ? document.querySelector(`label[for="${radio.id}"]`) : radio.closest('label');
        const text = (label?.textContent || '').toLowerCase();
        if (text.includes('different') && text.includes('collection')) {
            radio.click();
            return true;
        }
    }
    return false;
}
"""

OPTION_TEXTS_JS = "s => Array.from(s.options).map(o => o.text)"
OPTION_VALUES_JS = "s => Array.from(s.options).map(o => o.value)"
SELECT_LABEL_JS = """
s => (s.closest('div')?.querySelector('label')?.textContent
      || s.getAttribute('aria-label') || s.name || '')
"""


def long_date(target: dt.date) -> str:
    """en-GB long form used by the portal, e.g. 'Friday, 16 January 2026'."""
    return f"{target.strftime('%A')}, {target.day} {target.strftime('%B')} {target.year}"


def match_date_option(options: list[str], target: dt.date) -> Optional[int]:
    """Index of the dropdown option showing target, or None.

    Full long-format match first, then day number plus month name.
    """
    full = long_date(target).lower()
    for i, text in enumerate(options):
        if full in text.lower():
            return i

    month = target.strftime("%B").lower()
    day = re.compile(rf"\b0?{target.day}\b")
    for i, text in enumerate(options):
        lowered = text.lower()
        if month in lowered and day.search(lowered):
            return i
    return None


def match_hour_option(options: list[str], values: list[str], time_text: str) -> Optional[int]:
    """Index of the option for the hour in time_text ('15:00' -> '15')."""
    hour = time_text.split(":")[0]
    padded = hour.zfill(2)
    candidates = {hour, padded, time_text, f"{padded}:00"}
    for i, (text, value) in enumerate(zip(options, values)):
        if text.strip() in candidates or value.strip() in candidates:
            return i
    return None


class FormFiller:
    """Puts a FormRequest into the portal's collection form."""

    def __init__(self, store: SessionStore, origin: OriginAddress):
        self.store = store
        self.origin = origin

    async def _select_different_address(self, page: Page) -> None:
        """Pick 'A different collection address'.

        The form otherwise defaults to the account address with no visible
        error, so failing to select it aborts the fill.
        """
        for selector in DIFFERENT_ADDRESS_SELECTORS:
            try:
                radio = await page.query_selector(selector)
            except Exception:
                continue
            if radio is not None:
                await radio.click(force=True)
                await page.wait_for_timeout(1000)
                logger.info(f"Different collection address selected via {selector}")
                return

        if await page.evaluate(SELECT_DIFFERENT_ADDRESS_JS):
            await page.wait_for_timeout(1000)
            logger.info("Different collection address selected via label scan")
            return

        raise StructuralFillFailure("Could not select 'A different collection address'.")

    async def _fill(self, page: Page, field: str, value: str, skipped: list[str]) -> None:
        if not await fill_by_label(page, FIELD_LABELS[field], value):
            skipped.append(field)

    async def _selects(self, page: Page) -> list[ElementHandle]:
        return await page.query_selector_all("select")

    async def _select_date(self, page: Page, target: dt.date) -> bool:
        for select in await self._selects(page):
            options = await select.evaluate(OPTION_TEXTS_JS)
            index = match_date_option(options, target)
            if index is not None:
                await select.select_option(index=index)
                logger.info(f"Collection date set to '{options[index].strip()}'")
                return True
        logger.warning(f"No dropdown option matches {long_date(target)}")
        return False

    async def _select_time(self, page: Page, keyword: str, time_text: str) -> bool:
        for select in await self._selects(page):
            label = (await select.evaluate(SELECT_LABEL_JS) or "").lower()
            if keyword not in label:
                continue
            options = await select.evaluate(OPTION_TEXTS_JS)
            values = await select.evaluate(OPTION_VALUES_JS)
            index = match_hour_option(options, values, time_text)
            if index is not None:
                await select.select_option(index=index)
                logger.info(f"{keyword.capitalize()} time set to {time_text}")
                return True
        logger.warning(f"No {keyword} time control accepted {time_text}")
        return False

    async def fill(
        self, page: Page, request: FormRequest, now: Optional[dt.datetime] = None
    ) -> tuple[FormState, str]:
        """Navigate to the form and fill it.

        Returns the resolved FormState and the preview screenshot path.
        Fields the resolver cannot find are listed in
        FormState.skipped_fields.

        Raises:
            StructuralFillFailure: the form could not be trusted; nothing
                should be submitted from this page.
        """
        collection_date = request.date or smart_date(now)
        earliest_time = request.earliest_time or smart_earliest_time(now)
        instructions = request.resolved_instructions()
        skipped: list[str] = []

        # A previous preview stops being submittable once the page moves on
        self.store.update(form_filled=False)

        logger.info(f"Opening collection form {PORTAL_FORM_URL}")
        await page.goto(PORTAL_FORM_URL, wait_until="domcontentloaded", timeout=FORM_NAVIGATION_TIMEOUT)
        await suppress(page)
        await page.wait_for_timeout(FORM_SETTLE_MS)
        await capture(page, "form-initial")

        try:
            await self._select_different_address(page)

            await self._fill(page, "company", self.origin.company, skipped)
            await self._fill(page, "address", self.origin.address, skipped)
            await self._fill(page, "city", self.origin.city, skipped)
            await self._fill(page, "postal_code", self.origin.postal_code, skipped)
            await self._fill(page, "telephone", self.origin.telephone, skipped)
            await self._fill(page, "packages", str(request.packages), skipped)
            await self._fill(page, "weight", str(request.weight), skipped)
            if instructions:
                await self._fill(page, "special_instructions", instructions, skipped)

            if not await select_by_label(page, FIELD_LABELS["collect_from"], self.origin.collect_from):
                skipped.append("collect_from")

            await self._fill(page, "email", self.origin.email, skipped)

            if not await self._select_date(page, collection_date):
                skipped.append("date")
            await page.wait_for_timeout(500)

            if not await self._select_time(page, "earliest", earliest_time):
                skipped.append("earliest_time")
            if not await self._select_time(page, "latest", request.latest_time):
                skipped.append("latest_time")

        except Exception as e:
            screenshot = await safe_capture(page, "form-error")
            message = e.message if isinstance(e, CollectionError) else str(e)
            logger.error(f"Form fill aborted: {message}")
            raise StructuralFillFailure(f"Form fill error: {message}", screenshot=screenshot) from e

        preview = await capture(page, "form-preview")
        self.store.update(form_filled=True)

        if skipped:
            logger.warning(f"Form filled with skipped fields: {skipped}")

        state = FormState(
            date=collection_date,
            packages=request.packages,
            weight=request.weight,
            earliest_time=earliest_time,
            latest_time=request.latest_time,
            special_instructions=instructions,
            company=self.origin.company,
            address=self.origin.address,
            city=self.origin.city,
            postal_code=self.origin.postal_code,
            skipped_fields=skipped,
        )
        return state, preview
