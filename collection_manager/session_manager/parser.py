"""Parse the rendered confirmation page into a ConfirmationRecord.

Extraction strategy:
1. Reduce the page to visible text (scripts, styles and templates dropped)
2. Run ordered regular expressions for reference number, total and date
3. Keep the leading page text so an operator can read what the pattern missed

A missing match is a null field, never an error.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
import sys
from typing import Optional

from bs4 import BeautifulSoup

from ..constants import (
    COLLECTION_DATE_PATTERN,
    CONFIRMATION_PATTERNS,
    PAGE_TEXT_LIMIT,
    TOTAL_CHARGES_PATTERN,
)
from ..models.booking import ConfirmationRecord

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def _clean_text(text: str | None) -> str:
    """Collapse runs of spaces and drop empty lines, keeping line breaks."""
    if not text:
        return ""
    lines = (re.sub(r"[ \t\r\f\v\xa0]+", " ", line).strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


def page_text_from_html(html: str) -> str:
    """Return the visible text of an HTML document, one block per line."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    body = soup.body or soup
    return _clean_text(body.get_text("\n"))


def _first_match(patterns: list[re.Pattern], text: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return None


def check_against_request(
    record: ConfirmationRecord, requested_date: Optional[dt.date]
) -> list[str]:
    """List discrepancies between the confirmation page and the request.

    Only the collection date is checked: the page shows it as free text,
    so the day number and the English month name must both appear in it.
    """
    if requested_date is None or not record.collection_date:
        return []
    shown = record.collection_date.lower()
    day = str(requested_date.day)
    month = requested_date.strftime("%B").lower()
    if re.search(rf"\b0?{day}\b", shown) and month in shown:
        return []
    return [
        f"Confirmed collection date '{record.collection_date}' does not match "
        f"requested date {requested_date.isoformat()}"
    ]


def parse_confirmation(html: str, requested_date: Optional[dt.date] = None) -> ConfirmationRecord:
    """Extract confirmation number, total charges and collection date."""
    text = page_text_from_html(html)
    logger.info(f"[PARSER] Confirmation page text: {len(text)} chars")

    record = ConfirmationRecord(
        confirmation_number=_first_match(CONFIRMATION_PATTERNS, text),
        total_charges=_first_match([TOTAL_CHARGES_PATTERN], text),
        collection_date=_first_match([COLLECTION_DATE_PATTERN], text),
        page_text=text[:PAGE_TEXT_LIMIT],
    )
    record.mismatches = check_against_request(record, requested_date)

    if record.confirmation_number is None:
        logger.warning("[PARSER] No confirmation number found; raw page text kept for review.")
    for mismatch in record.mismatches:
        logger.warning(f"[PARSER] {mismatch}")
    return record
