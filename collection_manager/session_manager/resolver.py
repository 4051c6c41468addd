"""Locate form controls by human-facing labels instead of fixed selectors.

The portal's markup is not ours and its ids are generated, so each field is
described by an ordered list of label synonyms. For every synonym the
lookups below run in order and the first hit wins:

1. aria-label contains the synonym
2. placeholder contains the synonym
3. a <label> with the synonym's text, via its ``for`` target or the
   nearest input next to it
4. name attribute contains the synonym with whitespace removed

Lookups return None for "not here"; only the caller decides what a miss
means. A field nobody can find is skipped, not fatal.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Awaitable, Callable, Optional

from playwright.async_api import ElementHandle, Page

from ..constants import CLICK_TIMEOUT

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

Lookup = Callable[[Page, str], Awaitable[Optional[ElementHandle]]]

SIBLING_INPUT_XPATH = (
    "xpath=following-sibling::input | following-sibling::textarea | ../input | ../textarea"
)


def _quote(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def compact(label: str) -> str:
    """Label as it would appear in a name attribute: lowercase, no spaces."""
    return re.sub(r"\s+", "", label).lower()


# ── Selector builders ────────────────────────────────────────────────────────


def aria_selector(label: str) -> str:
    q = _quote(label)
    return f'input[aria-label*="{q}" i], textarea[aria-label*="{q}" i]'


def placeholder_selector(label: str) -> str:
    q = _quote(label)
    return f'input[placeholder*="{q}" i], textarea[placeholder*="{q}" i]'


def label_selector(label: str) -> str:
    return f'label:has-text("{_quote(label)}")'


def name_selector(label: str) -> str:
    q = _quote(compact(label))
    return f'input[name*="{q}" i], textarea[name*="{q}" i]'


def select_selector(label: str) -> str:
    return f'select[aria-label*="{_quote(label)}" i], select[name*="{_quote(compact(label))}" i]'


def radio_selector(value: str) -> str:
    q = _quote(value)
    return f'input[type="radio"][value*="{q}" i], label:has-text("{q}") input[type="radio"]'


# ── Lookups ──────────────────────────────────────────────────────────────────


async def by_aria_label(page: Page, label: str) -> Optional[ElementHandle]:
    return await page.query_selector(aria_selector(label))


async def by_placeholder(page: Page, label: str) -> Optional[ElementHandle]:
    return await page.query_selector(placeholder_selector(label))


async def by_label_element(page: Page, label: str) -> Optional[ElementHandle]:
    label_el = await page.query_selector(label_selector(label))
    if label_el is None:
        return None
    target_id = await label_el.get_attribute("for")
    if target_id:
        field = await page.query_selector(f'[id="{_quote(target_id)}"]')
        if field is not None:
            return field
    return await label_el.query_selector(SIBLING_INPUT_XPATH)


async def by_name(page: Page, label: str) -> Optional[ElementHandle]:
    return await page.query_selector(name_selector(label))


FIELD_LOOKUPS: list[Lookup] = [by_aria_label, by_placeholder, by_label_element, by_name]


async def resolve_field(
    page: Page, label_variants: list[str], lookups: Optional[list[Lookup]] = None
) -> Optional[ElementHandle]:
    """Return the first element any lookup finds for any label variant."""
    for label in label_variants:
        for lookup in lookups or FIELD_LOOKUPS:
            try:
                element = await lookup(page, label)
            except Exception as e:
                logger.debug(f"{lookup.__name__}('{label}') failed: {e}")
                continue
            if element is not None:
                logger.debug(f"Resolved '{label}' via {lookup.__name__}")
                return element
    return None


# ── Actions ──────────────────────────────────────────────────────────────────


async def fill_by_label(page: Page, label_variants: list[str], value: str) -> bool:
    """Fill the field described by label_variants. False if none was found."""
    for label in label_variants:
        for lookup in FIELD_LOOKUPS:
            element = await resolve_field(page, [label], [lookup])
            if element is None:
                continue
            try:
                await element.fill(value)
                return True
            except Exception as e:
                # Matched something that does not take input; try the next lookup
                logger.debug(f"Fill via {lookup.__name__}('{label}') failed: {e}")
    logger.warning(f"No field found for {label_variants}; skipped")
    return False


async def select_by_label(page: Page, label_variants: list[str], value: str) -> bool:
    """Choose value in a dropdown or radio group described by label_variants."""
    for label in label_variants:
        try:
            select = await page.query_selector(select_selector(label))
            if select is not None:
                await select.select_option(label=value)
                return True

            radio = await page.query_selector(radio_selector(value))
            if radio is not None:
                await radio.click()
                return True
        except Exception as e:
            logger.debug(f"Select '{value}' via '{label}' failed: {e}")
            continue
    logger.warning(f"No option '{value}' found for {label_variants}; skipped")
    return False


async def click_first_visible(page: Page, selectors: list[str]) -> Optional[str]:
    """Click the first visible element among selectors. Returns the selector used."""
    for selector in selectors:
        try:
            button = await page.query_selector(selector)
            if button is None or not await button.is_visible():
                continue
            await button.scroll_into_view_if_needed()
            await button.click(force=True, timeout=CLICK_TIMEOUT)
            return selector
        except Exception as e:
            logger.debug(f"Click via {selector} failed: {e}")
            continue
    return None


CLICK_BUTTON_BY_TEXT_JS = """
(words) => {
    const buttons = Array.from(document.querySelectorAll('button'));
    const match = buttons.find(b => {
        const text = (b.textContent || '').toLowerCase();
        return b.offsetParent !== null && words.some(w => text.includes(w));
    });
    if (!match) return null;
    match.click();
    return (match.textContent || '').trim();
}
"""


async def click_button_by_text(page: Page, words: list[str]) -> Optional[str]:
    """Click the first rendered button whose text contains any of words.

    Fallback for when selector lookups find nothing clickable. Returns the
    clicked button's text.
    """
    try:
        return await page.evaluate(CLICK_BUTTON_BY_TEXT_JS, [w.lower() for w in words])
    except Exception as e:
        logger.debug(f"Scripted button scan failed: {e}")
        return None
