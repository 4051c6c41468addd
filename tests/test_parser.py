"""Tests for confirmation page extraction."""

import datetime as dt

from collection_manager.session_manager.parser import page_text_from_html, parse_confirmation

CONFIRMATION_HTML = """
<html>
<head><script>var trackingNumber = "XYZ";</script><style>.x{}</style></head>
<body>
  <h1>Collection Confirmed</h1>
  <div><span>Confirmation Number:</span> <strong>2929602E9CP</strong></div>
  <p>Total Charges: £12.50</p>
  <p>Collection Date: Friday, 16 January 2026</p>
</body>
</html>
"""


def test_extracts_all_fields():
    record = parse_confirmation(CONFIRMATION_HTML)
    assert record.confirmation_number == "2929602E9CP"
    assert record.total_charges == "£12.50"
    assert record.collection_date == "Friday, 16 January 2026"
    assert record.mismatches == []


def test_page_text_drops_scripts():
    text = page_text_from_html(CONFIRMATION_HTML)
    assert "trackingNumber" not in text
    assert "Collection Confirmed" in text


def test_missing_fields_are_none_not_errors():
    record = parse_confirmation("<html><body><p>Thank you, we are processing your request.</p></body></html>")
    assert record.confirmation_number is None
    assert record.total_charges is None
    assert record.collection_date is None
    assert "processing your request" in record.page_text


def test_label_word_is_not_taken_as_number():
    record = parse_confirmation("<p>Confirmation Number</p><p>pending</p>")
    assert record.confirmation_number is None


def test_matching_requested_date_has_no_mismatch():
    record = parse_confirmation(CONFIRMATION_HTML, requested_date=dt.date(2026, 1, 16))
    assert record.mismatches == []


def test_different_requested_date_is_reported():
    record = parse_confirmation(CONFIRMATION_HTML, requested_date=dt.date(2026, 1, 19))
    assert len(record.mismatches) == 1
    assert "2026-01-19" in record.mismatches[0]


def test_page_text_is_truncated():
    html = "<p>" + ("x" * 5000) + "</p>"
    assert len(parse_confirmation(html).page_text) == 3000
