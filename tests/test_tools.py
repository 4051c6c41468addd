"""Tests for the MCP tool functions."""

import json
from unittest.mock import AsyncMock

import aiosqlite

from collection_manager.database.models import initialize_db
from collection_manager.database.repository import BookingRepository
from collection_manager.models.booking import BookingRecord
from collection_manager.tools import booking_tools, query_tools


def test_form_body_uses_service_field_names():
    body = booking_tools._form_body(
        date="2026-01-16", packages=2, weight=15, earliest_time="14:00", door_code="1234"
    )
    assert body == {
        "packages": 2,
        "weight": 15,
        "date": "2026-01-16",
        "earliestTime": "14:00",
        "doorCode": "1234",
    }


async def test_book_collection_posts_to_service(monkeypatch):
    call = AsyncMock(return_value={"success": True})
    monkeypatch.setattr(booking_tools, "_call_service", call)

    result = await booking_tools.book_collection(date="2026-01-16", special_instructions="Side gate")

    assert json.loads(result) == {"success": True}
    call.assert_awaited_once_with(
        "POST",
        "/book",
        {"packages": 1, "weight": 10, "date": "2026-01-16", "specialInstructions": "Side gate"},
    )


async def test_unreachable_service_is_reported(monkeypatch):
    monkeypatch.setattr(booking_tools, "SERVICE_URL", "http://127.0.0.1:1")

    result = json.loads(await booking_tools.submit_collection())

    assert result["error"] is True
    assert "not reachable" in result["message"]


async def test_list_bookings_reads_history(tmp_path, monkeypatch):
    db_path = tmp_path / "collections.db"
    monkeypatch.setattr(query_tools, "DB_PATH", db_path)
    async with aiosqlite.connect(str(db_path)) as db:
        await initialize_db(db)
        await BookingRepository(db).record(
            BookingRecord(
                operation="book",
                success=True,
                message="Collection booked successfully.",
                confirmation_number="2929602E9CP",
                requested_date="2026-01-16",
                packages=2,
                weight=15,
            )
        )

    text = await query_tools.list_bookings()

    assert "Found 1 bookings" in text
    assert "2929602E9CP" in text
    assert "[OK] book" in text


async def test_list_bookings_empty(tmp_path, monkeypatch):
    monkeypatch.setattr(query_tools, "DB_PATH", tmp_path / "collections.db")
    assert await query_tools.list_bookings() == "No bookings recorded yet."
