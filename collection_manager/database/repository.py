"""Async repository for the local booking history."""

from __future__ import annotations

import json
import logging
import sys
from typing import Optional

import aiosqlite

from ..models.booking import BookingRecord

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class BookingRepository:
    """Async repository for submit/book outcomes in SQLite."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def record(self, booking: BookingRecord) -> int:
        """Insert one outcome. Returns its row id."""
        cursor = await self._db.execute(
            """
            INSERT INTO bookings (
                operation, success, message, confirmation_number, total_charges,
                collection_date, requested_date, packages, weight, screenshots,
                created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                booking.operation,
                1 if booking.success else 0,
                booking.message,
                booking.confirmation_number,
                booking.total_charges,
                booking.collection_date,
                booking.requested_date,
                booking.packages,
                booking.weight,
                json.dumps(booking.screenshots),
                booking.created_at,
            ),
        )
        await self._db.commit()
        logger.info(
            f"Recorded {booking.operation} (success={booking.success}, "
            f"confirmation={booking.confirmation_number})"
        )
        return cursor.lastrowid

    async def list_bookings(self, limit: int = 20, successful_only: bool = False) -> list[BookingRecord]:
        """Most recent outcomes first."""
        where = "WHERE success = 1" if successful_only else ""
        async with self._db.execute(
            f"SELECT * FROM bookings {where} ORDER BY created_at DESC, id DESC LIMIT ?",
            (limit,),
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_record(row, cursor.description) for row in rows]

    async def last_booking(self) -> Optional[BookingRecord]:
        records = await self.list_bookings(limit=1)
        return records[0] if records else None

    async def get_booking_count(self) -> int:
        async with self._db.execute("SELECT COUNT(*) FROM bookings") as cursor:
            return (await cursor.fetchone())[0]

    @staticmethod
    def _row_to_record(row, description) -> BookingRecord:
        """Convert a database row to a BookingRecord."""
        data = {col[0]: row[i] for i, col in enumerate(description)}
        try:
            data["screenshots"] = json.loads(data.get("screenshots") or "[]")
        except json.JSONDecodeError:
            data["screenshots"] = []
        data["success"] = bool(data.get("success"))
        return BookingRecord(**data)
