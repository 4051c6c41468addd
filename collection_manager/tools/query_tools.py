"""MCP tools for session status and the local booking history (no portal access)."""

from __future__ import annotations

import json

import aiosqlite

from ..config import DB_PATH
from ..database.models import initialize_db
from ..database.repository import BookingRepository
from .booking_tools import _call_service


async def _get_repo() -> tuple[aiosqlite.Connection, BookingRepository]:
    """Get a database connection and repository."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(DB_PATH))
    db.row_factory = aiosqlite.Row
    await initialize_db(db)
    return db, BookingRepository(db)


async def session_status() -> str:
    """Report the browser session state and the last booking outcome.

    Returns:
        JSON-formatted session status.
    """
    result = await _call_service("GET", "/status")
    return json.dumps(result, indent=2)


async def list_bookings(limit: int = 10, successful_only: bool = False) -> str:
    """List recent submit/book outcomes from the local history.

    Reads the database directly, so it works while the service is down.

    Args:
        limit: Max results to return (default 10).
        successful_only: Only bookings that reached the confirmation page.

    Returns:
        Human-readable list of bookings, newest first.
    """
    db, repo = await _get_repo()
    try:
        records = await repo.list_bookings(limit=limit, successful_only=successful_only)

        if not records:
            return "No bookings recorded yet."

        lines = [f"Found {len(records)} bookings:\n"]
        for i, rec in enumerate(records, 1):
            status = "OK" if rec.success else "FAILED"
            lines.append(
                f"{i}. [{status}] {rec.operation} at {rec.created_at}\n"
                f"   Confirmation: {rec.confirmation_number or 'N/A'} | "
                f"Date: {rec.collection_date or rec.requested_date or 'N/A'} | "
                f"Charges: {rec.total_charges or 'N/A'}\n"
                f"   Packages: {rec.packages or 'N/A'} | Weight: {rec.weight or 'N/A'} kg\n"
                f"   {rec.message}\n"
            )

        return "\n".join(lines)
    finally:
        await db.close()
