"""SQLite database schema and initialization."""

from __future__ import annotations

import aiosqlite

SCHEMA = """
CREATE TABLE IF NOT EXISTS bookings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    operation TEXT NOT NULL,
    success INTEGER NOT NULL DEFAULT 0,
    message TEXT DEFAULT '',
    confirmation_number TEXT,
    total_charges TEXT,
    collection_date TEXT,
    requested_date TEXT,
    packages INTEGER,
    weight INTEGER,
    screenshots TEXT DEFAULT '[]',
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_bookings_created ON bookings(created_at);
CREATE INDEX IF NOT EXISTS idx_bookings_confirmation ON bookings(confirmation_number);
"""


async def initialize_db(db: aiosqlite.Connection):
    """Create tables and indexes if they don't exist."""
    await db.executescript(SCHEMA)
    await db.commit()
