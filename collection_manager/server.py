"""MCP Server entry point for the parcel Collection Manager.

Exposes 7 tools via the Model Context Protocol:
- Booking: fill_collection_form, submit_collection, book_collection
- Session: take_screenshot, reset_session, session_status
- History: list_bookings

The Collection Manager HTTP service (aiohttp on localhost:8025) is
auto-started as part of the MCP server lifecycle, no separate process
needed. It keeps the browser session between tool calls.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

from aiohttp.web import AppRunner, TCPSite
from mcp.server.fastmcp import FastMCP

from .config import SERVICE_HOST, SERVICE_PORT, ensure_dirs
from .tools.booking_tools import (
    book_collection,
    fill_collection_form,
    reset_session,
    submit_collection,
    take_screenshot,
)
from .tools.query_tools import list_bookings, session_status

# Configure logging to stderr (stdout is reserved for MCP JSON-RPC)
logging.basicConfig(
    stream=sys.stderr,
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("collection-manager")

# Ensure data directories exist
ensure_dirs()


# ── Lifespan: auto-start Collection Manager service ──────────────────────────


@asynccontextmanager
async def lifespan(server: FastMCP):
    """Start the Collection Manager HTTP service alongside the MCP server."""
    from .session_manager.manager import create_app

    app = create_app()
    runner = AppRunner(app)
    await runner.setup()
    site = TCPSite(runner, SERVICE_HOST, SERVICE_PORT)
    managed = False
    try:
        await site.start()
        logger.info("Collection Manager auto-started on %s:%s", SERVICE_HOST, SERVICE_PORT)
        managed = True
    except OSError:
        # Port already in use: assume the service was started manually
        logger.info("Collection Manager already running on %s:%s", SERVICE_HOST, SERVICE_PORT)
        await runner.cleanup()

    try:
        yield {}
    finally:
        if managed:
            await runner.cleanup()
            logger.info("Collection Manager stopped.")


# ── MCP Server ───────────────────────────────────────────────────────────────

mcp = FastMCP(
    "collection-manager",
    lifespan=lifespan,
    instructions=(
        "Parcel Collection Manager - book carrier collections through the carrier's web portal. "
        "Always call fill_collection_form first and show the user the preview screenshot. "
        "Only call submit_collection after the user has confirmed the preview. "
        "book_collection fills and submits in one step; use it only when the user has "
        "already confirmed every detail. If anything fails, inspect the returned screenshot, "
        "call reset_session, and start again from fill_collection_form. Never retry submit alone."
    ),
)


# ── Booking Tools ────────────────────────────────────────────────────────────


@mcp.tool()
async def tool_fill_collection_form(
    date: str = "",
    packages: int = 1,
    weight: int = 10,
    earliest_time: str = "",
    latest_time: str = "",
    door_code: str = "",
    special_instructions: str = "",
) -> str:
    """Log in and fill the collection form (does not submit).

    Args:
        date: Collection date YYYY-MM-DD (default: today before 13:00, else next weekday).
        packages: Number of packages (1-99, default 1).
        weight: Total weight in kg (1-1000, default 10).
        earliest_time: Earliest collection time HH:MM (default: next full hour, or 12:00).
        latest_time: Latest collection time HH:MM (default 18:00).
        door_code: Door code; added to special instructions as "Door code * <code> #".
        special_instructions: Custom instructions (overrides door code).
    """
    return await fill_collection_form(
        date, packages, weight, earliest_time, latest_time, door_code, special_instructions
    )


@mcp.tool()
async def tool_submit_collection() -> str:
    """Submit the filled form (only after the user confirmed the preview)."""
    return await submit_collection()


@mcp.tool()
async def tool_book_collection(
    date: str = "",
    packages: int = 1,
    weight: int = 10,
    earliest_time: str = "",
    latest_time: str = "",
    door_code: str = "",
    special_instructions: str = "",
) -> str:
    """Fill the form AND submit in one operation (keeps the browser alive).

    Args:
        date: Collection date YYYY-MM-DD (default: smart selection).
        packages: Number of packages (1-99, default 1).
        weight: Total weight in kg (1-1000, default 10).
        earliest_time: Earliest collection time HH:MM.
        latest_time: Latest collection time HH:MM (default 18:00).
        door_code: Door code for special instructions.
        special_instructions: Custom instructions (overrides door code).
    """
    return await book_collection(
        date, packages, weight, earliest_time, latest_time, door_code, special_instructions
    )


# ── Session Tools ────────────────────────────────────────────────────────────


@mcp.tool()
async def tool_take_screenshot(filename: str = "", full_page: bool = False) -> str:
    """Take a screenshot of the current browser page.

    Args:
        filename: Screenshot filename (default: ups-page-<timestamp>.png).
        full_page: Capture the full scrollable page.
    """
    return await take_screenshot(filename or None, full_page)


@mcp.tool()
async def tool_reset_session() -> str:
    """Close the browser and clear the saved session."""
    return await reset_session()


@mcp.tool()
async def tool_session_status() -> str:
    """Check the browser session: logged in, form filled, last booking."""
    return await session_status()


# ── History Tools (instant, from local database) ─────────────────────────────


@mcp.tool()
async def tool_list_bookings(limit: int = 10, successful_only: bool = False) -> str:
    """List recent bookings recorded locally.

    Args:
        limit: Max results (default 10).
        successful_only: Only bookings that reached the confirmation page.
    """
    return await list_bookings(limit, successful_only)


# ── Entry Point ──────────────────────────────────────────────────────────────


def main():
    """Run the MCP server on STDIO transport."""
    logger.info("Starting Collection Manager MCP server...")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
