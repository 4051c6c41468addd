"""Collection Manager HTTP service.

Runs as a lightweight local web server that bridges the MCP server
to the booking browser. Holds the one browser session between tool
calls and runs booking operations strictly one at a time.

Endpoints:
    POST /fill-form     - Log in and fill the collection form
    POST /submit        - Submit the previously filled form
    POST /book          - Fill and submit in one operation
    POST /screenshot    - Screenshot the current page
    POST /reset         - Close browser, clear session
    GET  /status        - Return session state
    GET  /bookings      - Return booking history
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import aiosqlite
from aiohttp import web
from pydantic import ValidationError

from ..config import DB_PATH, SERVICE_HOST, SERVICE_PORT, ensure_dirs
from ..database.models import initialize_db
from ..database.repository import BookingRepository
from ..models.booking import FormRequest
from .orchestrator import BookingOrchestrator

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class CollectionManager:
    """Owns the orchestrator, the booking history and the operation lock."""

    def __init__(self, orchestrator: BookingOrchestrator | None = None, db_path: Path = DB_PATH):
        self.orchestrator = orchestrator or BookingOrchestrator()
        self.db_path = db_path
        self.db: aiosqlite.Connection | None = None
        self.repo: BookingRepository | None = None
        # One page, one operation at a time
        self.lock = asyncio.Lock()

    async def setup(self):
        """Initialize database connection."""
        ensure_dirs()
        self.db = await aiosqlite.connect(str(self.db_path))
        self.db.row_factory = aiosqlite.Row
        await initialize_db(self.db)
        self.repo = BookingRepository(self.db)
        self.orchestrator.repo = self.repo

    async def cleanup(self):
        """Close the database. The browser is left running for the next session."""
        if self.db:
            await self.db.close()


async def _read_body(request: web.Request) -> dict:
    if not request.can_read_body:
        return {}
    body = await request.json()
    return body if isinstance(body, dict) else {}


def _parse_form_request(body: dict) -> FormRequest:
    return FormRequest.model_validate(body)


# ── HTTP Handlers ────────────────────────────────────────────────────────────


async def handle_fill_form(request: web.Request) -> web.Response:
    mgr: CollectionManager = request.app["manager"]
    try:
        form = _parse_form_request(await _read_body(request))
    except (ValidationError, ValueError) as e:
        return web.json_response({"error": True, "message": f"Invalid params: {e}"}, status=400)

    async with mgr.lock:
        result = await mgr.orchestrator.fill_form(form)
    return web.json_response(result)


async def handle_submit(request: web.Request) -> web.Response:
    mgr: CollectionManager = request.app["manager"]
    async with mgr.lock:
        result = await mgr.orchestrator.submit()
    return web.json_response(result)


async def handle_book(request: web.Request) -> web.Response:
    mgr: CollectionManager = request.app["manager"]
    try:
        form = _parse_form_request(await _read_body(request))
    except (ValidationError, ValueError) as e:
        return web.json_response({"error": True, "message": f"Invalid params: {e}"}, status=400)

    async with mgr.lock:
        result = await mgr.orchestrator.book(form)
    return web.json_response(result)


async def handle_screenshot(request: web.Request) -> web.Response:
    mgr: CollectionManager = request.app["manager"]
    try:
        body = await _read_body(request)
    except ValueError as e:
        return web.json_response({"error": True, "message": f"Invalid params: {e}"}, status=400)

    async with mgr.lock:
        result = await mgr.orchestrator.take_screenshot(
            filename=body.get("filename") or None,
            full_page=bool(body.get("fullPage", body.get("full_page", False))),
        )
    return web.json_response(result)


async def handle_reset(request: web.Request) -> web.Response:
    mgr: CollectionManager = request.app["manager"]
    async with mgr.lock:
        result = await mgr.orchestrator.reset()
    return web.json_response(result)


async def handle_status(request: web.Request) -> web.Response:
    mgr: CollectionManager = request.app["manager"]
    try:
        status = await mgr.orchestrator.status()
    except Exception as e:
        logger.error(f"Status check failed: {e}", exc_info=True)
        return web.json_response({"error": True, "message": str(e)}, status=500)
    return web.json_response(status.model_dump())


async def handle_bookings(request: web.Request) -> web.Response:
    mgr: CollectionManager = request.app["manager"]
    try:
        limit = int(request.query.get("limit", "20"))
    except ValueError:
        return web.json_response({"error": True, "message": "limit must be an integer"}, status=400)
    successful_only = request.query.get("successful_only", "false").lower() == "true"

    if mgr.repo is None:
        return web.json_response({"bookings": [], "count": 0})
    records = await mgr.repo.list_bookings(limit=limit, successful_only=successful_only)
    return web.json_response({"bookings": [r.model_dump() for r in records], "count": len(records)})


# ── App Factory ──────────────────────────────────────────────────────────────


async def on_startup(app: web.Application):
    mgr: CollectionManager = app.get("manager") or CollectionManager()
    await mgr.setup()
    app["manager"] = mgr
    logger.info(f"Collection Manager started on {SERVICE_HOST}:{SERVICE_PORT}")


async def on_cleanup(app: web.Application):
    mgr: CollectionManager = app["manager"]
    await mgr.cleanup()
    logger.info("Collection Manager stopped.")


def create_app(manager: CollectionManager | None = None) -> web.Application:
    app = web.Application()
    if manager is not None:
        app["manager"] = manager
    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)

    app.router.add_post("/fill-form", handle_fill_form)
    app.router.add_post("/submit", handle_submit)
    app.router.add_post("/book", handle_book)
    app.router.add_post("/screenshot", handle_screenshot)
    app.router.add_post("/reset", handle_reset)
    app.router.add_get("/status", handle_status)
    app.router.add_get("/bookings", handle_bookings)

    return app


def main():
    """Run the collection manager as a standalone HTTP service."""
    app = create_app()
    web.run_app(app, host=SERVICE_HOST, port=SERVICE_PORT)


if __name__ == "__main__":
    main()
