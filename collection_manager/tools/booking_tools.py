"""MCP tools for filling, submitting and booking parcel collections."""

from __future__ import annotations

import json
from typing import Optional

import httpx

from ..config import SERVICE_URL

# Submitting navigates two pages and waits for the portal; give it time
REQUEST_TIMEOUT = 300.0


async def _call_service(method: str, path: str, json_body: dict | None = None) -> dict:
    """Make a request to the collection manager HTTP service."""
    url = f"{SERVICE_URL}{path}"
    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            if method == "GET":
                resp = await client.get(url, params=json_body)
            else:
                resp = await client.post(url, json=json_body or {})

            if resp.status_code >= 400:
                data = resp.json()
                return {"error": True, "message": data.get("message", f"HTTP {resp.status_code}")}
            return resp.json()

    except httpx.ConnectError:
        return {
            "error": True,
            "message": "Collection Manager is not reachable at "
            f"{SERVICE_URL}. It should auto-start with the MCP server. "
            "If running standalone: python -m collection_manager.session_manager.manager",
        }
    except httpx.TimeoutException:
        return {"error": True, "message": "Collection Manager timed out. The portal may be slow."}
    except Exception as e:
        return {"error": True, "message": f"Failed to connect to Collection Manager: {e}"}


def _form_body(
    date: str = "",
    packages: int = 1,
    weight: int = 10,
    earliest_time: str = "",
    latest_time: str = "",
    door_code: str = "",
    special_instructions: str = "",
) -> dict:
    body: dict = {"packages": packages, "weight": weight}
    if date:
        body["date"] = date
    if earliest_time:
        body["earliestTime"] = earliest_time
    if latest_time:
        body["latestTime"] = latest_time
    if door_code:
        body["doorCode"] = door_code
    if special_instructions:
        body["specialInstructions"] = special_instructions
    return body


async def fill_collection_form(
    date: str = "",
    packages: int = 1,
    weight: int = 10,
    earliest_time: str = "",
    latest_time: str = "",
    door_code: str = "",
    special_instructions: str = "",
) -> str:
    """Log in to the portal and fill the collection form without submitting.

    Returns:
        JSON with the preview screenshot path and the filled form state.
    """
    result = await _call_service(
        "POST",
        "/fill-form",
        _form_body(date, packages, weight, earliest_time, latest_time, door_code, special_instructions),
    )
    return json.dumps(result, indent=2)


async def submit_collection() -> str:
    """Submit the form filled by fill_collection_form.

    Returns:
        JSON with review/confirmation screenshots and extracted confirmation.
    """
    result = await _call_service("POST", "/submit")
    return json.dumps(result, indent=2)


async def book_collection(
    date: str = "",
    packages: int = 1,
    weight: int = 10,
    earliest_time: str = "",
    latest_time: str = "",
    door_code: str = "",
    special_instructions: str = "",
) -> str:
    """Fill and submit in one operation, keeping the browser page alive.

    Returns:
        JSON with fill/review/confirmation screenshots and booking details.
    """
    result = await _call_service(
        "POST",
        "/book",
        _form_body(date, packages, weight, earliest_time, latest_time, door_code, special_instructions),
    )
    return json.dumps(result, indent=2)


async def take_screenshot(filename: Optional[str] = None, full_page: bool = False) -> str:
    """Screenshot the current browser page."""
    body: dict = {"fullPage": full_page}
    if filename:
        body["filename"] = filename
    result = await _call_service("POST", "/screenshot", body)
    return json.dumps(result, indent=2)


async def reset_session() -> str:
    """Close the browser and clear the saved session."""
    result = await _call_service("POST", "/reset")
    return json.dumps(result, indent=2)
