"""Pydantic models for session state."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..errors import PreconditionViolation


class BookingState(str, Enum):
    """Progress of the booking flow for one browser session."""

    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    FILLED = "filled"
    REVIEWING = "reviewing"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


# Re-filling is always allowed: fill_form restarts from the login step.
LEGAL_TRANSITIONS: dict[BookingState, set[BookingState]] = {
    BookingState.ANONYMOUS: {BookingState.AUTHENTICATED, BookingState.FAILED},
    BookingState.AUTHENTICATED: {BookingState.AUTHENTICATED, BookingState.FILLED, BookingState.FAILED},
    BookingState.FILLED: {BookingState.AUTHENTICATED, BookingState.REVIEWING, BookingState.FAILED},
    BookingState.REVIEWING: {BookingState.SUBMITTED, BookingState.FAILED},
    BookingState.SUBMITTED: {BookingState.CONFIRMED, BookingState.FAILED},
    BookingState.CONFIRMED: {BookingState.ANONYMOUS, BookingState.AUTHENTICATED},
    BookingState.FAILED: {BookingState.ANONYMOUS, BookingState.AUTHENTICATED},
}


def require_transition(current: BookingState, target: BookingState) -> None:
    """Raise PreconditionViolation unless current -> target is a legal move."""
    if target not in LEGAL_TRANSITIONS[current]:
        raise PreconditionViolation(
            f"Cannot move from '{current.value}' to '{target.value}'.",
            details={"state": current.value, "target": target.value},
        )


class SessionDescriptor(BaseModel):
    """On-disk record of the live browser connection and booking progress.

    Field aliases keep the JSON file in the camelCase shape other tools read.
    """

    model_config = ConfigDict(populate_by_name=True)

    ws_endpoint: str = Field(alias="wsEndpoint")
    browser_pid: Optional[int] = Field(default=None, alias="browserPid")
    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(), alias="createdAt"
    )
    logged_in: bool = Field(default=False, alias="loggedIn")
    form_filled: bool = Field(default=False, alias="formFilled")

    @property
    def state(self) -> BookingState:
        if self.form_filled:
            return BookingState.FILLED
        if self.logged_in:
            return BookingState.AUTHENTICATED
        return BookingState.ANONYMOUS

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class SessionStatus(BaseModel):
    """Current state of the browser session."""

    is_active: bool = False
    state: str = BookingState.ANONYMOUS.value
    ws_endpoint: Optional[str] = None
    created_at: Optional[str] = None
    logged_in: bool = False
    form_filled: bool = False
    last_booking: Optional[dict] = None
    message: str = ""


class PortalCredentials(BaseModel):
    """Operator login for the carrier portal."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
