"""Pydantic models for collection requests, filled form state and confirmations."""

from __future__ import annotations

import datetime as dt
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")

DEFAULT_EARLIEST_TIME = "12:00"
DEFAULT_LATEST_TIME = "18:00"


class _CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, dumps camelCase for callers."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class FormRequest(_CamelModel):
    """Caller-supplied booking parameters.

    Omitted date and earliest time are filled in from the scheduling
    heuristics at fill time, not here, so the defaults track the clock.
    """

    date: Optional[dt.date] = None
    packages: int = Field(default=1, ge=1, le=99)
    weight: int = Field(default=10, ge=1, le=1000, description="Total weight in kg")
    earliest_time: Optional[str] = None
    latest_time: str = DEFAULT_LATEST_TIME
    door_code: Optional[str] = None
    special_instructions: Optional[str] = None

    @field_validator("earliest_time", "latest_time")
    @classmethod
    def _check_time(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not _TIME_RE.match(value):
            raise ValueError(f"'{value}' is not a HH:MM time")
        return value

    @field_validator("door_code", "special_instructions")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    def resolved_instructions(self) -> Optional[str]:
        """Special-instructions text: explicit text wins over a door code."""
        if self.special_instructions:
            return self.special_instructions
        if self.door_code:
            return f"Door code * {self.door_code} #"
        return None


class OriginAddress(BaseModel):
    """Fixed collection origin configured per deployment."""

    company: str
    address: str
    city: str
    postal_code: str
    telephone: str
    email: str
    collect_from: str = "Front Door"


class FormState(_CamelModel):
    """What was put into the form, returned for operator review."""

    date: dt.date
    packages: int
    weight: int
    earliest_time: str
    latest_time: str
    special_instructions: Optional[str] = None
    company: str
    address: str
    city: str
    postal_code: str
    skipped_fields: list[str] = Field(default_factory=list)


class ConfirmationRecord(_CamelModel):
    """Best-effort data read back from the confirmation page."""

    confirmation_number: Optional[str] = None
    total_charges: Optional[str] = None
    collection_date: Optional[str] = None
    page_text: str = ""
    mismatches: list[str] = Field(default_factory=list)


class BookingRecord(BaseModel):
    """One submit/book outcome kept in the local booking history."""

    id: Optional[int] = None
    operation: str
    success: bool
    message: str = ""
    confirmation_number: Optional[str] = None
    total_charges: Optional[str] = None
    collection_date: Optional[str] = None
    requested_date: Optional[str] = None
    packages: Optional[int] = None
    weight: Optional[int] = None
    screenshots: list[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc).isoformat())
