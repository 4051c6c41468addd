"""Exception classes for the collection booking engine.

Obstacles that are expected and absorbable (a missing optional field, no
consent banner, a stale session) are never raised. Everything defined here
is terminal for the current operation and is converted to a structured
error result, with the screenshot of the page state when one exists.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional


class CollectionError(Exception):
    """Base exception for collection booking failures."""

    def __init__(
        self,
        message: str,
        screenshot: Optional[str] = None,
        recoverable: bool = True,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.screenshot = screenshot
        self.recoverable = recoverable
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    @property
    def kind(self) -> str:
        return self.__class__.__name__

    def to_result(self) -> dict[str, Any]:
        """Convert to the JSON-shaped error result returned to callers."""
        result: dict[str, Any] = {
            "error": True,
            "kind": self.kind,
            "message": self.message,
            "recoverable": self.recoverable,
        }
        if self.screenshot:
            result["screenshot"] = self.screenshot
        if self.details:
            result["details"] = self.details
        return result


class ConfigMissing(CollectionError):
    """Configuration file absent or incomplete. Retrying will not help."""

    def __init__(self, message: str = "Configuration missing"):
        super().__init__(message, recoverable=False)


class AuthFieldNotFound(CollectionError):
    """A login field could not be located on the identity provider page."""


class LoginTimeout(CollectionError):
    """Neither login success condition appeared in time."""


class StructuralFillFailure(CollectionError):
    """The form could not be put into a trustworthy state; nothing was filled."""


class SubmissionStepFailure(CollectionError):
    """The review/submit pipeline aborted at a specific stage."""

    def __init__(
        self,
        message: str,
        stage: str,
        screenshot: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        details = dict(details or {})
        details.setdefault("stage", stage)
        self.stage = stage
        super().__init__(message, screenshot=screenshot, recoverable=True, details=details)


class PreconditionViolation(CollectionError):
    """Operation attempted from a state that does not allow it."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, recoverable=False, details=details)
