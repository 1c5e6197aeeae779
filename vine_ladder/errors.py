"""
Error taxonomy for the ladder client.

  - GatewayError: the backend or the network failed (user sees an alert).
  - EligibilityError: the viewer may not perform an action (advisory only,
    the backend enforces the real check).
  - ValidationError: a form was submitted with missing or invalid fields.
"""

from __future__ import annotations

from typing import Optional


class LadderError(Exception):
    """Base class for all errors raised by vine_ladder."""


class GatewayError(LadderError):
    """A remote call failed, either in transport or with a non-2xx response."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class EligibilityError(LadderError):
    """The viewer is not allowed to perform the requested action."""


class ValidationError(LadderError):
    """Local form validation failed; no remote call was made."""


class NotFoundError(LadderError):
    """The requested record is not part of the current view."""
