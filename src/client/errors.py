"""Turning backend failures into user-facing notices."""

from __future__ import annotations

from enum import Enum

from backend.errors import ValidationError

GENERIC_FAILURE = "Something went wrong. Please try again."


class ErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    UNEXPECTED = "unexpected"


def _message_of(exc: BaseException) -> str:
    return (getattr(exc, "message", None) or str(exc) or "").strip()


def classify(exc: BaseException) -> ErrorKind:
    """Classify a failure by inspecting its message only."""
    if isinstance(exc, ValidationError):
        return ErrorKind.VALIDATION
    msg = _message_of(exc)
    lowered = msg.lower()
    if "unauthorized" in lowered or "not authorized" in lowered:
        return ErrorKind.UNAUTHORIZED
    if "no user profile found" in lowered or "not found" in lowered:
        return ErrorKind.NOT_FOUND
    if lowered.startswith("invalid"):
        return ErrorKind.VALIDATION
    return ErrorKind.UNEXPECTED


def user_message(exc: BaseException, fallback: str = GENERIC_FAILURE) -> str:
    """
    Text for the toast shown after a failed call.

    Missing-profile failures get guidance on what the target user has to do;
    everything else is surfaced verbatim, or `fallback` when there is no message.
    """
    kind = classify(exc)
    msg = _message_of(exc)
    if kind is ErrorKind.UNAUTHORIZED:
        return "You do not have permission to perform this action."
    if kind is ErrorKind.NOT_FOUND and "no user profile found" in msg.lower():
        return (
            "No user found with that email. The target user must sign in and "
            "complete profile setup with this email address before they can be "
            "granted admin privileges."
        )
    return msg or fallback
