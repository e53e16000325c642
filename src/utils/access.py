"""
Role-gated access for protected screens.

Presentation only: the backend enforces authorization, this decides what a
screen shows while it waits for, or after it got, the answer.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from backend.models import Identity, UserRole

_PENDING = object()


class AccessState(str, Enum):
    INITIALIZING = "initializing"
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"
    AUTHORIZED = "authorized"


def has_permission(role: Optional[Union[UserRole, str]], required: Union[UserRole, str]) -> bool:
    """admin screens need admin; user screens take admin or user."""
    if role is None:
        return False
    role, required = UserRole(role), UserRole(required)
    if required is UserRole.ADMIN:
        return role is UserRole.ADMIN
    if required is UserRole.USER:
        return role in (UserRole.ADMIN, UserRole.USER)
    return True


class AccessGate:
    """
    Combines two independent resolutions, identity and role, into an AccessState.

    Either may settle first. The state is AUTHORIZED only once both have.
    """

    def __init__(self, required_role: Union[UserRole, str]) -> None:
        self.required_role = UserRole(required_role)
        self._identity = _PENDING
        self._role = _PENDING

    def identity_resolved(self, identity: Optional[Identity]) -> None:
        self._identity = identity

    def role_resolved(self, role: Optional[Union[UserRole, str]]) -> None:
        self._role = UserRole(role) if role is not None else None

    def role_failed(self) -> None:
        self._role = None

    def reset(self) -> None:
        self._identity = _PENDING
        self._role = _PENDING

    @property
    def state(self) -> AccessState:
        if self._identity is _PENDING:
            return AccessState.INITIALIZING
        if self._identity is None:
            return AccessState.UNAUTHENTICATED
        if self._role is _PENDING:
            return AccessState.INITIALIZING
        if has_permission(self._role, self.required_role):
            return AccessState.AUTHORIZED
        return AccessState.UNAUTHORIZED


def denied_message(required_role: Union[UserRole, str, None]) -> str:
    if required_role:
        return (
            "You don't have permission to access this page. "
            f"This area is restricted to {UserRole(required_role).value}s only."
        )
    return "You don't have permission to access this page."
