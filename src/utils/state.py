from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from backend.errors import ValidationError
from backend.interface import MarketService
from backend.models import Identity, Principal
from utils.logger import get_logger

_logger = get_logger(__name__)


@dataclass
class Session:
    """
    The signed-in identity plus the service handle it talks through.

    Owned by the app and handed to the query layer explicitly; nothing else
    keeps identity state.

    Fields:
      - service: backend every call goes through
      - identity: current identity, None when signed out
      - initializing: True until the identity provider has settled once
    """

    service: MarketService
    identity: Optional[Identity] = None
    initializing: bool = True

    @property
    def principal(self) -> Principal:
        """Principal calls are made as; anonymous when signed out."""
        if self.identity is None:
            return Principal.anonymous()
        return self.identity.principal

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    def restore(self, identity: Optional[Identity]) -> None:
        """Settle identity resolution, with or without a stored identity."""
        self.identity = identity
        self.initializing = False

    def sign_in(self, principal_text: str) -> Identity:
        """Start a session for the given principal. Raises ValidationError if malformed."""
        principal = Principal.from_text(principal_text)
        if principal.is_anonymous:
            raise ValidationError(
                "Invalid principal: continue as guest instead of signing in anonymously"
            )
        self.restore(Identity(principal))
        _logger.info(f"Signed in as {principal}")
        return self.identity

    def sign_out(self) -> None:
        if self.identity is not None:
            _logger.info(f"Signed out {self.identity.principal}")
        self.identity = None
        self.initializing = False
