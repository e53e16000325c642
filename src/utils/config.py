"""Runtime settings, read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from backend.errors import ValidationError

DEFAULT_DB_PATH = "data/market.sqlite"
DEFAULT_TAX_RATE = 0.10


@dataclass(frozen=True)
class Settings:
    """
    Fields:
      - db_path: sqlite file used by the bundled local service
      - tax_rate: estimated tax rate shown on cart and checkout
      - owner_emails: profile emails allowed to claim admin access
      - debug: verbose logging
    """

    db_path: str = DEFAULT_DB_PATH
    tax_rate: float = DEFAULT_TAX_RATE
    owner_emails: Tuple[str, ...] = field(default_factory=tuple)
    debug: bool = False


def _parse_emails(raw: str) -> Tuple[str, ...]:
    return tuple(e.strip().lower() for e in raw.split(",") if e.strip())


def _parse_rate(raw: str) -> float:
    try:
        rate = float(raw)
    except ValueError:
        raise ValidationError(f"Invalid tax rate: {raw!r}", field="NEXO_TAX_RATE")
    if not 0 <= rate < 1:
        raise ValidationError(
            f"Invalid tax rate: {raw!r} (expected 0 <= rate < 1)", field="NEXO_TAX_RATE"
        )
    return rate


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from NEXO_* environment variables, falling back to defaults."""
    env = os.environ if env is None else env
    rate_raw = env.get("NEXO_TAX_RATE", "").strip()
    return Settings(
        db_path=env.get("NEXO_DB_PATH", "").strip() or DEFAULT_DB_PATH,
        tax_rate=_parse_rate(rate_raw) if rate_raw else DEFAULT_TAX_RATE,
        owner_emails=_parse_emails(env.get("NEXO_OWNER_EMAILS", "")),
        debug=bool(env.get("NEXO_DEBUG") or env.get("DEBUG")),
    )
