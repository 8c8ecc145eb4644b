"""Runtime settings for the lifecycle controller, the exchange evaluator and the RPC adapter.

Values come from the environment; a `.env` file is loaded for local
development. `Settings()` gives the defaults, `Settings.from_env()` the
environment view.
"""

import os
from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation
from typing import Callable, Mapping, Optional

from dotenv import load_dotenv

from .core.exc import ConfigurationError

# Load environment variables from a .env file for local development.
load_dotenv()


@dataclass(frozen=True)
class Settings:
    # Ledger RPC
    rpc_url: str = "https://s1.ripple.com:51234"
    rpc_timeout: float = 20.0

    # Submission retry (transport failures only)
    submit_max_attempts: int = 3
    submit_backoff_min: float = 0.5
    submit_backoff_max: float = 4.0

    # Validation polling
    validation_timeout: float = 20.0
    validation_poll_interval: float = 1.0

    # Liquidity grading
    liquidity_max_spread_pct: Decimal = Decimal("4")
    liquidity_max_slippage_pct: Decimal = Decimal("3")
    liquidity_book_limit: int = 50

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            raw = env.get(_ENV_NAMES[f.name])
            if raw is None or raw == "":
                continue
            values[f.name] = _parse(f.name, raw, _PARSERS[f.name])
        return cls(**values)


_ENV_NAMES = {
    "rpc_url": "XRPL_RPC_URL",
    "rpc_timeout": "XRPL_RPC_TIMEOUT",
    "submit_max_attempts": "SUBMIT_MAX_ATTEMPTS",
    "submit_backoff_min": "SUBMIT_BACKOFF_MIN",
    "submit_backoff_max": "SUBMIT_BACKOFF_MAX",
    "validation_timeout": "VALIDATION_TIMEOUT",
    "validation_poll_interval": "VALIDATION_POLL_INTERVAL",
    "liquidity_max_spread_pct": "LIQUIDITY_MAX_SPREAD_PCT",
    "liquidity_max_slippage_pct": "LIQUIDITY_MAX_SLIPPAGE_PCT",
    "liquidity_book_limit": "LIQUIDITY_BOOK_LIMIT",
    "log_level": "LOG_LEVEL",
}

_PARSERS: Mapping[str, Callable[[str], object]] = {
    "rpc_url": str,
    "rpc_timeout": float,
    "submit_max_attempts": int,
    "submit_backoff_min": float,
    "submit_backoff_max": float,
    "validation_timeout": float,
    "validation_poll_interval": float,
    "liquidity_max_spread_pct": Decimal,
    "liquidity_max_slippage_pct": Decimal,
    "liquidity_book_limit": int,
    "log_level": str.upper,
}


def _parse(name: str, raw: str, parser: Callable[[str], object]) -> object:
    try:
        value = parser(raw.strip())
    except (ValueError, InvalidOperation):
        raise ConfigurationError(f"{_ENV_NAMES[name]}={raw!r} is not a valid value") from None
    if isinstance(value, Decimal) and not value.is_finite():
        raise ConfigurationError(f"{_ENV_NAMES[name]} must be finite, got {raw!r}")
    if isinstance(value, (int, float, Decimal)) and value < 0:
        raise ConfigurationError(f"{_ENV_NAMES[name]} must be non-negative, got {raw!r}")
    return value


__all__ = ["Settings"]
