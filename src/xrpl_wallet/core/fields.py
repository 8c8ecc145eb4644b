"""
Field normalizers: pure conversions between loose input and the canonical
shape a transaction stores on the wire.

Each normalizer is total over its declared domain and raises a FieldError
subclass for anything outside it; nothing is silently coerced. The transaction
descriptors scope the error to a field name.

Alignment notes:
- Timestamps are XRPL epoch seconds (seconds since 2000-01-01T00:00:00Z).
- Tags, sequences and flags are unsigned 32-bit integers.
- Hashes are uppercase hex (rippled prints uint256 in uppercase).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Tuple
from urllib.parse import parse_qs

from .constants import RIPPLE_EPOCH_OFFSET, UINT32_MAX
from .exc import (
    InvalidDestinationError,
    InvalidFieldError,
    InvalidHexError,
    InvalidTimestampError,
)

_ADDRESS_RE = re.compile(r"r[0-9A-Za-z]{2,34}")
_HEX_RE = re.compile(r"[0-9A-Fa-f]*")
_TAG_RE = re.compile(r"0|[1-9][0-9]*")


# ---------------------------------------------------------------------------
# Addresses and destinations
# ---------------------------------------------------------------------------

def is_classic_address(value: Any) -> bool:
    return isinstance(value, str) and _ADDRESS_RE.fullmatch(value) is not None


def normalize_address(value: Any) -> str:
    if not is_classic_address(value):
        raise InvalidDestinationError(f"not a classic account address: {value!r}")
    return value


def normalize_tag(value: Any) -> Optional[int]:
    """Parse a destination/source tag.

    Accepts an int or a digit string. Zero-padded strings ("007") are refused
    because they have no single numeric reading users agree on.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidDestinationError("tag must be an integer, not a boolean")
    if isinstance(value, str):
        if _TAG_RE.fullmatch(value) is None:
            raise InvalidDestinationError(f"tag must be a plain unsigned integer: {value!r}")
        value = int(value)
    if not isinstance(value, int):
        raise InvalidDestinationError(f"unsupported tag type: {type(value).__name__}")
    if value < 0 or value > UINT32_MAX:
        raise InvalidDestinationError(f"tag out of 32-bit range: {value}")
    return value


@dataclass(frozen=True)
class Destination:
    """Address with optional tag; `name` is display-only and never signed."""

    address: str
    tag: Optional[int] = None
    name: Optional[str] = None


def _split_combined(value: str) -> Tuple[str, Optional[str]]:
    # "rADDRESS?dt=123" (payment URI style) or "rADDRESS:123"
    if "?" in value:
        address, _, query = value.partition("?")
        params = parse_qs(query)
        tags = params.get("dt") or params.get("tag")
        return address, tags[0] if tags else None
    if ":" in value:
        address, _, tag = value.partition(":")
        return address, tag
    return value, None


def normalize_destination(value: Any) -> Destination:
    """Destination from an address, `{address, tag}`, a Destination or "address:tag"."""
    if isinstance(value, Destination):
        return Destination(normalize_address(value.address), normalize_tag(value.tag), value.name)
    if isinstance(value, str):
        address, tag = _split_combined(value)
        return Destination(normalize_address(address), normalize_tag(tag))
    if isinstance(value, Mapping):
        if "address" not in value:
            raise InvalidDestinationError("destination mapping has no address")
        return Destination(
            normalize_address(value["address"]),
            normalize_tag(value.get("tag")),
            value.get("name"),
        )
    raise InvalidDestinationError(f"unsupported destination input: {type(value).__name__}")


# ---------------------------------------------------------------------------
# Timestamps (XRPL epoch <-> ISO-8601)
# ---------------------------------------------------------------------------

# Ledger times are UInt32 on the wire, so both directions reject instants
# before 2000-01-01T00:00:00Z (negative epoch offsets).

def ripple_time_to_iso(value: Any) -> str:
    """XRPL epoch seconds -> '2018-01-24T12:52:01.000Z'."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidTimestampError(f"ledger time must be an integer: {value!r}")
    if value < 0 or value > UINT32_MAX:
        raise InvalidTimestampError(f"ledger time out of range: {value}")
    dt = datetime.fromtimestamp(value + RIPPLE_EPOCH_OFFSET, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.000Z")


def iso_to_ripple_time(value: Any) -> int:
    """ISO-8601 string or datetime -> XRPL epoch seconds (exact to the second)."""
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidTimestampError(f"not an ISO-8601 timestamp: {value!r}") from None
    elif isinstance(value, datetime):
        dt = value
    else:
        raise InvalidTimestampError(f"unsupported timestamp input: {type(value).__name__}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    if dt.microsecond:
        raise InvalidTimestampError("ledger times have whole-second precision")
    seconds = int(dt.timestamp()) - RIPPLE_EPOCH_OFFSET
    if seconds < 0 or seconds > UINT32_MAX:
        raise InvalidTimestampError(f"timestamp outside the ledger epoch range: {value!r}")
    return seconds


# ---------------------------------------------------------------------------
# Hex blobs
# ---------------------------------------------------------------------------

def normalize_hex(value: Any, length: Optional[int] = None) -> str:
    """Validate a hex blob and return it uppercased.

    `length` is the exact number of hex digits required (None = any even length).
    """
    if not isinstance(value, str):
        raise InvalidHexError(f"hex value must be a string, got {type(value).__name__}")
    if _HEX_RE.fullmatch(value) is None:
        raise InvalidHexError("contains non-hex characters")
    if len(value) % 2:
        raise InvalidHexError(f"odd length ({len(value)})")
    if length is not None and len(value) != length:
        raise InvalidHexError(f"expected {length} hex digits, got {len(value)}")
    return value.upper()


# ---------------------------------------------------------------------------
# Integers
# ---------------------------------------------------------------------------

def normalize_uint32(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidFieldError(f"expected an unsigned 32-bit integer, got {value!r}")
    if value < 0 or value > UINT32_MAX:
        raise InvalidFieldError(f"out of 32-bit range: {value}")
    return value


__all__ = [
    "Destination",
    "is_classic_address",
    "normalize_address",
    "normalize_tag",
    "normalize_destination",
    "ripple_time_to_iso",
    "iso_to_ripple_time",
    "normalize_hex",
    "normalize_uint32",
]
