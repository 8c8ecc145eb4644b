"""
Amount primitives: CurrencyAmount for native XRP and issued currencies.

- Native (XRP): value is a plain decimal string in XRP, at most 6 fractional
  digits (1 drop); the wire form is an integer drops string.
- Issued (IOU): currency code + issuer + value; at most 16 significant digits.
  The wire form is `{"currency", "issuer", "value"}`.
- Non-negative domain: transaction amounts are never negative.
- Values are canonical plain strings so equal amounts compare equal.

Currency codes are either 3 characters ("USD") or 40 hex digits (160 bits).
Both spellings of a standard code compare equal through `currency_to_hex`.

# Alignment notes:
# - Standard currency layout follows rippled Currency: 12 zero bytes, the
#   3 ASCII bytes of the code, 5 zero bytes.
# - Significant-digit bound follows rippled IOUAmount (16 digits).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Union

from .constants import (
    CURRENCY_HEX_LENGTH,
    DROPS_PER_XRP,
    MAX_NATIVE_XRP,
    NATIVE_CURRENCY,
    NATIVE_DECIMALS,
    ST_EXP_MAX,
    ST_EXP_MIN,
    ST_MANTISSA_DIGITS,
)
from .exc import InvalidAmountError
from .fields import is_classic_address
from .fmt import plain

UNKNOWN_CURRENCY = "Unknown"

_ISO_CODE_RE = re.compile(r"[A-Za-z0-9?!@#$%^&*<>(){}\[\]|]{3}")
_HEX_CODE_RE = re.compile(r"[0-9A-Fa-f]{40}")
_NATIVE_VALUE_RE = re.compile(r"[0-9]+(\.[0-9]+)?")
_ISSUED_VALUE_RE = re.compile(r"[0-9]+(\.[0-9]+)?([eE][-+]?[0-9]+)?|\.[0-9]+")
_DROPS_RE = re.compile(r"[0-9]+")


# ----------------------------
# Currency codes
# ----------------------------

def _printable(raw: bytes) -> bool:
    return all(0x20 < b < 0x7F for b in raw)


def normalize_currency_code(code: Any) -> str:
    """Display form of a currency code. Never raises.

      'usd'                                      -> 'USD'
      '0000000000000000000000005553440000000000' -> 'USD'
      '534F4C4F00000000000000000000000000000000' -> 'SOLO'
      '015841551A748AD2C1F76FF6ECB0CCCD00000000' -> '01584155...'
    """
    if not isinstance(code, str):
        return UNKNOWN_CURRENCY
    if _ISO_CODE_RE.fullmatch(code):
        return code.upper()
    if not _HEX_CODE_RE.fullmatch(code):
        return UNKNOWN_CURRENCY

    raw = bytes.fromhex(code)
    # Standard layout: the ISO code sits in bytes 12..14, everything else is zero.
    if not any(raw[:12]) and not any(raw[15:]) and _printable(raw[12:15]):
        return raw[12:15].decode("ascii")
    text = raw.rstrip(b"\x00")
    if len(text) >= 3 and _printable(text):
        return text.decode("ascii")
    return code[:8].upper() + "..."


def validate_currency_code(code: Any) -> str:
    """Canonical (uppercase) issued-currency code or InvalidAmountError."""
    if not isinstance(code, str):
        raise InvalidAmountError(f"currency code must be a string, got {type(code).__name__}")
    if _ISO_CODE_RE.fullmatch(code):
        if code.upper() == NATIVE_CURRENCY:
            raise InvalidAmountError("XRP cannot be an issued currency")
        return code.upper()
    if _HEX_CODE_RE.fullmatch(code):
        if not any(bytes.fromhex(code)):
            raise InvalidAmountError("all-zero currency code is reserved for XRP")
        return code.upper()
    raise InvalidAmountError(f"currency code must be 3 characters or 40 hex digits: {code!r}")


def currency_to_hex(code: str) -> str:
    """160-bit hex form of a currency code (XRP -> all zeros)."""
    if code.upper() == NATIVE_CURRENCY:
        return "0" * CURRENCY_HEX_LENGTH
    if len(code) == 3:
        return ("00" * 12 + code.upper().encode("ascii").hex() + "00" * 5).upper()
    return code.upper()


def same_currency(a: str, b: str) -> bool:
    return currency_to_hex(a) == currency_to_hex(b)


# ----------------------------
# Values
# ----------------------------

def _as_decimal_text(x: Any) -> str:
    if isinstance(x, bool):
        raise InvalidAmountError("amount value cannot be a boolean")
    if isinstance(x, int):
        if x < 0:
            raise InvalidAmountError(f"amount value must be non-negative: {x}")
        return str(x)
    if isinstance(x, Decimal):
        if not x.is_finite():
            raise InvalidAmountError(f"amount value must be finite: {x}")
        if x < 0:
            raise InvalidAmountError(f"amount value must be non-negative: {x}")
        return plain(x)
    if isinstance(x, str):
        return x
    raise InvalidAmountError(f"unsupported amount value type: {type(x).__name__}")


def native_value(x: Any) -> str:
    """Canonical XRP value string (no exponent, at most 6 decimals)."""
    text = _as_decimal_text(x)
    if _NATIVE_VALUE_RE.fullmatch(text) is None:
        raise InvalidAmountError(f"not a plain non-negative XRP value: {text!r}")
    d = Decimal(text)
    if (d * DROPS_PER_XRP) % 1 != 0:
        raise InvalidAmountError(f"XRP values carry at most {NATIVE_DECIMALS} decimals: {text!r}")
    if d > MAX_NATIVE_XRP:
        raise InvalidAmountError(f"XRP value exceeds total supply: {text!r}")
    return plain(d)


def issued_value(x: Any) -> str:
    """Canonical issued-currency value string (at most 16 significant digits)."""
    text = _as_decimal_text(x)
    if _ISSUED_VALUE_RE.fullmatch(text) is None:
        raise InvalidAmountError(f"not a non-negative decimal value: {text!r}")
    try:
        d = Decimal(text)
    except InvalidOperation:
        raise InvalidAmountError(f"not a decimal value: {text!r}") from None
    if d == 0:
        return "0"
    if len(d.normalize().as_tuple().digits) > ST_MANTISSA_DIGITS:
        raise InvalidAmountError(
            f"issued values carry at most {ST_MANTISSA_DIGITS} significant digits: {text!r}"
        )
    if not ST_EXP_MIN <= d.adjusted() - (ST_MANTISSA_DIGITS - 1) <= ST_EXP_MAX:
        raise InvalidAmountError(f"issued value out of representable range: {text!r}")
    return plain(d)


def drops_to_xrp(drops: Any) -> str:
    if not isinstance(drops, str) or _DROPS_RE.fullmatch(drops) is None:
        raise InvalidAmountError(f"native wire amount must be an integer drops string: {drops!r}")
    return native_value(Decimal(drops) / DROPS_PER_XRP)


def xrp_to_drops(value: str) -> str:
    return str(int(Decimal(value) * DROPS_PER_XRP))


# ----------------------------
# CurrencyAmount
# ----------------------------

@dataclass(frozen=True)
class CurrencyAmount:
    """A ledger amount; construct through `native()`, `issued()` or `to_canonical_amount()`."""

    currency: str
    value: str
    issuer: Optional[str] = None

    @classmethod
    def native(cls, value: Any) -> "CurrencyAmount":
        return cls(NATIVE_CURRENCY, native_value(value))

    @classmethod
    def issued(cls, currency: Any, issuer: Any, value: Any) -> "CurrencyAmount":
        code = validate_currency_code(currency)
        if not is_classic_address(issuer):
            raise InvalidAmountError(f"issued amount needs an issuer account, got {issuer!r}")
        return cls(code, issued_value(value), issuer)

    @property
    def is_native(self) -> bool:
        return self.currency == NATIVE_CURRENCY

    @property
    def display_currency(self) -> str:
        return normalize_currency_code(self.currency)

    def to_decimal(self) -> Decimal:
        return Decimal(self.value)

    def with_value(self, value: Any) -> "CurrencyAmount":
        if self.is_native:
            return CurrencyAmount.native(value)
        return CurrencyAmount.issued(self.currency, self.issuer, value)

    def as_dict(self) -> dict:
        if self.is_native:
            return {"currency": self.currency, "value": self.value}
        return {"currency": self.currency, "issuer": self.issuer, "value": self.value}

    def to_json(self) -> Union[str, dict]:
        """Wire form: drops string for XRP, object for issued currencies."""
        if self.is_native:
            return xrp_to_drops(self.value)
        return {"currency": self.currency, "issuer": self.issuer, "value": self.value}


def amount_from_json(raw: Any) -> CurrencyAmount:
    """Parse a wire amount (drops string or issued object)."""
    if isinstance(raw, str):
        return CurrencyAmount(NATIVE_CURRENCY, drops_to_xrp(raw))
    if isinstance(raw, Mapping):
        return CurrencyAmount.issued(raw.get("currency"), raw.get("issuer"), raw.get("value"))
    raise InvalidAmountError(f"unsupported wire amount: {raw!r}")


def to_canonical_amount(loose: Any, current: Optional[CurrencyAmount] = None) -> CurrencyAmount:
    """Convert loose user input into a CurrencyAmount.

    - '12.5', 12, Decimal('12.5')              -> native amount
    - {'currency', 'issuer', 'value'}           -> issued amount
    - {'currency': 'XRP', 'value'}              -> native amount
    - {'value'} alone                           -> `current` with the new value
    - CurrencyAmount                            -> re-validated copy
    """
    if isinstance(loose, CurrencyAmount):
        if loose.is_native:
            return CurrencyAmount.native(loose.value)
        return CurrencyAmount.issued(loose.currency, loose.issuer, loose.value)
    if isinstance(loose, Mapping):
        if "value" not in loose:
            raise InvalidAmountError("amount object has no value")
        if set(loose) == {"value"}:
            if current is None:
                raise InvalidAmountError("value given without a currency and no amount to merge onto")
            return current.with_value(loose["value"])
        currency = loose.get("currency")
        if isinstance(currency, str) and currency.upper() == NATIVE_CURRENCY:
            if loose.get("issuer"):
                raise InvalidAmountError("XRP amounts have no issuer")
            return CurrencyAmount.native(loose["value"])
        return CurrencyAmount.issued(currency, loose.get("issuer"), loose["value"])
    if isinstance(loose, (str, int, Decimal)):
        return CurrencyAmount.native(loose)
    raise InvalidAmountError(f"unsupported amount input: {type(loose).__name__}")


__all__ = [
    "UNKNOWN_CURRENCY",
    "CurrencyAmount",
    "normalize_currency_code",
    "validate_currency_code",
    "currency_to_hex",
    "same_currency",
    "native_value",
    "issued_value",
    "drops_to_xrp",
    "xrp_to_drops",
    "amount_from_json",
    "to_canonical_amount",
]
