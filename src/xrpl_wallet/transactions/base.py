"""
Transaction base: a wire-JSON dict with typed field descriptors on top.

The transaction owns the raw JSON exactly as it would be submitted. Every
declared field is a data descriptor that parses on read and normalises on
write:

- get: canonical value, or None when the key is absent.
- set: loose or canonical input -> canonical wire value. Writes are
  all-or-nothing per field; on a FieldError nothing is touched.
- set(None): removes the key(s).

Display-only data (resolved recipient names, a fetched Check object) lives
beside the JSON and never reaches `to_json()` or `canonical_bytes()`.

Once `freeze()` has been called (the controller does so after signing) every
field write raises TransactionFrozenError.
"""

from __future__ import annotations

import copy
import json
from types import MappingProxyType
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type

from ..core.amounts import amount_from_json, drops_to_xrp, native_value, to_canonical_amount, xrp_to_drops
from ..core.constants import HASH256_HEX_LENGTH
from ..core.exc import (
    FieldError,
    InvalidDestinationError,
    InvalidFieldError,
    MissingFieldError,
    TransactionFrozenError,
)
from ..core.fields import (
    Destination,
    iso_to_ripple_time,
    normalize_address,
    normalize_destination,
    normalize_hex,
    normalize_uint32,
    ripple_time_to_iso,
)
from ..core.flags import build_flags, parse_flags, unknown_bits

# Sentinel for "remove this key" in an update set.
_DELETE = object()


# ---------------------------------------------------------------------------
# Field descriptors
# ---------------------------------------------------------------------------

class Field:
    """Single-key field. Subclasses implement `decode` and `encode`."""

    def __init__(self, key: str):
        self.key = key
        self.name = key

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def keys(self) -> Tuple[str, ...]:
        return (self.key,)

    # -- hooks -------------------------------------------------------------

    def decode(self, tx: "Transaction", raw: Any) -> Any:
        raise NotImplementedError

    def encode(self, tx: "Transaction", value: Any) -> Any:
        raise NotImplementedError

    def updates(self, tx: "Transaction", value: Any) -> Dict[str, Any]:
        """Map of wire keys to new raw values (_DELETE removes the key)."""
        if value is None:
            return {self.key: _DELETE}
        return {self.key: self.encode(tx, value)}

    def is_set(self, tx: "Transaction") -> bool:
        return tx._tx.get(self.key) is not None

    # -- descriptor protocol -----------------------------------------------

    def __get__(self, tx: Optional["Transaction"], owner: type) -> Any:
        if tx is None:
            return self
        raw = tx._tx.get(self.key)
        if raw is None:
            return None
        try:
            return self.decode(tx, raw)
        except FieldError as e:
            raise e.for_field(self.name) from None

    def __set__(self, tx: "Transaction", value: Any) -> None:
        tx._ensure_mutable(self.name)
        try:
            changes = self.updates(tx, value)
        except FieldError as e:
            raise e.for_field(self.name) from None
        for key, raw in changes.items():
            if raw is _DELETE:
                tx._tx.pop(key, None)
            else:
                tx._tx[key] = raw


class AmountField(Field):
    """CurrencyAmount; a bare number is XRP, `{'value': ...}` merges onto the current amount."""

    def decode(self, tx, raw):
        return amount_from_json(raw)

    def encode(self, tx, value):
        raw = tx._tx.get(self.key)
        current = None
        if raw is not None and isinstance(value, Mapping) and set(value) == {"value"}:
            current = amount_from_json(raw)
        return to_canonical_amount(value, current).to_json()


class FeeField(Field):
    """Transaction cost; read and written in XRP, stored in drops."""

    def decode(self, tx, raw):
        return drops_to_xrp(raw)

    def encode(self, tx, value):
        return xrp_to_drops(native_value(value))


class AccountField(Field):
    """Signing account as a Destination (address only; the tag is never used)."""

    def decode(self, tx, raw):
        return Destination(normalize_address(raw), None, tx._names.get(self.name))

    def encode(self, tx, value):
        if isinstance(value, (Destination, Mapping)):
            dest = normalize_destination(value)
            if dest.tag is not None:
                raise InvalidDestinationError("the signing account takes no tag; use source_tag")
            value = dest.address
        return normalize_address(value)


class DestinationField(Field):
    """Address + tag pair spread over two wire keys (e.g. Destination/DestinationTag)."""

    def __init__(self, key: str, tag_key: str):
        super().__init__(key)
        self.tag_key = tag_key

    def keys(self):
        return (self.key, self.tag_key)

    def decode(self, tx, raw):
        dest = normalize_destination({"address": raw, "tag": tx._tx.get(self.tag_key)})
        return Destination(dest.address, dest.tag, tx._names.get(self.name))

    def updates(self, tx, value):
        if value is None:
            return {self.key: _DELETE, self.tag_key: _DELETE}
        dest = normalize_destination(value)
        return {
            self.key: dest.address,
            self.tag_key: _DELETE if dest.tag is None else dest.tag,
        }


class TimestampField(Field):
    """XRPL epoch seconds on the wire, ISO-8601 string in Python."""

    def decode(self, tx, raw):
        return ripple_time_to_iso(raw)

    def encode(self, tx, value):
        if isinstance(value, int) and not isinstance(value, bool):
            ripple_time_to_iso(value)
            return value
        return iso_to_ripple_time(value)


class HexField(Field):
    """Uppercase hex blob; `length` fixes the number of digits (None = any even length)."""

    def __init__(self, key: str, length: Optional[int] = HASH256_HEX_LENGTH):
        super().__init__(key)
        self.length = length

    def decode(self, tx, raw):
        return normalize_hex(raw, self.length)

    def encode(self, tx, value):
        return normalize_hex(value, self.length)


class UInt32Field(Field):
    def decode(self, tx, raw):
        return normalize_uint32(raw)

    def encode(self, tx, value):
        return normalize_uint32(value)


class FlagsField(Field):
    """Bitmask scoped to the transaction type.

    Set from a list of names (bitwise OR), a {name: bool} mapping (applied on
    top of the current value, other bits kept) or a raw int. Explicit 0 and an
    empty list both read back as 0 ("no flags"), distinct from unset (None).
    """

    def decode(self, tx, raw):
        return normalize_uint32(raw)

    def encode(self, tx, value):
        if isinstance(value, bool):
            raise InvalidFieldError("flags cannot be a boolean")
        if isinstance(value, int):
            return normalize_uint32(value)
        if isinstance(value, Mapping):
            return build_flags(tx.type or "", value, base=tx._tx.get(self.key) or 0)
        if isinstance(value, (list, tuple, set, frozenset)):
            return build_flags(tx.type or "", value)
        raise InvalidFieldError(f"unsupported flags input: {type(value).__name__}")


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------

class Transaction:
    """Generic transaction; variants subclass it and declare TYPE and fields.

    `Transaction.from_json()` picks the registered variant for the payload's
    TransactionType; unknown types stay generic with their JSON preserved.
    """

    TYPE: ClassVar[Optional[str]] = None
    REQUIRED: ClassVar[Tuple[str, ...]] = ("account",)
    SUBMITTABLE: ClassVar[bool] = True

    _registry: ClassVar[Dict[str, Type["Transaction"]]] = {}

    account = AccountField("Account")
    fee = FeeField("Fee")
    sequence = UInt32Field("Sequence")
    last_ledger_sequence = UInt32Field("LastLedgerSequence")
    source_tag = UInt32Field("SourceTag")
    signing_pub_key = HexField("SigningPubKey", length=None)
    flags = FlagsField("Flags")

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if cls.TYPE:
            Transaction._registry[cls.TYPE] = cls

    def __init__(self, tx_json: Optional[Mapping[str, Any]] = None):
        self._tx: Dict[str, Any] = copy.deepcopy(dict(tx_json)) if tx_json is not None else {}
        self._names: Dict[str, str] = {}
        self._frozen = False

        declared = self._tx.get("TransactionType")
        if self.TYPE is not None:
            if declared is None:
                self._tx["TransactionType"] = self.TYPE
            elif declared != self.TYPE:
                raise InvalidFieldError(
                    f"payload is a {declared}, not a {self.TYPE}", field="type"
                )

    @classmethod
    def from_json(cls, tx_json: Mapping[str, Any]) -> "Transaction":
        variant = cls._registry.get(tx_json.get("TransactionType"), Transaction)
        return variant(tx_json)

    @classmethod
    def fields(cls) -> Dict[str, Field]:
        """Declared fields by attribute name, base fields first."""
        out: Dict[str, Field] = {}
        for klass in reversed(cls.__mro__):
            for name, attr in vars(klass).items():
                if isinstance(attr, Field):
                    out[name] = attr
        return out

    # -- identity ------------------------------------------------------------

    @property
    def type(self) -> Optional[str]:
        return self._tx.get("TransactionType")

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._tx!r}>"

    # -- flags ---------------------------------------------------------------

    def flag_states(self) -> dict:
        """{name: bool} for every named flag of this type (unset flags -> all False)."""
        return parse_flags(self.type or "", self.flags or 0)

    def has_flag(self, name: str) -> bool:
        return bool(self.flag_states().get(name))

    def unknown_flag_bits(self) -> int:
        return unknown_bits(self.type or "", self.flags or 0)

    # -- display-only annotations -------------------------------------------

    def resolve_name(self, field: str, name: Optional[str]) -> None:
        """Attach a resolved display name to an account/destination field."""
        if not isinstance(self.fields().get(field), (AccountField, DestinationField)):
            raise InvalidFieldError(f"{field!r} is not an address field")
        if name is None:
            self._names.pop(field, None)
        else:
            self._names[field] = name

    # -- mutation guard ------------------------------------------------------

    def freeze(self) -> None:
        self._frozen = True

    def _ensure_mutable(self, field: str) -> None:
        if self._frozen:
            raise TransactionFrozenError(field)

    # -- validation & serialisation -----------------------------------------

    def validate(self) -> None:
        """Parse every declared field and check required ones are present."""
        for name, fld in self.fields().items():
            getattr(self, name)
        for name in self.REQUIRED:
            fld = self.fields()[name]
            if not fld.is_set(self):
                raise MissingFieldError("required before signing", field=name)

    def to_json(self) -> Dict[str, Any]:
        return copy.deepcopy(self._tx)

    def snapshot(self) -> Mapping[str, Any]:
        """Read-only view of the wire JSON for display layers."""
        return MappingProxyType(copy.deepcopy(self._tx))

    def canonical_bytes(self) -> bytes:
        """Deterministic serialisation handed to the signer."""
        return json.dumps(self._tx, sort_keys=True, separators=(",", ":")).encode("utf-8")


__all__ = [
    "Field",
    "AmountField",
    "FeeField",
    "AccountField",
    "DestinationField",
    "TimestampField",
    "HexField",
    "UInt32Field",
    "FlagsField",
    "Transaction",
]
