"""
Flag engine: named boolean flags <-> integer bitmask, scoped per entity type.

Transaction types (tf*) and ledger objects (lsf*) use different bit layouts;
e.g. an AccountRoot's DefaultRipple is 0x00800000 while a TrustSet's
SetNoRipple is 0x00020000. Everything here is a table lookup; there is no
per-type branching.

Bits without a name in the table are never dropped: `build_flags(..., base=)`
carries them through, and `unknown_bits()` reports them, so re-serialising a
ledger value never loses state set by the network.

Tables are read-only mappings created at import time.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterable, Mapping, Union

from .constants import UINT32_MAX
from .exc import InvalidFieldError, UnknownFlagError

# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

#: Flags valid on every transaction type.
UNIVERSAL_TX_FLAGS = {
    "FullyCanonicalSig": 0x80000000,
}

_TX_FLAGS = {
    "Payment": {
        "NoRippleDirect": 0x00010000,
        "PartialPayment": 0x00020000,
        "LimitQuality": 0x00040000,
    },
    "TrustSet": {
        "SetAuth": 0x00010000,
        "SetNoRipple": 0x00020000,
        "ClearNoRipple": 0x00040000,
        "SetFreeze": 0x00100000,
        "ClearFreeze": 0x00200000,
    },
    "OfferCreate": {
        "Passive": 0x00010000,
        "ImmediateOrCancel": 0x00020000,
        "FillOrKill": 0x00040000,
        "Sell": 0x00080000,
    },
    "AccountSet": {
        "RequireDestTag": 0x00010000,
        "OptionalDestTag": 0x00020000,
        "RequireAuth": 0x00040000,
        "OptionalAuth": 0x00080000,
        "DisallowXRP": 0x00100000,
        "AllowXRP": 0x00200000,
    },
}

_LEDGER_FLAGS = {
    "AccountRoot": {
        "PasswordSpent": 0x00010000,
        "RequireDestTag": 0x00020000,
        "RequireAuth": 0x00040000,
        "DisallowXRP": 0x00080000,
        "DisableMaster": 0x00100000,
        "NoFreeze": 0x00200000,
        "GlobalFreeze": 0x00400000,
        "DefaultRipple": 0x00800000,
        "DepositAuth": 0x01000000,
    },
    "RippleState": {
        "LowReserve": 0x00010000,
        "HighReserve": 0x00020000,
        "LowAuth": 0x00040000,
        "HighAuth": 0x00080000,
        "LowNoRipple": 0x00100000,
        "HighNoRipple": 0x00200000,
        "LowFreeze": 0x00400000,
        "HighFreeze": 0x00800000,
    },
    "Offer": {
        "Passive": 0x00010000,
        "Sell": 0x00020000,
    },
    "SignerList": {
        "OneOwnerCount": 0x00010000,
    },
}

#: AccountSet SetFlag / ClearFlag values (an enumeration, not bits).
_ACCOUNT_SET_FLAGS = {
    "RequireDest": 1,
    "RequireAuth": 2,
    "DisallowXRP": 3,
    "DisableMaster": 4,
    "AccountTxnID": 5,
    "NoFreeze": 6,
    "GlobalFreeze": 7,
    "DefaultRipple": 8,
    "DepositAuth": 9,
}

LEDGER_OBJECT_TYPES = frozenset(_LEDGER_FLAGS)


def _freeze_tables() -> Mapping[str, Mapping[str, int]]:
    tables = {}
    for tx_type, table in _TX_FLAGS.items():
        tables[tx_type] = MappingProxyType({**table, **UNIVERSAL_TX_FLAGS})
    for obj_type, table in _LEDGER_FLAGS.items():
        tables[obj_type] = MappingProxyType(dict(table))
    return MappingProxyType(tables)


FLAG_TABLES = _freeze_tables()
_UNIVERSAL_TABLE = MappingProxyType(dict(UNIVERSAL_TX_FLAGS))
ACCOUNT_SET_FLAGS = MappingProxyType(dict(_ACCOUNT_SET_FLAGS))


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

def flag_table(entity_type: str) -> Mapping[str, int]:
    """Named flags for a transaction or ledger object type.

    Transaction types without specific flags still get the universal ones.
    """
    table = FLAG_TABLES.get(entity_type)
    if table is not None:
        return table
    if entity_type in LEDGER_OBJECT_TYPES:
        return MappingProxyType({})
    return _UNIVERSAL_TABLE


def _check_mask(bitmask: Any) -> int:
    if isinstance(bitmask, bool) or not isinstance(bitmask, int):
        raise InvalidFieldError(f"flags must be an integer bitmask, got {bitmask!r}")
    if bitmask < 0 or bitmask > UINT32_MAX:
        raise InvalidFieldError(f"flags out of 32-bit range: {bitmask}")
    return bitmask


def parse_flags(entity_type: str, bitmask: int) -> dict:
    """Bitmask -> {name: bool} over every named flag of the type."""
    mask = _check_mask(bitmask)
    return {name: bool(mask & bit) for name, bit in flag_table(entity_type).items()}


def build_flags(
    entity_type: str,
    flags: Union[Mapping[str, bool], Iterable[str]],
    *,
    base: int = 0,
) -> int:
    """{name: bool} or [name, ...] -> bitmask.

    `base` supplies the starting bits (e.g. the value currently on the
    transaction); names mapped to True are set, names mapped to False are
    cleared, and every other bit of `base` is kept as is.
    """
    table = flag_table(entity_type)
    mask = _check_mask(base)
    if isinstance(flags, str):
        flags = [flags]
    items = flags.items() if isinstance(flags, Mapping) else ((name, True) for name in flags)
    for name, enabled in items:
        bit = table.get(name)
        if bit is None:
            raise UnknownFlagError(f"{name!r} is not a {entity_type} flag")
        mask = (mask | bit) if enabled else (mask & ~bit)
    return mask


def unknown_bits(entity_type: str, bitmask: int) -> int:
    """Bits set in `bitmask` that have no name for the type."""
    known = 0
    for bit in flag_table(entity_type).values():
        known |= bit
    return _check_mask(bitmask) & ~known


def account_set_flag_value(flag: Union[str, int]) -> int:
    """AccountSet SetFlag/ClearFlag value from a name ('DefaultRipple') or int."""
    if isinstance(flag, str):
        value = ACCOUNT_SET_FLAGS.get(flag)
        if value is None:
            raise UnknownFlagError(f"{flag!r} is not an AccountSet flag")
        return value
    return _check_mask(flag)


def account_set_flag_name(value: int) -> Union[str, int]:
    """Name of an AccountSet flag value; unknown values are returned as is."""
    for name, v in ACCOUNT_SET_FLAGS.items():
        if v == value:
            return name
    return value


__all__ = [
    "UNIVERSAL_TX_FLAGS",
    "FLAG_TABLES",
    "ACCOUNT_SET_FLAGS",
    "LEDGER_OBJECT_TYPES",
    "flag_table",
    "parse_flags",
    "build_flags",
    "unknown_bits",
    "account_set_flag_value",
    "account_set_flag_name",
]
