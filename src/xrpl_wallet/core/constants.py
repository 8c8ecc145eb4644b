"""
XRPL Wallet Core Constants
==========================

Ledger-aligned constants shared by the amount model, the field normalizers and
the exchange evaluator. Decimal quanta used only for rounding live here too so
that every module snaps to the same grids.
"""

# NOTE: Issued-currency precision bounds follow rippled STAmount (16 significant digits).

from decimal import Decimal

# ---------------------------------------------------------------------------
# Native currency (XRP) and drops bridge
# ---------------------------------------------------------------------------

#: Currency code of the ledger's base unit.
NATIVE_CURRENCY: str = "XRP"

#: Integer bridge: number of drops per 1 XRP.
DROPS_PER_XRP: int = 1_000_000

#: Maximum number of fractional digits a native value may carry (1 drop).
NATIVE_DECIMALS: int = 6

#: Total XRP supply; no native amount may exceed it.
MAX_NATIVE_XRP: Decimal = Decimal("100000000000")


# ---------------------------------------------------------------------------
# Issued currency (IOU) bounds
# ---------------------------------------------------------------------------

#: XRPL STAmount mantissa uses 16 significant digits (see IOUAmount.cpp).
ST_MANTISSA_DIGITS: int = 16

#: Allowed exponent range for STAmount (power of 10).
ST_EXP_MIN: int = -96
ST_EXP_MAX: int = 80

#: Length of a hex-encoded (160-bit) currency code.
CURRENCY_HEX_LENGTH: int = 40


# ---------------------------------------------------------------------------
# Field domains
# ---------------------------------------------------------------------------

#: Unsigned 32-bit ceiling used for tags, sequences and flags.
UINT32_MAX: int = 0xFFFFFFFF

#: Seconds between the Unix epoch and the XRPL epoch (2000-01-01T00:00:00Z).
RIPPLE_EPOCH_OFFSET: int = 946_684_800

#: Hex length of a 256-bit hash (transaction ids, check ids, invoice ids).
HASH256_HEX_LENGTH: int = 64

#: Hex length of a 128-bit hash (AccountSet EmailHash).
HASH128_HEX_LENGTH: int = 32

#: TransferRate of 1e9 means no transfer fee.
TRANSFER_RATE_BASE: int = 1_000_000_000


# ---------------------------------------------------------------------------
# Decimal quanta for rounding
# ---------------------------------------------------------------------------

# Minimum quantisation step for XRP values (1 drop = 1e-6 XRP).
XRP_QUANTUM: Decimal = Decimal("1e-6")

# Presentation quantum for exchange rates and conversion amounts (8 places).
RATE_PLACES: int = 8
RATE_QUANTUM: Decimal = Decimal("1e-8")


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------

__all__ = [
    "NATIVE_CURRENCY",
    "DROPS_PER_XRP",
    "NATIVE_DECIMALS",
    "MAX_NATIVE_XRP",
    "ST_MANTISSA_DIGITS",
    "ST_EXP_MIN",
    "ST_EXP_MAX",
    "CURRENCY_HEX_LENGTH",
    "UINT32_MAX",
    "RIPPLE_EPOCH_OFFSET",
    "HASH256_HEX_LENGTH",
    "HASH128_HEX_LENGTH",
    "TRANSFER_RATE_BASE",
    "XRP_QUANTUM",
    "RATE_PLACES",
    "RATE_QUANTUM",
]
