"""
Decimal formatting and quantisation helpers.

All ledger values are handled as Decimal; binary floats never enter the core.
These helpers snap Decimals onto the grids used at the I/O boundary: the drop
grid for XRP and the 8-place presentation grid for rates.
"""

from decimal import Decimal, getcontext, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP, ROUND_UP
from typing import Union

from .constants import RATE_QUANTUM, XRP_QUANTUM
from .exc import InvalidAmountError

# ---------------------------------------------------------------------------
# Global Decimal precision
# ---------------------------------------------------------------------------

#: Default global precision (number of significant digits). Ledger values carry
#: at most 17 significant digits, so products of two of them stay exact.
DEFAULT_DECIMAL_PRECISION: int = 34
getcontext().prec = DEFAULT_DECIMAL_PRECISION

DecimalLike = Union[Decimal, int, str]


def to_decimal(x: DecimalLike) -> Decimal:
    """Convert a numeric-like value to Decimal; floats are refused."""
    if isinstance(x, Decimal):
        return x
    if isinstance(x, bool) or isinstance(x, float):
        raise InvalidAmountError(f"unsupported numeric type: {type(x).__name__}")
    try:
        return Decimal(str(x))
    except InvalidOperation:
        raise InvalidAmountError(f"not a decimal number: {x!r}") from None


def plain(x: Decimal) -> str:
    """Canonical plain string: no exponent, no insignificant zeros.

      Decimal('007.50') -> '7.5'
      Decimal('1E+1')   -> '10'
      Decimal('0.000')  -> '0'
    """
    if x == 0:
        return "0"
    return format(x.normalize(), "f")


def fixed(x: Decimal, places: int = 8) -> str:
    """Fixed-point string with exactly `places` fractional digits."""
    return format(x, f".{places}f")


# ---------------------------------------------------------------------------
# Decimal quantisation helpers
# ---------------------------------------------------------------------------

def quantize_down(x: Decimal, quantum: Decimal) -> Decimal:
    """Quantise down to the grid (won't give more OUT)."""
    if x < 0:
        raise InvalidAmountError("negative input not allowed for quantize_down")
    if x == 0:
        return Decimal("0")
    q = (x / quantum).to_integral_value(rounding=ROUND_DOWN)
    return q * quantum


def quantize_up(x: Decimal, quantum: Decimal) -> Decimal:
    """Quantise up to the grid (won't pay less IN)."""
    if x < 0:
        raise InvalidAmountError("negative input not allowed for quantize_up")
    if x == 0:
        return Decimal("0")
    q = (x / quantum).to_integral_value(rounding=ROUND_UP)
    return q * quantum


def round_rate(x: Decimal) -> Decimal:
    """Round half-up to the 8-place presentation grid."""
    return x.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


def round_in_min(x: Decimal) -> Decimal:
    """Align a native amount we pay up to the drop grid."""
    return quantize_up(x, XRP_QUANTUM)


__all__ = [
    "DEFAULT_DECIMAL_PRECISION",
    "DecimalLike",
    "to_decimal",
    "plain",
    "fixed",
    "quantize_down",
    "quantize_up",
    "round_rate",
    "round_in_min",
]
