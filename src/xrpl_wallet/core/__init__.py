"""
XRPL Wallet Core
================

Leaf building blocks of the transaction model: amounts and currency codes,
field normalizers, the flag engine, Decimal formatting and the error taxonomy.
Nothing in here performs I/O.
"""

# NOTE:
#   All arithmetic on ledger values uses Decimal. Binary floats are refused at
#   every entry point (see fmt.to_decimal and amounts._as_decimal_text).

from .constants import (
    NATIVE_CURRENCY,
    DROPS_PER_XRP,
    UINT32_MAX,
    RIPPLE_EPOCH_OFFSET,
    XRP_QUANTUM,
    RATE_PLACES,
)

from .fmt import (
    DEFAULT_DECIMAL_PRECISION,
    to_decimal,
    plain,
    fixed,
    quantize_down,
    quantize_up,
    round_rate,
    round_in_min,
)

from .amounts import (
    UNKNOWN_CURRENCY,
    CurrencyAmount,
    normalize_currency_code,
    validate_currency_code,
    currency_to_hex,
    same_currency,
    amount_from_json,
    to_canonical_amount,
)

from .fields import (
    Destination,
    normalize_address,
    normalize_tag,
    normalize_destination,
    ripple_time_to_iso,
    iso_to_ripple_time,
    normalize_hex,
    normalize_uint32,
)

from .flags import (
    flag_table,
    parse_flags,
    build_flags,
    unknown_bits,
    account_set_flag_value,
)

from .exc import (
    LedgerCoreError,
    FieldError,
    InvalidAmountError,
    InvalidHexError,
    InvalidDestinationError,
    InvalidTimestampError,
    InvalidFieldError,
    UnknownFlagError,
    MissingFieldError,
    TransactionFrozenError,
    NotInitializedError,
    TransportError,
    LedgerEntryNotFoundError,
    LifecycleCancelledError,
    LifecycleError,
    SigningError,
    SubmissionError,
    RejectedError,
    NotValidatedError,
    InsufficientLiquidityError,
    LifecycleOrderError,
)

__all__ = [
    # constants
    "NATIVE_CURRENCY",
    "DROPS_PER_XRP",
    "UINT32_MAX",
    "RIPPLE_EPOCH_OFFSET",
    "XRP_QUANTUM",
    "RATE_PLACES",
    # fmt
    "DEFAULT_DECIMAL_PRECISION",
    "to_decimal",
    "plain",
    "fixed",
    "quantize_down",
    "quantize_up",
    "round_rate",
    "round_in_min",
    # amounts
    "UNKNOWN_CURRENCY",
    "CurrencyAmount",
    "normalize_currency_code",
    "validate_currency_code",
    "currency_to_hex",
    "same_currency",
    "amount_from_json",
    "to_canonical_amount",
    # fields
    "Destination",
    "normalize_address",
    "normalize_tag",
    "normalize_destination",
    "ripple_time_to_iso",
    "iso_to_ripple_time",
    "normalize_hex",
    "normalize_uint32",
    # flags
    "flag_table",
    "parse_flags",
    "build_flags",
    "unknown_bits",
    "account_set_flag_value",
    # exceptions
    "LedgerCoreError",
    "FieldError",
    "InvalidAmountError",
    "InvalidHexError",
    "InvalidDestinationError",
    "InvalidTimestampError",
    "InvalidFieldError",
    "UnknownFlagError",
    "MissingFieldError",
    "TransactionFrozenError",
    "NotInitializedError",
    "TransportError",
    "LedgerEntryNotFoundError",
    "LifecycleCancelledError",
    "LifecycleError",
    "SigningError",
    "SubmissionError",
    "RejectedError",
    "NotValidatedError",
    "InsufficientLiquidityError",
    "LifecycleOrderError",
]
