"""Transaction variant model: wire JSON + typed field descriptors."""

from .base import (
    Field,
    AmountField,
    FeeField,
    AccountField,
    DestinationField,
    TimestampField,
    HexField,
    UInt32Field,
    FlagsField,
    Transaction,
)
from .types import (
    Payment,
    CheckCreate,
    CheckCash,
    CheckCancel,
    AccountDelete,
    AccountSet,
    TrustSet,
    OfferCreate,
    OfferCancel,
    SignIn,
)

__all__ = [
    # descriptors
    "Field",
    "AmountField",
    "FeeField",
    "AccountField",
    "DestinationField",
    "TimestampField",
    "HexField",
    "UInt32Field",
    "FlagsField",
    # variants
    "Transaction",
    "Payment",
    "CheckCreate",
    "CheckCash",
    "CheckCancel",
    "AccountDelete",
    "AccountSet",
    "TrustSet",
    "OfferCreate",
    "OfferCancel",
    "SignIn",
]
