"""
Top-level API for xrpl_wallet.

  - Transaction variants with normalising field accessors (`transactions`)
  - LiquidityEvaluator: XRP order-book depth and conversion rates (`exchange`)
  - TransactionController: sign -> submit -> verify lifecycle (`lifecycle`)
  - LedgerService / Signer: the external collaborators, plus a JSON-RPC adapter

Leaf value types and normalizers live in `xrpl_wallet.core`.
"""

# NOTE:
#   Nothing here configures logging or opens connections on import. Hosts call
#   logging_utils.setup_logging() and build a JsonRpcLedgerService themselves.

from __future__ import annotations

from .core import (
    CurrencyAmount,
    Destination,
    LedgerCoreError,
    FieldError,
    LifecycleError,
)
from .transactions import (
    Transaction,
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
from .ledger import LedgerService, Signer, JsonRpcLedgerService, SubmitResult, ValidationResult
from .exchange import (
    CurrencyPair,
    TradeDirection,
    LiquidityErrorKind,
    LiquidityOptions,
    LiquidityReport,
    LiquidityEvaluator,
)
from .lifecycle import (
    CancelToken,
    LifecycleState,
    ConversionQuote,
    SignedTransaction,
    SubmissionReceipt,
    ValidationReceipt,
    TransactionController,
)
from .config import Settings
from .logging_utils import setup_logging

__all__ = [
    # values
    "CurrencyAmount",
    "Destination",
    # errors
    "LedgerCoreError",
    "FieldError",
    "LifecycleError",
    # transactions
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
    # collaborators
    "LedgerService",
    "Signer",
    "JsonRpcLedgerService",
    "SubmitResult",
    "ValidationResult",
    # exchange
    "CurrencyPair",
    "TradeDirection",
    "LiquidityErrorKind",
    "LiquidityOptions",
    "LiquidityReport",
    "LiquidityEvaluator",
    # lifecycle
    "CancelToken",
    "LifecycleState",
    "ConversionQuote",
    "SignedTransaction",
    "SubmissionReceipt",
    "ValidationReceipt",
    "TransactionController",
    # ambient
    "Settings",
    "setup_logging",
]
