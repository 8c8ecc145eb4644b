"""
Core exception types for xrpl_wallet.

These are dependency-free and may be imported by all modules. Two families:

- FieldError: a value was rejected by a normalizer. Raised to the caller of
  the failing write; the previous field value is left intact.
- LifecycleError: a sign/submit/verify step failed. Terminal for that attempt;
  the controller records it as the payload of the FAILED state.
"""

from __future__ import annotations

from typing import Any, Optional

__all__ = [
    "LedgerCoreError",
    "ConfigurationError",
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


class LedgerCoreError(Exception):
    """Base class for every error raised by xrpl_wallet."""
    pass


class ConfigurationError(LedgerCoreError):
    """Raised when a setting cannot be parsed from the environment."""
    pass


# ---------------------------------------------------------------------------
# Field normalisation errors
# ---------------------------------------------------------------------------

class FieldError(LedgerCoreError, ValueError):
    """A value was rejected for a transaction field.

    Attributes
    ----------
    field : str | None
        Name of the field the value was written to (None when raised by a
        bare normalizer outside a transaction).
    reason : str
        Human-readable rejection reason.
    """

    kind = "InvalidField"

    def __init__(self, reason: str, *, field: Optional[str] = None):
        self.reason = reason
        self.field = field
        super().__init__(f"{field}: {reason}" if field else reason)

    def for_field(self, field: str) -> "FieldError":
        """Return a copy of this error scoped to `field`."""
        return type(self)(self.reason, field=field)


class InvalidAmountError(FieldError):
    """Amount value, currency code or issuer is malformed."""
    kind = "InvalidAmount"


class InvalidHexError(FieldError):
    """Hex blob has odd length, bad characters or the wrong size."""
    kind = "InvalidHex"


class InvalidDestinationError(FieldError):
    """Address or destination tag is malformed."""
    kind = "InvalidDestination"


class InvalidTimestampError(FieldError):
    """Calendar time or ledger epoch value is out of domain."""
    kind = "InvalidTimestamp"


class InvalidFieldError(FieldError):
    """Integer or enumerated field is out of domain."""
    kind = "InvalidField"


class UnknownFlagError(FieldError):
    """A named flag does not exist for the entity type."""
    kind = "UnknownFlag"


class MissingFieldError(FieldError):
    """A field required before signing is unset."""
    kind = "MissingField"


# ---------------------------------------------------------------------------
# Model / collaborator errors
# ---------------------------------------------------------------------------

class TransactionFrozenError(LedgerCoreError):
    """Raised on any field write after the transaction has been signed."""

    def __init__(self, field: str):
        super().__init__(f"transaction is signed; field {field!r} can no longer change")
        self.field = field


class NotInitializedError(LedgerCoreError):
    """Raised when a liquidity query runs before the book was synchronised."""
    pass


class TransportError(LedgerCoreError):
    """Raised by ledger adapters when no response could be obtained."""
    pass


class LedgerEntryNotFoundError(LedgerCoreError, LookupError):
    """Raised when a ledger object referenced by a transaction does not exist."""
    pass


class LifecycleCancelledError(LedgerCoreError):
    """Raised when a CancelToken aborts an in-flight lifecycle step."""
    pass


# ---------------------------------------------------------------------------
# Lifecycle errors (payload of the FAILED state)
# ---------------------------------------------------------------------------

class LifecycleError(LedgerCoreError):
    """Base for sign/submit/verify failures.

    `kind` is machine-readable; `reason` is the human-readable message.
    `retryable` tells the UI whether to offer a retry affordance.
    """

    kind = "LifecycleError"
    retryable = False

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class SigningError(LifecycleError):
    kind = "SigningError"


class SubmissionError(LifecycleError):
    """Transport failure that survived the bounded retry."""
    kind = "SubmissionError"
    retryable = True


class RejectedError(LifecycleError):
    """The ledger definitively refused the transaction."""

    kind = "RejectedError"

    def __init__(self, reason: str, *, engine_result: Optional[str] = None):
        super().__init__(reason)
        self.engine_result = engine_result


class NotValidatedError(LifecycleError):
    """No validated ledger confirmed the transaction, or it failed there."""

    kind = "NotValidatedError"
    retryable = True

    def __init__(self, reason: str, *, engine_result: Optional[str] = None):
        super().__init__(reason)
        self.engine_result = engine_result


class InsufficientLiquidityError(LifecycleError):
    """The order book cannot safely deliver a converted payment."""

    kind = "InsufficientLiquidity"

    def __init__(self, reason: str, *, report: Any = None):
        super().__init__(reason)
        self.report = report


class LifecycleOrderError(LifecycleError):
    """A lifecycle step was requested out of order."""
    kind = "LifecycleOrderError"
