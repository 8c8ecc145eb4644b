"""Transaction variants handled by the wallet.

Field attribute names are snake_case; the descriptor argument is the wire key.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from ..core.constants import HASH128_HEX_LENGTH
from ..core.exc import InvalidFieldError
from ..core.flags import account_set_flag_name, account_set_flag_value
from .base import (
    AmountField,
    DestinationField,
    Field,
    HexField,
    TimestampField,
    Transaction,
    UInt32Field,
)


class AccountSetFlagField(Field):
    """SetFlag / ClearFlag: an asf* value, settable by name or integer."""

    def decode(self, tx, raw):
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise InvalidFieldError(f"expected an AccountSet flag value, got {raw!r}")
        return account_set_flag_name(raw)

    def encode(self, tx, value):
        return account_set_flag_value(value)


class TransferRateField(Field):
    """Issuer transfer rate: 0 (clear) or 1e9..2e9 on the wire."""

    def decode(self, tx, raw):
        return self.encode(tx, raw)

    def encode(self, tx, value):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidFieldError(f"transfer rate must be an integer, got {value!r}")
        if value != 0 and not 1_000_000_000 <= value <= 2_000_000_000:
            raise InvalidFieldError(f"transfer rate out of range: {value}")
        return value


# ---------------------------------------------------------------------------
# Payments & checks
# ---------------------------------------------------------------------------

class Payment(Transaction):
    TYPE = "Payment"
    REQUIRED = ("account", "destination", "amount")

    destination = DestinationField("Destination", "DestinationTag")
    amount = AmountField("Amount")
    send_max = AmountField("SendMax")
    deliver_min = AmountField("DeliverMin")
    invoice_id = HexField("InvoiceID")


class CheckCreate(Transaction):
    TYPE = "CheckCreate"
    REQUIRED = ("account", "destination", "send_max")

    destination = DestinationField("Destination", "DestinationTag")
    send_max = AmountField("SendMax")
    expiration = TimestampField("Expiration")
    invoice_id = HexField("InvoiceID")


class CheckCash(Transaction):
    """Cash a check for an exact `amount` or at least `deliver_min`.

    `check` holds the referenced Check (as a CheckCreate) once the controller
    has loaded it; it is display-only and never serialised.
    """

    TYPE = "CheckCash"
    REQUIRED = ("account", "check_id")

    check_id = HexField("CheckID")
    amount = AmountField("Amount")
    deliver_min = AmountField("DeliverMin")

    def __init__(self, tx_json: Optional[Mapping[str, Any]] = None):
        super().__init__(tx_json)
        self.check: Optional[CheckCreate] = None

    def validate(self) -> None:
        super().validate()
        if (self.amount is None) == (self.deliver_min is None):
            raise InvalidFieldError("exactly one of amount and deliver_min must be set", field="amount")

    @property
    def cash_field(self) -> str:
        """Which amount field carries the cash value ('amount' unless only deliver_min is set)."""
        if self.amount is None and self.deliver_min is not None:
            return "deliver_min"
        return "amount"


class CheckCancel(Transaction):
    TYPE = "CheckCancel"
    REQUIRED = ("account", "check_id")

    check_id = HexField("CheckID")


# ---------------------------------------------------------------------------
# Accounts & trust lines
# ---------------------------------------------------------------------------

class AccountDelete(Transaction):
    TYPE = "AccountDelete"
    REQUIRED = ("account", "destination")

    destination = DestinationField("Destination", "DestinationTag")


class AccountSet(Transaction):
    TYPE = "AccountSet"

    set_flag = AccountSetFlagField("SetFlag")
    clear_flag = AccountSetFlagField("ClearFlag")
    domain = HexField("Domain", length=None)
    email_hash = HexField("EmailHash", length=HASH128_HEX_LENGTH)
    transfer_rate = TransferRateField("TransferRate")


class TrustSet(Transaction):
    TYPE = "TrustSet"
    REQUIRED = ("account", "limit_amount")

    limit_amount = AmountField("LimitAmount")
    quality_in = UInt32Field("QualityIn")
    quality_out = UInt32Field("QualityOut")

    def validate(self) -> None:
        super().validate()
        if self.limit_amount.is_native:
            raise InvalidFieldError("trust lines are for issued currencies", field="limit_amount")


# ---------------------------------------------------------------------------
# Offers
# ---------------------------------------------------------------------------

class OfferCreate(Transaction):
    TYPE = "OfferCreate"
    REQUIRED = ("account", "taker_gets", "taker_pays")

    taker_gets = AmountField("TakerGets")
    taker_pays = AmountField("TakerPays")
    expiration = TimestampField("Expiration")
    offer_sequence = UInt32Field("OfferSequence")


class OfferCancel(Transaction):
    TYPE = "OfferCancel"
    REQUIRED = ("account", "offer_sequence")

    offer_sequence = UInt32Field("OfferSequence")


# ---------------------------------------------------------------------------
# Pseudo transactions
# ---------------------------------------------------------------------------

class SignIn(Transaction):
    """Proof-of-ownership signature; signed but never submitted to the ledger."""

    TYPE = "SignIn"
    SUBMITTABLE = False


__all__ = [
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
