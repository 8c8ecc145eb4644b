"""
Transaction lifecycle controller: Built -> Signed -> Submitted -> Validated.

State lives here, not on the Transaction: the controller keeps one record per
transaction it drives (weakly keyed, so dropping the transaction drops the
record). A record without an entry is BUILT.

Steps
-----
- prepare(tx): Payment-only pre-sign hook. An issued-currency payment whose
  source trust line cannot cover the amount is converted into an XRP-funded
  partial payment (SendMax = value * rate) when the order book is safe, and
  refused with InsufficientLiquidityError when it is not. A payment the trust
  line covers (or one sent by the issuer) drops any SendMax and gets
  PartialPayment when the issuer charges a transfer fee (always for the
  issuer). Changing the amount or account before signing re-runs the hook.
- sign(tx, key_material): prepare + validate, sign the canonical bytes,
  freeze the transaction.
- submit(signed): bounded transport retry (tenacity); ledger refusals are
  final.
- verify(receipt): poll until a validated ledger answers or the timeout ends.

Failure policy
--------------
Lifecycle errors move the record to FAILED with the error as payload. An
out-of-order call raises LifecycleOrderError and leaves the state as it was.
A FAILED submission (SubmissionError) may be submitted again and a FAILED
verification (NotValidatedError) verified again; that is the caller's
explicit retry, never an implicit one.

Cancellation
------------
Every step accepts an optional CancelToken. A cancelled token abandons the
in-flight ledger/signer call and raises LifecycleCancelledError. Transactions
are only written after the last await of a step, so a cancelled step leaves
both the transaction and its record unchanged.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import weakref
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Mapping, Optional, Tuple, Type, TypeVar

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import Settings
from .core.amounts import CurrencyAmount, same_currency
from .core.constants import RATE_PLACES
from .core.exc import (
    InsufficientLiquidityError,
    LedgerEntryNotFoundError,
    LifecycleCancelledError,
    LifecycleError,
    LifecycleOrderError,
    MissingFieldError,
    NotValidatedError,
    RejectedError,
    SigningError,
    SubmissionError,
    TransportError,
)
from .core.flags import build_flags
from .core.fmt import fixed, plain, round_in_min, round_rate, to_decimal
from .exchange import (
    CurrencyPair,
    LiquidityEvaluator,
    LiquidityOptions,
    LiquidityReport,
    TradeDirection,
    parse_transfer_rate,
)
from .ledger import LedgerService, Signer
from .logging_utils import tx_hash_var
from .transactions import CheckCash, CheckCreate, Payment, Transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

#: Prefix of the transaction-ID hash (ASCII "TXN" + NUL).
TX_HASH_PREFIX = b"TXN\x00"

#: Check fields copied onto the display-only CheckCreate.
_CHECK_FIELDS = ("Account", "Destination", "DestinationTag", "SendMax", "Expiration", "InvoiceID", "SourceTag")


class LifecycleState(str, Enum):
    BUILT = "Built"
    SIGNED = "Signed"
    SUBMITTED = "Submitted"
    VALIDATED = "Validated"
    FAILED = "Failed"


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

class CancelToken:
    """Explicit cancellation handle shared by the steps of one lifecycle."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise LifecycleCancelledError("lifecycle cancelled")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await `awaitable` unless the token fires first; then abandon it."""
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise
        if task in done:
            waiter.cancel()
            return task.result()
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise LifecycleCancelledError("lifecycle cancelled while awaiting the ledger")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConversionQuote:
    """What prepare() did to a payment that needed an order-book conversion."""

    send_max: str
    rate: Decimal
    exchange_rate: Decimal
    report: LiquidityReport


@dataclass(frozen=True)
class SignedTransaction:
    transaction: Transaction
    signature: bytes
    tx_json: Mapping[str, Any]
    tx_blob: str
    tx_hash: str


@dataclass(frozen=True)
class SubmissionReceipt:
    signed: SignedTransaction
    engine_result: Optional[str] = None
    message: Optional[str] = None

    @property
    def tx_hash(self) -> str:
        return self.signed.tx_hash


@dataclass(frozen=True)
class ValidationReceipt:
    submission: SubmissionReceipt
    engine_result: Optional[str] = None
    ledger_index: Optional[int] = None

    @property
    def tx_hash(self) -> str:
        return self.submission.tx_hash


@dataclass
class _Record:
    state: LifecycleState = LifecycleState.BUILT
    error: Optional[LifecycleError] = None
    # (amount, account) the last prepare() decided for; None until it ran.
    prepared_for: Optional[Tuple[Any, ...]] = None
    quote: Optional[ConversionQuote] = None
    # SendMax/Flags as built, before prepare() first wrote to them.
    built_payment: Optional[Tuple[Optional[CurrencyAmount], Optional[int]]] = None


def transaction_hash(tx_blob: str) -> str:
    """Transaction ID: first half of SHA-512 over the prefixed blob, uppercase hex."""
    digest = hashlib.sha512(TX_HASH_PREFIX + bytes.fromhex(tx_blob)).digest()
    return digest[:32].hex().upper()


def _trust_line_balance(lines: Mapping[str, Any], amount: CurrencyAmount) -> Optional[Decimal]:
    """Balance of the source's line for amount's currency/issuer (None when absent)."""
    for line in lines.get("lines") or []:
        if line.get("account") == amount.issuer and same_currency(str(line.get("currency")), amount.currency):
            return to_decimal(str(line.get("balance", "0")))
    return None


def _prepare_key(tx: Transaction) -> Tuple[Any, ...]:
    if not isinstance(tx, Payment):
        return ()
    account = tx.account
    return (tx.amount, account.address if account is not None else None)


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class TransactionController:
    """Drives transactions through sign/submit/verify against explicit collaborators."""

    def __init__(
        self,
        ledger: LedgerService,
        signer: Signer,
        settings: Optional[Settings] = None,
        evaluator: Optional[LiquidityEvaluator] = None,
    ):
        self.ledger = ledger
        self.signer = signer
        self.settings = settings or Settings()
        self.evaluator = evaluator or LiquidityEvaluator(ledger, LiquidityOptions.from_settings(self.settings))
        self._records: "weakref.WeakKeyDictionary[Transaction, _Record]" = weakref.WeakKeyDictionary()

    # -- record bookkeeping --------------------------------------------------

    def _record(self, tx: Transaction) -> _Record:
        rec = self._records.get(tx)
        if rec is None:
            rec = self._records[tx] = _Record()
        return rec

    def state(self, tx: Transaction) -> LifecycleState:
        rec = self._records.get(tx)
        return rec.state if rec is not None else LifecycleState.BUILT

    def error(self, tx: Transaction) -> Optional[LifecycleError]:
        rec = self._records.get(tx)
        return rec.error if rec is not None else None

    def quote(self, tx: Transaction) -> Optional[ConversionQuote]:
        rec = self._records.get(tx)
        return rec.quote if rec is not None else None

    def _expect(
        self,
        tx: Transaction,
        step: str,
        state: LifecycleState,
        retry_from: Tuple[Type[LifecycleError], ...] = (),
    ) -> _Record:
        rec = self._record(tx)
        if rec.state is state:
            return rec
        if rec.state is LifecycleState.FAILED and isinstance(rec.error, retry_from):
            return rec
        raise LifecycleOrderError(f"cannot {step} a transaction in state {rec.state.value}")

    def _transition(self, tx: Transaction, state: LifecycleState) -> None:
        rec = self._record(tx)
        logger.info("%s %s -> %s", tx.type, rec.state.value, state.value)
        rec.state = state
        rec.error = None

    def _fail(self, tx: Transaction, err: LifecycleError) -> LifecycleError:
        rec = self._record(tx)
        logger.info("%s %s -> Failed (%s: %s)", tx.type, rec.state.value, err.kind, err.reason)
        rec.state = LifecycleState.FAILED
        rec.error = err
        return err

    @staticmethod
    async def _await(awaitable: Awaitable[T], cancel: Optional[CancelToken]) -> T:
        if cancel is None:
            return await awaitable
        return await cancel.guard(awaitable)

    # -- prepare -------------------------------------------------------------

    async def prepare(self, tx: Transaction, cancel: Optional[CancelToken] = None) -> Optional[ConversionQuote]:
        """Pre-sign hook for payments. Returns the conversion quote applied, if any.

        The decision is cached for the amount and account it was made for;
        changing either before signing makes the next call decide again.
        """
        rec = self._expect(tx, "prepare", LifecycleState.BUILT)
        key = _prepare_key(tx)
        if rec.prepared_for == key:
            return rec.quote

        quote = None
        if isinstance(tx, Payment):
            quote = await self._prepare_payment(tx, rec, cancel)
        rec.prepared_for = key
        rec.quote = quote
        return quote

    async def _prepare_payment(self, tx: Payment, rec: _Record, cancel: Optional[CancelToken]) -> Optional[ConversionQuote]:
        amount = tx.amount
        account = tx.account
        if amount is None or amount.is_native or account is None:
            if rec.built_payment is not None:
                self._apply_payment(tx, rec, rec.built_payment[0], partial=False)
            return None

        value = amount.to_decimal()
        is_issuer = account.address == amount.issuer
        balance = None
        if not is_issuer:
            lines = await self._await(self.ledger.get_account_lines(account.address), cancel)
            balance = _trust_line_balance(lines, amount)

        if is_issuer or (balance is not None and balance >= value):
            # Paid from the trust line: a transfer fee needs PartialPayment and
            # a SendMax carried in the payload no longer applies.
            fee = False
            if not is_issuer:
                info = await self._await(self.ledger.get_account_info(amount.issuer), cancel)
                fee = parse_transfer_rate(info) > 1
            logger.debug(
                "payment of %s %s needs no conversion (issuer=%s, transfer fee=%s)",
                amount.value, amount.display_currency, is_issuer, fee,
            )
            self._apply_payment(tx, rec, None, partial=is_issuer or fee)
            return None

        pair = CurrencyPair(amount.currency, amount.issuer)
        await self._await(self.evaluator.initialize(pair), cancel)
        report = self.evaluator.evaluate(pair, TradeDirection.BUY, value)
        if not report.safe:
            kinds = ", ".join(e.value for e in report.errors)
            raise self._fail(tx, InsufficientLiquidityError(
                f"cannot convert XRP into {amount.value} {amount.display_currency}: {kinds}",
                report=report,
            ))

        send_max = round_rate(value * report.rate)
        self._apply_payment(tx, rec, CurrencyAmount.native(plain(round_in_min(send_max))), partial=True)
        quote = ConversionQuote(
            send_max=fixed(send_max, RATE_PLACES),
            rate=report.rate,
            exchange_rate=report.exchange_rate,
            report=report,
        )
        logger.info(
            "payment of %s %s converted: balance %s, SendMax %s XRP at rate %s",
            amount.value, amount.display_currency, balance, quote.send_max, report.rate,
        )
        return quote

    @staticmethod
    def _apply_payment(tx: Payment, rec: _Record, send_max: Optional[CurrencyAmount], partial: bool) -> None:
        """Write SendMax and Flags on top of the payment as it was built."""
        if rec.built_payment is None:
            rec.built_payment = (tx.send_max, tx.flags)
        built_flags = rec.built_payment[1]
        flags = built_flags
        if partial:
            flags = build_flags(tx.type, {"PartialPayment": True}, base=built_flags or 0)
        tx.send_max = send_max
        tx.flags = flags

    # -- sign ----------------------------------------------------------------

    async def sign(
        self,
        tx: Transaction,
        key_material: Any,
        cancel: Optional[CancelToken] = None,
    ) -> SignedTransaction:
        self._expect(tx, "sign", LifecycleState.BUILT)
        await self.prepare(tx, cancel)
        tx.validate()

        payload = tx.canonical_bytes()
        try:
            signature = await self._await(self.signer.sign(payload, key_material), cancel)
        except LifecycleCancelledError:
            raise
        except Exception as e:
            raise self._fail(tx, SigningError(f"signing failed: {e}")) from e

        tx.freeze()
        tx_json = tx.to_json()
        tx_json["TxnSignature"] = bytes(signature).hex().upper()
        signed_tx = Transaction(tx_json)
        tx_blob = signed_tx.canonical_bytes().hex().upper()
        signed = SignedTransaction(
            transaction=tx,
            signature=bytes(signature),
            tx_json=MappingProxyType(tx_json),
            tx_blob=tx_blob,
            tx_hash=transaction_hash(tx_blob),
        )
        tx_hash_var.set(signed.tx_hash)
        self._transition(tx, LifecycleState.SIGNED)
        return signed

    # -- submit --------------------------------------------------------------

    async def submit(self, signed: SignedTransaction, cancel: Optional[CancelToken] = None) -> SubmissionReceipt:
        tx = signed.transaction
        if not tx.SUBMITTABLE:
            raise LifecycleOrderError(f"{tx.type} is signed only and never submitted")
        self._expect(tx, "submit", LifecycleState.SIGNED, retry_from=(SubmissionError,))
        tx_hash_var.set(signed.tx_hash)

        s = self.settings
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(s.submit_max_attempts),
                wait=wait_exponential(min=s.submit_backoff_min, max=s.submit_backoff_max),
                retry=retry_if_exception_type(TransportError),
                before_sleep=_log_retry,
                reraise=True,
            ):
                with attempt:
                    result = await self._await(self.ledger.submit(signed.tx_blob), cancel)
        except TransportError as e:
            raise self._fail(tx, SubmissionError(
                f"no response after {s.submit_max_attempts} attempts: {e}"
            )) from e

        if not result.success:
            raise self._fail(tx, RejectedError(
                result.message or f"rejected with {result.engine_result}",
                engine_result=result.engine_result,
            ))

        self._transition(tx, LifecycleState.SUBMITTED)
        return SubmissionReceipt(signed=signed, engine_result=result.engine_result, message=result.message)

    # -- verify --------------------------------------------------------------

    async def verify(self, receipt: SubmissionReceipt, cancel: Optional[CancelToken] = None) -> ValidationReceipt:
        tx = receipt.signed.transaction
        self._expect(tx, "verify", LifecycleState.SUBMITTED, retry_from=(NotValidatedError,))
        tx_hash_var.set(receipt.tx_hash)

        timeout = self.settings.validation_timeout
        try:
            result = await self._await(asyncio.wait_for(self._poll(receipt.tx_hash), timeout), cancel)
        except asyncio.TimeoutError:
            raise self._fail(tx, NotValidatedError(
                f"not seen in a validated ledger within {timeout}s"
            )) from None

        if not result.success:
            raise self._fail(tx, NotValidatedError(
                f"validated with {result.engine_result}",
                engine_result=result.engine_result,
            ))

        self._transition(tx, LifecycleState.VALIDATED)
        return ValidationReceipt(
            submission=receipt,
            engine_result=result.engine_result,
            ledger_index=result.ledger_index,
        )

    async def _poll(self, tx_hash: str):
        interval = self.settings.validation_poll_interval
        while True:
            try:
                result = await self.ledger.validate(tx_hash)
            except TransportError as e:
                logger.warning("validation poll for %s failed: %s", tx_hash, e)
            else:
                if result.validated:
                    return result
            await asyncio.sleep(interval)

    # -- checks --------------------------------------------------------------

    async def load_check(self, tx: CheckCash, cancel: Optional[CancelToken] = None) -> CheckCreate:
        """Fetch the Check a CheckCash refers to and attach it as `tx.check`."""
        check_id = tx.check_id
        if check_id is None:
            raise MissingFieldError("required to load the check", field="check_id")

        res = await self._await(self.ledger.get_ledger_entry(check_id), cancel)
        node = res.get("node")
        if not node or node.get("LedgerEntryType", "Check") != "Check":
            raise LedgerEntryNotFoundError(f"check {check_id} not found")

        check = CheckCreate({k: node[k] for k in _CHECK_FIELDS if k in node})
        check.validate()
        tx.check = check
        return check


def _log_retry(retry_state) -> None:
    logger.warning(
        "submit attempt %d failed (%s); retrying in %.2fs",
        retry_state.attempt_number,
        retry_state.outcome.exception(),
        retry_state.next_action.sleep if retry_state.next_action else 0.0,
    )


__all__ = [
    "LifecycleState",
    "CancelToken",
    "ConversionQuote",
    "SignedTransaction",
    "SubmissionReceipt",
    "ValidationReceipt",
    "TransactionController",
    "transaction_hash",
]
