import asyncio
import json
import logging
from decimal import Decimal

import pytest

from conftest import ALICE, BOB, CHECK_ID, ISSUER, FakeLedger, FakeSigner, ask
from xrpl_wallet.core.amounts import CurrencyAmount, currency_to_hex
from xrpl_wallet.core.exc import (
    InsufficientLiquidityError,
    InvalidFieldError,
    LedgerEntryNotFoundError,
    LifecycleCancelledError,
    LifecycleOrderError,
    MissingFieldError,
    NotValidatedError,
    RejectedError,
    SigningError,
    SubmissionError,
    TransactionFrozenError,
    TransportError,
)
from xrpl_wallet.exchange import LiquidityErrorKind
from xrpl_wallet.ledger import SubmitResult, ValidationResult
from xrpl_wallet.lifecycle import (
    CancelToken,
    LifecycleState,
    SignedTransaction,
    TransactionController,
    transaction_hash,
)
from xrpl_wallet.transactions import CheckCash, Payment, SignIn

pytestmark = pytest.mark.asyncio

KEY = object()


def xrp_payment(value: str = "10") -> Payment:
    tx = Payment()
    tx.account = ALICE
    tx.destination = BOB
    tx.amount = value
    tx.fee = "0.000012"
    tx.sequence = 1
    return tx


def usd_payment(value: str = "10", account: str = ALICE) -> Payment:
    tx = xrp_payment()
    tx.account = account
    tx.amount = {"currency": "USD", "issuer": ISSUER, "value": value}
    return tx


def usd_line(balance: str, currency: str = "USD") -> dict:
    return {"account": ISSUER, "currency": currency, "balance": balance, "limit": "1000"}


def _calls(ledger: FakeLedger, name: str) -> list:
    return [c for c in ledger.calls if c[0] == name]


# -----------------------------
# Payment conversion hook
# -----------------------------

async def test_native_payment_is_left_alone(controller, ledger, signer):
    tx = xrp_payment("10")
    signed = await controller.sign(tx, KEY)

    assert tx.send_max is None
    assert tx.flags is None
    assert _calls(ledger, "account_lines") == []
    assert controller.quote(tx) is None
    assert signer.payloads == [tx.canonical_bytes()]
    assert signed.transaction is tx


async def test_issued_payment_with_short_trust_line_is_converted(controller, ledger, signer):
    ledger.lines[ALICE] = [usd_line("5")]
    tx = usd_payment("10")

    await controller.sign(tx, KEY)
    quote = controller.quote(tx)
    print("[convert] quote:", quote.send_max, quote.rate, quote.exchange_rate)

    assert quote.send_max == "20.00000000"
    assert quote.rate == Decimal("2")
    assert quote.exchange_rate == Decimal("0.5")
    assert tx.send_max == CurrencyAmount("XRP", "20")
    assert tx.to_json()["SendMax"] == "20000000"
    assert tx.has_flag("PartialPayment")
    assert tx.amount == CurrencyAmount("USD", "10", ISSUER)
    # The signed bytes include the conversion.
    assert b'"SendMax":"20000000"' in signer.payloads[0]


async def test_unsafe_liquidity_refuses_and_leaves_tx_untouched(ledger, signer, settings):
    ledger.books["asks"] = []
    ledger.lines[ALICE] = [usd_line("5")]
    controller = TransactionController(ledger, signer, settings)
    tx = usd_payment("10")

    with pytest.raises(InsufficientLiquidityError) as exc:
        await controller.sign(tx, KEY)

    assert exc.value.kind == "InsufficientLiquidity"
    assert not exc.value.retryable
    assert LiquidityErrorKind.EMPTY_BOOK in exc.value.report.errors
    assert tx.send_max is None
    assert tx.flags is None
    assert signer.payloads == []
    assert _calls(ledger, "submit") == []
    assert controller.state(tx) is LifecycleState.FAILED
    assert controller.error(tx) is exc.value


async def test_sufficient_trust_line_skips_the_book(controller, ledger):
    ledger.lines[ALICE] = [usd_line("50")]
    tx = usd_payment("10")
    assert await controller.prepare(tx) is None
    assert tx.send_max is None
    assert _calls(ledger, "book_offers") == []


async def test_trust_line_matched_by_hex_currency(controller, ledger):
    ledger.lines[ALICE] = [usd_line("50", currency_to_hex("USD"))]
    tx = usd_payment("10")
    assert await controller.prepare(tx) is None


async def test_missing_trust_line_converts(controller, ledger):
    tx = usd_payment("10")
    quote = await controller.prepare(tx)
    assert quote.send_max == "20.00000000"


async def test_signer_as_issuer_pays_partially_without_conversion(controller, ledger):
    tx = usd_payment("10", account=ISSUER)
    tx.send_max = "30"
    assert await controller.prepare(tx) is None
    assert _calls(ledger, "account_lines") == []
    assert _calls(ledger, "book_offers") == []
    assert tx.send_max is None
    assert tx.has_flag("PartialPayment")


async def test_covered_payment_drops_stale_send_max(controller, ledger):
    ledger.lines[ALICE] = [usd_line("50")]
    tx = usd_payment("10")
    tx.send_max = "30"
    tx.flags = ["LimitQuality"]

    assert await controller.prepare(tx) is None

    assert tx.send_max is None
    assert "SendMax" not in tx.to_json()
    assert not tx.has_flag("PartialPayment")
    assert tx.has_flag("LimitQuality")
    assert _calls(ledger, "account_info") == [("account_info", ISSUER)]


async def test_issuer_transfer_fee_sets_partial_payment(controller, ledger):
    ledger.lines[ALICE] = [usd_line("50")]
    ledger.account_info[ISSUER] = {"Account": ISSUER, "TransferRate": 1002000000}
    tx = usd_payment("10")

    assert await controller.prepare(tx) is None
    signed = await controller.sign(tx, KEY)

    print("[transfer fee] flags:", signed.tx_json["Flags"])
    assert tx.has_flag("PartialPayment")
    assert "SendMax" not in signed.tx_json
    assert _calls(ledger, "book_offers") == []


async def test_transfer_rate_of_one_is_no_fee(controller, ledger):
    ledger.lines[ALICE] = [usd_line("50")]
    ledger.account_info[ISSUER] = {"Account": ISSUER, "TransferRate": 1000000000}
    tx = usd_payment("10")
    await controller.prepare(tx)
    assert tx.flags is None


async def test_prepare_runs_once(controller, ledger):
    ledger.lines[ALICE] = [usd_line("5")]
    tx = usd_payment("10")
    first = await controller.prepare(tx)
    second = await controller.prepare(tx)
    await controller.sign(tx, KEY)
    assert first is second
    assert len(_calls(ledger, "account_lines")) == 1


async def test_amount_raised_after_prepare_is_converted_again(controller, ledger, signer):
    ledger.lines[ALICE] = [usd_line("5")]
    tx = usd_payment("10")
    first = await controller.prepare(tx)
    assert first.send_max == "20.00000000"

    tx.amount = {"value": "50"}
    signed = await controller.sign(tx, KEY)

    quote = controller.quote(tx)
    print("[re-prepare] quote:", quote.send_max, "tx_json:", signed.tx_json)
    assert quote is not first
    assert quote.send_max == "100.00000000"
    assert signed.tx_json["SendMax"] == "100000000"
    assert signed.tx_json["Amount"]["value"] == "50"
    assert b'"SendMax":"100000000"' in signer.payloads[0]
    assert len(_calls(ledger, "account_lines")) == 2


async def test_amount_raised_past_trust_line_after_prepare(controller, ledger):
    ledger.lines[ALICE] = [usd_line("50")]
    tx = usd_payment("10")
    assert await controller.prepare(tx) is None
    assert _calls(ledger, "book_offers") == []

    tx.amount = {"value": "150"}
    await controller.sign(tx, KEY)

    quote = controller.quote(tx)
    assert quote.rate == Decimal("2.03333333")
    assert tx.send_max == CurrencyAmount("XRP", "305")
    assert tx.has_flag("PartialPayment")
    assert len(_calls(ledger, "book_offers")) == 2


async def test_amount_lowered_after_conversion_restores_built_fields(controller, ledger):
    ledger.lines[ALICE] = [usd_line("5")]
    tx = usd_payment("10")
    await controller.prepare(tx)
    assert tx.has_flag("PartialPayment")

    tx.amount = {"value": "3"}
    assert await controller.prepare(tx) is None

    assert tx.send_max is None
    assert tx.flags is None
    assert controller.quote(tx) is None


async def test_malformed_flags_leave_conversion_unapplied(controller, ledger, signer):
    ledger.lines[ALICE] = [usd_line("5")]
    tx = Payment.from_json({
        "TransactionType": "Payment",
        "Account": ALICE,
        "Destination": BOB,
        "Amount": {"currency": "USD", "issuer": ISSUER, "value": "10"},
        "Flags": "PartialPayment",
    })

    with pytest.raises(InvalidFieldError):
        await controller.sign(tx, KEY)

    assert "SendMax" not in tx.to_json()
    assert tx.to_json()["Flags"] == "PartialPayment"
    assert controller.state(tx) is LifecycleState.BUILT
    assert signer.payloads == []


async def test_send_max_rounds_up_to_the_drop_grid(ledger, signer, settings):
    # 3 XRP for 7 USD -> rate 0.42857143.
    ledger.books = {"asks": [ask("7", "3000000")], "bids": []}
    controller = TransactionController(ledger, signer, settings)
    tx = usd_payment("1")

    quote = await controller.prepare(tx)

    assert quote.rate == Decimal("0.42857143")
    assert quote.send_max == "0.42857143"
    assert tx.send_max == CurrencyAmount("XRP", "0.428572")


# -----------------------------
# Sign / submit / verify
# -----------------------------

async def test_full_lifecycle(controller, ledger, signer):
    tx = xrp_payment()
    assert controller.state(tx) is LifecycleState.BUILT

    signed = await controller.sign(tx, KEY)
    assert controller.state(tx) is LifecycleState.SIGNED
    assert tx.frozen
    assert signed.tx_hash == transaction_hash(signed.tx_blob)
    assert len(signed.tx_hash) == 64 and signed.tx_hash == signed.tx_hash.upper()
    blob_json = json.loads(bytes.fromhex(signed.tx_blob))
    assert blob_json["TxnSignature"] == signer.signature.hex().upper()
    assert signed.tx_json["TxnSignature"] == signer.signature.hex().upper()
    assert "TxnSignature" not in tx.to_json()

    receipt = await controller.submit(signed)
    assert controller.state(tx) is LifecycleState.SUBMITTED
    assert ledger.submitted == [signed.tx_blob]
    assert receipt.engine_result == "tesSUCCESS"

    validation = await controller.verify(receipt)
    assert controller.state(tx) is LifecycleState.VALIDATED
    assert validation.ledger_index == 1000
    assert validation.tx_hash == signed.tx_hash
    assert controller.error(tx) is None


async def test_signed_transaction_is_frozen(controller):
    tx = xrp_payment()
    await controller.sign(tx, KEY)
    with pytest.raises(TransactionFrozenError):
        tx.amount = "11"


async def test_signing_failure(ledger, settings):
    controller = TransactionController(ledger, FakeSigner(error=RuntimeError("bad key")), settings)
    tx = xrp_payment()
    with pytest.raises(SigningError) as exc:
        await controller.sign(tx, KEY)
    assert "bad key" in exc.value.reason
    assert controller.state(tx) is LifecycleState.FAILED
    assert not tx.frozen


async def test_field_errors_do_not_enter_the_lifecycle(controller):
    tx = Payment()
    tx.account = ALICE
    tx.amount = "1"
    with pytest.raises(MissingFieldError):
        await controller.sign(tx, KEY)
    assert controller.state(tx) is LifecycleState.BUILT
    assert controller.error(tx) is None


async def test_submit_before_sign_is_rejected(controller, ledger):
    tx = xrp_payment()
    forged = SignedTransaction(tx, b"", {}, "00", "AB" * 32)
    with pytest.raises(LifecycleOrderError):
        await controller.submit(forged)
    assert controller.state(tx) is LifecycleState.BUILT
    assert ledger.submitted == []


async def test_out_of_order_calls_do_not_change_state(controller):
    tx = xrp_payment()
    signed = await controller.sign(tx, KEY)
    with pytest.raises(LifecycleOrderError):
        await controller.sign(tx, KEY)
    receipt = await controller.submit(signed)
    with pytest.raises(LifecycleOrderError):
        await controller.submit(signed)
    assert controller.state(tx) is LifecycleState.SUBMITTED
    await controller.verify(receipt)
    with pytest.raises(LifecycleOrderError):
        await controller.verify(receipt)
    assert controller.state(tx) is LifecycleState.VALIDATED


async def test_transport_failures_are_retried(controller, ledger, caplog):
    caplog.set_level(logging.WARNING, logger="xrpl_wallet.lifecycle")
    ledger.submit_results = [TransportError("down"), TransportError("down"), SubmitResult(True, "terQUEUED")]
    signed = await controller.sign(xrp_payment(), KEY)

    receipt = await controller.submit(signed)

    assert receipt.engine_result == "terQUEUED"
    assert len(ledger.submitted) == 3
    assert "retrying" in caplog.text


async def test_retry_exhaustion_then_explicit_resubmit(controller, ledger):
    ledger.submit_results = [TransportError("down")] * 3
    tx = xrp_payment()
    signed = await controller.sign(tx, KEY)

    with pytest.raises(SubmissionError) as exc:
        await controller.submit(signed)
    assert exc.value.retryable
    assert len(ledger.submitted) == 3
    assert controller.state(tx) is LifecycleState.FAILED

    await controller.submit(signed)
    assert controller.state(tx) is LifecycleState.SUBMITTED


async def test_ledger_rejection_is_final(controller, ledger):
    ledger.submit_results = [SubmitResult(False, "tecUNFUNDED_PAYMENT", "Insufficient XRP balance to send.")]
    tx = xrp_payment()
    signed = await controller.sign(tx, KEY)

    with pytest.raises(RejectedError) as exc:
        await controller.submit(signed)
    assert exc.value.engine_result == "tecUNFUNDED_PAYMENT"
    assert not exc.value.retryable
    assert len(ledger.submitted) == 1
    assert controller.state(tx) is LifecycleState.FAILED
    with pytest.raises(LifecycleOrderError):
        await controller.submit(signed)


async def test_verify_polls_through_pending_and_transport_errors(controller, ledger):
    ledger.validation_results = [ValidationResult(False, validated=False), TransportError("blip")]
    signed = await controller.sign(xrp_payment(), KEY)
    receipt = await controller.submit(signed)

    validation = await controller.verify(receipt)

    assert validation.engine_result == "tesSUCCESS"
    assert len(_calls(ledger, "validate")) == 3


async def test_verify_timeout_then_explicit_requery(controller, ledger):
    ledger.validation_results = [ValidationResult(False, validated=False)] * 1000
    tx = xrp_payment()
    receipt = await controller.submit(await controller.sign(tx, KEY))

    with pytest.raises(NotValidatedError) as exc:
        await controller.verify(receipt)
    assert exc.value.retryable
    assert controller.state(tx) is LifecycleState.FAILED
    assert len(ledger.submitted) == 1

    ledger.validation_results.clear()
    await controller.verify(receipt)
    assert controller.state(tx) is LifecycleState.VALIDATED
    assert len(ledger.submitted) == 1


async def test_validated_but_failed(controller, ledger):
    ledger.validation_results = [ValidationResult(False, True, "tecPATH_DRY", 77)]
    tx = xrp_payment()
    receipt = await controller.submit(await controller.sign(tx, KEY))

    with pytest.raises(NotValidatedError) as exc:
        await controller.verify(receipt)
    assert exc.value.engine_result == "tecPATH_DRY"
    assert controller.state(tx) is LifecycleState.FAILED


async def test_sign_in_is_never_submitted(controller, ledger):
    tx = SignIn()
    tx.account = ALICE
    signed = await controller.sign(tx, KEY)
    with pytest.raises(LifecycleOrderError):
        await controller.submit(signed)
    assert controller.state(tx) is LifecycleState.SIGNED
    assert ledger.submitted == []


async def test_transitions_are_logged(controller, caplog):
    caplog.set_level(logging.INFO, logger="xrpl_wallet.lifecycle")
    await controller.sign(xrp_payment(), KEY)
    assert "Payment Built -> Signed" in caplog.text


# -----------------------------
# Cancellation
# -----------------------------

async def test_cancel_while_signing(controller, signer):
    signer.gate = asyncio.Event()
    token = CancelToken()
    tx = xrp_payment()

    task = asyncio.create_task(controller.sign(tx, KEY, cancel=token))
    while not signer.payloads:
        await asyncio.sleep(0)
    token.cancel()

    with pytest.raises(LifecycleCancelledError):
        await task
    assert controller.state(tx) is LifecycleState.BUILT
    assert not tx.frozen


async def test_cancel_while_checking_trust_line_leaves_payment_unchanged(controller, ledger):
    ledger.lines[ALICE] = [usd_line("5")]
    ledger.gate = asyncio.Event()
    token = CancelToken()
    tx = usd_payment("10")
    before = tx.to_json()

    task = asyncio.create_task(controller.sign(tx, KEY, cancel=token))
    while not _calls(ledger, "account_lines"):
        await asyncio.sleep(0)
    token.cancel()

    with pytest.raises(LifecycleCancelledError):
        await task
    assert tx.to_json() == before
    assert controller.state(tx) is LifecycleState.BUILT

    ledger.gate = None
    await controller.sign(tx, KEY)
    assert tx.has_flag("PartialPayment")


async def test_cancelled_token_stops_before_any_call(controller, ledger):
    token = CancelToken()
    token.cancel()
    signed = await controller.sign(xrp_payment(), KEY)
    with pytest.raises(LifecycleCancelledError):
        await controller.submit(signed, cancel=token)
    assert ledger.submitted == []
    assert controller.state(signed.transaction) is LifecycleState.SIGNED


# -----------------------------
# Checks
# -----------------------------

async def test_load_check_attaches_display_only_check(controller, ledger):
    ledger.entries[CHECK_ID] = {
        "LedgerEntryType": "Check",
        "Account": ALICE,
        "Destination": BOB,
        "SendMax": "100000000",
        "Sequence": 3,
        "Expiration": 570113521,
        "index": CHECK_ID,
    }
    tx = CheckCash()
    tx.account = BOB
    tx.check_id = CHECK_ID
    tx.amount = "100"

    check = await controller.load_check(tx)

    assert tx.check is check
    assert check.send_max == CurrencyAmount("XRP", "100")
    assert check.account.address == ALICE
    assert check.expiration == "2018-01-24T12:52:01.000Z"
    assert "Sequence" not in check.to_json()
    assert set(tx.to_json()) == {"TransactionType", "Account", "CheckID", "Amount"}


async def test_load_check_errors(controller):
    tx = CheckCash()
    with pytest.raises(MissingFieldError):
        await controller.load_check(tx)
    tx.check_id = CHECK_ID
    with pytest.raises(LedgerEntryNotFoundError):
        await controller.load_check(tx)
