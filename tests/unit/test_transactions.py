import pytest
from types import MappingProxyType

from xrpl_wallet.core.amounts import CurrencyAmount
from xrpl_wallet.core.exc import (
    InvalidAmountError,
    InvalidDestinationError,
    InvalidFieldError,
    InvalidHexError,
    MissingFieldError,
    TransactionFrozenError,
    UnknownFlagError,
)
from xrpl_wallet.core.fields import Destination
from xrpl_wallet.transactions import (
    AccountSet,
    CheckCash,
    CheckCreate,
    Payment,
    SignIn,
    Transaction,
    TrustSet,
)

ALICE = "rPEPPER7kfTD9w2To4CQk6UCfuHM9c6GDY"
BOB = "rfkE1aSy9G8Upk4JssnwBxhEv5p4mn2KTy"
ISSUER = "rf1BiGeXwwQoi8Z2ueFYTEXSwuJYfV2Jpn"
INVOICE = "6F1DFD1D0FE8A32E40E1F2C05CF1C15545BAB56B617F9C6C2D63A6B704BEF59B"

CHECK_CREATE_TX = {
    "TransactionType": "CheckCreate",
    "Account": "rUn84CUYbNjRoTQ6mSW7BVJPSVJNLb1QLo",
    "Destination": BOB,
    "DestinationTag": 1,
    "SendMax": "100000000",
    "Expiration": 570113521,
    "InvoiceID": INVOICE,
    "Fee": "12",
    "Flags": 2147483648,
}


# -----------------------------
# Construction & parsing
# -----------------------------

def test_fresh_instance_sets_type():
    tx = CheckCreate()
    assert tx.type == "CheckCreate"
    assert tx.to_json() == {"TransactionType": "CheckCreate"}


def test_parse_check_create_template():
    tx = CheckCreate(CHECK_CREATE_TX)
    print("[CheckCreate] parsed:", tx.send_max, tx.expiration, tx.destination)
    assert tx.send_max == CurrencyAmount("XRP", "100")
    assert tx.expiration == "2018-01-24T12:52:01.000Z"
    assert tx.destination == Destination(BOB, 1, None)
    assert tx.destination.name is None
    assert tx.invoice_id == INVOICE
    assert tx.fee == "0.000012"
    assert tx.has_flag("FullyCanonicalSig")


def test_unchanged_payload_reserialises_byte_identically():
    tx = Transaction.from_json(CHECK_CREATE_TX)
    assert isinstance(tx, CheckCreate)
    tx.validate()
    assert tx.to_json() == CHECK_CREATE_TX
    reference = CheckCreate(dict(CHECK_CREATE_TX))
    assert tx.canonical_bytes() == reference.canonical_bytes()


def test_input_payload_is_copied():
    payload = dict(CHECK_CREATE_TX)
    tx = CheckCreate(payload)
    tx.send_max = "5"
    assert payload["SendMax"] == "100000000"


def test_unknown_type_stays_generic_and_preserved():
    raw = {"TransactionType": "NFTokenMint", "Account": ALICE, "NFTokenTaxon": 0, "Flags": 8}
    tx = Transaction.from_json(raw)
    assert type(tx) is Transaction
    assert tx.to_json() == raw
    assert tx.account == Destination(ALICE)


def test_type_mismatch_is_rejected():
    with pytest.raises(InvalidFieldError) as exc:
        Payment({"TransactionType": "CheckCreate"})
    assert exc.value.field == "type"


# -----------------------------
# Field set/get
# -----------------------------

def test_set_native_and_issued_amounts():
    tx = CheckCreate()
    tx.send_max = "100"
    assert tx.send_max == CurrencyAmount("XRP", "100")
    assert tx.to_json()["SendMax"] == "100000000"

    tx.send_max = {"currency": "USD", "issuer": ISSUER, "value": "1"}
    assert tx.send_max == CurrencyAmount("USD", "1", ISSUER)


def test_value_only_write_merges_onto_current_amount():
    tx = Payment()
    tx.amount = {"currency": "USD", "issuer": ISSUER, "value": "1"}
    tx.amount = {"value": "12.5"}
    assert tx.amount == CurrencyAmount("USD", "12.5", ISSUER)
    tx.amount = "010"
    assert tx.amount == CurrencyAmount("XRP", "10")


def test_invalid_amount_write_keeps_previous_value():
    tx = Payment()
    tx.amount = "10"
    with pytest.raises(InvalidAmountError) as exc:
        tx.amount = "-5"
    assert exc.value.field == "amount"
    assert tx.amount == CurrencyAmount("XRP", "10")


def test_invoice_id_64_ok_63_rejected_previous_intact():
    tx = Payment()
    tx.invoice_id = INVOICE
    assert tx.invoice_id == INVOICE
    with pytest.raises(InvalidHexError) as exc:
        tx.invoice_id = INVOICE[:63]
    print("[invoice_id] rejected:", exc.value)
    assert exc.value.field == "invoice_id"
    assert exc.value.kind == "InvalidHex"
    assert tx.invoice_id == INVOICE


def test_destination_tag_reads_back_exactly():
    tx = Payment()
    tx.destination = {"address": "rXYZ", "tag": 1}
    assert tx.destination == Destination("rXYZ", 1, None)
    assert tx.to_json()["Destination"] == "rXYZ"
    assert tx.to_json()["DestinationTag"] == 1

    tx.destination = "rXYZ"
    assert tx.destination == Destination("rXYZ", None, None)
    assert "DestinationTag" not in tx.to_json()


def test_destination_write_is_all_or_nothing():
    tx = Payment()
    tx.destination = {"address": BOB, "tag": 7}
    with pytest.raises(InvalidDestinationError) as exc:
        tx.destination = {"address": "rXYZ", "tag": "007"}
    assert exc.value.field == "destination"
    assert tx.destination == Destination(BOB, 7)


def test_setting_none_removes_the_field():
    tx = Payment()
    tx.destination = {"address": BOB, "tag": 7}
    tx.destination = None
    assert tx.destination is None
    assert "Destination" not in tx.to_json()
    assert "DestinationTag" not in tx.to_json()


def test_resolved_name_is_display_only():
    tx = Payment()
    tx.destination = BOB
    tx.resolve_name("destination", "Bob")
    assert tx.destination == Destination(BOB, None, "Bob")
    assert b"Bob" not in tx.canonical_bytes()
    assert "Bob" not in str(tx.to_json())
    with pytest.raises(InvalidFieldError):
        tx.resolve_name("amount", "nope")


def test_account_takes_no_tag():
    tx = Payment()
    tx.account = ALICE
    assert tx.account == Destination(ALICE)
    with pytest.raises(InvalidDestinationError) as exc:
        tx.account = {"address": ALICE, "tag": 3}
    assert exc.value.field == "account"


def test_fee_in_xrp_stored_in_drops():
    tx = Payment()
    tx.fee = "0.000012"
    assert tx.to_json()["Fee"] == "12"
    assert tx.fee == "0.000012"


def test_expiration_from_iso():
    tx = CheckCreate()
    tx.expiration = "2018-01-24T12:52:01.000Z"
    assert tx.to_json()["Expiration"] == 570113521
    tx.expiration = 0
    assert tx.expiration == "2000-01-01T00:00:00.000Z"


def test_corrupt_wire_value_surfaces_field_error_on_read():
    tx = Payment({"TransactionType": "Payment", "InvoiceID": "XYZ"})
    with pytest.raises(InvalidHexError) as exc:
        _ = tx.invoice_id
    assert exc.value.field == "invoice_id"


# -----------------------------
# Flags
# -----------------------------

def test_flags_from_names_int_and_zero():
    tx = TrustSet()
    assert tx.flags is None
    tx.flags = ["SetNoRipple", "SetFreeze"]
    assert tx.flags == 0x00020000 | 0x00100000
    tx.flags = 0x00040000
    assert tx.flags == 0x00040000
    tx.flags = 0
    assert tx.flags == 0
    assert tx.flags is not None
    tx.flags = []
    assert tx.flags == 0
    tx.flags = None
    assert tx.flags is None


def test_flags_mapping_applies_on_top_and_keeps_unknown_bits():
    tx = Payment({"TransactionType": "Payment", "Flags": 0x80000000 | 0x400})
    tx.flags = {"PartialPayment": True}
    assert tx.flags == 0x80000000 | 0x400 | 0x00020000
    assert tx.unknown_flag_bits() == 0x400
    assert tx.flag_states()["PartialPayment"] is True


def test_unknown_flag_name_is_field_scoped():
    tx = Payment()
    with pytest.raises(UnknownFlagError) as exc:
        tx.flags = ["SetFreeze"]
    assert exc.value.field == "flags"
    assert tx.flags is None


def test_account_set_flag_fields():
    tx = AccountSet()
    tx.set_flag = "DefaultRipple"
    assert tx.to_json()["SetFlag"] == 8
    assert tx.set_flag == "DefaultRipple"
    tx.transfer_rate = 1_002_000_000
    with pytest.raises(InvalidFieldError):
        tx.transfer_rate = 500
    assert tx.transfer_rate == 1_002_000_000


# -----------------------------
# Validation & freezing
# -----------------------------

def test_validate_requires_declared_fields():
    tx = Payment()
    tx.account = ALICE
    tx.amount = "1"
    with pytest.raises(MissingFieldError) as exc:
        tx.validate()
    assert exc.value.field == "destination"


def test_check_cash_needs_exactly_one_amount():
    tx = CheckCash()
    tx.account = BOB
    tx.check_id = INVOICE
    with pytest.raises(InvalidFieldError):
        tx.validate()
    tx.deliver_min = "1"
    tx.validate()
    assert tx.cash_field == "deliver_min"
    tx.amount = "1"
    with pytest.raises(InvalidFieldError):
        tx.validate()


def test_trust_set_limit_must_be_issued():
    tx = TrustSet()
    tx.account = ALICE
    tx.limit_amount = "100"
    with pytest.raises(InvalidFieldError):
        tx.validate()
    tx.limit_amount = {"currency": "USD", "issuer": ISSUER, "value": "100"}
    tx.validate()


def test_frozen_transaction_rejects_writes():
    tx = CheckCash()
    tx.account = BOB
    tx.amount = "1"
    tx.freeze()
    assert tx.frozen
    with pytest.raises(TransactionFrozenError):
        tx.amount = "2"
    with pytest.raises(TransactionFrozenError):
        tx.flags = 0
    assert tx.amount == CurrencyAmount("XRP", "1")
    # Display-only data is still writable.
    tx.resolve_name("account", "Bob")
    tx.check = CheckCreate()
    assert tx.account.name == "Bob"


def test_snapshot_is_read_only_copy():
    tx = Payment()
    tx.amount = "1"
    snap = tx.snapshot()
    assert isinstance(snap, MappingProxyType)
    with pytest.raises(TypeError):
        snap["Amount"] = "2"  # type: ignore[index]
    tx.amount = "3"
    assert snap["Amount"] == "1000000"


def test_sign_in_is_not_submittable():
    assert SignIn().type == "SignIn"
    assert not SignIn.SUBMITTABLE
    assert Payment.SUBMITTABLE
