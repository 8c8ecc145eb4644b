from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from xrpl_wallet.config import Settings
from xrpl_wallet.exchange import LiquidityEvaluator, LiquidityOptions
from xrpl_wallet.ledger import LedgerService, Signer, SubmitResult, ValidationResult
from xrpl_wallet.lifecycle import TransactionController

# -----------------------------
# Accounts used across tests
# -----------------------------

ALICE = "rPEPPER7kfTD9w2To4CQk6UCfuHM9c6GDY"
BOB = "rfkE1aSy9G8Upk4JssnwBxhEv5p4mn2KTy"
ISSUER = "rf1BiGeXwwQoi8Z2ueFYTEXSwuJYfV2Jpn"

CHECK_ID = "49647F0D748DC3FE26BDACBC57F251AADEFFF391403EC9BF87C97F67E9977FB0"


# -----------------------------
# Order-book helpers
# -----------------------------

def ask(usd: str, drops: str, **extra) -> Dict[str, Any]:
    """Offer selling USD for XRP (the taker buys USD)."""
    return {
        "TakerGets": {"currency": "USD", "issuer": ISSUER, "value": usd},
        "TakerPays": drops,
        **extra,
    }


def bid(drops: str, usd: str, **extra) -> Dict[str, Any]:
    """Offer buying USD with XRP (the taker sells USD)."""
    return {
        "TakerGets": drops,
        "TakerPays": {"currency": "USD", "issuer": ISSUER, "value": usd},
        **extra,
    }


def default_book() -> Dict[str, List[Dict[str, Any]]]:
    # Top of book: 2 XRP/USD ask, 1.96 XRP/USD bid (2% spread).
    return {
        "asks": [ask("100", "200000000"), ask("100", "210000000")],
        "bids": [bid("196000000", "100")],
    }


# -----------------------------
# Fake collaborators
# -----------------------------

class FakeLedger(LedgerService):
    """In-memory LedgerService.

    - lines / account_info / entries: canned query answers.
    - books: {"asks": [...], "bids": [...]} returned for the matching side.
    - submit_results / validation_results: queued outcomes consumed in order;
      an Exception instance is raised instead of returned.
    """

    def __init__(
        self,
        *,
        lines: Optional[Dict[str, List[dict]]] = None,
        account_info: Optional[Dict[str, dict]] = None,
        books: Optional[Dict[str, List[dict]]] = None,
        entries: Optional[Dict[str, dict]] = None,
        submit_results: Optional[list] = None,
        validation_results: Optional[list] = None,
    ):
        self.lines = lines or {}
        self.account_info = account_info or {}
        self.books = books if books is not None else default_book()
        self.entries = entries or {}
        self.submit_results = list(submit_results or [])
        self.validation_results = list(validation_results or [])
        self.calls: List[tuple] = []
        self.submitted: List[str] = []
        self.gate: Optional[asyncio.Event] = None

    async def _maybe_block(self):
        if self.gate is not None:
            await self.gate.wait()

    async def get_account_lines(self, address):
        self.calls.append(("account_lines", address))
        await self._maybe_block()
        return {"account": address, "lines": [dict(l) for l in self.lines.get(address, [])]}

    async def get_account_info(self, address):
        self.calls.append(("account_info", address))
        return {"account_data": dict(self.account_info.get(address, {"Account": address}))}

    async def get_ledger_entry(self, entry_id):
        self.calls.append(("ledger_entry", entry_id))
        node = self.entries.get(entry_id)
        if node is None:
            return {"error": "entryNotFound"}
        return {"node": dict(node)}

    async def get_book_offers(self, taker_gets, taker_pays, limit=50):
        side = "bids" if taker_gets.get("currency") == "XRP" else "asks"
        self.calls.append(("book_offers", side, limit))
        return {"offers": [dict(o) for o in self.books.get(side, [])][:limit]}

    async def submit(self, tx_blob):
        self.calls.append(("submit", tx_blob))
        self.submitted.append(tx_blob)
        await self._maybe_block()
        outcome = self.submit_results.pop(0) if self.submit_results else SubmitResult(True, "tesSUCCESS")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def validate(self, tx_hash):
        self.calls.append(("validate", tx_hash))
        outcome = (
            self.validation_results.pop(0)
            if self.validation_results
            else ValidationResult(True, True, "tesSUCCESS", 1000)
        )
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeSigner(Signer):
    """Returns a fixed signature and records every payload it was asked to sign."""

    def __init__(self, signature: bytes = b"\x30\x45\x02\x21", error: Optional[Exception] = None):
        self.signature = signature
        self.error = error
        self.payloads: List[bytes] = []
        self.gate: Optional[asyncio.Event] = None

    async def sign(self, payload, key_material):
        self.payloads.append(payload)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.signature


# -----------------------------
# Pytest fixtures
# -----------------------------

@pytest.fixture()
def settings() -> Settings:
    return Settings(
        submit_max_attempts=3,
        submit_backoff_min=0,
        submit_backoff_max=0,
        validation_timeout=0.2,
        validation_poll_interval=0.01,
    )


@pytest.fixture()
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture()
def evaluator(ledger) -> LiquidityEvaluator:
    return LiquidityEvaluator(ledger, LiquidityOptions())


@pytest.fixture()
def controller(ledger, signer, settings) -> TransactionController:
    return TransactionController(ledger, signer, settings)
