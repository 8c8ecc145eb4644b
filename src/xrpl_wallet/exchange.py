"""
Liquidity / exchange evaluation for XRP <-> issued-currency conversions.

The evaluator answers one question for the payment builder: can `amount` of an
issued currency be bought (or sold) through the XRP order book right now, and
at what effective rate?

Workflow:
  1. `await initialize(pair)` captures a fresh BookSnapshot: both sides of the
     XRP/IOU book plus the issuer's transfer rate. Each call re-fetches.
  2. `evaluate(pair, direction, amount)` walks the snapshot best-first and
     returns an immutable LiquidityReport. It is a pure query: no I/O, no
     mutation of anything the caller owns.

Rate semantics:
  rate = XRP consumed (or received) / issued amount filled, exact Decimal,
  rounded half-up to 8 places only when the report is built. For `buy` a
  larger size never lowers the rate; for `sell` it never raises it.

Grading (any error makes the report unsafe):
  - EMPTY_BOOK: no usable offers on the side being taken.
  - INSUFFICIENT_LIQUIDITY: depth ends before `amount` is filled.
  - MAX_SLIPPAGE_EXCEEDED: effective rate is worse than top of book by more
    than `max_slippage_pct`.
  - MAX_SPREAD_EXCEEDED: best ask vs best bid differ by more than
    `max_spread_pct` of the ask.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from .book_offers import BookLevel, build_book_levels
from .config import Settings
from .core.amounts import currency_to_hex, validate_currency_code
from .core.constants import NATIVE_CURRENCY, TRANSFER_RATE_BASE
from .core.exc import InvalidAmountError, NotInitializedError
from .core.fields import is_classic_address
from .core.fmt import DecimalLike, round_rate, to_decimal
from .ledger import LedgerService

logger = logging.getLogger(__name__)


class TradeDirection(str, Enum):
    """Direction relative to XRP: BUY acquires the issued currency with XRP."""
    BUY = "buy"
    SELL = "sell"


class LiquidityErrorKind(str, Enum):
    EMPTY_BOOK = "EMPTY_BOOK"
    INSUFFICIENT_LIQUIDITY = "INSUFFICIENT_LIQUIDITY"
    MAX_SLIPPAGE_EXCEEDED = "MAX_SLIPPAGE_EXCEEDED"
    MAX_SPREAD_EXCEEDED = "MAX_SPREAD_EXCEEDED"


@dataclass(frozen=True)
class CurrencyPair:
    """Issued side of an XRP/IOU book; the currency code is stored canonical."""

    currency: str
    issuer: str

    def __post_init__(self):
        object.__setattr__(self, "currency", validate_currency_code(self.currency))
        if not is_classic_address(self.issuer):
            raise InvalidAmountError(f"pair issuer is not an account: {self.issuer!r}", field="issuer")

    @property
    def key(self) -> Tuple[str, str]:
        return currency_to_hex(self.currency), self.issuer

    def book_currency(self) -> Dict[str, str]:
        return {"currency": self.currency, "issuer": self.issuer}


@dataclass(frozen=True)
class LiquidityOptions:
    max_spread_pct: Decimal = Decimal("4")
    max_slippage_pct: Decimal = Decimal("3")
    book_limit: int = 50

    @classmethod
    def from_settings(cls, settings: Settings) -> "LiquidityOptions":
        return cls(
            max_spread_pct=settings.liquidity_max_spread_pct,
            max_slippage_pct=settings.liquidity_max_slippage_pct,
            book_limit=settings.liquidity_book_limit,
        )


@dataclass(frozen=True)
class BookSnapshot:
    """Immutable view of one XRP/IOU book at `initialize()` time.

    `asks`: offers the taker buys the issued currency from (cheapest first).
    `bids`: offers the taker sells the issued currency to (richest first).
    """

    pair: CurrencyPair
    asks: Tuple[BookLevel, ...]
    bids: Tuple[BookLevel, ...]
    transfer_rate: Decimal = Decimal("1")

    @property
    def best_ask(self) -> Optional[Decimal]:
        return self.asks[0].price if self.asks else None

    @property
    def best_bid(self) -> Optional[Decimal]:
        return self.bids[0].price if self.bids else None

    @property
    def spread_pct(self) -> Optional[Decimal]:
        """(ask - bid) / ask in percent; None unless both sides are quoted."""
        ask, bid = self.best_ask, self.best_bid
        if ask is None or bid is None:
            return None
        return (ask - bid) / ask * 100


@dataclass(frozen=True)
class LiquidityReport:
    """Result of one evaluation. `rate` is XRP per unit of the issued currency."""

    safe: bool
    rate: Decimal
    errors: Tuple[LiquidityErrorKind, ...] = ()
    direction: TradeDirection = TradeDirection.BUY
    amount: Decimal = Decimal("0")
    filled: Decimal = Decimal("0")
    native_total: Decimal = Decimal("0")
    best_price: Optional[Decimal] = None

    @property
    def exchange_rate(self) -> Decimal:
        """Issued currency per XRP (1 / rate), the figure shown to users."""
        if self.rate == 0:
            return Decimal("0")
        return round_rate(Decimal(1) / self.rate)


def parse_transfer_rate(account_info: dict) -> Decimal:
    """Issuer transfer rate as a multiplier (1 when the issuer charges no fee)."""
    raw = (account_info.get("account_data") or {}).get("TransferRate")
    if not raw:
        return Decimal("1")
    return Decimal(int(raw)) / TRANSFER_RATE_BASE


class LiquidityEvaluator:
    """Order-book depth evaluator for XRP/IOU pairs.

    Collaborators are explicit: pass the LedgerService to query. Snapshots are
    kept per pair and replaced by every `initialize()`.
    """

    def __init__(self, ledger: LedgerService, options: Optional[LiquidityOptions] = None):
        self.ledger = ledger
        self.options = options or LiquidityOptions()
        self._snapshots: Dict[Tuple[str, str], BookSnapshot] = {}

    async def initialize(self, pair: CurrencyPair) -> BookSnapshot:
        """Synchronise with the current book for `pair` (fresh fetch every call)."""
        issued = pair.book_currency()
        native = {"currency": NATIVE_CURRENCY}
        limit = self.options.book_limit

        asks_res = await self.ledger.get_book_offers(issued, native, limit)
        bids_res = await self.ledger.get_book_offers(native, issued, limit)
        issuer_info = await self.ledger.get_account_info(pair.issuer)

        transfer_rate = parse_transfer_rate(issuer_info)
        snapshot = BookSnapshot(
            pair=pair,
            asks=tuple(build_book_levels(asks_res.get("offers") or [], pair.currency, taker_gets_issued=True)),
            bids=tuple(build_book_levels(
                bids_res.get("offers") or [],
                pair.currency,
                taker_gets_issued=False,
                transfer_rate=transfer_rate,
            )),
            transfer_rate=transfer_rate,
        )
        self._snapshots[pair.key] = snapshot
        logger.debug(
            "book %s/%s: %d asks (best %s), %d bids (best %s), transfer rate %s",
            pair.currency, pair.issuer, len(snapshot.asks), snapshot.best_ask,
            len(snapshot.bids), snapshot.best_bid, transfer_rate,
        )
        return snapshot

    def snapshot(self, pair: CurrencyPair) -> BookSnapshot:
        snap = self._snapshots.get(pair.key)
        if snap is None:
            raise NotInitializedError(f"book {pair.currency}/{pair.issuer} not initialised; await initialize() first")
        return snap

    def evaluate(
        self,
        pair: CurrencyPair,
        direction: Union[TradeDirection, str],
        amount: DecimalLike,
    ) -> LiquidityReport:
        direction = TradeDirection(direction)
        amount = to_decimal(amount)
        if not amount.is_finite() or amount <= 0:
            raise InvalidAmountError(f"liquidity amount must be positive, got {amount}", field="amount")

        snap = self.snapshot(pair)
        levels = snap.asks if direction is TradeDirection.BUY else snap.bids
        if not levels:
            return LiquidityReport(
                safe=False,
                rate=Decimal("0"),
                errors=(LiquidityErrorKind.EMPTY_BOOK,),
                direction=direction,
                amount=amount,
            )

        remaining = amount
        native_total = Decimal("0")
        for lvl in levels:
            if remaining <= 0:
                break
            if remaining >= lvl.quantity:
                native_total += lvl.native
                remaining -= lvl.quantity
            else:
                native_total += lvl.native * remaining / lvl.quantity
                remaining = Decimal("0")

        filled = amount - remaining
        exact_rate = native_total / filled
        best = levels[0].price

        errors = []
        if remaining > 0:
            errors.append(LiquidityErrorKind.INSUFFICIENT_LIQUIDITY)
        if direction is TradeDirection.BUY:
            slippage = (exact_rate - best) / best * 100
        else:
            slippage = (best - exact_rate) / best * 100
        if slippage > self.options.max_slippage_pct:
            errors.append(LiquidityErrorKind.MAX_SLIPPAGE_EXCEEDED)
        spread = snap.spread_pct
        if spread is not None and spread > self.options.max_spread_pct:
            errors.append(LiquidityErrorKind.MAX_SPREAD_EXCEEDED)

        report = LiquidityReport(
            safe=not errors,
            rate=round_rate(exact_rate),
            errors=tuple(errors),
            direction=direction,
            amount=amount,
            filled=filled,
            native_total=native_total,
            best_price=best,
        )
        logger.debug("liquidity %s %s %s: %s", direction.value, amount, pair.currency, report)
        return report


__all__ = [
    "TradeDirection",
    "LiquidityErrorKind",
    "CurrencyPair",
    "LiquidityOptions",
    "BookSnapshot",
    "LiquidityReport",
    "LiquidityEvaluator",
    "parse_transfer_rate",
]
