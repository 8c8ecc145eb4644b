"""Build XRP/IOU book levels directly from XRPL book_offers payloads.

A level is one offer seen from the taker: how much of the issued currency it
moves (`quantity`) against how much XRP (`native`). Levels are kept as exact
(quantity, native) pairs; the price is derived on demand, never stored, so no
rounding drift enters the depth walk.

Funded amounts (`taker_gets_funded` / `taker_pays_funded`) replace the nominal
ones when present, and offers whose owner has no funds left are skipped.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Tuple

from .core.amounts import same_currency
from .core.constants import NATIVE_CURRENCY, XRP_QUANTUM

XRP = NATIVE_CURRENCY


@dataclass(frozen=True)
class BookLevel:
    """One offer as a (quantity of issued currency, XRP) pair."""

    quantity: Decimal
    native: Decimal
    source_id: Optional[str] = None

    @property
    def price(self) -> Decimal:
        """XRP per unit of the issued currency."""
        return self.native / self.quantity


def _parse_offer_amount(a: Any) -> Tuple[str, Decimal]:
    if isinstance(a, str):
        return XRP, Decimal(a) * XRP_QUANTUM
    if isinstance(a, dict):
        return str(a.get("currency")), Decimal(str(a.get("value")))
    raise ValueError(f"Unsupported amount payload: {a!r}")


def _book_offer_id(o: dict[str, Any]) -> str:
    if o.get("index"):
        return str(o.get("index"))
    if o.get("Account") is not None and o.get("Sequence") is not None:
        return f"{o.get('Account')}:{o.get('Sequence')}"
    return "unknown-offer-id"


def _is_issued(cur: str, issued_currency: str) -> bool:
    return cur != XRP and same_currency(cur, issued_currency)


def build_book_levels(
    offers: Iterable[dict[str, Any]],
    issued_currency: str,
    *,
    taker_gets_issued: bool,
    transfer_rate: Decimal = Decimal("1"),
) -> List[BookLevel]:
    """Convert direction-aligned offers to levels, best price for the taker first.

    - taker_gets_issued=True: offers sell the issued currency for XRP (the taker
      buys it); cheapest XRP-per-unit first.
    - taker_gets_issued=False: offers buy the issued currency with XRP (the
      taker sells it); the issuer's transfer rate grosses up the quantity the
      taker must deliver; highest XRP-per-unit first.
    """
    out: List[BookLevel] = []
    for o in offers:
        gets_cur, gets_val = _parse_offer_amount(o.get("TakerGets"))
        pays_cur, pays_val = _parse_offer_amount(o.get("TakerPays"))

        if "taker_gets_funded" in o:
            fg_cur, fg_val = _parse_offer_amount(o.get("taker_gets_funded"))
            if fg_cur == gets_cur:
                gets_val = fg_val
        if "taker_pays_funded" in o:
            fp_cur, fp_val = _parse_offer_amount(o.get("taker_pays_funded"))
            if fp_cur == pays_cur:
                pays_val = fp_val

        if "owner_funds" in o and Decimal(str(o.get("owner_funds"))) <= 0:
            continue

        if taker_gets_issued and _is_issued(gets_cur, issued_currency) and pays_cur == XRP:
            quantity, native = gets_val, pays_val
        elif not taker_gets_issued and gets_cur == XRP and _is_issued(pays_cur, issued_currency):
            quantity, native = pays_val * transfer_rate, gets_val
        else:
            continue
        if quantity <= 0 or native <= 0:
            continue

        out.append(BookLevel(quantity=quantity, native=native, source_id=_book_offer_id(o)))

    # Stable sort by price; equal-price rows preserve input (ledger) order.
    out.sort(key=lambda lvl: lvl.price, reverse=not taker_gets_issued)
    return out


__all__ = ["BookLevel", "build_book_levels"]
