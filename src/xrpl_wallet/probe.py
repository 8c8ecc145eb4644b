"""Liquidity probe: quote an XRP <-> IOU conversion against a live rippled.

  python -m xrpl_wallet.probe --currency USD --issuer rhub8VRN55s94qWKDv6jmDy1pUykJzF3wq 10 25 100

Uses the same LiquidityEvaluator the controller runs before signing, so the
printed rates are the ones a payment would be built with.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import replace
from typing import List, Optional, Sequence

from .config import Settings
from .core.fmt import fixed
from .exchange import CurrencyPair, LiquidityEvaluator, LiquidityOptions, LiquidityReport, TradeDirection
from .ledger import JsonRpcLedgerService
from .logging_utils import setup_logging

# ---------- pretty printers ----------


def format_report(currency: str, report: LiquidityReport) -> str:
    status = "safe" if report.safe else "UNSAFE (" + ", ".join(e.value for e in report.errors) + ")"
    if report.filled == 0:
        return f"{report.direction.value} {report.amount} {currency}: no fill, {status}"
    return (
        f"{report.direction.value} {report.amount} {currency}: "
        f"filled={report.filled}, XRP={fixed(report.native_total, 6)}, "
        f"rate={fixed(report.rate)} XRP/{currency}, "
        f"exchange_rate={fixed(report.exchange_rate)} {currency}/XRP, {status}"
    )


async def run_probe(
    settings: Settings,
    pair: CurrencyPair,
    direction: TradeDirection,
    sizes: Sequence[str],
) -> List[LiquidityReport]:
    ledger = JsonRpcLedgerService(settings.rpc_url, timeout=settings.rpc_timeout)
    evaluator = LiquidityEvaluator(ledger, LiquidityOptions.from_settings(settings))
    snap = await evaluator.initialize(pair)
    print(
        f"book {pair.currency}/{pair.issuer}: asks={len(snap.asks)} (best {snap.best_ask}), "
        f"bids={len(snap.bids)} (best {snap.best_bid}), transfer_rate={snap.transfer_rate}"
    )
    return [evaluator.evaluate(pair, direction, size) for size in sizes]


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    ap.add_argument("sizes", nargs="+", help="Issued-currency amounts to quote")
    ap.add_argument("--currency", required=True)
    ap.add_argument("--issuer", required=True)
    ap.add_argument("--direction", choices=[d.value for d in TradeDirection], default="buy")
    ap.add_argument("--rpc", default=None, help="Overrides XRPL_RPC_URL")
    args = ap.parse_args(argv)

    settings = Settings.from_env()
    if args.rpc:
        settings = replace(settings, rpc_url=args.rpc)
    setup_logging(settings.log_level)

    pair = CurrencyPair(args.currency, args.issuer)
    reports = asyncio.run(run_probe(settings, pair, TradeDirection(args.direction), args.sizes))
    for report in reports:
        print(format_report(pair.currency, report))
    return 0 if all(r.safe for r in reports) else 1


if __name__ == "__main__":
    sys.exit(main())
