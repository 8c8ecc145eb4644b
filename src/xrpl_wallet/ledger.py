"""
External collaborators: the ledger service and the signer.

The core never talks to the network directly; the controller and the exchange
evaluator receive a LedgerService (and the controller a Signer) as explicit
arguments so tests can pass fakes.

`JsonRpcLedgerService` is the production adapter over rippled JSON-RPC. It is
blocking `requests` code run in a worker thread so the async controller stays
responsive; any failure to obtain a response is raised as TransportError.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .core.exc import TransportError

logger = logging.getLogger(__name__)

#: Engine results that mean "accepted for inclusion" on submit.
ACCEPTED_ENGINE_RESULTS = frozenset({"tesSUCCESS", "terQUEUED"})


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of handing a signed blob to the ledger."""

    success: bool
    engine_result: Optional[str] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of one validation poll.

    - validated=False: not (yet) in a validated ledger; keep polling.
    - validated=True, success=True: final and applied.
    - validated=True, success=False: final but failed (`engine_result` says why).
    """

    success: bool
    validated: bool = True
    engine_result: Optional[str] = None
    ledger_index: Optional[int] = None


class LedgerService:
    """Abstract ledger collaborator (all methods are coroutines).

    Implementations raise TransportError when no response was obtained; any
    response, including a ledger-side refusal, is returned as data.
    """

    async def get_account_lines(self, address: str) -> Dict[str, Any]:
        """-> {'lines': [{'currency', 'account', 'balance', ...}, ...]}"""
        raise NotImplementedError

    async def get_account_info(self, address: str) -> Dict[str, Any]:
        """-> {'account_data': {'Flags', 'TransferRate'?, ...}}"""
        raise NotImplementedError

    async def get_ledger_entry(self, entry_id: str) -> Dict[str, Any]:
        """-> {'node': <raw ledger object>} (no 'node' when not found)"""
        raise NotImplementedError

    async def get_book_offers(
        self,
        taker_gets: Dict[str, Any],
        taker_pays: Dict[str, Any],
        limit: int = 50,
    ) -> Dict[str, Any]:
        """-> {'offers': [<offer>, ...]} best quality first"""
        raise NotImplementedError

    async def submit(self, tx_blob: str) -> SubmitResult:
        raise NotImplementedError

    async def validate(self, tx_hash: str) -> ValidationResult:
        raise NotImplementedError


class Signer:
    """External signing capability: sign(payload, key_material) -> signature bytes."""

    async def sign(self, payload: bytes, key_material: Any) -> bytes:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# rippled JSON-RPC adapter
# ---------------------------------------------------------------------------

class JsonRpcLedgerService(LedgerService):
    """LedgerService over rippled JSON-RPC (`requests`, run off the event loop)."""

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout: float = 20.0,
        session: Optional[requests.Session] = None,
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def rpc_call(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Blocking JSON-RPC call; returns the 'result' object (not the envelope)."""
        payload = {"method": method, "params": [params]}
        try:
            r = self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
            r.raise_for_status()
            out = r.json()
        except (requests.RequestException, ValueError) as e:
            raise TransportError(f"{method}: {e}") from e

        if "result" not in out:
            raise TransportError(f"{method}: bad RPC response (no 'result'): {json.dumps(out)[:200]}")
        return out["result"]

    async def _call(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug("rpc %s %s", method, params)
        return await asyncio.to_thread(self.rpc_call, method, params)

    async def get_account_lines(self, address: str) -> Dict[str, Any]:
        return await self._call("account_lines", {"account": address, "ledger_index": "validated"})

    async def get_account_info(self, address: str) -> Dict[str, Any]:
        return await self._call("account_info", {"account": address, "ledger_index": "validated"})

    async def get_ledger_entry(self, entry_id: str) -> Dict[str, Any]:
        return await self._call("ledger_entry", {"index": entry_id, "ledger_index": "validated"})

    async def get_book_offers(self, taker_gets, taker_pays, limit=50):
        return await self._call(
            "book_offers",
            {"taker_gets": taker_gets, "taker_pays": taker_pays, "limit": limit, "ledger_index": "validated"},
        )

    async def submit(self, tx_blob: str) -> SubmitResult:
        res = await self._call("submit", {"tx_blob": tx_blob})
        engine_result = res.get("engine_result") or res.get("error")
        return SubmitResult(
            success=engine_result in ACCEPTED_ENGINE_RESULTS,
            engine_result=engine_result,
            message=res.get("engine_result_message") or res.get("error_message"),
        )

    async def validate(self, tx_hash: str) -> ValidationResult:
        res = await self._call("tx", {"transaction": tx_hash})
        if res.get("error") == "txnNotFound" or not res.get("validated"):
            return ValidationResult(success=False, validated=False)
        engine_result = (res.get("meta") or {}).get("TransactionResult")
        return ValidationResult(
            success=engine_result == "tesSUCCESS",
            validated=True,
            engine_result=engine_result,
            ledger_index=res.get("ledger_index"),
        )


__all__ = [
    "ACCEPTED_ENGINE_RESULTS",
    "SubmitResult",
    "ValidationResult",
    "LedgerService",
    "Signer",
    "JsonRpcLedgerService",
]
