"""Thin async Solana JSON-RPC client over httpx.

Every call goes out exactly once. HTTP failures and JSON-RPC ``error`` objects
are raised as ``RpcError``; callers decide what a missing account means.
"""

from __future__ import annotations

import base64
from typing import Any

import httpx
from loguru import logger
from solders.hash import Hash  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from launchkit.exceptions import RpcError

DEFAULT_COMMITMENT = "confirmed"


class SolanaRpc:
    """JSON-RPC methods the demo flows need, nothing more."""

    def __init__(self, rpc_url: str, *, timeout: float = 30.0, http: httpx.AsyncClient | None = None) -> None:
        if not rpc_url:
            raise ValueError("RPC URL is empty")
        self._rpc_url = rpc_url
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._request_id = 0

    @property
    def url(self) -> str:
        return self._rpc_url

    async def __aenter__(self) -> SolanaRpc:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        """POST one JSON-RPC request and return its ``result``."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }
        try:
            resp = await self._http.post(self._rpc_url, json=payload)
        except httpx.HTTPError as e:
            raise RpcError(method, f"{type(e).__name__}: {e}") from e

        if resp.status_code != 200:
            raise RpcError(method, f"HTTP {resp.status_code}")

        data = resp.json()
        if "error" in data:
            error = data["error"]
            raise RpcError(method, error.get("message", str(error)), error.get("code"))

        logger.trace(f"[RPC] {method} ok")
        return data.get("result")

    # ─── Account reads ───────────────────────────────────────────────

    async def get_balance(self, pubkey: Pubkey) -> int:
        """Lamport balance of an account."""
        result = await self.call("getBalance", [str(pubkey), {"commitment": DEFAULT_COMMITMENT}])
        return int(result["value"])

    async def get_token_account_balance(self, token_account: Pubkey) -> dict | None:
        """``uiTokenAmount`` dict of a token account, None if it does not exist."""
        try:
            result = await self.call(
                "getTokenAccountBalance", [str(token_account), {"commitment": DEFAULT_COMMITMENT}]
            )
        except RpcError as e:
            if "could not find account" in str(e).lower():
                return None
            raise
        return result["value"]

    async def get_account_info(self, pubkey: Pubkey) -> bytes | None:
        """Raw account data, None if the account does not exist."""
        result = await self.call(
            "getAccountInfo",
            [str(pubkey), {"encoding": "base64", "commitment": DEFAULT_COMMITMENT}],
        )
        value = result.get("value") if result else None
        if not value:
            return None
        return base64.b64decode(value["data"][0])

    async def account_exists(self, pubkey: Pubkey) -> bool:
        return await self.get_account_info(pubkey) is not None

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        result = await self.call("getMinimumBalanceForRentExemption", [size])
        return int(result)

    # ─── Transactions ────────────────────────────────────────────────

    async def get_latest_blockhash(self) -> Hash:
        result = await self.call("getLatestBlockhash", [{"commitment": "finalized"}])
        return Hash.from_string(result["value"]["blockhash"])

    async def send_transaction(self, tx_b64: str, *, skip_preflight: bool = False) -> str:
        result = await self.call(
            "sendTransaction",
            [
                tx_b64,
                {
                    "encoding": "base64",
                    "skipPreflight": skip_preflight,
                    "preflightCommitment": DEFAULT_COMMITMENT,
                },
            ],
        )
        return str(result)

    async def get_signature_status(self, signature: str) -> dict | None:
        result = await self.call(
            "getSignatureStatuses", [[signature], {"searchTransactionHistory": True}]
        )
        statuses = (result or {}).get("value") or []
        return statuses[0] if statuses else None

    async def request_airdrop(self, pubkey: Pubkey, lamports: int) -> str:
        result = await self.call("requestAirdrop", [str(pubkey), lamports])
        return str(result)
