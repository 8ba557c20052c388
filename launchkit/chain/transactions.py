"""Transaction building, signing, sending and confirmation.

Pipeline per transaction:
  1. Fetch a fresh blockhash
  2. Compile a v0 (default) or legacy message
  3. Sign with the payer plus any extra signers (new accounts, co-signers)
  4. sendTransaction (base64, preflight on)
  5. Poll getSignatureStatuses until confirmed, on-chain error, or timeout

A batch is an ordered list of transactions where member N+1 is only sent
after member N is confirmed. A failed member stops the batch; earlier members
stay on chain.
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Sequence
from dataclasses import dataclass, field

from loguru import logger
from solders.hash import Hash  # type: ignore[import-untyped]
from solders.instruction import Instruction  # type: ignore[import-untyped]
from solders.keypair import Keypair  # type: ignore[import-untyped]
from solders.message import Message, MessageV0  # type: ignore[import-untyped]
from solders.transaction import Transaction, VersionedTransaction  # type: ignore[import-untyped]

from launchkit.chain.rpc import SolanaRpc
from launchkit.exceptions import TransactionFailed

CONFIRM_POLL_INTERVAL = 2.0  # seconds
CONFIRM_TIMEOUT = 60.0  # seconds


@dataclass
class PendingTransaction:
    """Instructions for one transaction plus the signers beyond the fee payer."""

    instructions: list[Instruction]
    signers: list[Keypair] = field(default_factory=list)
    label: str = "tx"
    legacy: bool = False


def _unique_signers(payer: Keypair, signers: Sequence[Keypair]) -> list[Keypair]:
    seen = {payer.pubkey()}
    out = [payer]
    for kp in signers:
        if kp.pubkey() not in seen:
            seen.add(kp.pubkey())
            out.append(kp)
    return out


def build_transaction(
    instructions: Sequence[Instruction],
    payer: Keypair,
    blockhash: Hash,
    signers: Sequence[Keypair] = (),
    *,
    legacy: bool = False,
) -> VersionedTransaction | Transaction:
    """Compile and sign. Signer order does not matter, duplicates are dropped."""
    keypairs = _unique_signers(payer, signers)
    if legacy:
        msg = Message.new_with_blockhash(list(instructions), payer.pubkey(), blockhash)
        return Transaction(keypairs, msg, blockhash)

    msg = MessageV0.try_compile(
        payer=payer.pubkey(),
        instructions=list(instructions),
        address_lookup_table_accounts=[],
        recent_blockhash=blockhash,
    )
    return VersionedTransaction(msg, keypairs)


class TransactionSender:
    """Sends transactions for one fee payer and waits for each to land."""

    def __init__(
        self,
        rpc: SolanaRpc,
        payer: Keypair,
        *,
        confirm_timeout: float = CONFIRM_TIMEOUT,
        poll_interval: float = CONFIRM_POLL_INTERVAL,
    ) -> None:
        self._rpc = rpc
        self._payer = payer
        self._confirm_timeout = confirm_timeout
        self._poll_interval = poll_interval

    @property
    def payer(self) -> Keypair:
        return self._payer

    @property
    def rpc(self) -> SolanaRpc:
        return self._rpc

    async def send(self, pending: PendingTransaction) -> str:
        """Build with a fresh blockhash, send, confirm. Returns the signature."""
        blockhash = await self._rpc.get_latest_blockhash()
        tx = build_transaction(
            pending.instructions,
            self._payer,
            blockhash,
            pending.signers,
            legacy=pending.legacy,
        )
        logger.debug(
            f"[TX] {pending.label}: {len(pending.instructions)} instructions, "
            f"{'legacy' if pending.legacy else 'v0'}, blockhash={str(blockhash)[:16]}..."
        )
        return await self.send_signed(tx, label=pending.label)

    async def send_signed(self, tx: VersionedTransaction | Transaction, *, label: str = "tx") -> str:
        tx_b64 = base64.b64encode(bytes(tx)).decode("ascii")
        signature = await self._rpc.send_transaction(tx_b64)
        logger.info(f"[TX] {label} sent: {signature}")
        await self.wait_for_confirmation(signature)
        return signature

    async def send_batch(self, batch: Sequence[PendingTransaction]) -> list[str]:
        """Send members in order, each confirmed before the next goes out."""
        signatures: list[str] = []
        for index, pending in enumerate(batch, start=1):
            logger.info(f"[TX] Batch member {index}/{len(batch)}: {pending.label}")
            signatures.append(await self.send(pending))
        return signatures

    async def wait_for_confirmation(self, signature: str) -> None:
        """Poll until confirmed/finalized. On-chain ``err`` or timeout raises."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._confirm_timeout
        while True:
            status = await self._rpc.get_signature_status(signature)
            if status is not None:
                err = status.get("err")
                if err:
                    logger.warning(f"[TX] {signature[:16]} error on-chain: {err}")
                    raise TransactionFailed(signature, f"on-chain error {err}")
                confirmation = status.get("confirmationStatus", "")
                if confirmation in ("confirmed", "finalized"):
                    logger.debug(f"[TX] {signature[:16]} {confirmation}")
                    return

            if loop.time() >= deadline:
                raise TransactionFailed(
                    signature, f"not confirmed within {self._confirm_timeout:.0f}s"
                )
            await asyncio.sleep(self._poll_interval)
