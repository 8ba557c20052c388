"""Shared test fixtures.

No test talks to a cluster: the RPC client and the transaction sender are
MagicMocks with AsyncMock methods, and on-chain accounts are built as raw bytes.
"""

from __future__ import annotations

import struct
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from solders.hash import Hash  # type: ignore[import-untyped]
from solders.keypair import Keypair  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from config.settings import DEFAULT_IDL_PATH
from launchkit.launcher.idl import LauncherIdl, load_idl

LAUNCHER_STATE_DISCRIMINATOR = bytes([124, 104, 138, 93, 11, 235, 23, 195])


# ── Chain mocks ───────────────────────────────────────────────────────


@pytest.fixture
def payer() -> Keypair:
    return Keypair()


@pytest.fixture
def rpc() -> MagicMock:
    """SolanaRpc stand-in: every account exists, every tx confirms."""
    mock = MagicMock()
    mock.get_latest_blockhash = AsyncMock(return_value=Hash.default())
    mock.get_minimum_balance_for_rent_exemption = AsyncMock(return_value=2_039_280)
    mock.get_balance = AsyncMock(return_value=0)
    mock.get_token_account_balance = AsyncMock(return_value=None)
    mock.get_account_info = AsyncMock(return_value=None)
    mock.account_exists = AsyncMock(return_value=True)
    mock.send_transaction = AsyncMock(return_value="5igSignature1111111111111111111111")
    mock.get_signature_status = AsyncMock(
        return_value={"err": None, "confirmationStatus": "confirmed"}
    )
    mock.request_airdrop = AsyncMock(return_value="AirdropSig11111111111111111111111")
    return mock


@pytest.fixture
def sender(rpc: MagicMock, payer: Keypair) -> MagicMock:
    """TransactionSender stand-in that records what would have been sent."""
    mock = MagicMock()
    mock.rpc = rpc
    mock.payer = payer
    mock.send = AsyncMock(return_value="TxSig1111111111111111111111111111")
    mock.send_batch = AsyncMock(return_value=["BatchSig1", "BatchSig2"])
    return mock


# ── Account data builders ─────────────────────────────────────────────


def _borsh_string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return struct.pack("<I", len(raw)) + raw


@pytest.fixture
def market_state_data() -> Callable[..., bytes]:
    """Build a 388-byte OpenBook v3 market account."""

    def build(
        *,
        base_mint: Pubkey,
        quote_mint: Pubkey,
        own_address: Pubkey | None = None,
        vault_signer_nonce: int = 0,
        base_lot_size: int = 1_000_000,
        quote_lot_size: int = 10_000_000,
        header: bytes = b"serum",
    ) -> bytes:
        buf = bytearray(388)
        buf[0:5] = header
        buf[13:45] = bytes(own_address or Pubkey.new_unique())
        struct.pack_into("<Q", buf, 45, vault_signer_nonce)
        buf[53:85] = bytes(base_mint)
        buf[85:117] = bytes(quote_mint)
        for offset in (117, 165, 221, 253, 285, 317):
            buf[offset : offset + 32] = bytes(Pubkey.new_unique())
        struct.pack_into("<2Q", buf, 349, base_lot_size, quote_lot_size)
        return bytes(buf)

    return build


@pytest.fixture
def amm_state_data() -> Callable[..., bytes]:
    """Build a 752-byte Raydium AMM v4 pool account."""

    def build(
        *,
        keys: dict[str, Pubkey],
        nonce: int = 254,
        base_decimals: int = 6,
        quote_decimals: int = 9,
        base_need_take_pnl: int = 0,
        quote_need_take_pnl: int = 0,
        open_time: int = 1_700_000_000,
        lp_reserve: int = 0,
    ) -> bytes:
        words = [0] * 32
        words[0] = 6
        words[1] = nonce
        words[4] = base_decimals
        words[5] = quote_decimals
        words[24] = base_need_take_pnl
        words[25] = quote_need_take_pnl
        words[28] = open_time
        buf = bytearray(752)
        struct.pack_into("<32Q", buf, 0, *words)
        order = (
            "base_vault", "quote_vault", "base_mint", "quote_mint", "lp_mint", "open_orders",
            "market_id", "market_program_id", "target_orders", "withdraw_queue", "lp_vault", "owner",
        )
        for i, name in enumerate(order):
            pubkey = keys.get(name) or Pubkey.new_unique()
            buf[336 + i * 32 : 368 + i * 32] = bytes(pubkey)
        struct.pack_into("<Q", buf, 720, lp_reserve)
        return bytes(buf)

    return build


@pytest.fixture
def launcher_state_data() -> Callable[..., bytes]:
    """Build an Anchor LauncherState account (discriminator + Borsh fields)."""

    def build(
        *,
        authority: Pubkey | None = None,
        mint: Pubkey | None = None,
        token_name: str = "Demo Launcher Token",
        token_symbol: str = "DLT",
        token_decimals: int = 9,
        current_price: int = 1_000_000,
        max_supply: int = 10**18,
        total_minted: int = 0,
        sol_collected: int = 0,
        bump: int = 255,
        vault_bump: int = 254,
    ) -> bytes:
        return b"".join(
            [
                LAUNCHER_STATE_DISCRIMINATOR,
                bytes(authority or Pubkey.new_unique()),
                bytes(mint or Pubkey.new_unique()),
                _borsh_string(token_name),
                _borsh_string(token_symbol),
                struct.pack("<B", token_decimals),
                struct.pack("<4Q", current_price, max_supply, total_minted, sol_collected),
                struct.pack("<BB", bump, vault_bump),
            ]
        )

    return build


@pytest.fixture
def idl() -> LauncherIdl:
    return load_idl(DEFAULT_IDL_PATH)
