"""Tests for TokenLauncherClient — PDAs, instructions, state reads, estimates."""

from __future__ import annotations

import struct
from collections.abc import Callable
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from solders.keypair import Keypair  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from launchkit.exceptions import ExternalCallError, FetchError, InvalidAmount, RpcError, TransactionFailed
from launchkit.launcher.client import (
    LauncherState,
    TokenLaunchConfig,
    TokenLauncherClient,
    sol_for_tokens,
    tokens_for_sol,
)
from launchkit.launcher.idl import LauncherIdl

BUY_DISCRIMINATOR = bytes([189, 21, 230, 133, 247, 2, 110, 42])
SELL_DISCRIMINATOR = bytes([114, 242, 25, 12, 62, 126, 92, 2])


# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture
def client(sender: MagicMock, idl: LauncherIdl) -> TokenLauncherClient:
    return TokenLauncherClient(sender, idl)


def _state(price: int = 1_000_000, decimals: int = 9) -> LauncherState:
    return LauncherState(
        authority=Pubkey.new_unique(),
        mint=Pubkey.new_unique(),
        token_name="Demo Launcher Token",
        token_symbol="DLT",
        token_decimals=decimals,
        current_price=price,
        max_supply=10**18,
        total_minted=0,
        sol_collected=0,
        bump=255,
        vault_bump=254,
    )


def _sent_data(sender: MagicMock) -> bytes:
    return bytes(sender.send.await_args.args[0].instructions[0].data)


# ── Estimates ──────────────────────────────────────────────────────────


class TestEstimates:
    def test_tokens_for_sol(self):
        # 0.1 SOL at 0.001 SOL/token -> 100 tokens
        assert tokens_for_sol(100_000_000, _state()) == 100 * 10**9

    def test_tokens_for_sol_floors(self):
        assert tokens_for_sol(1, _state(price=3, decimals=0)) == 0

    def test_sell_haircut_is_exactly_ten_percent(self):
        # 50 tokens at 0.001 SOL -> 0.05 SOL gross, 0.045 SOL after haircut
        assert sol_for_tokens(50 * 10**9, _state()) == 45_000_000

    def test_sell_haircut_floors(self):
        # gross 1 lamport * 0.9 -> 0
        assert sol_for_tokens(1, _state(price=1, decimals=0)) == 0

    def test_state_display_units(self):
        state = _state()
        assert state.price_sol == Decimal("0.001")
        assert state.total_minted_ui == Decimal(0)


# ── PDAs + instructions ────────────────────────────────────────────────


class TestInstructions:
    def test_derive_addresses(self, client: TokenLauncherClient):
        mint = Pubkey.new_unique()
        state, vault = client.derive_addresses(mint)
        assert state == Pubkey.find_program_address([b"launcher", bytes(mint)], client.program_id)[0]
        assert vault == Pubkey.find_program_address([b"sol_vault", bytes(mint)], client.program_id)[0]
        assert state != vault

    async def test_initialize_signed_by_authority_and_mint(
        self, client: TokenLauncherClient, sender: MagicMock, payer: Keypair
    ):
        config = TokenLaunchConfig("Demo", "DMO", 9, 1_000_000, 10**15)
        result = await client.initialize_token_launcher(payer, config)

        pending = sender.send.await_args.args[0]
        assert [kp.pubkey() for kp in pending.signers] == [payer.pubkey(), result.mint]
        assert (result.launcher_state, result.sol_vault) == client.derive_addresses(result.mint)
        assert result.signature == sender.send.return_value

    async def test_buy_converts_sol_to_lamports(
        self, client: TokenLauncherClient, sender: MagicMock, payer: Keypair
    ):
        await client.buy_tokens(payer, Pubkey.new_unique(), Decimal("0.1"))
        assert _sent_data(sender) == BUY_DISCRIMINATOR + struct.pack("<Q", 100_000_000)

    async def test_buy_zero_rejected(self, client: TokenLauncherClient, sender: MagicMock, payer: Keypair):
        with pytest.raises(InvalidAmount):
            await client.buy_tokens(payer, Pubkey.new_unique(), 0)
        sender.send.assert_not_awaited()

    async def test_sell_uses_state_decimals(
        self,
        client: TokenLauncherClient,
        sender: MagicMock,
        rpc: MagicMock,
        payer: Keypair,
        launcher_state_data: Callable[..., bytes],
    ):
        rpc.get_account_info = AsyncMock(return_value=launcher_state_data(token_decimals=9))
        await client.sell_tokens(payer, Pubkey.new_unique(), 50)
        assert _sent_data(sender) == SELL_DISCRIMINATOR + struct.pack("<Q", 50 * 10**9)

    async def test_withdraw_amount_in_lamports(
        self, client: TokenLauncherClient, sender: MagicMock, payer: Keypair
    ):
        await client.withdraw_sol(payer, Pubkey.new_unique(), Decimal("0.05"))
        assert _sent_data(sender)[8:] == struct.pack("<Q", 50_000_000)

    async def test_program_error_named_from_idl(
        self, client: TokenLauncherClient, sender: MagicMock, payer: Keypair
    ):
        sender.send = AsyncMock(
            side_effect=TransactionFailed("Sig" * 10, "on-chain error {'InstructionError': [0, {'Custom': 6001}]}")
        )
        with pytest.raises(ExternalCallError, match="MaxSupplyExceeded"):
            await client.buy_tokens(payer, Pubkey.new_unique(), 1)

    async def test_unmapped_error_propagates_unchanged(
        self, client: TokenLauncherClient, sender: MagicMock, payer: Keypair
    ):
        sender.send = AsyncMock(side_effect=RpcError("sendTransaction", "Blockhash not found"))
        with pytest.raises(RpcError, match="Blockhash not found"):
            await client.buy_tokens(payer, Pubkey.new_unique(), 1)

    def test_program_id_override(self, sender: MagicMock, idl: LauncherIdl):
        other = Pubkey.new_unique()
        client = TokenLauncherClient(sender, idl, program_id=other)
        ix_accounts = {n: Pubkey.new_unique() for n in ("authority", "launcher_state", "mint", "sol_vault")}
        assert client.program_id == other
        assert client._idl.build_instruction("withdraw_sol", ix_accounts, {"amount": 1}).program_id == other


# ── State reads ────────────────────────────────────────────────────────


class TestState:
    async def test_get_launcher_state(
        self, client: TokenLauncherClient, rpc: MagicMock, launcher_state_data: Callable[..., bytes]
    ):
        mint = Pubkey.new_unique()
        rpc.get_account_info = AsyncMock(return_value=launcher_state_data(mint=mint, total_minted=3 * 10**9))
        state = await client.get_launcher_state(mint)
        assert state.mint == mint
        assert state.total_minted_ui == Decimal(3)
        queried = rpc.get_account_info.await_args.args[0]
        assert queried == client.derive_addresses(mint)[0]

    async def test_missing_state_raises(self, client: TokenLauncherClient):
        with pytest.raises(FetchError, match="does not exist"):
            await client.get_launcher_state(Pubkey.new_unique())

    async def test_rpc_failure_raises_fetch_error(self, client: TokenLauncherClient, rpc: MagicMock):
        rpc.get_account_info = AsyncMock(side_effect=RpcError("getAccountInfo", "timeout"))
        with pytest.raises(FetchError):
            await client.get_launcher_state(Pubkey.new_unique())

    async def test_truncated_state_raises_fetch_error(
        self, client: TokenLauncherClient, rpc: MagicMock, launcher_state_data: Callable[..., bytes]
    ):
        rpc.get_account_info = AsyncMock(return_value=launcher_state_data()[:80])
        with pytest.raises(FetchError, match="decode"):
            await client.get_launcher_state(Pubkey.new_unique())

    async def test_calculate_amounts_from_fresh_state(
        self, client: TokenLauncherClient, rpc: MagicMock, launcher_state_data: Callable[..., bytes]
    ):
        rpc.get_account_info = AsyncMock(return_value=launcher_state_data(current_price=1_000_000))
        mint = Pubkey.new_unique()
        assert await client.calculate_token_amount(mint, 100_000_000) == 100 * 10**9
        assert await client.calculate_sol_amount(mint, 50 * 10**9) == 45_000_000
        assert rpc.get_account_info.await_count == 2
