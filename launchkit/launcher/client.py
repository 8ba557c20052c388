"""Bonding-curve token launcher client.

PDAs (per mint):
  launcher_state = ["launcher", mint]
  sol_vault      = ["sol_vault", mint]

Pricing lives entirely in the on-chain program. The ``calculate_*`` helpers
only estimate from a fresh state snapshot; the sell-side 10% haircut mirrors
what the program applied when this client was written and is advisory.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal

from loguru import logger
from solders.keypair import Keypair  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]
from spl.token.instructions import get_associated_token_address

from launchkit.chain.constants import LAMPORTS_PER_SOL, SOL_DECIMALS
from launchkit.chain.transactions import PendingTransaction, TransactionSender
from launchkit.exceptions import ExternalCallError, FetchError, InvalidAmount
from launchkit.launcher.idl import LAUNCHER_STATE, LauncherIdl
from launchkit.token.operations import to_base_units

SELL_HAIRCUT = Decimal("0.9")


@dataclass(frozen=True)
class TokenLaunchConfig:
    token_name: str
    token_symbol: str
    token_decimals: int
    initial_price: int  # lamports per whole token
    max_supply: int  # base units


@dataclass(frozen=True)
class LauncherState:
    """Read-only mirror of the on-chain LauncherState account."""

    authority: Pubkey
    mint: Pubkey
    token_name: str
    token_symbol: str
    token_decimals: int
    current_price: int
    max_supply: int
    total_minted: int
    sol_collected: int
    bump: int
    vault_bump: int

    @property
    def price_sol(self) -> Decimal:
        return Decimal(self.current_price) / LAMPORTS_PER_SOL

    @property
    def total_minted_ui(self) -> Decimal:
        return Decimal(self.total_minted) / (Decimal(10) ** self.token_decimals)


@dataclass(frozen=True)
class LauncherInitResult:
    mint: Pubkey
    launcher_state: Pubkey
    sol_vault: Pubkey
    signature: str


def tokens_for_sol(lamports: int, state: LauncherState) -> int:
    """floor(lamports * 10^decimals / price), in token base units."""
    return lamports * 10**state.token_decimals // state.current_price


def sol_for_tokens(token_units: int, state: LauncherState) -> int:
    """floor(tokens * price / 10^decimals * 0.9), in lamports."""
    gross = Decimal(token_units) * state.current_price / (Decimal(10) ** state.token_decimals)
    return math.floor(gross * SELL_HAIRCUT)


class TokenLauncherClient:
    """Typed wrapper over the launcher program's four instructions and its state account."""

    def __init__(self, sender: TransactionSender, idl: LauncherIdl, program_id: Pubkey | None = None) -> None:
        self._sender = sender
        self._rpc = sender.rpc
        self._idl = idl
        self._program_id = program_id or idl.program_id
        if self._program_id != idl.program_id:
            logger.info(f"[LAUNCHER] Overriding IDL program id with {self._program_id}")
            self._idl = idl.with_program_id(self._program_id)

    @property
    def program_id(self) -> Pubkey:
        return self._program_id

    def derive_addresses(self, mint: Pubkey) -> tuple[Pubkey, Pubkey]:
        """(launcher_state, sol_vault) for a mint."""
        launcher_state, _ = Pubkey.find_program_address([b"launcher", bytes(mint)], self._program_id)
        sol_vault, _ = Pubkey.find_program_address([b"sol_vault", bytes(mint)], self._program_id)
        return launcher_state, sol_vault

    async def _send(self, pending: PendingTransaction) -> str:
        try:
            return await self._sender.send(pending)
        except ExternalCallError as e:
            described = self._idl.describe_error(str(e))
            if described is None:
                raise
            raise ExternalCallError(f"{pending.label}: {described}") from e

    async def initialize_token_launcher(
        self, authority: Keypair, config: TokenLaunchConfig
    ) -> LauncherInitResult:
        mint = Keypair()
        launcher_state, sol_vault = self.derive_addresses(mint.pubkey())
        ix = self._idl.build_instruction(
            "initialize_token_launcher",
            accounts={
                "authority": authority.pubkey(),
                "launcher_state": launcher_state,
                "mint": mint.pubkey(),
                "sol_vault": sol_vault,
            },
            args={
                "token_name": config.token_name,
                "token_symbol": config.token_symbol,
                "token_decimals": config.token_decimals,
                "initial_price": config.initial_price,
                "max_supply": config.max_supply,
            },
        )
        logger.info(
            f"[LAUNCHER] Initializing {config.token_name} ({config.token_symbol}) "
            f"mint={mint.pubkey()} price={config.initial_price} lamports"
        )
        signature = await self._send(
            PendingTransaction([ix], signers=[authority, mint], label="initialize launcher")
        )
        return LauncherInitResult(
            mint=mint.pubkey(),
            launcher_state=launcher_state,
            sol_vault=sol_vault,
            signature=signature,
        )

    async def buy_tokens(self, buyer: Keypair, mint: Pubkey, sol_amount: Decimal | float) -> str:
        lamports = to_base_units(sol_amount, SOL_DECIMALS)
        if lamports <= 0:
            raise InvalidAmount(f"Buy amount must be positive, got {sol_amount} SOL")
        launcher_state, sol_vault = self.derive_addresses(mint)
        ix = self._idl.build_instruction(
            "buy_tokens",
            accounts={
                "buyer": buyer.pubkey(),
                "launcher_state": launcher_state,
                "mint": mint,
                "buyer_token_account": get_associated_token_address(buyer.pubkey(), mint),
                "sol_vault": sol_vault,
            },
            args={"sol_amount": lamports},
        )
        logger.info(f"[LAUNCHER] Buying with {sol_amount} SOL ({lamports} lamports) on {mint}")
        return await self._send(PendingTransaction([ix], signers=[buyer], label="buy tokens"))

    async def sell_tokens(self, seller: Keypair, mint: Pubkey, token_amount: Decimal | float) -> str:
        state = await self.get_launcher_state(mint)
        token_units = to_base_units(token_amount, state.token_decimals)
        if token_units <= 0:
            raise InvalidAmount(f"Sell amount must be positive, got {token_amount}")
        launcher_state, sol_vault = self.derive_addresses(mint)
        ix = self._idl.build_instruction(
            "sell_tokens",
            accounts={
                "seller": seller.pubkey(),
                "launcher_state": launcher_state,
                "mint": mint,
                "seller_token_account": get_associated_token_address(seller.pubkey(), mint),
                "sol_vault": sol_vault,
            },
            args={"token_amount": token_units},
        )
        logger.info(f"[LAUNCHER] Selling {token_amount} tokens on {mint}")
        return await self._send(PendingTransaction([ix], signers=[seller], label="sell tokens"))

    async def withdraw_sol(self, authority: Keypair, mint: Pubkey, amount: Decimal | float) -> str:
        lamports = to_base_units(amount, SOL_DECIMALS)
        if lamports <= 0:
            raise InvalidAmount(f"Withdraw amount must be positive, got {amount} SOL")
        launcher_state, sol_vault = self.derive_addresses(mint)
        ix = self._idl.build_instruction(
            "withdraw_sol",
            accounts={
                "authority": authority.pubkey(),
                "launcher_state": launcher_state,
                "mint": mint,
                "sol_vault": sol_vault,
            },
            args={"amount": lamports},
        )
        logger.info(f"[LAUNCHER] Withdrawing {amount} SOL from {sol_vault}")
        return await self._send(PendingTransaction([ix], signers=[authority], label="withdraw sol"))

    async def get_launcher_state(self, mint: Pubkey) -> LauncherState:
        launcher_state, _ = self.derive_addresses(mint)
        try:
            data = await self._rpc.get_account_info(launcher_state)
        except ExternalCallError as e:
            raise FetchError(f"Failed to fetch launcher state {launcher_state}: {e}") from e
        if data is None:
            raise FetchError(f"Launcher state {launcher_state} does not exist")
        try:
            values = self._idl.decode_account(LAUNCHER_STATE, data)
            return LauncherState(**values)
        except (ValueError, TypeError) as e:
            raise FetchError(f"Failed to decode launcher state {launcher_state}: {e}") from e

    async def calculate_token_amount(self, mint: Pubkey, sol_amount: int) -> int:
        """Estimated token base units bought with ``sol_amount`` lamports."""
        return tokens_for_sol(sol_amount, await self.get_launcher_state(mint))

    async def calculate_sol_amount(self, mint: Pubkey, token_amount: int) -> int:
        """Estimated lamports returned for ``token_amount`` base units (advisory)."""
        return sol_for_tokens(token_amount, await self.get_launcher_state(mint))
