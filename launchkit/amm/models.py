from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from solders.pubkey import Pubkey  # type: ignore[import-untyped]


@dataclass(frozen=True)
class MarketInfo:
    """OpenBook market created by this run."""

    market_id: Pubkey
    base_mint: Pubkey
    quote_mint: Pubkey
    base_vault: Pubkey
    quote_vault: Pubkey
    request_queue: Pubkey
    event_queue: Pubkey
    bids: Pubkey
    asks: Pubkey
    vault_signer: Pubkey
    vault_signer_nonce: int
    base_lot_size: int
    quote_lot_size: int
    signatures: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PoolKeys:
    """Every account a Raydium AMM v4 instruction can touch."""

    id: Pubkey
    base_mint: Pubkey
    quote_mint: Pubkey
    lp_mint: Pubkey
    base_decimals: int
    quote_decimals: int
    lp_decimals: int
    program_id: Pubkey
    authority: Pubkey
    nonce: int
    open_orders: Pubkey
    target_orders: Pubkey
    base_vault: Pubkey
    quote_vault: Pubkey
    withdraw_queue: Pubkey
    lp_vault: Pubkey
    config_id: Pubkey
    market_program_id: Pubkey
    market_id: Pubkey
    market_authority: Pubkey
    market_base_vault: Pubkey
    market_quote_vault: Pubkey
    market_bids: Pubkey
    market_asks: Pubkey
    market_event_queue: Pubkey


@dataclass(frozen=True)
class PoolCreationResult:
    pool_keys: PoolKeys
    signatures: list[str]


@dataclass(frozen=True)
class PoolInfo:
    """Live reserves of one pool, in base units."""

    pool_id: Pubkey
    base_mint: Pubkey
    quote_mint: Pubkey
    base_decimals: int
    quote_decimals: int
    base_reserve: int
    quote_reserve: int
    lp_mint: Pubkey
    lp_supply: int
    open_time: int

    @property
    def base_reserve_ui(self) -> Decimal:
        return Decimal(self.base_reserve) / (Decimal(10) ** self.base_decimals)

    @property
    def quote_reserve_ui(self) -> Decimal:
        return Decimal(self.quote_reserve) / (Decimal(10) ** self.quote_decimals)


@dataclass(frozen=True)
class SwapQuote:
    amount_in: int
    amount_out: int
    min_amount_out: int
    price_impact_pct: float


@dataclass(frozen=True)
class SwapResult:
    """Result of a confirmed swap. ``amount_out`` is in the output mint's units."""

    signatures: list[str]
    input_mint: Pubkey
    output_mint: Pubkey
    amount_in: Decimal
    amount_out: Decimal
    min_amount_out: Decimal


@dataclass(frozen=True)
class LiquidityResult:
    signatures: list[str]
    base_amount: int = 0
    quote_amount: int = 0
    lp_amount: int = 0
