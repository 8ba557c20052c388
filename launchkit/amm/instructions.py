"""Raydium AMM v4 and OpenBook instruction builders, plus their PDA derivations.

Instruction data layouts (little-endian):
  OpenBook InitializeMarket  u8 version(0) u32 tag(0) u64 base_lot u64 quote_lot
                             u16 fee_rate_bps u64 vault_signer_nonce u64 quote_dust
  Raydium initialize2 (1)    u8 nonce u64 open_time u64 init_pc u64 init_coin
  Raydium deposit (3)        u64 max_coin u64 max_pc u64 base_side
  Raydium withdraw (4)       u64 lp_amount
  Raydium swap_base_in (9)   u64 amount_in u64 minimum_amount_out
"""

from __future__ import annotations

import hashlib
import struct

from solders.instruction import AccountMeta, Instruction  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from launchkit.amm.layouts import MarketState
from launchkit.amm.models import PoolKeys
from launchkit.chain.constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    RENT,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    ProgramIds,
)

# Account sizes for OpenBook market creation (queues carry a 12-byte header/footer)
MARKET_ACCOUNT_SIZE = 388
REQUEST_QUEUE_SIZE = 5120 + 12
EVENT_QUEUE_SIZE = 262144 + 12
ORDERBOOK_SIZE = 65536 + 12

DEFAULT_QUOTE_DUST_THRESHOLD = 100
MAX_VAULT_SIGNER_NONCE = 255

_PDA_MARKER = b"ProgramDerivedAddress"

# Raydium "associated" pool account seeds, derived from (program, market)
POOL_SEEDS = {
    "id": b"amm_associated_seed",
    "lp_mint": b"lp_mint_associated_seed",
    "base_vault": b"coin_vault_associated_seed",
    "quote_vault": b"pc_vault_associated_seed",
    "open_orders": b"open_order_associated_seed",
    "target_orders": b"target_associated_seed",
    "withdraw_queue": b"withdraw_associated_seed",
    "lp_vault": b"temp_lp_token_associated_seed",
}


def _meta(pubkey: Pubkey, *, writable: bool = False, signer: bool = False) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=signer, is_writable=writable)


# ─── OpenBook ─────────────────────────────────────────────────────


def _vault_signer(market_id: Pubkey, nonce: int, program_id: Pubkey) -> Pubkey | None:
    """[market, nonce] program address, or None when the hash lands on the ed25519 curve."""
    nonce_bytes = struct.pack("<Q", nonce)
    candidate = Pubkey.from_bytes(
        hashlib.sha256(bytes(market_id) + nonce_bytes + bytes(program_id) + _PDA_MARKER).digest()
    )
    return None if candidate.is_on_curve() else candidate


def find_vault_signer_nonce(market_id: Pubkey, program_id: Pubkey) -> tuple[Pubkey, int]:
    """First nonce whose [market, nonce] hash lands off the ed25519 curve."""
    for nonce in range(MAX_VAULT_SIGNER_NONCE + 1):
        signer = _vault_signer(market_id, nonce, program_id)
        if signer is not None:
            return signer, nonce
    raise ValueError(f"No vault signer nonce found for market {market_id}")


def market_authority(market_id: Pubkey, nonce: int, program_id: Pubkey) -> Pubkey:
    signer = _vault_signer(market_id, nonce, program_id)
    if signer is None:
        raise ValueError(f"Vault signer nonce {nonce} is not valid for market {market_id}")
    return signer


def initialize_market_instruction(
    *,
    program_id: Pubkey,
    market: Pubkey,
    request_queue: Pubkey,
    event_queue: Pubkey,
    bids: Pubkey,
    asks: Pubkey,
    base_vault: Pubkey,
    quote_vault: Pubkey,
    base_mint: Pubkey,
    quote_mint: Pubkey,
    base_lot_size: int,
    quote_lot_size: int,
    vault_signer_nonce: int,
    fee_rate_bps: int = 0,
    quote_dust_threshold: int = DEFAULT_QUOTE_DUST_THRESHOLD,
) -> Instruction:
    data = struct.pack(
        "<BIQQHQQ",
        0,
        0,
        base_lot_size,
        quote_lot_size,
        fee_rate_bps,
        vault_signer_nonce,
        quote_dust_threshold,
    )
    accounts = [
        _meta(market, writable=True),
        _meta(request_queue, writable=True),
        _meta(event_queue, writable=True),
        _meta(bids, writable=True),
        _meta(asks, writable=True),
        _meta(base_vault, writable=True),
        _meta(quote_vault, writable=True),
        _meta(base_mint),
        _meta(quote_mint),
        _meta(RENT),
    ]
    return Instruction(program_id, data, accounts)


# ─── Raydium AMM v4 ───────────────────────────────────────────────


def derive_pool_keys(
    programs: ProgramIds,
    market_id: Pubkey,
    market: MarketState,
    *,
    base_decimals: int,
    quote_decimals: int,
) -> PoolKeys:
    """Associated pool accounts for a market, as Raydium derives them on initialize2."""
    program_id = programs.amm_program
    addresses = {
        name: Pubkey.find_program_address([bytes(program_id), bytes(market_id), seed], program_id)[0]
        for name, seed in POOL_SEEDS.items()
    }
    authority, nonce = Pubkey.find_program_address([b"amm authority"], program_id)
    config_id, _ = Pubkey.find_program_address([b"amm_config_account_seed"], program_id)

    return PoolKeys(
        id=addresses["id"],
        base_mint=market.base_mint,
        quote_mint=market.quote_mint,
        lp_mint=addresses["lp_mint"],
        base_decimals=base_decimals,
        quote_decimals=quote_decimals,
        lp_decimals=base_decimals,
        program_id=program_id,
        authority=authority,
        nonce=nonce,
        open_orders=addresses["open_orders"],
        target_orders=addresses["target_orders"],
        base_vault=addresses["base_vault"],
        quote_vault=addresses["quote_vault"],
        withdraw_queue=addresses["withdraw_queue"],
        lp_vault=addresses["lp_vault"],
        config_id=config_id,
        market_program_id=programs.openbook_program,
        market_id=market_id,
        market_authority=market_authority(
            market_id, market.vault_signer_nonce, programs.openbook_program
        ),
        market_base_vault=market.base_vault,
        market_quote_vault=market.quote_vault,
        market_bids=market.bids,
        market_asks=market.asks,
        market_event_queue=market.event_queue,
    )


def initialize2_instruction(
    keys: PoolKeys,
    *,
    fee_destination: Pubkey,
    owner: Pubkey,
    owner_base_account: Pubkey,
    owner_quote_account: Pubkey,
    owner_lp_account: Pubkey,
    base_amount: int,
    quote_amount: int,
    open_time: int = 0,
) -> Instruction:
    data = struct.pack("<BBQQQ", 1, keys.nonce, open_time, quote_amount, base_amount)
    accounts = [
        _meta(TOKEN_PROGRAM_ID),
        _meta(ASSOCIATED_TOKEN_PROGRAM_ID),
        _meta(SYSTEM_PROGRAM_ID),
        _meta(RENT),
        _meta(keys.id, writable=True),
        _meta(keys.authority),
        _meta(keys.open_orders, writable=True),
        _meta(keys.lp_mint, writable=True),
        _meta(keys.base_mint),
        _meta(keys.quote_mint),
        _meta(keys.base_vault, writable=True),
        _meta(keys.quote_vault, writable=True),
        _meta(keys.target_orders, writable=True),
        _meta(keys.config_id),
        _meta(fee_destination, writable=True),
        _meta(keys.market_program_id),
        _meta(keys.market_id, writable=True),
        _meta(owner, writable=True, signer=True),
        _meta(owner_base_account, writable=True),
        _meta(owner_quote_account, writable=True),
        _meta(owner_lp_account, writable=True),
    ]
    return Instruction(keys.program_id, data, accounts)


def deposit_instruction(
    keys: PoolKeys,
    *,
    owner: Pubkey,
    owner_base_account: Pubkey,
    owner_quote_account: Pubkey,
    owner_lp_account: Pubkey,
    max_base_amount: int,
    max_quote_amount: int,
    base_side: int = 0,
) -> Instruction:
    """``base_side`` 0 pins the base amount, 1 pins the quote amount."""
    data = struct.pack("<BQQQ", 3, max_base_amount, max_quote_amount, base_side)
    accounts = [
        _meta(TOKEN_PROGRAM_ID),
        _meta(keys.id, writable=True),
        _meta(keys.authority),
        _meta(keys.open_orders),
        _meta(keys.target_orders, writable=True),
        _meta(keys.lp_mint, writable=True),
        _meta(keys.base_vault, writable=True),
        _meta(keys.quote_vault, writable=True),
        _meta(keys.market_id),
        _meta(owner_base_account, writable=True),
        _meta(owner_quote_account, writable=True),
        _meta(owner_lp_account, writable=True),
        _meta(owner, signer=True),
        _meta(keys.market_event_queue),
    ]
    return Instruction(keys.program_id, data, accounts)


def withdraw_instruction(
    keys: PoolKeys,
    *,
    owner: Pubkey,
    owner_lp_account: Pubkey,
    owner_base_account: Pubkey,
    owner_quote_account: Pubkey,
    lp_amount: int,
) -> Instruction:
    data = struct.pack("<BQ", 4, lp_amount)
    accounts = [
        _meta(TOKEN_PROGRAM_ID),
        _meta(keys.id, writable=True),
        _meta(keys.authority),
        _meta(keys.open_orders, writable=True),
        _meta(keys.target_orders, writable=True),
        _meta(keys.lp_mint, writable=True),
        _meta(keys.base_vault, writable=True),
        _meta(keys.quote_vault, writable=True),
        _meta(keys.withdraw_queue, writable=True),
        _meta(keys.lp_vault, writable=True),
        _meta(keys.market_program_id),
        _meta(keys.market_id, writable=True),
        _meta(keys.market_base_vault, writable=True),
        _meta(keys.market_quote_vault, writable=True),
        _meta(keys.market_authority),
        _meta(owner_lp_account, writable=True),
        _meta(owner_base_account, writable=True),
        _meta(owner_quote_account, writable=True),
        _meta(owner, signer=True),
        _meta(keys.market_event_queue, writable=True),
        _meta(keys.market_bids, writable=True),
        _meta(keys.market_asks, writable=True),
    ]
    return Instruction(keys.program_id, data, accounts)


def swap_base_in_instruction(
    keys: PoolKeys,
    *,
    owner: Pubkey,
    source_account: Pubkey,
    destination_account: Pubkey,
    amount_in: int,
    min_amount_out: int,
) -> Instruction:
    data = struct.pack("<BQQ", 9, amount_in, min_amount_out)
    accounts = [
        _meta(TOKEN_PROGRAM_ID),
        _meta(keys.id, writable=True),
        _meta(keys.authority),
        _meta(keys.open_orders, writable=True),
        _meta(keys.target_orders, writable=True),
        _meta(keys.base_vault, writable=True),
        _meta(keys.quote_vault, writable=True),
        _meta(keys.market_program_id),
        _meta(keys.market_id, writable=True),
        _meta(keys.market_bids, writable=True),
        _meta(keys.market_asks, writable=True),
        _meta(keys.market_event_queue, writable=True),
        _meta(keys.market_base_vault, writable=True),
        _meta(keys.market_quote_vault, writable=True),
        _meta(keys.market_authority),
        _meta(source_account, writable=True),
        _meta(destination_account, writable=True),
        _meta(owner, signer=True),
    ]
    return Instruction(keys.program_id, data, accounts)
