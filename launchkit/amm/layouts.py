"""Decode Raydium AMM v4 pool state and OpenBook (Serum v3) market state.

AMM v4 LiquidityStateV4, 752 bytes, all integers u64 LE unless noted:
  [0:256]    32 u64 config/state words (status, nonce, ..., orderbookToInitTime)
             [32] baseDecimal  [40] quoteDecimal
             [192] baseNeedTakePnl  [200] quoteNeedTakePnl  [224] poolOpenTime
  [256:336]  swap statistics (u128/u64), unused here
  [336:720]  12 pubkeys: baseVault, quoteVault, baseMint, quoteMint, lpMint,
             openOrders, marketId, marketProgramId, targetOrders,
             withdrawQueue, lpVault, owner
  [720:728]  lpReserve

OpenBook MarketStateV3, 388 bytes:
  [0:5]      "serum" padding      [5:13]  account flags
  [13:45]    own address          [45:53] vault signer nonce
  [53:85]    base mint            [85:117] quote mint
  [117:149]  base vault           [165:197] quote vault
  [221:253]  request queue        [253:285] event queue
  [285:317]  bids                 [317:349] asks
  [349:357]  base lot size        [357:365] quote lot size
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from solders.pubkey import Pubkey  # type: ignore[import-untyped]

AMM_V4_STATE_SIZE = 752
MARKET_V3_STATE_SIZE = 388

_AMM_PUBKEYS = (
    "base_vault",
    "quote_vault",
    "base_mint",
    "quote_mint",
    "lp_mint",
    "open_orders",
    "market_id",
    "market_program_id",
    "target_orders",
    "withdraw_queue",
    "lp_vault",
    "owner",
)


@dataclass(frozen=True)
class AmmState:
    status: int
    nonce: int
    base_decimals: int
    quote_decimals: int
    base_need_take_pnl: int
    quote_need_take_pnl: int
    pool_open_time: int
    base_vault: Pubkey
    quote_vault: Pubkey
    base_mint: Pubkey
    quote_mint: Pubkey
    lp_mint: Pubkey
    open_orders: Pubkey
    market_id: Pubkey
    market_program_id: Pubkey
    target_orders: Pubkey
    withdraw_queue: Pubkey
    lp_vault: Pubkey
    owner: Pubkey
    lp_reserve: int


@dataclass(frozen=True)
class MarketState:
    own_address: Pubkey
    vault_signer_nonce: int
    base_mint: Pubkey
    quote_mint: Pubkey
    base_vault: Pubkey
    quote_vault: Pubkey
    request_queue: Pubkey
    event_queue: Pubkey
    bids: Pubkey
    asks: Pubkey
    base_lot_size: int
    quote_lot_size: int


def _pubkey_at(data: bytes, offset: int) -> Pubkey:
    return Pubkey.from_bytes(data[offset : offset + 32])


def decode_amm_state(data: bytes) -> AmmState:
    """Raises ValueError if the buffer is not an AMM v4 pool account."""
    if len(data) < AMM_V4_STATE_SIZE:
        raise ValueError(f"AMM v4 state too short: {len(data)} < {AMM_V4_STATE_SIZE}")

    words = struct.unpack_from("<32Q", data, 0)
    keys = {name: _pubkey_at(data, 336 + i * 32) for i, name in enumerate(_AMM_PUBKEYS)}
    (lp_reserve,) = struct.unpack_from("<Q", data, 720)

    return AmmState(
        status=words[0],
        nonce=words[1],
        base_decimals=words[4],
        quote_decimals=words[5],
        base_need_take_pnl=words[24],
        quote_need_take_pnl=words[25],
        pool_open_time=words[28],
        lp_reserve=lp_reserve,
        **keys,
    )


def decode_market_state(data: bytes) -> MarketState:
    """Raises ValueError if the buffer is not an OpenBook v3 market account."""
    if len(data) < MARKET_V3_STATE_SIZE:
        raise ValueError(f"Market state too short: {len(data)} < {MARKET_V3_STATE_SIZE}")
    if data[:5] != b"serum":
        raise ValueError("Market account is missing the serum header")

    (vault_signer_nonce,) = struct.unpack_from("<Q", data, 45)
    base_lot_size, quote_lot_size = struct.unpack_from("<2Q", data, 349)

    return MarketState(
        own_address=_pubkey_at(data, 13),
        vault_signer_nonce=vault_signer_nonce,
        base_mint=_pubkey_at(data, 53),
        quote_mint=_pubkey_at(data, 85),
        base_vault=_pubkey_at(data, 117),
        quote_vault=_pubkey_at(data, 165),
        request_queue=_pubkey_at(data, 221),
        event_queue=_pubkey_at(data, 253),
        bids=_pubkey_at(data, 285),
        asks=_pubkey_at(data, 317),
        base_lot_size=base_lot_size,
        quote_lot_size=quote_lot_size,
    )
