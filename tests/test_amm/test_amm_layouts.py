"""Tests for AMM v4 pool state and OpenBook market state decoding."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from launchkit.amm.layouts import decode_amm_state, decode_market_state


class TestAmmState:
    def test_decodes_words_and_pubkeys(self, amm_state_data: Callable[..., bytes]):
        keys = {
            "base_vault": Pubkey.new_unique(),
            "quote_mint": Pubkey.new_unique(),
            "market_id": Pubkey.new_unique(),
            "owner": Pubkey.new_unique(),
        }
        state = decode_amm_state(
            amm_state_data(
                keys=keys,
                nonce=253,
                base_decimals=6,
                quote_decimals=9,
                base_need_take_pnl=11,
                quote_need_take_pnl=22,
                open_time=1_710_000_000,
                lp_reserve=42,
            )
        )

        assert state.nonce == 253
        assert (state.base_decimals, state.quote_decimals) == (6, 9)
        assert (state.base_need_take_pnl, state.quote_need_take_pnl) == (11, 22)
        assert state.pool_open_time == 1_710_000_000
        assert state.lp_reserve == 42
        assert state.base_vault == keys["base_vault"]
        assert state.quote_mint == keys["quote_mint"]
        assert state.market_id == keys["market_id"]
        assert state.owner == keys["owner"]

    def test_short_buffer_raises(self):
        with pytest.raises(ValueError, match="too short"):
            decode_amm_state(b"\x00" * 100)


class TestMarketState:
    def test_decodes_fields(self, market_state_data: Callable[..., bytes]):
        base, quote, own = Pubkey.new_unique(), Pubkey.new_unique(), Pubkey.new_unique()
        state = decode_market_state(
            market_state_data(
                base_mint=base,
                quote_mint=quote,
                own_address=own,
                vault_signer_nonce=3,
                base_lot_size=1_000_000,
                quote_lot_size=10_000_000,
            )
        )
        assert state.own_address == own
        assert (state.base_mint, state.quote_mint) == (base, quote)
        assert state.vault_signer_nonce == 3
        assert (state.base_lot_size, state.quote_lot_size) == (1_000_000, 10_000_000)
        assert len({state.bids, state.asks, state.event_queue, state.request_queue}) == 4

    def test_missing_header_raises(self, market_state_data: Callable[..., bytes]):
        data = market_state_data(
            base_mint=Pubkey.new_unique(), quote_mint=Pubkey.new_unique(), header=b"xxxxx"
        )
        with pytest.raises(ValueError, match="serum header"):
            decode_market_state(data)
