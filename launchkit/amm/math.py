"""Constant-product quoting and OpenBook lot sizing. All amounts in base units."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from launchkit.amm.models import SwapQuote
from launchkit.exceptions import InvalidAmount

BPS_DENOMINATOR = 10_000
RAYDIUM_TRADE_FEE_BPS = 25  # 0.25% taken from the input side


def slippage_percent_to_bps(percent: float | Decimal) -> int:
    """1 (percent) -> 100 bps."""
    bps = int((Decimal(str(percent)) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    if not 0 <= bps <= BPS_DENOMINATOR:
        raise InvalidAmount(f"Slippage must be within 0-100%, got {percent}")
    return bps


def compute_swap_quote(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    slippage_bps: int,
    *,
    fee_bps: int = RAYDIUM_TRADE_FEE_BPS,
) -> SwapQuote:
    """x*y=k output for a fixed input, and the minimum accepted after slippage."""
    if amount_in <= 0:
        raise InvalidAmount(f"Swap input must be positive, got {amount_in}")
    if reserve_in <= 0 or reserve_out <= 0:
        raise InvalidAmount(f"Pool has no liquidity (reserves {reserve_in}/{reserve_out})")

    amount_in_after_fee = amount_in * (BPS_DENOMINATOR - fee_bps) // BPS_DENOMINATOR
    amount_out = reserve_out * amount_in_after_fee // (reserve_in + amount_in_after_fee)
    min_amount_out = amount_out * (BPS_DENOMINATOR - slippage_bps) // BPS_DENOMINATOR

    spot_out = Decimal(amount_in) * reserve_out / reserve_in
    price_impact = float((spot_out - amount_out) / spot_out * 100) if spot_out else 0.0

    return SwapQuote(
        amount_in=amount_in,
        amount_out=amount_out,
        min_amount_out=min_amount_out,
        price_impact_pct=price_impact,
    )


def market_lot_sizes(
    base_decimals: int,
    quote_decimals: int,
    lot_size: float | Decimal = 1,
    tick_size: float | Decimal = Decimal("0.01"),
) -> tuple[int, int]:
    """(base_lot_size, quote_lot_size) for OpenBook InitializeMarket."""
    lot = Decimal(str(lot_size))
    tick = Decimal(str(tick_size))
    base_lot = int(Decimal(10) ** base_decimals * lot)
    quote_lot = int(Decimal(10) ** quote_decimals * lot * tick)
    if base_lot <= 0 or quote_lot <= 0:
        raise InvalidAmount(
            f"Lot size {lot_size} / tick size {tick_size} round to zero for decimals "
            f"{base_decimals}/{quote_decimals}"
        )
    return base_lot, quote_lot
