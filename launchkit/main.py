"""Entry point for the end-to-end token launch demo.

Stages, strictly in order:
  create token → metadata* → fetch metadata* → distribute → balances →
  market → pool* → swap* → final balances

Stages marked * are optional: a failure is logged and the run moves on.
Every other stage propagates and ends the run. The process never exits with
a failure code; failures are reported in the log.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from decimal import Decimal

from loguru import logger
from solders.keypair import Keypair  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from config.settings import Settings, settings
from launchkit.amm.models import MarketInfo, PoolCreationResult, SwapResult
from launchkit.amm.operations import AmmOperations
from launchkit.chain.constants import SOL_DECIMALS, WRAPPED_SOL_MINT, ProgramIds
from launchkit.chain.keys import load_keypair
from launchkit.chain.rpc import SolanaRpc
from launchkit.chain.transactions import TransactionSender
from launchkit.exceptions import InvalidAmount
from launchkit.token.operations import AccountBalances, DistributionResult, TokenOperations
from launchkit.utils.logger import setup_logger

SWAP_SHARE = Decimal("0.1")  # share of distributed tokens kept back for the test swap
POOL_FEE_RESERVE_SOL = Decimal("0.5")  # SOL the recipient keeps for fees after seeding


@dataclass
class WorkflowReport:
    """What each stage produced; None means the stage did not complete."""

    mint: Pubkey | None = None
    metadata_address: Pubkey | None = None
    distribution: DistributionResult | None = None
    recipient_balances: AccountBalances | None = None
    market: MarketInfo | None = None
    pool: PoolCreationResult | None = None
    swap: SwapResult | None = None
    final_balances: list[AccountBalances] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _sender(rpc: SolanaRpc, payer: Keypair, cfg: Settings) -> TransactionSender:
    return TransactionSender(
        rpc,
        payer,
        confirm_timeout=cfg.confirm_timeout,
        poll_interval=cfg.confirm_poll_interval,
    )


async def run_workflow(
    cfg: Settings,
    rpc: SolanaRpc,
    payer: Keypair,
    recipient: Keypair,
) -> WorkflowReport:
    report = WorkflowReport()
    tokens = TokenOperations(_sender(rpc, payer, cfg))

    # ─── Token ───────────────────────────────────────────────────────

    logger.info("[MAIN] Step 1: creating token")
    session = await tokens.create_token(cfg.token_decimals, cfg.initial_supply)
    mint = session.require_mint()
    report.mint = mint

    logger.info("[MAIN] Step 2: attaching metadata")
    try:
        meta = await tokens.create_token_metadata(
            session, cfg.token_name, cfg.token_symbol, cfg.token_image_uri
        )
        report.metadata_address = meta.metadata_address
    except Exception as e:
        logger.warning(f"[MAIN] Metadata creation failed, continuing without it: {e}")
        report.skipped.append("create_metadata")

    try:
        fetched = await tokens.get_token_metadata(mint)
        logger.info(f"[MAIN] Metadata: {fetched.name} ({fetched.symbol}) {fetched.uri}")
    except Exception as e:
        logger.info(f"[MAIN] Metadata not readable yet (normal right after creation): {e}")
        report.skipped.append("get_metadata")

    # ─── Distribution ────────────────────────────────────────────────

    logger.info("[MAIN] Step 3: distributing tokens and SOL")
    report.distribution = await tokens.distribute_tokens_and_sol(
        session, cfg.distribution_bps, cfg.sol_amount, recipient.pubkey()
    )
    report.recipient_balances = await tokens.get_account_balances(recipient.pubkey(), mint)
    logger.info(
        f"[MAIN] Recipient holds {report.recipient_balances.token_balance} tokens, "
        f"{report.recipient_balances.sol_balance} SOL"
    )

    # ─── Market / pool / swap (recipient pays) ───────────────────────

    amm = AmmOperations(_sender(rpc, recipient, cfg), ProgramIds.for_network(cfg.solana_network))

    logger.info("[MAIN] Step 4: creating OpenBook market")
    report.market = await amm.create_market(mint, WRAPPED_SOL_MINT, cfg.token_decimals, SOL_DECIMALS)

    logger.info("[MAIN] Step 5: creating AMM pool")
    swap_amount = report.distribution.token_amount * SWAP_SHARE
    try:
        sol_now = (await tokens.get_account_balances(recipient.pubkey())).sol_balance
        quote_amount = sol_now - POOL_FEE_RESERVE_SOL
        if quote_amount <= 0:
            raise InvalidAmount(f"Recipient has {sol_now} SOL, not enough to seed a pool")
        report.pool = await amm.create_amm_pool(
            mint,
            WRAPPED_SOL_MINT,
            report.distribution.token_amount - swap_amount,
            quote_amount,
            cfg.token_decimals,
            SOL_DECIMALS,
            report.market.market_id,
        )
    except Exception as e:
        logger.error(f"[MAIN] Pool creation failed: {e}")
        logger.info("[MAIN] On devnet this usually means the recipient lacks SOL for market/pool rent")
        report.skipped.append("create_pool")

    if report.pool is not None:
        logger.info("[MAIN] Step 6: test swap")
        try:
            report.swap = await amm.swap_tokens(
                report.pool.pool_keys, mint, WRAPPED_SOL_MINT, swap_amount, cfg.slippage_tolerance
            )
        except Exception as e:
            logger.error(f"[MAIN] Swap failed: {e}")
            report.skipped.append("swap")
    else:
        report.skipped.append("swap")

    # ─── Final balances ──────────────────────────────────────────────

    logger.info("[MAIN] Step 7: final balances")
    for owner in (payer.pubkey(), recipient.pubkey()):
        balances = await tokens.get_account_balances(owner, mint)
        logger.info(f"[MAIN] {owner}: {balances.sol_balance} SOL, {balances.token_balance} tokens")
        report.final_balances.append(balances)

    if report.skipped:
        logger.warning(f"[MAIN] Completed with skipped stages: {', '.join(report.skipped)}")
    else:
        logger.info("[MAIN] All stages completed")
    return report


async def main() -> None:
    setup_logger(level=settings.log_level)
    logger.info(f"[MAIN] Starting token launch demo against {settings.solana_rpc_url}")

    try:
        payer = load_keypair(
            settings.solana_private_key_base58, settings.solana_private_key_json, label="payer"
        )
        recipient = load_keypair(
            settings.recipient_private_key_base58,
            settings.recipient_private_key_json,
            label="recipient",
        )
        async with SolanaRpc(settings.solana_rpc_url, timeout=settings.rpc_timeout) as rpc:
            await run_workflow(settings, rpc, payer, recipient)
    except Exception as e:
        logger.exception(f"[MAIN] Demo aborted: {e}")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
