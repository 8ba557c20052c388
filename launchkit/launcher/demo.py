"""Token launcher demos.

Two modes:
  program  — configured payer initializes a launcher, buys twice, sells,
             withdraws, and reports state (sell/withdraw failures are logged)
  real     — fresh authority, devnet airdrop, initialize, single small buy

Usage:
    python -m launchkit.launcher.demo --mode real

Exit code 0 on success, 1 on any unhandled failure.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from decimal import Decimal

from loguru import logger
from solders.keypair import Keypair  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from config.settings import Settings, settings
from launchkit.chain.constants import LAMPORTS_PER_SOL
from launchkit.chain.keys import load_keypair
from launchkit.chain.rpc import SolanaRpc
from launchkit.chain.transactions import TransactionSender
from launchkit.exceptions import ExternalCallError, InvalidAmount
from launchkit.launcher.client import LauncherState, TokenLaunchConfig, TokenLauncherClient
from launchkit.launcher.idl import load_idl
from launchkit.utils.logger import setup_logger

DEMO_TOKEN_NAME = "Demo Launcher Token"
DEMO_TOKEN_SYMBOL = "DLT"
DEMO_TOKEN_DECIMALS = 9  # the program creates the mint with 9 decimals

AIRDROP_LAMPORTS = 2 * LAMPORTS_PER_SOL
REAL_DEMO_PRICE = 1_000_000  # 0.001 SOL per token
REAL_DEMO_MAX_SUPPLY = 1_000_000_000_000_000  # 1M tokens at 9 decimals


def log_state(state: LauncherState, title: str = "Launcher state") -> None:
    logger.info(
        f"[LAUNCHER] {title}: {state.token_name} ({state.token_symbol}) "
        f"price={state.price_sol} SOL, minted={state.total_minted_ui}, "
        f"collected={Decimal(state.sol_collected) / LAMPORTS_PER_SOL} SOL, "
        f"max={Decimal(state.max_supply) / (Decimal(10) ** state.token_decimals)}"
    )


async def run_program_demo(client: TokenLauncherClient, authority: Keypair, cfg: Settings) -> None:
    init = await client.initialize_token_launcher(
        authority,
        TokenLaunchConfig(
            token_name=DEMO_TOKEN_NAME,
            token_symbol=DEMO_TOKEN_SYMBOL,
            token_decimals=DEMO_TOKEN_DECIMALS,
            initial_price=cfg.initial_token_price,
            max_supply=cfg.max_token_supply,
        ),
    )
    logger.info(f"[LAUNCHER] Mint {init.mint}, state {init.launcher_state}")

    await client.buy_tokens(authority, init.mint, Decimal("0.1"))
    await client.buy_tokens(authority, init.mint, Decimal("0.2"))
    log_state(await client.get_launcher_state(init.mint))

    try:
        await client.sell_tokens(authority, init.mint, 50)
    except (ExternalCallError, InvalidAmount) as e:
        logger.warning(f"[LAUNCHER] Sell failed (no tokens yet?): {e}")

    try:
        await client.withdraw_sol(authority, init.mint, Decimal("0.05"))
        logger.info("[LAUNCHER] Authority withdrew 0.05 SOL")
    except (ExternalCallError, InvalidAmount) as e:
        logger.warning(f"[LAUNCHER] Withdrawal failed: {e}")

    log_state(await client.get_launcher_state(init.mint), "Final state")


async def run_real_program_demo(client: TokenLauncherClient, sender: TransactionSender) -> None:
    authority = sender.payer
    logger.info(f"[LAUNCHER] Requesting {AIRDROP_LAMPORTS / LAMPORTS_PER_SOL} SOL airdrop")
    try:
        airdrop = await sender.rpc.request_airdrop(authority.pubkey(), AIRDROP_LAMPORTS)
        await sender.wait_for_confirmation(airdrop)
        logger.info("[LAUNCHER] Airdrop confirmed")
    except ExternalCallError as e:
        logger.warning(f"[LAUNCHER] Airdrop failed, continuing with existing balance: {e}")

    init = await client.initialize_token_launcher(
        authority,
        TokenLaunchConfig(
            token_name=DEMO_TOKEN_NAME,
            token_symbol=DEMO_TOKEN_SYMBOL,
            token_decimals=DEMO_TOKEN_DECIMALS,
            initial_price=REAL_DEMO_PRICE,
            max_supply=REAL_DEMO_MAX_SUPPLY,
        ),
    )
    logger.info(f"[LAUNCHER] Initialized: mint={init.mint} tx={init.signature}")
    log_state(await client.get_launcher_state(init.mint))

    signature = await client.buy_tokens(authority, init.mint, Decimal("0.01"))
    logger.info(f"[LAUNCHER] Bought with 0.01 SOL: {signature}")
    log_state(await client.get_launcher_state(init.mint), "State after purchase")


async def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Token launcher demo")
    parser.add_argument("--mode", choices=("program", "real"), default="real")
    args = parser.parse_args(argv)

    setup_logger(level=settings.log_level, run_name="launcher")

    try:
        idl = load_idl(settings.launcher_idl_path)
        if args.mode == "real":
            authority = Keypair()
            logger.info(f"[LAUNCHER] Generated authority {authority.pubkey()}")
        else:
            authority = load_keypair(
                settings.solana_private_key_base58, settings.solana_private_key_json, label="authority"
            )

        async with SolanaRpc(settings.solana_rpc_url, timeout=settings.rpc_timeout) as rpc:
            sender = TransactionSender(
                rpc,
                authority,
                confirm_timeout=settings.confirm_timeout,
                poll_interval=settings.confirm_poll_interval,
            )
            client = TokenLauncherClient(
                sender, idl, program_id=Pubkey.from_string(settings.launcher_program_id)
            )
            if args.mode == "real":
                await run_real_program_demo(client, sender)
            else:
                await run_program_demo(client, authority, settings)
    except Exception as e:
        logger.exception(f"[LAUNCHER] Demo failed: {e}")
        return 1

    logger.info("[LAUNCHER] Demo completed")
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
