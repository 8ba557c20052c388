"""OpenBook market + Raydium AMM v4 pool operations.

Each logical operation may span several transactions (a batch). Members go
out strictly in order and each is confirmed before the next; a failed member
raises and leaves earlier members on chain.
"""

from __future__ import annotations

import time
from decimal import Decimal
from struct import error as struct_error

from loguru import logger
from solders.instruction import Instruction  # type: ignore[import-untyped]
from solders.keypair import Keypair  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]
from solders.system_program import (  # type: ignore[import-untyped]
    CreateAccountWithSeedParams,
    TransferParams,
    create_account_with_seed,
    transfer,
)
from spl.token.instructions import (
    CloseAccountParams,
    InitializeAccountParams,
    SyncNativeParams,
    close_account,
    create_idempotent_associated_token_account,
    get_associated_token_address,
    initialize_account,
    sync_native,
)

from launchkit.amm.instructions import (
    EVENT_QUEUE_SIZE,
    MARKET_ACCOUNT_SIZE,
    ORDERBOOK_SIZE,
    REQUEST_QUEUE_SIZE,
    deposit_instruction,
    derive_pool_keys,
    find_vault_signer_nonce,
    initialize2_instruction,
    initialize_market_instruction,
    market_authority,
    swap_base_in_instruction,
    withdraw_instruction,
)
from launchkit.amm.layouts import MarketState, decode_amm_state, decode_market_state
from launchkit.amm.math import compute_swap_quote, market_lot_sizes, slippage_percent_to_bps
from launchkit.amm.models import (
    LiquidityResult,
    MarketInfo,
    PoolCreationResult,
    PoolInfo,
    PoolKeys,
    SwapResult,
)
from launchkit.chain.constants import TOKEN_ACCOUNT_SIZE, TOKEN_PROGRAM_ID, WRAPPED_SOL_MINT, ProgramIds
from launchkit.chain.transactions import PendingTransaction, TransactionSender
from launchkit.exceptions import FetchError, InvalidAmount
from launchkit.token.operations import to_base_units


def _seed() -> str:
    """Random 32-char seed for create_account_with_seed."""
    return str(Keypair().pubkey())[:32]


class AmmOperations:
    """Market/pool facade for one fee payer (who also owns the liquidity)."""

    def __init__(self, sender: TransactionSender, programs: ProgramIds) -> None:
        self._sender = sender
        self._rpc = sender.rpc
        self._programs = programs

    @property
    def owner(self) -> Pubkey:
        return self._sender.payer.pubkey()

    # ─── Market ──────────────────────────────────────────────────────

    async def _seeded_account(
        self, space: int, program: Pubkey
    ) -> tuple[Pubkey, Instruction]:
        seed = _seed()
        address = Pubkey.create_with_seed(self.owner, seed, program)
        lamports = await self._rpc.get_minimum_balance_for_rent_exemption(space)
        ix = create_account_with_seed(
            CreateAccountWithSeedParams(
                from_pubkey=self.owner,
                to_pubkey=address,
                base=self.owner,
                seed=seed,
                lamports=lamports,
                space=space,
                owner=program,
            )
        )
        return address, ix

    async def create_market(
        self,
        base_mint: Pubkey,
        quote_mint: Pubkey,
        base_decimals: int,
        quote_decimals: int,
        lot_size: float | Decimal = 1,
        tick_size: float | Decimal = Decimal("0.01"),
    ) -> MarketInfo:
        """Create an OpenBook market as a two-transaction batch (vaults, then market)."""
        openbook = self._programs.openbook_program
        base_lot, quote_lot = market_lot_sizes(base_decimals, quote_decimals, lot_size, tick_size)

        market_seed = _seed()
        market_id = Pubkey.create_with_seed(self.owner, market_seed, openbook)
        vault_signer, nonce = find_vault_signer_nonce(market_id, openbook)

        base_vault, create_base_vault = await self._seeded_account(TOKEN_ACCOUNT_SIZE, TOKEN_PROGRAM_ID)
        quote_vault, create_quote_vault = await self._seeded_account(TOKEN_ACCOUNT_SIZE, TOKEN_PROGRAM_ID)
        vaults_tx = PendingTransaction(
            [
                create_base_vault,
                initialize_account(
                    InitializeAccountParams(
                        program_id=TOKEN_PROGRAM_ID, account=base_vault, mint=base_mint, owner=vault_signer
                    )
                ),
                create_quote_vault,
                initialize_account(
                    InitializeAccountParams(
                        program_id=TOKEN_PROGRAM_ID, account=quote_vault, mint=quote_mint, owner=vault_signer
                    )
                ),
            ],
            label="market vaults",
        )

        market_rent = await self._rpc.get_minimum_balance_for_rent_exemption(MARKET_ACCOUNT_SIZE)
        create_market_account = create_account_with_seed(
            CreateAccountWithSeedParams(
                from_pubkey=self.owner,
                to_pubkey=market_id,
                base=self.owner,
                seed=market_seed,
                lamports=market_rent,
                space=MARKET_ACCOUNT_SIZE,
                owner=openbook,
            )
        )
        request_queue, create_request_queue = await self._seeded_account(REQUEST_QUEUE_SIZE, openbook)
        event_queue, create_event_queue = await self._seeded_account(EVENT_QUEUE_SIZE, openbook)
        bids, create_bids = await self._seeded_account(ORDERBOOK_SIZE, openbook)
        asks, create_asks = await self._seeded_account(ORDERBOOK_SIZE, openbook)

        market_tx = PendingTransaction(
            [
                create_market_account,
                create_request_queue,
                create_event_queue,
                create_bids,
                create_asks,
                initialize_market_instruction(
                    program_id=openbook,
                    market=market_id,
                    request_queue=request_queue,
                    event_queue=event_queue,
                    bids=bids,
                    asks=asks,
                    base_vault=base_vault,
                    quote_vault=quote_vault,
                    base_mint=base_mint,
                    quote_mint=quote_mint,
                    base_lot_size=base_lot,
                    quote_lot_size=quote_lot,
                    vault_signer_nonce=nonce,
                ),
            ],
            label="market init",
        )

        logger.info(
            f"[MARKET] Creating OpenBook market {market_id} "
            f"(base lot {base_lot}, quote lot {quote_lot})"
        )
        signatures = await self._sender.send_batch([vaults_tx, market_tx])
        logger.info(f"[MARKET] Market {market_id} created in {len(signatures)} transactions")

        return MarketInfo(
            market_id=market_id,
            base_mint=base_mint,
            quote_mint=quote_mint,
            base_vault=base_vault,
            quote_vault=quote_vault,
            request_queue=request_queue,
            event_queue=event_queue,
            bids=bids,
            asks=asks,
            vault_signer=vault_signer,
            vault_signer_nonce=nonce,
            base_lot_size=base_lot,
            quote_lot_size=quote_lot,
            signatures=signatures,
        )

    async def fetch_market_state(self, market_id: Pubkey) -> MarketState:
        data = await self._rpc.get_account_info(market_id)
        if data is None:
            raise FetchError(f"Market account {market_id} not found")
        try:
            return decode_market_state(data)
        except (ValueError, struct_error) as e:
            raise FetchError(f"Could not decode market {market_id}: {e}") from e

    # ─── Pool ────────────────────────────────────────────────────────

    def _wrap_sol_instructions(self, lamports: int) -> tuple[Pubkey, list[Instruction]]:
        """Instructions funding the owner's WSOL ATA with ``lamports``."""
        wsol_account = get_associated_token_address(self.owner, WRAPPED_SOL_MINT)
        instructions = [
            create_idempotent_associated_token_account(self.owner, self.owner, WRAPPED_SOL_MINT),
        ]
        if lamports > 0:
            instructions += [
                transfer(TransferParams(from_pubkey=self.owner, to_pubkey=wsol_account, lamports=lamports)),
                sync_native(SyncNativeParams(program_id=TOKEN_PROGRAM_ID, account=wsol_account)),
            ]
        return wsol_account, instructions

    def _unwrap_sol_transaction(self) -> PendingTransaction:
        wsol_account = get_associated_token_address(self.owner, WRAPPED_SOL_MINT)
        ix = close_account(
            CloseAccountParams(
                program_id=TOKEN_PROGRAM_ID, account=wsol_account, dest=self.owner, owner=self.owner
            )
        )
        return PendingTransaction([ix], label="unwrap SOL")

    def _prepare_side(self, mint: Pubkey, amount: int) -> tuple[Pubkey, list[Instruction]]:
        if mint == WRAPPED_SOL_MINT:
            return self._wrap_sol_instructions(amount)
        account = get_associated_token_address(self.owner, mint)
        return account, [create_idempotent_associated_token_account(self.owner, self.owner, mint)]

    async def create_amm_pool(
        self,
        base_mint: Pubkey,
        quote_mint: Pubkey,
        base_amount: Decimal | float,
        quote_amount: Decimal | float,
        base_decimals: int,
        quote_decimals: int,
        market_id: Pubkey,
        start_time: int | None = None,
    ) -> PoolCreationResult:
        """Seed a Raydium AMM v4 pool against an existing OpenBook market."""
        base_units = to_base_units(base_amount, base_decimals)
        quote_units = to_base_units(quote_amount, quote_decimals)
        if base_units <= 0 or quote_units <= 0:
            raise InvalidAmount(f"Pool needs both reserves, got {base_amount} / {quote_amount}")

        market = await self.fetch_market_state(market_id)
        if (market.base_mint, market.quote_mint) != (base_mint, quote_mint):
            raise InvalidAmount(
                f"Market {market_id} trades {market.base_mint}/{market.quote_mint}, "
                f"not {base_mint}/{quote_mint}"
            )
        try:
            keys = derive_pool_keys(
                self._programs,
                market_id,
                market,
                base_decimals=base_decimals,
                quote_decimals=quote_decimals,
            )
        except ValueError as e:
            raise FetchError(f"Market {market_id} cannot back a pool: {e}") from e

        base_account, base_setup = self._prepare_side(base_mint, base_units)
        quote_account, quote_setup = self._prepare_side(quote_mint, quote_units)
        lp_account = get_associated_token_address(self.owner, keys.lp_mint)
        open_time = start_time if start_time is not None else int(time.time())

        batch = [
            PendingTransaction(base_setup + quote_setup, label="pool funding accounts"),
            PendingTransaction(
                [
                    initialize2_instruction(
                        keys,
                        fee_destination=self._programs.fee_destination,
                        owner=self.owner,
                        owner_base_account=base_account,
                        owner_quote_account=quote_account,
                        owner_lp_account=lp_account,
                        base_amount=base_units,
                        quote_amount=quote_units,
                        open_time=open_time,
                    )
                ],
                label="pool initialize2",
            ),
        ]

        logger.info(
            f"[AMM] Creating pool {keys.id} on market {market_id}: "
            f"{base_amount} base / {quote_amount} quote"
        )
        signatures = await self._sender.send_batch(batch)
        logger.info(f"[AMM] Pool {keys.id} created")
        return PoolCreationResult(pool_keys=keys, signatures=signatures)

    async def fetch_pool_keys(self, pool_id: Pubkey) -> PoolKeys:
        """Rebuild the full key set of an existing pool from chain state."""
        data = await self._rpc.get_account_info(pool_id)
        if data is None:
            raise FetchError(f"Pool account {pool_id} not found")
        try:
            state = decode_amm_state(data)
        except (ValueError, struct_error) as e:
            raise FetchError(f"Could not decode pool {pool_id}: {e}") from e

        market = await self.fetch_market_state(state.market_id)
        authority, _ = Pubkey.find_program_address([b"amm authority"], self._programs.amm_program)
        config_id, _ = Pubkey.find_program_address(
            [b"amm_config_account_seed"], self._programs.amm_program
        )
        try:
            vault_signer = market_authority(
                state.market_id, market.vault_signer_nonce, state.market_program_id
            )
        except ValueError as e:
            raise FetchError(f"Pool {pool_id} market {state.market_id}: {e}") from e
        return PoolKeys(
            id=pool_id,
            base_mint=state.base_mint,
            quote_mint=state.quote_mint,
            lp_mint=state.lp_mint,
            base_decimals=state.base_decimals,
            quote_decimals=state.quote_decimals,
            lp_decimals=state.base_decimals,
            program_id=self._programs.amm_program,
            authority=authority,
            nonce=state.nonce,
            open_orders=state.open_orders,
            target_orders=state.target_orders,
            base_vault=state.base_vault,
            quote_vault=state.quote_vault,
            withdraw_queue=state.withdraw_queue,
            lp_vault=state.lp_vault,
            config_id=config_id,
            market_program_id=state.market_program_id,
            market_id=state.market_id,
            market_authority=vault_signer,
            market_base_vault=market.base_vault,
            market_quote_vault=market.quote_vault,
            market_bids=market.bids,
            market_asks=market.asks,
            market_event_queue=market.event_queue,
        )

    async def get_pool_info(self, pool_id: Pubkey) -> PoolInfo:
        """Current reserves: vault balances minus PnL owed to the protocol."""
        data = await self._rpc.get_account_info(pool_id)
        if data is None:
            raise FetchError(f"Pool account {pool_id} not found")
        try:
            state = decode_amm_state(data)
        except (ValueError, struct_error) as e:
            raise FetchError(f"Could not decode pool {pool_id}: {e}") from e

        base_vault = await self._rpc.get_token_account_balance(state.base_vault)
        quote_vault = await self._rpc.get_token_account_balance(state.quote_vault)
        if base_vault is None or quote_vault is None:
            raise FetchError(f"Pool {pool_id} vault accounts missing")

        return PoolInfo(
            pool_id=pool_id,
            base_mint=state.base_mint,
            quote_mint=state.quote_mint,
            base_decimals=state.base_decimals,
            quote_decimals=state.quote_decimals,
            base_reserve=max(int(base_vault["amount"]) - state.base_need_take_pnl, 0),
            quote_reserve=max(int(quote_vault["amount"]) - state.quote_need_take_pnl, 0),
            lp_mint=state.lp_mint,
            lp_supply=state.lp_reserve,
            open_time=state.pool_open_time,
        )

    @staticmethod
    def get_price(pool: PoolInfo) -> float:
        """Raw quote reserve over raw base reserve, decimals not applied."""
        if pool.base_reserve <= 0:
            raise InvalidAmount(f"Pool {pool.pool_id} has no base liquidity")
        return pool.quote_reserve / pool.base_reserve

    # ─── Liquidity ───────────────────────────────────────────────────

    async def add_liquidity(
        self,
        pool_keys: PoolKeys,
        base_amount: Decimal | float,
        quote_amount: Decimal | float,
        *,
        fixed_side: str = "base",
    ) -> LiquidityResult:
        """Deposit up to both amounts; ``fixed_side`` is pinned, the other scales to the pool ratio."""
        if fixed_side not in ("base", "quote"):
            raise ValueError(f"fixed_side must be 'base' or 'quote', got {fixed_side!r}")
        base_units = to_base_units(base_amount, pool_keys.base_decimals)
        quote_units = to_base_units(quote_amount, pool_keys.quote_decimals)
        if base_units <= 0 or quote_units <= 0:
            raise InvalidAmount(f"Deposit needs both amounts, got {base_amount} / {quote_amount}")

        base_account, base_setup = self._prepare_side(pool_keys.base_mint, base_units)
        quote_account, quote_setup = self._prepare_side(pool_keys.quote_mint, quote_units)
        lp_account = get_associated_token_address(self.owner, pool_keys.lp_mint)

        instructions = base_setup + quote_setup + [
            create_idempotent_associated_token_account(self.owner, self.owner, pool_keys.lp_mint),
            deposit_instruction(
                pool_keys,
                owner=self.owner,
                owner_base_account=base_account,
                owner_quote_account=quote_account,
                owner_lp_account=lp_account,
                max_base_amount=base_units,
                max_quote_amount=quote_units,
                base_side=0 if fixed_side == "base" else 1,
            ),
        ]
        logger.info(f"[AMM] Adding liquidity to {pool_keys.id}: {base_amount} / {quote_amount}")
        signatures = await self._sender.send_batch([PendingTransaction(instructions, label="deposit")])
        return LiquidityResult(signatures=signatures, base_amount=base_units, quote_amount=quote_units)

    async def remove_liquidity(self, pool_keys: PoolKeys, lp_amount: Decimal | float) -> LiquidityResult:
        lp_units = to_base_units(lp_amount, pool_keys.lp_decimals)
        if lp_units <= 0:
            raise InvalidAmount(f"LP amount must be positive, got {lp_amount}")

        base_account, base_setup = self._prepare_side(pool_keys.base_mint, 0)
        quote_account, quote_setup = self._prepare_side(pool_keys.quote_mint, 0)
        instructions = base_setup + quote_setup + [
            withdraw_instruction(
                pool_keys,
                owner=self.owner,
                owner_lp_account=get_associated_token_address(self.owner, pool_keys.lp_mint),
                owner_base_account=base_account,
                owner_quote_account=quote_account,
                lp_amount=lp_units,
            )
        ]
        batch = [PendingTransaction(instructions, label="withdraw")]
        if WRAPPED_SOL_MINT in (pool_keys.base_mint, pool_keys.quote_mint):
            batch.append(self._unwrap_sol_transaction())

        logger.info(f"[AMM] Removing {lp_amount} LP from {pool_keys.id}")
        signatures = await self._sender.send_batch(batch)
        return LiquidityResult(signatures=signatures, lp_amount=lp_units)

    # ─── Swap ────────────────────────────────────────────────────────

    async def swap_tokens(
        self,
        pool_keys: PoolKeys,
        input_mint: Pubkey,
        output_mint: Pubkey,
        amount_in: Decimal | float,
        slippage_percent: float | Decimal,
    ) -> SwapResult:
        """Fixed-input swap priced off live reserves; min out discounted by slippage."""
        mints = {pool_keys.base_mint, pool_keys.quote_mint}
        if input_mint not in mints or output_mint not in mints or input_mint == output_mint:
            raise InvalidAmount(f"Pool {pool_keys.id} does not trade {input_mint} -> {output_mint}")

        pool = await self.get_pool_info(pool_keys.id)
        base_to_quote = input_mint == pool_keys.base_mint
        in_decimals = pool.base_decimals if base_to_quote else pool.quote_decimals
        out_decimals = pool.quote_decimals if base_to_quote else pool.base_decimals
        reserve_in = pool.base_reserve if base_to_quote else pool.quote_reserve
        reserve_out = pool.quote_reserve if base_to_quote else pool.base_reserve

        amount_in_units = to_base_units(amount_in, in_decimals)
        quote = compute_swap_quote(
            amount_in_units, reserve_in, reserve_out, slippage_percent_to_bps(slippage_percent)
        )

        source, source_setup = self._prepare_side(input_mint, amount_in_units)
        destination, destination_setup = self._prepare_side(output_mint, 0)
        before = await self._rpc.get_token_account_balance(destination)
        before_units = int(before["amount"]) if before else 0

        instructions = source_setup + destination_setup + [
            swap_base_in_instruction(
                pool_keys,
                owner=self.owner,
                source_account=source,
                destination_account=destination,
                amount_in=amount_in_units,
                min_amount_out=quote.min_amount_out,
            )
        ]
        logger.info(
            f"[SWAP] {amount_in} {input_mint} -> {output_mint}: expect {quote.amount_out}, "
            f"min {quote.min_amount_out} (impact {quote.price_impact_pct:.2f}%)"
        )
        signatures = [await self._sender.send(PendingTransaction(instructions, label="swap"))]

        after = await self._rpc.get_token_account_balance(destination)
        received_units = (int(after["amount"]) if after else 0) - before_units

        if WRAPPED_SOL_MINT in (input_mint, output_mint):
            signatures.append(await self._sender.send(self._unwrap_sol_transaction()))

        scale = Decimal(10) ** out_decimals
        result = SwapResult(
            signatures=signatures,
            input_mint=input_mint,
            output_mint=output_mint,
            amount_in=Decimal(amount_in_units) / (Decimal(10) ** in_decimals),
            amount_out=Decimal(received_units) / scale,
            min_amount_out=Decimal(quote.min_amount_out) / scale,
        )
        logger.info(f"[SWAP] Received {result.amount_out} (min {result.min_amount_out})")
        return result
