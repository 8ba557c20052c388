"""SPL token operations — create mint, distribute, metadata, balances.

The mint created by ``create_token`` is carried in a ``TokenSession`` that
callers pass back in, so two sessions never share state.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from struct import error as struct_error

from loguru import logger
from solders.keypair import Keypair  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]
from solders.system_program import (  # type: ignore[import-untyped]
    CreateAccountParams,
    TransferParams,
    create_account,
    transfer,
)
from spl.token.instructions import (
    InitializeMintParams,
    MintToParams,
    TransferCheckedParams,
    create_associated_token_account,
    get_associated_token_address,
    initialize_mint,
    mint_to,
    transfer_checked,
)

from launchkit.chain.constants import (
    LAMPORTS_PER_SOL,
    MINT_ACCOUNT_SIZE,
    SOL_DECIMALS,
    TOKEN_PROGRAM_ID,
)
from launchkit.chain.transactions import PendingTransaction, TransactionSender
from launchkit.exceptions import FetchError, InvalidAmount, NoMintError
from launchkit.token.metadata import (
    TokenMetadata,
    create_metadata_v3_instruction,
    decode_metadata_account,
    derive_metadata_address,
)

BPS_DENOMINATOR = 10_000


@dataclass(frozen=True)
class TokenSession:
    """The asset created in this run. ``mint`` stays None until creation."""

    authority: Pubkey
    decimals: int
    mint: Pubkey | None = None
    authority_token_account: Pubkey | None = None
    signature: str | None = None

    def require_mint(self) -> Pubkey:
        if self.mint is None:
            raise NoMintError("No token created in this session yet, call create_token first")
        return self.mint


@dataclass(frozen=True)
class DistributionResult:
    recipient: Pubkey
    recipient_token_account: Pubkey
    token_amount: Decimal  # human units
    sol_amount: Decimal
    signature: str


@dataclass(frozen=True)
class MetadataResult:
    metadata_address: Pubkey
    signature: str


@dataclass(frozen=True)
class AccountBalances:
    owner: Pubkey
    sol_balance: Decimal
    token_balance: Decimal | None = None  # None when no mint was asked for


def distribution_amount(balance: int, bps: int) -> int:
    """Base units to transfer: floor(balance * bps / 10000). Must be positive."""
    if not 0 <= bps <= BPS_DENOMINATOR:
        raise InvalidAmount(f"Basis points must be within 0-{BPS_DENOMINATOR}, got {bps}")
    amount = balance * bps // BPS_DENOMINATOR
    if amount <= 0:
        raise InvalidAmount(
            f"Distribution of {bps} bps from balance {balance} resolves to {amount} base units"
        )
    return amount


def to_base_units(amount: Decimal | int | float, decimals: int) -> int:
    return int(Decimal(str(amount)) * (Decimal(10) ** decimals))


class TokenOperations:
    """Token program facade for one fee payer / mint authority."""

    def __init__(self, sender: TransactionSender) -> None:
        self._sender = sender
        self._rpc = sender.rpc

    @property
    def authority(self) -> Keypair:
        return self._sender.payer

    async def create_token(self, decimals: int, initial_supply: int) -> TokenSession:
        """Create a mint, the authority's ATA, and mint the initial supply into it."""
        payer = self.authority.pubkey()
        mint_keypair = Keypair()
        mint = mint_keypair.pubkey()
        ata = get_associated_token_address(payer, mint)
        rent = await self._rpc.get_minimum_balance_for_rent_exemption(MINT_ACCOUNT_SIZE)
        amount = to_base_units(initial_supply, decimals)

        instructions = [
            create_account(
                CreateAccountParams(
                    from_pubkey=payer,
                    to_pubkey=mint,
                    lamports=rent,
                    space=MINT_ACCOUNT_SIZE,
                    owner=TOKEN_PROGRAM_ID,
                )
            ),
            initialize_mint(
                InitializeMintParams(
                    decimals=decimals,
                    program_id=TOKEN_PROGRAM_ID,
                    mint=mint,
                    mint_authority=payer,
                    freeze_authority=None,
                )
            ),
            create_associated_token_account(payer=payer, owner=payer, mint=mint),
            mint_to(
                MintToParams(
                    program_id=TOKEN_PROGRAM_ID,
                    mint=mint,
                    dest=ata,
                    mint_authority=payer,
                    amount=amount,
                )
            ),
        ]

        logger.info(f"[TOKEN] Creating mint {mint} ({decimals} decimals, supply {initial_supply})")
        signature = await self._sender.send(
            PendingTransaction(instructions, signers=[mint_keypair], label="create token")
        )
        logger.info(f"[TOKEN] Minted {initial_supply} tokens to {ata}")
        return TokenSession(
            authority=payer,
            decimals=decimals,
            mint=mint,
            authority_token_account=ata,
            signature=signature,
        )

    async def ensure_token_account(self, owner: Pubkey, mint: Pubkey) -> Pubkey:
        """Return the owner's ATA, creating it (paid by the authority) if absent."""
        ata = get_associated_token_address(owner, mint)
        if await self._rpc.account_exists(ata):
            return ata

        logger.info(f"[TOKEN] Creating token account {ata} for {owner}")
        ix = create_associated_token_account(payer=self.authority.pubkey(), owner=owner, mint=mint)
        await self._sender.send(PendingTransaction([ix], label="create token account"))
        return ata

    async def distribute_tokens_and_sol(
        self,
        session: TokenSession,
        bps: int,
        sol_amount: Decimal | float,
        recipient: Pubkey,
    ) -> DistributionResult:
        """Send bps of the authority's token balance plus SOL in one atomic transaction."""
        mint = session.require_mint()
        payer = self.authority.pubkey()
        source = session.authority_token_account or get_associated_token_address(payer, mint)

        ui_balance = await self._rpc.get_token_account_balance(source)
        balance = int(ui_balance["amount"]) if ui_balance else 0
        amount = distribution_amount(balance, bps)
        if amount > balance:
            raise InvalidAmount(f"Distribution {amount} exceeds balance {balance}")

        lamports = to_base_units(sol_amount, SOL_DECIMALS)
        if lamports < 0:
            raise InvalidAmount(f"SOL amount must not be negative, got {sol_amount}")

        dest = await self.ensure_token_account(recipient, mint)

        instructions = [
            transfer_checked(
                TransferCheckedParams(
                    program_id=TOKEN_PROGRAM_ID,
                    source=source,
                    mint=mint,
                    dest=dest,
                    owner=payer,
                    amount=amount,
                    decimals=session.decimals,
                )
            )
        ]
        if lamports > 0:
            instructions.append(
                transfer(TransferParams(from_pubkey=payer, to_pubkey=recipient, lamports=lamports))
            )

        token_amount = Decimal(amount) / (Decimal(10) ** session.decimals)
        logger.info(
            f"[TOKEN] Distributing {token_amount} tokens ({bps} bps) and "
            f"{Decimal(lamports) / LAMPORTS_PER_SOL} SOL to {recipient}"
        )
        signature = await self._sender.send(PendingTransaction(instructions, label="distribute"))
        return DistributionResult(
            recipient=recipient,
            recipient_token_account=dest,
            token_amount=token_amount,
            sol_amount=Decimal(lamports) / LAMPORTS_PER_SOL,
            signature=signature,
        )

    async def create_token_metadata(
        self,
        session: TokenSession,
        name: str,
        symbol: str,
        image_uri: str,
    ) -> MetadataResult:
        mint = session.require_mint()
        payer = self.authority.pubkey()
        ix = create_metadata_v3_instruction(
            mint=mint,
            mint_authority=payer,
            payer=payer,
            update_authority=payer,
            name=name,
            symbol=symbol,
            uri=image_uri,
        )
        metadata_address = derive_metadata_address(mint)
        logger.info(f"[META] Creating metadata {metadata_address} for {mint}: {name} ({symbol})")
        signature = await self._sender.send(PendingTransaction([ix], label="create metadata"))
        return MetadataResult(metadata_address=metadata_address, signature=signature)

    async def get_token_metadata(self, mint: Pubkey) -> TokenMetadata:
        metadata_address = derive_metadata_address(mint)
        data = await self._rpc.get_account_info(metadata_address)
        if data is None:
            raise FetchError(f"No metadata account {metadata_address} for mint {mint}")
        try:
            return decode_metadata_account(data)
        except (ValueError, IndexError, struct_error) as e:
            raise FetchError(f"Could not decode metadata account {metadata_address}: {e}") from e

    async def get_account_balances(self, owner: Pubkey, mint: Pubkey | None = None) -> AccountBalances:
        """SOL balance always, token balance when a mint is given (missing ATA = 0)."""
        lamports = await self._rpc.get_balance(owner)
        sol_balance = Decimal(lamports) / LAMPORTS_PER_SOL

        token_balance: Decimal | None = None
        if mint is not None:
            ui_balance = await self._rpc.get_token_account_balance(
                get_associated_token_address(owner, mint)
            )
            token_balance = Decimal(ui_balance["uiAmountString"]) if ui_balance else Decimal(0)

        logger.debug(f"[TOKEN] Balances {owner}: {sol_balance} SOL, tokens={token_balance}")
        return AccountBalances(owner=owner, sol_balance=sol_balance, token_balance=token_balance)
