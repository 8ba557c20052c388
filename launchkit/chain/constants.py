"""Program IDs and well-known addresses."""

from __future__ import annotations

from dataclasses import dataclass

from solders.pubkey import Pubkey  # type: ignore[import-untyped]
from solders.system_program import ID as SYSTEM_PROGRAM_ID  # type: ignore[import-untyped]
from solders.sysvar import RENT  # type: ignore[import-untyped]
from spl.token.constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    WRAPPED_SOL_MINT,
)

LAMPORTS_PER_SOL = 1_000_000_000
SOL_DECIMALS = 9

MINT_ACCOUNT_SIZE = 82
TOKEN_ACCOUNT_SIZE = 165

METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")

__all__ = [
    "ASSOCIATED_TOKEN_PROGRAM_ID",
    "LAMPORTS_PER_SOL",
    "METADATA_PROGRAM_ID",
    "MINT_ACCOUNT_SIZE",
    "ProgramIds",
    "RENT",
    "SOL_DECIMALS",
    "SYSTEM_PROGRAM_ID",
    "TOKEN_ACCOUNT_SIZE",
    "TOKEN_PROGRAM_ID",
    "WRAPPED_SOL_MINT",
]


@dataclass(frozen=True)
class ProgramIds:
    """Raydium AMM v4 / OpenBook deployment for one cluster."""

    amm_program: Pubkey
    openbook_program: Pubkey
    fee_destination: Pubkey

    @classmethod
    def for_network(cls, network: str) -> ProgramIds:
        if network == "mainnet":
            return MAINNET_PROGRAMS
        if network == "devnet":
            return DEVNET_PROGRAMS
        raise ValueError(f"Unknown network: {network}")


MAINNET_PROGRAMS = ProgramIds(
    amm_program=Pubkey.from_string("675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"),
    openbook_program=Pubkey.from_string("srmqPvymJeFKQ4zGQed1GFppgkRHL9kaELCbyksJtPX"),
    fee_destination=Pubkey.from_string("7YttLkHDoNj9wyDur5pM1ejNaAvT9X4eqaYcHQqtj2G5"),
)

DEVNET_PROGRAMS = ProgramIds(
    amm_program=Pubkey.from_string("HWy1jotHpo6UqeQxx49dpYYdQB8wj9Qk9MdxwjLvDHB8"),
    openbook_program=Pubkey.from_string("EoTcMgcDRTJVZDMZWBoU6rhYHZfkNTVEAfz3uUJRcYGj"),
    fee_destination=Pubkey.from_string("3XMrhbv989VxAMi3DErLV9eJht1pHppW5LbKxe9fkEFR"),
)
