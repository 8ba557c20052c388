"""Metaplex Token Metadata — CreateMetadataAccountV3 encoding and account decoding.

Instruction data (Borsh):
  [0]      instruction index 33 (CreateMetadataAccountV3)
  DataV2   name, symbol, uri (u32 len + utf-8), seller_fee_basis_points (u16),
           creators / collection / uses (Option, always None here)
  is_mutable (bool)
  collection_details (Option, None)

Metadata account (MetadataV1, key = 4):
  [0]      key (u8)
  [1:33]   update_authority
  [33:65]  mint
  then     name / symbol / uri (u32 len + zero-padded utf-8)
           seller_fee_basis_points (u16), creators (Option<Vec<Creator>>),
           primary_sale_happened (bool), is_mutable (bool)
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from solders.instruction import AccountMeta, Instruction  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from launchkit.chain.constants import METADATA_PROGRAM_ID, RENT, SYSTEM_PROGRAM_ID

CREATE_METADATA_ACCOUNT_V3 = 33
METADATA_V1_KEY = 4
CREATOR_SIZE = 34  # pubkey + verified + share

# On-chain limits enforced by the metadata program
MAX_NAME_LENGTH = 32
MAX_SYMBOL_LENGTH = 10
MAX_URI_LENGTH = 200


@dataclass(frozen=True)
class TokenMetadata:
    """Decoded Metaplex metadata for one mint."""

    update_authority: str
    mint: str
    name: str
    symbol: str
    uri: str
    seller_fee_basis_points: int
    primary_sale_happened: bool
    is_mutable: bool


def derive_metadata_address(mint: Pubkey) -> Pubkey:
    pda, _bump = Pubkey.find_program_address(
        [b"metadata", bytes(METADATA_PROGRAM_ID), bytes(mint)],
        METADATA_PROGRAM_ID,
    )
    return pda


def _borsh_string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return struct.pack("<I", len(raw)) + raw


def encode_create_metadata_v3(
    name: str,
    symbol: str,
    uri: str,
    *,
    seller_fee_basis_points: int = 0,
    is_mutable: bool = True,
) -> bytes:
    if len(name.encode("utf-8")) > MAX_NAME_LENGTH:
        raise ValueError(f"Token name longer than {MAX_NAME_LENGTH} bytes: {name!r}")
    if len(symbol.encode("utf-8")) > MAX_SYMBOL_LENGTH:
        raise ValueError(f"Token symbol longer than {MAX_SYMBOL_LENGTH} bytes: {symbol!r}")
    if len(uri.encode("utf-8")) > MAX_URI_LENGTH:
        raise ValueError(f"Metadata URI longer than {MAX_URI_LENGTH} bytes")

    return b"".join(
        [
            struct.pack("<B", CREATE_METADATA_ACCOUNT_V3),
            _borsh_string(name),
            _borsh_string(symbol),
            _borsh_string(uri),
            struct.pack("<H", seller_fee_basis_points),
            b"\x00",  # creators: None
            b"\x00",  # collection: None
            b"\x00",  # uses: None
            struct.pack("<?", is_mutable),
            b"\x00",  # collection_details: None
        ]
    )


def create_metadata_v3_instruction(
    *,
    mint: Pubkey,
    mint_authority: Pubkey,
    payer: Pubkey,
    update_authority: Pubkey,
    name: str,
    symbol: str,
    uri: str,
    is_mutable: bool = True,
) -> Instruction:
    accounts = [
        AccountMeta(derive_metadata_address(mint), is_signer=False, is_writable=True),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(mint_authority, is_signer=True, is_writable=False),
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(update_authority, is_signer=update_authority == payer, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(RENT, is_signer=False, is_writable=False),
    ]
    data = encode_create_metadata_v3(name, symbol, uri, is_mutable=is_mutable)
    return Instruction(METADATA_PROGRAM_ID, data, accounts)


def decode_metadata_account(data: bytes) -> TokenMetadata:
    """Decode a MetadataV1 account. Raises ValueError on malformed data."""
    if len(data) < 65 or data[0] != METADATA_V1_KEY:
        raise ValueError("Not a Metaplex MetadataV1 account")

    update_authority = str(Pubkey.from_bytes(data[1:33]))
    mint = str(Pubkey.from_bytes(data[33:65]))
    offset = 65

    def read_string() -> str:
        nonlocal offset
        (length,) = struct.unpack_from("<I", data, offset)
        offset += 4
        if offset + length > len(data):
            raise ValueError("String runs past end of account data")
        value = data[offset : offset + length].decode("utf-8", errors="replace")
        offset += length
        return value.rstrip("\x00")

    name = read_string()
    symbol = read_string()
    uri = read_string()

    (seller_fee,) = struct.unpack_from("<H", data, offset)
    offset += 2

    has_creators = data[offset]
    offset += 1
    if has_creators:
        (count,) = struct.unpack_from("<I", data, offset)
        offset += 4 + count * CREATOR_SIZE

    if offset + 2 > len(data):
        raise ValueError("Metadata account truncated before flags")
    primary_sale_happened = data[offset] != 0
    is_mutable = data[offset + 1] != 0

    return TokenMetadata(
        update_authority=update_authority,
        mint=mint,
        name=name,
        symbol=symbol,
        uri=uri,
        seller_fee_basis_points=seller_fee,
        primary_sale_happened=primary_sale_happened,
        is_mutable=is_mutable,
    )
