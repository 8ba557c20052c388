"""Token launcher IDL — parsed and coded by anchorpy.

The IDL JSON (legacy Anchor layout, the one anchorpy reads) is loaded once and
checked against the instructions and LauncherState fields the client relies on.
A different IDL version or anything missing raises IdlError before a single
transaction is built. Instruction data and account data go through the
anchorpy ``Coder`` built from the same IDL.
"""

from __future__ import annotations

import dataclasses
import json
import re
from pathlib import Path
from typing import Any

from anchorpy import Coder, Idl, validate_accounts
from anchorpy.error import LangErrorMessage
from anchorpy_core.idl import IdlAccount, IdlTypeDefinitionTyStruct
from construct import ConstructError
from solders.instruction import AccountMeta, Instruction  # type: ignore[import-untyped]
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from launchkit.chain.constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    RENT,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)
from launchkit.exceptions import IdlError

SUPPORTED_IDL_VERSION = "0.1.0"

REQUIRED_INSTRUCTIONS: dict[str, list[str]] = {
    "initialize_token_launcher": [
        "token_name",
        "token_symbol",
        "token_decimals",
        "initial_price",
        "max_supply",
    ],
    "buy_tokens": ["sol_amount"],
    "sell_tokens": ["token_amount"],
    "withdraw_sol": ["amount"],
}
LAUNCHER_STATE = "LauncherState"
REQUIRED_STATE_FIELDS = [
    "authority",
    "mint",
    "token_name",
    "token_symbol",
    "token_decimals",
    "current_price",
    "max_supply",
    "total_minted",
    "sol_collected",
    "bump",
    "vault_bump",
]

# Program accounts filled in when the caller does not pass them.
PROGRAM_ACCOUNTS: dict[str, Pubkey] = {
    "system_program": SYSTEM_PROGRAM_ID,
    "token_program": TOKEN_PROGRAM_ID,
    "associated_token_program": ASSOCIATED_TOKEN_PROGRAM_ID,
    "rent": RENT,
}

_CUSTOM_ERROR_HEX = re.compile(r"custom program error: 0x([0-9a-fA-F]+)")
_CUSTOM_ERROR_JSON = re.compile(r"['\"]Custom['\"]\s*:\s*(\d+)")


class LauncherIdl:
    """Parsed launcher IDL, its program id and the anchorpy coder."""

    def __init__(self, idl: Idl, program_id: Pubkey) -> None:
        self.idl = idl
        self.program_id = program_id
        self.coder = Coder(idl)
        self._errors = {err.code: err for err in idl.errors or []}

    def with_program_id(self, program_id: Pubkey) -> LauncherIdl:
        return LauncherIdl(self.idl, program_id)

    def instruction(self, name: str):
        for ix in self.idl.instructions:
            if ix.name == name:
                return ix
        raise IdlError(f"IDL has no instruction {name!r}")

    def account_fields(self, name: str) -> list[str]:
        for acc in self.idl.accounts:
            if acc.name == name:
                if not isinstance(acc.ty, IdlTypeDefinitionTyStruct):
                    raise IdlError(f"IDL account {name!r} is not a struct")
                return [f.name for f in acc.ty.fields]
        raise IdlError(f"IDL has no account {name!r}")

    def discriminator(self, account_name: str) -> bytes:
        try:
            return self.coder.accounts.acc_name_to_discriminator[account_name]
        except KeyError as e:
            raise IdlError(f"IDL has no account {account_name!r}") from e

    def build_instruction(
        self,
        name: str,
        accounts: dict[str, Pubkey],
        args: dict[str, Any],
    ) -> Instruction:
        """Anchor-encoded args, accounts in IDL order with IDL flags."""
        ix = self.instruction(name)
        resolved = {**PROGRAM_ACCOUNTS, **accounts}
        validate_accounts(ix.accounts, resolved)
        metas = [
            AccountMeta(resolved[item.name], is_signer=item.is_signer, is_writable=item.is_mut)
            for item in ix.accounts
        ]
        data = self.coder.instruction.encode(name, args)
        return Instruction(self.program_id, data, metas)

    def decode_account(self, name: str, data: bytes) -> dict[str, Any]:
        """Decode an Anchor account (8-byte discriminator, then Borsh fields)."""
        if data[:8] != self.discriminator(name):
            raise ValueError(f"Account discriminator mismatch for {name}")
        try:
            decoded = self.coder.accounts.decode(data)
        except ConstructError as e:
            raise ValueError(f"{name} account data is malformed: {e}") from e
        return {f.name: getattr(decoded, f.name) for f in dataclasses.fields(decoded)}

    def describe_error(self, text: str) -> str | None:
        """Map a custom program error code found in an error message to its IDL name.

        Codes the IDL does not define fall back to Anchor's framework errors
        (constraint violations, uninitialized accounts and the like).
        """
        match = _CUSTOM_ERROR_HEX.search(text)
        code = int(match.group(1), 16) if match else None
        if code is None:
            match = _CUSTOM_ERROR_JSON.search(text)
            code = int(match.group(1)) if match else None
        if code is None:
            return None
        err = self._errors.get(code)
        if err is not None:
            return f"{err.name}: {err.msg}" if err.msg else err.name
        return LangErrorMessage.get(code)


# ─── Loading ───────────────────────────────────────────────────────


def _check_contract(idl: LauncherIdl) -> None:
    if idl.idl.version != SUPPORTED_IDL_VERSION:
        raise IdlError(
            f"IDL version {idl.idl.version!r} not supported, expected {SUPPORTED_IDL_VERSION!r}"
        )

    for name, arg_names in REQUIRED_INSTRUCTIONS.items():
        ix = idl.instruction(name)
        actual = [arg.name for arg in ix.args]
        if actual != arg_names:
            raise IdlError(f"IDL instruction {name} args {actual} != expected {arg_names}")
        nested = [item.name for item in ix.accounts if not isinstance(item, IdlAccount)]
        if nested:
            raise IdlError(f"IDL instruction {name} has nested account groups {nested}")

    field_names = idl.account_fields(LAUNCHER_STATE)
    missing = [f for f in REQUIRED_STATE_FIELDS if f not in field_names]
    if missing:
        raise IdlError(f"IDL {LAUNCHER_STATE} is missing fields {missing}")


def parse_idl(raw: dict[str, Any]) -> LauncherIdl:
    try:
        idl = Idl.from_json(json.dumps(raw))
    except ValueError as e:
        raise IdlError(f"IDL does not match the expected shape: {e}") from e

    metadata = idl.metadata if isinstance(idl.metadata, dict) else {}
    address = metadata.get("address")
    if not address:
        raise IdlError("IDL metadata has no program address")
    try:
        program_id = Pubkey.from_string(address)
    except ValueError as e:
        raise IdlError(f"IDL program address {address!r} is not a valid pubkey") from e

    launcher = LauncherIdl(idl, program_id)
    _check_contract(launcher)
    return launcher


def load_idl(path: str | Path) -> LauncherIdl:
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise IdlError(f"IDL file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise IdlError(f"IDL file {path} is not valid JSON: {e.msg}") from e
    return parse_idl(raw)
