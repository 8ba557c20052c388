"""Tests for launcher IDL loading, validation and anchorpy coding."""

from __future__ import annotations

import copy
import json
import struct
from collections.abc import Callable
from pathlib import Path

import pytest
from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from config.settings import DEFAULT_IDL_PATH
from launchkit.exceptions import IdlError
from launchkit.launcher.idl import LAUNCHER_STATE, LauncherIdl, load_idl, parse_idl


# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture
def raw_idl() -> dict:
    return json.loads(Path(DEFAULT_IDL_PATH).read_text(encoding="utf-8"))


def _state_account(raw: dict) -> dict:
    return next(acc for acc in raw["accounts"] if acc["name"] == LAUNCHER_STATE)


# ── Loading ────────────────────────────────────────────────────────────


class TestLoad:
    def test_bundled_idl_loads(self, idl: LauncherIdl):
        assert str(idl.program_id) == "GQwwtMLV9P2ywbAqA9dAKxZjKT6NzMrwfqqFVsaCvGEF"
        assert idl.idl.name == "token_launcher"
        assert idl.account_fields(LAUNCHER_STATE)[:2] == ["authority", "mint"]

    def test_discriminators_follow_anchor_hashing(self, idl: LauncherIdl):
        assert idl.coder.instruction.sighashes["buy_tokens"] == bytes([189, 21, 230, 133, 247, 2, 110, 42])
        assert idl.discriminator(LAUNCHER_STATE) == bytes([124, 104, 138, 93, 11, 235, 23, 195])

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(IdlError, match="not found"):
            load_idl(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path: Path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(IdlError, match="not valid JSON"):
            load_idl(path)

    def test_unsupported_version(self, raw_idl: dict):
        raw_idl["version"] = "0.0.0"
        with pytest.raises(IdlError, match="not supported"):
            parse_idl(raw_idl)

    def test_missing_instruction(self, raw_idl: dict):
        raw_idl["instructions"] = [ix for ix in raw_idl["instructions"] if ix["name"] != "sell_tokens"]
        with pytest.raises(IdlError, match="sell_tokens"):
            parse_idl(raw_idl)

    def test_renamed_argument(self, raw_idl: dict):
        changed = copy.deepcopy(raw_idl)
        buy = next(ix for ix in changed["instructions"] if ix["name"] == "buy_tokens")
        buy["args"][0]["name"] = "lamports"
        with pytest.raises(IdlError, match="buy_tokens"):
            parse_idl(changed)

    def test_missing_state_field(self, raw_idl: dict):
        state = _state_account(raw_idl)
        state["type"]["fields"] = [f for f in state["type"]["fields"] if f["name"] != "current_price"]
        with pytest.raises(IdlError, match="current_price"):
            parse_idl(raw_idl)

    def test_malformed_instruction(self, raw_idl: dict):
        del raw_idl["instructions"][0]["accounts"]
        with pytest.raises(IdlError, match="expected shape"):
            parse_idl(raw_idl)

    def test_bad_program_address(self, raw_idl: dict):
        raw_idl["metadata"]["address"] = "not-a-pubkey"
        with pytest.raises(IdlError, match="not a valid pubkey"):
            parse_idl(raw_idl)

    def test_missing_program_address(self, raw_idl: dict):
        del raw_idl["metadata"]
        with pytest.raises(IdlError, match="program address"):
            parse_idl(raw_idl)


# ── Instructions ───────────────────────────────────────────────────────


class TestBuildInstruction:
    def test_buy_tokens(self, idl: LauncherIdl):
        names = ("buyer", "launcher_state", "mint", "buyer_token_account", "sol_vault")
        accounts = {name: Pubkey.new_unique() for name in names}

        ix = idl.build_instruction("buy_tokens", accounts, {"sol_amount": 100_000_000})

        assert ix.program_id == idl.program_id
        assert bytes(ix.data) == bytes([189, 21, 230, 133, 247, 2, 110, 42]) + struct.pack("<Q", 100_000_000)
        assert [m.pubkey for m in ix.accounts[:5]] == [accounts[n] for n in names]
        assert ix.accounts[0].is_signer and ix.accounts[0].is_writable
        assert str(ix.accounts[5].pubkey) == "11111111111111111111111111111111"
        assert str(ix.accounts[7].pubkey) == "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
        assert len(ix.accounts) == 8

    def test_string_args_length_prefixed(self, idl: LauncherIdl):
        accounts = {n: Pubkey.new_unique() for n in ("authority", "launcher_state", "mint", "sol_vault")}
        ix = idl.build_instruction(
            "initialize_token_launcher",
            accounts,
            {
                "token_name": "Abc",
                "token_symbol": "A",
                "token_decimals": 9,
                "initial_price": 1_000_000,
                "max_supply": 10**15,
            },
        )
        expected_args = (
            b"\x03\x00\x00\x00Abc"
            + b"\x01\x00\x00\x00A"
            + b"\x09"
            + struct.pack("<QQ", 1_000_000, 10**15)
        )
        assert bytes(ix.data)[8:] == expected_args
        assert ix.accounts[2].is_signer  # the fresh mint co-signs
        assert str(ix.accounts[6].pubkey) == "SysvarRent111111111111111111111111111111111"

    def test_missing_account_raises(self, idl: LauncherIdl):
        with pytest.raises(ValueError, match="launcher_state not provided"):
            idl.build_instruction("withdraw_sol", {"authority": Pubkey.new_unique()}, {"amount": 1})

    def test_unknown_instruction_raises(self, idl: LauncherIdl):
        with pytest.raises(IdlError):
            idl.build_instruction("close_launcher", {}, {})

    def test_program_id_swap_keeps_coding(self, idl: LauncherIdl):
        other = Pubkey.new_unique()
        moved = idl.with_program_id(other)
        accounts = {n: Pubkey.new_unique() for n in ("authority", "launcher_state", "mint", "sol_vault")}
        ix = moved.build_instruction("withdraw_sol", accounts, {"amount": 5})
        assert ix.program_id == other
        assert bytes(ix.data) == bytes([145, 131, 74, 136, 65, 137, 42, 38]) + struct.pack("<Q", 5)


# ── Accounts + errors ──────────────────────────────────────────────────


class TestDecodeAccount:
    def test_launcher_state(self, idl: LauncherIdl, launcher_state_data: Callable[..., bytes]):
        authority, mint = Pubkey.new_unique(), Pubkey.new_unique()
        values = idl.decode_account(
            LAUNCHER_STATE,
            launcher_state_data(authority=authority, mint=mint, total_minted=5, sol_collected=7),
        )
        assert values["authority"] == authority
        assert values["mint"] == mint
        assert values["token_symbol"] == "DLT"
        assert values["token_decimals"] == 9
        assert (values["total_minted"], values["sol_collected"]) == (5, 7)
        assert (values["bump"], values["vault_bump"]) == (255, 254)

    def test_wrong_discriminator(self, idl: LauncherIdl, launcher_state_data: Callable[..., bytes]):
        data = b"\x00" * 8 + launcher_state_data()[8:]
        with pytest.raises(ValueError, match="discriminator"):
            idl.decode_account(LAUNCHER_STATE, data)

    def test_truncated_data(self, idl: LauncherIdl, launcher_state_data: Callable[..., bytes]):
        with pytest.raises(ValueError, match="malformed"):
            idl.decode_account(LAUNCHER_STATE, launcher_state_data()[:80])


class TestDescribeError:
    def test_hex_code(self, idl: LauncherIdl):
        described = idl.describe_error("Program failed: custom program error: 0x1771")
        assert described is not None
        assert described.startswith("MaxSupplyExceeded")

    def test_json_code(self, idl: LauncherIdl):
        described = idl.describe_error("on-chain error {'InstructionError': [0, {'Custom': 6003}]}")
        assert described is not None
        assert described.startswith("Unauthorized")

    def test_framework_code(self, idl: LauncherIdl):
        # 0xbc4 = 3012, AccountNotInitialized
        described = idl.describe_error("custom program error: 0xbc4")
        assert described == "The program expected this account to be already initialized"

    def test_unknown_code(self, idl: LauncherIdl):
        assert idl.describe_error("custom program error: 0x1") is None
        assert idl.describe_error("blockhash not found") is None
