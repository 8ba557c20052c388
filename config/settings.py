from pathlib import Path

from loguru import logger
from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_IDL_PATH = str(
    Path(__file__).resolve().parent.parent / "launchkit" / "idl" / "token_launcher.json"
)

# Values shipped in .env.example that mean "not configured"
PLACEHOLDER_VALUES = {
    "your_base58_private_key_here",
    "recipient_base58_private_key_here",
    "[]",
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Solana RPC
    solana_rpc_url: str = "https://api.devnet.solana.com"
    solana_network: str = "devnet"  # devnet | mainnet (selects Raydium/OpenBook program IDs)
    rpc_timeout: float = 30.0
    confirm_timeout: float = 60.0
    confirm_poll_interval: float = 2.0

    # Key material (base58 first, JSON byte array as dev fallback)
    solana_private_key_base58: str | None = None
    solana_private_key_json: str | None = None
    recipient_private_key_base58: str | None = None
    recipient_private_key_json: str | None = None

    # Token economics
    token_decimals: int = 6
    initial_supply: int = 1_000_000
    distribution_bps: int = 2500  # 25% of supply goes to the recipient
    sol_amount: float = 2.0
    slippage_tolerance: float = 1.0  # percent

    # Metaplex metadata
    token_name: str = "Demo Token"
    token_symbol: str = "DEMO"
    token_image_uri: str = "https://arweave.net/placeholder-image-uri"

    # Bonding-curve launcher program
    launcher_program_id: str = "GQwwtMLV9P2ywbAqA9dAKxZjKT6NzMrwfqqFVsaCvGEF"
    launcher_idl_path: str = DEFAULT_IDL_PATH
    initial_token_price: int = 1_000_000  # lamports per whole token
    max_token_supply: int = 1_000_000_000_000_000_000  # base units

    # Logging
    log_level: str = "INFO"

    @field_validator(
        "solana_private_key_base58",
        "solana_private_key_json",
        "recipient_private_key_base58",
        "recipient_private_key_json",
        mode="before",
    )
    @classmethod
    def _strip_placeholder_keys(cls, value: object) -> object:
        if isinstance(value, str) and (not value.strip() or value.strip() in PLACEHOLDER_VALUES):
            return None
        return value

    @field_validator(
        "solana_rpc_url",
        "solana_network",
        "token_name",
        "token_symbol",
        "token_image_uri",
        "launcher_program_id",
        "launcher_idl_path",
        "log_level",
        mode="before",
    )
    @classmethod
    def _blank_to_default(cls, value: object, info: ValidationInfo) -> object:
        if isinstance(value, str) and not value.strip():
            return cls.model_fields[info.field_name].default
        return value

    @field_validator(
        "token_decimals",
        "initial_supply",
        "distribution_bps",
        "initial_token_price",
        "max_token_supply",
        mode="before",
    )
    @classmethod
    def _int_or_default(cls, value: object, info: ValidationInfo) -> object:
        default = cls.model_fields[info.field_name].default
        if value is None or (isinstance(value, str) and not value.strip()):
            return default
        if isinstance(value, int):
            return value
        try:
            return int(str(value).strip())
        except ValueError:
            logger.warning(f"[CONFIG] {info.field_name.upper()}={value!r} is not an integer, using {default}")
            return default

    @field_validator(
        "sol_amount",
        "slippage_tolerance",
        "rpc_timeout",
        "confirm_timeout",
        "confirm_poll_interval",
        mode="before",
    )
    @classmethod
    def _float_or_default(cls, value: object, info: ValidationInfo) -> object:
        default = cls.model_fields[info.field_name].default
        if value is None or (isinstance(value, str) and not value.strip()):
            return default
        if isinstance(value, (int, float)):
            return value
        try:
            return float(str(value).strip())
        except ValueError:
            logger.warning(f"[CONFIG] {info.field_name.upper()}={value!r} is not a number, using {default}")
            return default

    @field_validator("distribution_bps")
    @classmethod
    def _bps_in_range(cls, value: int) -> int:
        if not 0 <= value <= 10_000:
            logger.warning(f"[CONFIG] DISTRIBUTION_BPS={value} outside 0-10000, using 2500")
            return 2500
        return value

    @field_validator("solana_network")
    @classmethod
    def _known_network(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("devnet", "mainnet"):
            logger.warning(f"[CONFIG] SOLANA_NETWORK={value!r} unknown, using devnet")
            return "devnet"
        return value


settings = Settings()
