"""Keypair loading — base58 secret first, JSON byte array fallback, else generate.

A value that is present but malformed raises KeyDecodeError: silently
generating a fresh key there would send funds to an address nobody configured.
Secrets are never logged; only public keys are.
"""

from __future__ import annotations

import json

import base58
from loguru import logger
from solders.keypair import Keypair  # type: ignore[import-untyped]

from launchkit.exceptions import KeyDecodeError

SECRET_KEY_LENGTH = 64


def _present(value: str | None) -> bool:
    return value is not None and bool(value.strip())


def decode_base58_secret(value: str) -> Keypair:
    try:
        raw = base58.b58decode(value.strip())
    except ValueError as e:
        raise KeyDecodeError(f"Invalid base58 secret key: {e}") from e

    if len(raw) != SECRET_KEY_LENGTH:
        raise KeyDecodeError(
            f"Base58 secret key decodes to {len(raw)} bytes, expected {SECRET_KEY_LENGTH}"
        )
    try:
        return Keypair.from_bytes(raw)
    except ValueError as e:
        raise KeyDecodeError(f"Base58 secret key is not a valid ed25519 keypair: {e}") from e


def decode_json_secret(value: str) -> Keypair:
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise KeyDecodeError(f"Invalid JSON secret key: {e.msg}") from e

    if not isinstance(parsed, list) or len(parsed) != SECRET_KEY_LENGTH:
        raise KeyDecodeError(f"JSON secret key must be an array of {SECRET_KEY_LENGTH} bytes")
    if not all(isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255 for b in parsed):
        raise KeyDecodeError("JSON secret key entries must be integers in 0-255")
    try:
        return Keypair.from_bytes(bytes(parsed))
    except ValueError as e:
        raise KeyDecodeError(f"JSON secret key is not a valid ed25519 keypair: {e}") from e


def load_keypair(
    base58_secret: str | None = None,
    json_secret: str | None = None,
    *,
    label: str = "payer",
) -> Keypair:
    """Resolve a keypair from the two optional encodings, or generate one."""
    if _present(base58_secret):
        keypair = decode_base58_secret(base58_secret)  # type: ignore[arg-type]
        logger.info(f"[KEYS] Loaded {label} from base58 secret: {keypair.pubkey()}")
        return keypair

    if _present(json_secret):
        keypair = decode_json_secret(json_secret)  # type: ignore[arg-type]
        logger.info(f"[KEYS] Loaded {label} from JSON secret: {keypair.pubkey()}")
        return keypair

    keypair = Keypair()
    logger.warning(
        f"[KEYS] No {label} key configured, generated ephemeral keypair {keypair.pubkey()} "
        f"(fund it before running against devnet)"
    )
    return keypair
