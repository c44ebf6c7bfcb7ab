"""Keypair file loading and deterministic address derivation.

Key files use the Solana CLI layout: a JSON array of 64 integers holding the
32-byte ed25519 seed followed by the 32-byte public key. The address is the
base58 encoding of that public key, so it depends only on file contents.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import base58
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from packages.devnet_shared.errors import ConfigurationError, codes

KEYPAIR_LENGTH = 64
SEED_LENGTH = 32


@dataclass(frozen=True, slots=True)
class KeyMaterial:
    """One keypair file and the address derived from it."""

    key_file_path: Path
    derived_address: str


def derive_address(keypair_bytes: bytes, *, source: str = "<memory>") -> str:
    """Return the base58 address for one 64-byte keypair.

    Raises ``ConfigurationError`` when the stored public key does not belong
    to the stored seed.
    """
    if len(keypair_bytes) != KEYPAIR_LENGTH:
        raise ConfigurationError(
            f"keypair {source} must hold {KEYPAIR_LENGTH} bytes, got {len(keypair_bytes)}",
            code=codes.INVALID_KEY_FILE,
        )
    stored_public = keypair_bytes[SEED_LENGTH:]
    if _public_key(keypair_bytes[:SEED_LENGTH]) != stored_public:
        raise ConfigurationError(
            f"keypair {source} public key does not match its seed",
            code=codes.INVALID_KEY_FILE,
        )
    return base58.b58encode(stored_public).decode("ascii")


def load_key_material(path: str | Path) -> KeyMaterial:
    """Read one keypair file and derive its address."""
    resolved = Path(path)
    try:
        raw = json.loads(resolved.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(
            f"key file not found: {resolved}",
            code=codes.INVALID_KEY_FILE,
        ) from exc
    except (OSError, ValueError) as exc:
        raise ConfigurationError(
            f"key file unreadable: {resolved}: {exc}",
            code=codes.INVALID_KEY_FILE,
        ) from exc

    if not isinstance(raw, list) or not all(
        isinstance(item, int) and not isinstance(item, bool) and 0 <= item <= 255
        for item in raw
    ):
        raise ConfigurationError(
            f"key file {resolved} must contain a JSON array of byte values",
            code=codes.INVALID_KEY_FILE,
        )
    address = derive_address(bytes(raw), source=str(resolved))
    return KeyMaterial(key_file_path=resolved, derived_address=address)


def _public_key(seed: bytes) -> bytes:
    return (
        Ed25519PrivateKey.from_private_bytes(seed)
        .public_key()
        .public_bytes(encoding=Encoding.Raw, format=PublicFormat.Raw)
    )
