"""
Key Provider for FieldSeal.

Resolves the two secrets every sealing operation needs:

- cipher key: exactly 32 bytes (AES-256-GCM)
- HMAC key: at least 32 bytes (blind index)

Both arrive base64-encoded through the hosting environment's secret
injection (PII_AES_KEY_B64 / PII_HMAC_KEY_B64). Validation runs before any
cryptographic operation. A failure is a broken deployment, so it raises
ConfigurationError instead of letting callers operate on partial keys.

Usage:
    from src.lib.keys import get_key_material

    keys = get_key_material()   # loaded once per process
    pipeline = WritePipeline(store=store, keys=keys)
"""

from __future__ import annotations

import base64
import binascii
import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from src.lib.exceptions import ConfigurationError

CIPHER_KEY_ENV = "PII_AES_KEY_B64"
HMAC_KEY_ENV = "PII_HMAC_KEY_B64"

CIPHER_KEY_SIZE = 32  # 256 bits for AES-256
MIN_HMAC_KEY_SIZE = 32


@dataclass(frozen=True)
class KeyMaterial:
    """
    Validated key pair shared read-only by every invocation.

    Attributes:
        cipher_key: 32-byte AES-256-GCM key
        hmac_key: HMAC-SHA256 key, at least 32 bytes
    """
    cipher_key: bytes = field(repr=False)
    hmac_key: bytes = field(repr=False)

    def __post_init__(self) -> None:
        validate_key_lengths(self.cipher_key, self.hmac_key)


def validate_key_lengths(cipher_key: bytes, hmac_key: bytes) -> None:
    """Raise ConfigurationError unless both keys have acceptable lengths."""
    if len(cipher_key) != CIPHER_KEY_SIZE:
        raise ConfigurationError(
            f"Cipher key must be exactly {CIPHER_KEY_SIZE} bytes (AES-256), "
            f"got {len(cipher_key)} bytes."
        )
    if len(hmac_key) < MIN_HMAC_KEY_SIZE:
        raise ConfigurationError(
            f"HMAC key must be at least {MIN_HMAC_KEY_SIZE} bytes, "
            f"got {len(hmac_key)} bytes."
        )


def _decode_secret(name: str, value: str | None) -> bytes:
    if value is None or not value.strip():
        raise ConfigurationError(
            f"Missing encryption secret {name}. "
            f"Set {CIPHER_KEY_ENV} and {HMAC_KEY_ENV} (base64-encoded)."
        )
    try:
        return base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError(f"{name} is not valid base64") from e


def load_key_material(environ: Mapping[str, str] | None = None) -> KeyMaterial:
    """
    Load and validate the key pair from the environment.

    Args:
        environ: Mapping to read secrets from. Defaults to os.environ.

    Returns:
        KeyMaterial holding both decoded keys

    Raises:
        ConfigurationError: If either secret is missing, is not base64,
            or decodes to a key of the wrong length.
    """
    env = os.environ if environ is None else environ

    cipher_key = _decode_secret(CIPHER_KEY_ENV, env.get(CIPHER_KEY_ENV))
    hmac_key = _decode_secret(HMAC_KEY_ENV, env.get(HMAC_KEY_ENV))

    return KeyMaterial(cipher_key=cipher_key, hmac_key=hmac_key)


# =============================================================================
# Process-wide cache
# =============================================================================

_key_material: KeyMaterial | None = None


def get_key_material() -> KeyMaterial:
    """Get the process-wide key material, loading it on first use."""
    global _key_material
    if _key_material is None:
        _key_material = load_key_material()
    return _key_material


def reset_key_material() -> None:
    """Drop the cached key material (tests only)."""
    global _key_material
    _key_material = None


__all__ = [
    "CIPHER_KEY_ENV",
    "HMAC_KEY_ENV",
    "KeyMaterial",
    "get_key_material",
    "load_key_material",
    "reset_key_material",
    "validate_key_lengths",
]
