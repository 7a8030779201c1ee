"""
Envelope Cipher for FieldSeal.

This module provides field-level authenticated encryption for every
policy-declared PII and FINANCIAL field.

Key Features:
- AES-256-GCM authenticated encryption (96-bit random nonce, 128-bit tag)
- Ciphertext, nonce and tag stored as separate base64 attributes
- HMAC-SHA256 blind index stored next to the ciphertext (see blind_index.py)
- Version marker on every sealed field for future key rotation

Physical layout for a field prefix P:
    P_enc      base64 ciphertext (tag not appended)
    P_nonce    base64 nonce
    P_tag      base64 authentication tag
    P_lookup   hex blind index

Dependencies:
- cryptography>=41.0.0 (for AES-256-GCM)

Usage:
    from src.lib.encryption import FieldSealer

    sealer = FieldSealer(keys)
    field = sealer.seal("a@b.com")
    sealer.open(field)  # "a@b.com"
"""

from __future__ import annotations

import base64
import binascii
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from src.lib.blind_index import BlindIndex
from src.lib.exceptions import AuthenticationError, ConfigurationError, EncryptionError
from src.lib.keys import CIPHER_KEY_SIZE, KeyMaterial

NONCE_SIZE = 12  # 96 bits for GCM (recommended)
TAG_SIZE = 16  # 128 bits

# Bumped only by a future key rotation
CURRENT_VERSION = 1


# =============================================================================
# Attribute naming
# =============================================================================

@dataclass(frozen=True)
class AttributeNames:
    """Physical attribute names of one sealed field."""
    enc: str
    nonce: str
    tag: str
    lookup: str
    set_at: str
    set_at_ms: str

    @classmethod
    def for_prefix(cls, prefix: str) -> AttributeNames:
        return cls(
            enc=f"{prefix}_enc",
            nonce=f"{prefix}_nonce",
            tag=f"{prefix}_tag",
            lookup=f"{prefix}_lookup",
            set_at=f"{prefix}SetAt",
            set_at_ms=f"{prefix}SetAtMs",
        )


# =============================================================================
# Sealed data structures
# =============================================================================

@dataclass(frozen=True)
class SealedValue:
    """Raw output of one AES-GCM encryption, all base64-encoded."""
    ciphertext: str
    nonce: str
    auth_tag: str


@dataclass(frozen=True)
class EncryptedField:
    """
    Container for one sealed field value.

    Attributes:
        ciphertext: Base64-encoded AES-GCM ciphertext
        nonce: Base64-encoded 96-bit nonce, unique per encryption
        auth_tag: Base64-encoded 128-bit GCM tag
        lookup: Hex HMAC-SHA256 of the normalized plaintext
        version: Key version for rotation support
    """
    ciphertext: str
    nonce: str
    auth_tag: str
    lookup: str
    version: int = CURRENT_VERSION

    def to_attributes(self, names: AttributeNames) -> dict[str, str]:
        """Serialize into the document attributes for one prefix."""
        return {
            names.enc: self.ciphertext,
            names.nonce: self.nonce,
            names.tag: self.auth_tag,
            names.lookup: self.lookup,
        }

    @classmethod
    def from_attributes(
        cls,
        document: Mapping[str, Any],
        names: AttributeNames,
        version: int = CURRENT_VERSION,
    ) -> EncryptedField:
        """Deserialize from document attributes, raising EncryptionError if any is missing."""
        values = {}
        for attr in (names.enc, names.nonce, names.tag, names.lookup):
            value = document.get(attr)
            if not isinstance(value, str):
                raise EncryptionError(f"Sealed attribute {attr!r} missing or not a string")
            values[attr] = value

        return cls(
            ciphertext=values[names.enc],
            nonce=values[names.nonce],
            auth_tag=values[names.tag],
            lookup=values[names.lookup],
            version=version,
        )


# =============================================================================
# Envelope Cipher
# =============================================================================

def _b64decode(label: str, value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise AuthenticationError(f"Malformed {label}") from e


class EnvelopeCipher:
    """
    AES-256-GCM encryption of normalized strings.

    Security Properties:
    - Fresh os.urandom nonce per encryption, never reused with the same key
    - Tag verified before any plaintext is returned
    - Any failure on decrypt (tampering, wrong key, wrong nonce) raises
      AuthenticationError; corrupted data is never returned
    """

    def __init__(self, cipher_key: bytes):
        if len(cipher_key) != CIPHER_KEY_SIZE:
            raise ConfigurationError(
                f"Cipher key must be exactly {CIPHER_KEY_SIZE} bytes, got {len(cipher_key)}"
            )
        self._aesgcm = AESGCM(cipher_key)

    def encrypt(self, normalized: str) -> SealedValue:
        """
        Encrypt a normalized string.

        Args:
            normalized: Output of one of the normalizers

        Returns:
            SealedValue with base64 ciphertext, nonce and tag
        """
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aesgcm.encrypt(nonce, normalized.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]

        return SealedValue(
            ciphertext=base64.b64encode(ciphertext).decode(),
            nonce=base64.b64encode(nonce).decode(),
            auth_tag=base64.b64encode(tag).decode(),
        )

    def decrypt(self, ciphertext: str, nonce: str, auth_tag: str) -> str:
        """
        Verify and decrypt a sealed value.

        Raises:
            AuthenticationError: If the tag does not verify or any part is malformed
        """
        ct = _b64decode("ciphertext", ciphertext)
        iv = _b64decode("nonce", nonce)
        tag = _b64decode("auth tag", auth_tag)

        if len(iv) != NONCE_SIZE:
            raise AuthenticationError(f"Nonce must be {NONCE_SIZE} bytes, got {len(iv)}")
        if len(tag) != TAG_SIZE:
            raise AuthenticationError(f"Auth tag must be {TAG_SIZE} bytes, got {len(tag)}")

        try:
            plaintext = self._aesgcm.decrypt(iv, ct + tag, None)
        except InvalidTag as e:
            raise AuthenticationError("Authentication tag verification failed") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise AuthenticationError("Decrypted payload is not valid UTF-8") from e


# =============================================================================
# Field Sealer
# =============================================================================

class FieldSealer:
    """
    Combines the Envelope Cipher and the Blind Index for one key pair.

    Example:
        >>> sealer = FieldSealer(keys)
        >>> field = sealer.seal("1234.50")
        >>> sealer.open(field)
        '1234.50'
    """

    def __init__(self, keys: KeyMaterial):
        self._cipher = EnvelopeCipher(keys.cipher_key)
        self._index = BlindIndex(keys.hmac_key)

    @property
    def blind_index(self) -> BlindIndex:
        return self._index

    def seal(self, normalized: str) -> EncryptedField:
        """Encrypt a normalized value and derive its lookup."""
        sealed = self._cipher.encrypt(normalized)
        return EncryptedField(
            ciphertext=sealed.ciphertext,
            nonce=sealed.nonce,
            auth_tag=sealed.auth_tag,
            lookup=self._index.derive_lookup(normalized),
        )

    def open(self, field: EncryptedField) -> str:
        """Decrypt a sealed field, raising AuthenticationError on any mismatch."""
        return self._cipher.decrypt(field.ciphertext, field.nonce, field.auth_tag)

    def open_attributes(self, document: Mapping[str, Any], prefix: str) -> str:
        """Decrypt the field stored under prefix in a document."""
        names = AttributeNames.for_prefix(prefix)
        return self.open(EncryptedField.from_attributes(document, names))


# =============================================================================
# Convenience Functions
# =============================================================================

def encrypt(normalized: str, keys: KeyMaterial) -> SealedValue:
    """Encrypt a normalized value with the cipher key of keys."""
    return EnvelopeCipher(keys.cipher_key).encrypt(normalized)


def decrypt(ciphertext: str, nonce: str, auth_tag: str, keys: KeyMaterial) -> str:
    """Decrypt a sealed value with the cipher key of keys."""
    return EnvelopeCipher(keys.cipher_key).decrypt(ciphertext, nonce, auth_tag)


__all__ = [
    "CURRENT_VERSION",
    "AttributeNames",
    "EncryptedField",
    "EnvelopeCipher",
    "FieldSealer",
    "SealedValue",
    "decrypt",
    "encrypt",
]
