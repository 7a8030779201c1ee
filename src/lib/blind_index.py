"""
Blind index for FieldSeal.

A blind index is a deterministic keyed digest (HMAC-SHA256) of a normalized
value, stored next to its ciphertext so that equality queries work without
decrypting anything.

Determinism is required: it is the only way to search encrypted data. It
also means that anyone who can read the `*_lookup` attributes learns which
records share the same underlying value, even without holding any key.
That equality leak is the accepted price of queryability. The digest does
not reveal the value itself unless the HMAC key is compromised.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Any

from src.lib.exceptions import ConfigurationError
from src.lib.keys import MIN_HMAC_KEY_SIZE
from src.lib.normalize import NormalizationKind, normalize


class BlindIndex:
    """
    Derives lookup digests for equality search.

    Example:
        >>> index = BlindIndex(keys.hmac_key)
        >>> index.derive_lookup("a@b.com") == index.lookup_for(
        ...     NormalizationKind.EMAIL, " A@B.com "
        ... )
        True
    """

    def __init__(self, hmac_key: bytes):
        if len(hmac_key) < MIN_HMAC_KEY_SIZE:
            raise ConfigurationError(
                f"HMAC key must be at least {MIN_HMAC_KEY_SIZE} bytes, got {len(hmac_key)}"
            )
        self._key = hmac_key

    def derive_lookup(self, normalized: str) -> str:
        """
        Hash an already-normalized value.

        Args:
            normalized: Output of one of the normalizers

        Returns:
            Lowercase hex HMAC-SHA256 digest (64 characters)
        """
        h = hmac.new(self._key, digestmod=hashlib.sha256)
        h.update(normalized.encode("utf-8"))
        return h.hexdigest()

    def lookup_for(self, kind: NormalizationKind, raw_value: Any) -> str:
        """Normalize a raw candidate value and derive its lookup."""
        return self.derive_lookup(normalize(kind, raw_value))

    def matches(self, kind: NormalizationKind, raw_value: Any, stored_lookup: str) -> bool:
        """Check a raw candidate against a stored lookup in constant time."""
        return hmac.compare_digest(self.lookup_for(kind, raw_value), stored_lookup)


def derive_lookup(normalized: str, hmac_key: bytes) -> str:
    """Convenience wrapper around BlindIndex.derive_lookup."""
    return BlindIndex(hmac_key).derive_lookup(normalized)


__all__ = ["BlindIndex", "derive_lookup"]
