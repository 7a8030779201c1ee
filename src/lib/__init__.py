"""
Lib package for FieldSeal.

Contains the sealing primitives:
- keys.py: Key Provider (cipher key + HMAC key, validated at startup)
- normalize.py: Text, email and money canonicalization
- encryption.py: Envelope Cipher (AES-256-GCM) and FieldSealer
- blind_index.py: HMAC-SHA256 lookup digests for equality search
- exceptions.py: Exception hierarchy
- logging.py: structlog configuration
"""

from src.lib.blind_index import BlindIndex, derive_lookup
from src.lib.encryption import (
    AttributeNames,
    EncryptedField,
    EnvelopeCipher,
    FieldSealer,
    SealedValue,
    decrypt,
    encrypt,
)
from src.lib.exceptions import (
    AuthenticationError,
    ConfigurationError,
    EncryptionError,
    FieldSealException,
    InvalidMoneyError,
    TransientWriteError,
    UnsupportedTypeError,
    ValidationError,
)
from src.lib.keys import KeyMaterial, get_key_material, load_key_material
from src.lib.normalize import (
    NormalizationKind,
    normalize,
    normalize_email,
    normalize_money,
    normalize_text,
)

__all__ = [
    # Keys
    "KeyMaterial",
    "get_key_material",
    "load_key_material",
    # Normalization
    "NormalizationKind",
    "normalize",
    "normalize_email",
    "normalize_money",
    "normalize_text",
    # Encryption
    "AttributeNames",
    "EncryptedField",
    "EnvelopeCipher",
    "FieldSealer",
    "SealedValue",
    "encrypt",
    "decrypt",
    # Blind index
    "BlindIndex",
    "derive_lookup",
    # Exceptions
    "FieldSealException",
    "ConfigurationError",
    "ValidationError",
    "InvalidMoneyError",
    "UnsupportedTypeError",
    "EncryptionError",
    "AuthenticationError",
    "TransientWriteError",
]
