"""
Custom exception hierarchy for FieldSeal.

Provides structured exception types for all subsystems:
- Configuration and key loading
- Normalization and input validation
- Encryption, decryption and tag verification
- Document store writes and admin authorization

All exceptions inherit from FieldSealException, enabling
catch-all for FieldSeal-specific errors while keeping the
ability to catch specific error types.

Severity by type:
    ConfigurationError   -> fatal for the invocation, never swallowed
    ValidationError      -> recoverable per field (skip, log, continue)
    AuthenticationError  -> fatal for that read, evidence of tampering
    TransientWriteError  -> whole event abandoned, redelivery retries it
"""

from __future__ import annotations


class FieldSealException(Exception):
    """Base exception for all FieldSeal errors."""


class ConfigurationError(FieldSealException):
    """Missing or malformed secrets, invalid config values, or startup failures."""


class ValidationError(FieldSealException):
    """Input validation, parsing, or type conversion failures."""


class InvalidMoneyError(ValidationError):
    """A money value is missing, unparsable, or not finite."""


class UnsupportedTypeError(ValidationError):
    """A value has a type the normalizer does not accept."""


class EncryptionError(FieldSealException):
    """Encryption or decryption failures (key errors, corrupted data, missing attributes)."""


class AuthenticationError(EncryptionError):
    """Authentication tag verification failed: tampered data, wrong key, or wrong nonce."""


class DatabaseError(FieldSealException):
    """Document store failures."""


class TransientWriteError(DatabaseError):
    """A write to the document store failed and may succeed on redelivery."""


class DocumentNotFoundError(DatabaseError):
    """The target document of an update does not exist."""


class PermissionDeniedError(FieldSealException):
    """Caller is not authenticated or lacks the required claim."""
