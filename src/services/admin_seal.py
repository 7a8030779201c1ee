"""
Admin-only shop email sealing.

Lets an administrator set a shop's email directly in sealed form, without
the plaintext ever being stored. The resulting document is exactly what the
write pipeline would have produced for a plaintext `email`, so a later
change event sees `shopEmail_enc` and does nothing.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from src.config.field_policy import (
    JUNKSHOP_POLICY,
    PII_VERSION_ATTR,
    POLICY_VERSION,
    SHOP_EMAIL,
)
from src.lib.encryption import FieldSealer
from src.lib.exceptions import PermissionDeniedError, ValidationError
from src.lib.keys import KeyMaterial
from src.lib.normalize import normalize
from src.models.document import DELETE_FIELD, SERVER_TIMESTAMP, FieldMutation, join_path
from src.services.document_store import DocumentStore

logger = structlog.get_logger(__name__)


def _require_admin(caller_claims: Mapping[str, Any] | None) -> None:
    if caller_claims is None:
        raise PermissionDeniedError("unauthenticated: must be signed in")
    if caller_claims.get("admin") is not True:
        raise PermissionDeniedError("permission-denied: admin only")


def seal_shop_email(
    store: DocumentStore,
    keys: KeyMaterial,
    shop_id: Any,
    email: Any,
    caller_claims: Mapping[str, Any] | None,
) -> dict[str, bool]:
    """
    Seal and store a shop's email on behalf of an admin.

    Args:
        store: Document store
        keys: Validated key material
        shop_id: Junkshop document id
        email: Plaintext email (normalized before sealing)
        caller_claims: Token claims of the caller, None if unauthenticated

    Returns:
        {"ok": True}

    Raises:
        PermissionDeniedError: If the caller is not signed in or not an admin
        ValidationError: If shop_id or email is missing or not a string
        TransientWriteError: If the write fails
    """
    _require_admin(caller_claims)

    if not isinstance(shop_id, str) or not shop_id.strip():
        raise ValidationError("shopId is required.")
    if not isinstance(email, str) or not email.strip():
        raise ValidationError("email is required.")

    sealed = FieldSealer(keys).seal(normalize(SHOP_EMAIL.kind, email))
    names = SHOP_EMAIL.attributes

    mutation = FieldMutation(sealed.to_attributes(names))
    mutation[PII_VERSION_ATTR] = POLICY_VERSION
    mutation[names.set_at] = SERVER_TIMESTAMP
    mutation[SHOP_EMAIL.source] = DELETE_FIELD

    store.set(join_path(JUNKSHOP_POLICY.collection, shop_id.strip()), mutation, merge=True)
    logger.info("shop_email_sealed_by_admin", shop_id=shop_id)
    return {"ok": True}


__all__ = ["seal_shop_email"]
