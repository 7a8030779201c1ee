"""
Equality search over sealed fields.

Readers never decrypt to search. They normalize a candidate value the same
way the pipeline did, derive its blind index with the shared HMAC key, and
query by the `P_lookup` attribute.
"""

from __future__ import annotations

from typing import Any

from src.config.field_policy import FieldPolicy
from src.lib.blind_index import BlindIndex
from src.lib.keys import KeyMaterial
from src.models.document import Document
from src.services.document_store import DocumentStore


def find_by_lookup(
    store: DocumentStore,
    collection_path: str,
    policy: FieldPolicy,
    raw_value: Any,
    keys: KeyMaterial,
) -> list[tuple[str, Document]]:
    """
    Find documents whose sealed field equals raw_value.

    Args:
        store: Document store
        collection_path: Concrete collection to search
        policy: Policy of the sealed field (gives normalization and prefix)
        raw_value: Candidate plaintext, in any formatting
        keys: Key material holding the HMAC key

    Returns:
        Matching (path, document) pairs

    Example:
        >>> find_by_lookup(store, "Junkshop", SHOP_EMAIL, " A@B.com", keys)
        [('Junkshop/shop-1', {...})]
    """
    lookup = BlindIndex(keys.hmac_key).lookup_for(policy.kind, raw_value)
    return store.find_by(collection_path, policy.attributes.lookup, lookup)


__all__ = ["find_by_lookup"]
