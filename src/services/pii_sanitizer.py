"""
Display-PII sanitizer for resident requests.

Resident request documents are briefly written with display copies of the
requester's email and public name. Those copies are never sealed; they are
removed outright on the next change event.

Idempotent: a document that no longer carries either attribute is never
written, so the change event caused by our own delete is a no-op.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from src.config.field_policy import CollectionPolicy
from src.lib.exceptions import DocumentNotFoundError
from src.models.document import DELETE_FIELD, DocumentChangeEvent, FieldMutation
from src.services.document_store import DocumentStore

logger = structlog.get_logger(__name__)

RESIDENT_REQUESTS = CollectionPolicy(collection="residentRequests")
DISPLAY_PII_ATTRS: tuple[str, ...] = ("emailDisplay", "publicName")


def _has_display_pii(document: Mapping[str, Any] | None) -> bool:
    if document is None:
        return False
    return any(document.get(attr) is not None for attr in DISPLAY_PII_ATTRS)


class ResidentRequestSanitizer:
    """Strips display-only PII from resident request documents."""

    def __init__(self, store: DocumentStore, attrs: tuple[str, ...] = DISPLAY_PII_ATTRS):
        self._store = store
        self._attrs = attrs

    def process(self, event: DocumentChangeEvent) -> bool:
        """
        Remove display PII if present.

        Returns:
            True if a write was committed, False if nothing was written
            (no display PII, or the document was deleted meanwhile)
        """
        if event.is_deletion or not RESIDENT_REQUESTS.matches(event.collection_path):
            return False
        if not _has_display_pii(event.after):
            return False

        mutation = FieldMutation({attr: DELETE_FIELD for attr in self._attrs})
        try:
            self._store.update(event.path, mutation)
        except DocumentNotFoundError:
            logger.warning(
                "resident_request_gone",
                document_id=event.document_id,
                event_id=event.event_id,
            )
            return False
        logger.info(
            "resident_request_sanitized",
            document_id=event.document_id,
            event_id=event.event_id,
        )
        return True


__all__ = ["DISPLAY_PII_ATTRS", "ResidentRequestSanitizer"]
