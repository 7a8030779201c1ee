"""
Document model for FieldSeal.

Documents are schemaless attribute mappings addressed by a slash-separated
path ("Junkshop/shop-1/transaction/tx-9"). This module provides:

- DocumentChangeEvent: the write notification the pipeline consumes
- FieldSentinel / FieldMutation: partial updates with delete and
  server-timestamp markers, resolved by the store at commit time
- StoredDocument: SQLAlchemy table holding each document as JSON

Usage:
    event = DocumentChangeEvent.from_dict({
        "collectionPath": "Junkshop",
        "documentId": "shop-1",
        "before": None,
        "after": {"email": "A@B.com"},
    })
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Column, DateTime, Index, String
from sqlalchemy.sql import func

from src.models.base import Base

Document = dict[str, Any]


# =============================================================================
# Mutations
# =============================================================================

class FieldSentinel(Enum):
    """Markers resolved by the document store when a mutation is committed."""
    DELETE = "delete"
    SERVER_TIMESTAMP = "server_timestamp"

    def __repr__(self) -> str:
        return f"FieldSentinel.{self.name}"


DELETE_FIELD = FieldSentinel.DELETE
SERVER_TIMESTAMP = FieldSentinel.SERVER_TIMESTAMP


class FieldMutation(dict[str, Any]):
    """
    Ordered attribute -> value map for one partial document update.

    Values may be plain JSON-compatible data or a FieldSentinel. Sentinels
    are only valid at the top level; nested structures (array elements) must
    carry plain values.
    """

    @property
    def is_empty(self) -> bool:
        return not self


def _contains_sentinel(value: Any) -> bool:
    if isinstance(value, FieldSentinel):
        return True
    if isinstance(value, Mapping):
        return any(_contains_sentinel(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(_contains_sentinel(v) for v in value)
    return False


def apply_mutation(
    document: Mapping[str, Any] | None,
    mutation: Mapping[str, Any],
    now: datetime | None = None,
) -> Document:
    """
    Return a new document with mutation applied.

    Args:
        document: Current attributes (None for a document that does not exist)
        mutation: Attribute -> value or sentinel
        now: Time used for SERVER_TIMESTAMP (defaults to current UTC time)

    Raises:
        ValueError: If a sentinel is nested inside a list or mapping value
    """
    result: Document = dict(document or {})
    timestamp = (now or datetime.now(UTC)).isoformat()

    for attr, value in mutation.items():
        if value is DELETE_FIELD:
            result.pop(attr, None)
        elif value is SERVER_TIMESTAMP:
            result[attr] = timestamp
        elif _contains_sentinel(value):
            raise ValueError(f"Sentinel values are not allowed inside {attr!r}")
        else:
            result[attr] = value

    return result


# =============================================================================
# Change events
# =============================================================================

def join_path(collection_path: str, document_id: str) -> str:
    return f"{collection_path.strip('/')}/{document_id}"


def split_path(path: str) -> tuple[str, str]:
    """Split a document path into (collection_path, document_id)."""
    collection_path, _, document_id = path.strip("/").rpartition("/")
    if not collection_path or not document_id:
        raise ValueError(f"Not a document path: {path!r}")
    return collection_path, document_id


@dataclass(frozen=True)
class DocumentChangeEvent:
    """
    One document write notification.

    Delivery is at-least-once: the same event may arrive more than once,
    and events for the same document may arrive concurrently.

    Attributes:
        collection_path: Concrete collection path, e.g. "Junkshop/shop-1/transaction"
        document_id: Document id within the collection
        before: Attributes before the write (None on create)
        after: Attributes after the write (None on delete)
        event_id: Correlation id for logs
    """
    collection_path: str
    document_id: str
    before: Document | None = None
    after: Document | None = None
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def path(self) -> str:
        return join_path(self.collection_path, self.document_id)

    @property
    def is_deletion(self) -> bool:
        return self.after is None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> DocumentChangeEvent:
        """Build an event from its wire shape {before, after, documentId, collectionPath}."""
        collection_path = payload.get("collectionPath")
        document_id = payload.get("documentId")
        if not isinstance(collection_path, str) or not collection_path:
            raise ValueError("collectionPath is required")
        if not isinstance(document_id, str) or not document_id:
            raise ValueError("documentId is required")

        before = payload.get("before")
        after = payload.get("after")
        kwargs: dict[str, Any] = {}
        if payload.get("eventId"):
            kwargs["event_id"] = str(payload["eventId"])

        return cls(
            collection_path=collection_path,
            document_id=document_id,
            before=dict(before) if before is not None else None,
            after=dict(after) if after is not None else None,
            **kwargs,
        )


# =============================================================================
# Persistence
# =============================================================================

class StoredDocument(Base):
    """
    A document persisted as a JSON blob.

    Attributes:
        path: Full document path (primary key)
        collection_path: Collection part of the path
        document_id: Last path segment
        data: Document attributes
    """
    __tablename__ = "documents"

    path = Column(String(512), primary_key=True)
    collection_path = Column(String(512), nullable=False)
    document_id = Column(String(255), nullable=False)
    data = Column(JSON, nullable=False, default=dict)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )

    __table_args__ = (
        Index("idx_documents_collection", "collection_path"),
    )

    def __repr__(self) -> str:
        # data holds PII until sealed
        return f"<StoredDocument(path={self.path!r})>"


__all__ = [
    "DELETE_FIELD",
    "SERVER_TIMESTAMP",
    "Document",
    "DocumentChangeEvent",
    "FieldMutation",
    "FieldSentinel",
    "StoredDocument",
    "apply_mutation",
    "join_path",
    "split_path",
]
