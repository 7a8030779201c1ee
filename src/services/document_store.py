"""
Document store for FieldSeal.

Persists schemaless documents and commits partial updates (FieldMutation)
atomically: either every attribute of a mutation lands or none does.
Sentinels (DELETE_FIELD, SERVER_TIMESTAMP) are resolved at commit time.

The SQLAlchemy-backed store works with any engine; tests use in-memory
SQLite, deployments point FIELDSEAL_DATABASE_URL at PostgreSQL.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DbSession

from src.lib.exceptions import DocumentNotFoundError, TransientWriteError
from src.models.document import Document, StoredDocument, apply_mutation, split_path

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Minimal store interface the sealing services depend on."""

    def get(self, path: str) -> Document | None: ...

    def set(self, path: str, data: Mapping[str, Any], merge: bool = False) -> None: ...

    def update(self, path: str, mutation: Mapping[str, Any]) -> None: ...

    def delete(self, path: str) -> None: ...

    def find_by(self, collection_path: str, attribute: str, value: Any) -> list[tuple[str, Document]]: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SqlDocumentStore:
    """
    DocumentStore backed by a SQLAlchemy session.

    Every write commits immediately. Database failures are rolled back and
    surfaced as TransientWriteError so the caller can abandon the event and
    rely on redelivery.
    """

    def __init__(
        self,
        session: DbSession,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize the store.

        Args:
            session: SQLAlchemy session (one per process or per test)
            clock: Source of SERVER_TIMESTAMP values
        """
        self._session = session
        self._clock = clock

    def _row(self, path: str) -> StoredDocument | None:
        return self._session.get(StoredDocument, path.strip("/"))

    def get(self, path: str) -> Document | None:
        """Return a copy of the document at path, or None if it does not exist."""
        row = self._row(path)
        if row is None:
            return None
        return dict(row.data or {})

    def set(self, path: str, data: Mapping[str, Any], merge: bool = False) -> None:
        """
        Create or overwrite a document.

        With merge=True, data is applied as a mutation on top of the
        existing attributes (sentinels allowed) instead of replacing them.
        """
        path = path.strip("/")
        collection_path, document_id = split_path(path)

        try:
            row = self._row(path)
            base = dict(row.data or {}) if (row is not None and merge) else {}
            new_data = apply_mutation(base, data, now=self._clock())

            if row is None:
                row = StoredDocument(
                    path=path,
                    collection_path=collection_path,
                    document_id=document_id,
                    data=new_data,
                )
                self._session.add(row)
            else:
                row.data = new_data
            self._session.commit()
        except SQLAlchemyError as e:
            self._session.rollback()
            logger.error("Document set failed for path=%s: %s", path, type(e).__name__)
            raise TransientWriteError(f"Write to {path} failed") from e

    def update(self, path: str, mutation: Mapping[str, Any]) -> None:
        """
        Apply a partial update to an existing document in one commit.

        Raises:
            DocumentNotFoundError: If the document does not exist
            TransientWriteError: If the database write fails
        """
        path = path.strip("/")
        try:
            row = self._row(path)
            if row is None:
                raise DocumentNotFoundError(f"No document at {path}")
            row.data = apply_mutation(row.data, mutation, now=self._clock())
            self._session.commit()
        except SQLAlchemyError as e:
            self._session.rollback()
            logger.error("Document update failed for path=%s: %s", path, type(e).__name__)
            raise TransientWriteError(f"Update of {path} failed") from e

    def delete(self, path: str) -> None:
        """Delete the document at path (no-op if it does not exist)."""
        path = path.strip("/")
        try:
            row = self._row(path)
            if row is not None:
                self._session.delete(row)
                self._session.commit()
        except SQLAlchemyError as e:
            self._session.rollback()
            raise TransientWriteError(f"Delete of {path} failed") from e

    def find_by(self, collection_path: str, attribute: str, value: Any) -> list[tuple[str, Document]]:
        """Return (path, document) pairs of a collection whose attribute equals value."""
        rows = (
            self._session.query(StoredDocument)
            .filter(StoredDocument.collection_path == collection_path.strip("/"))
            .order_by(StoredDocument.path)
            .all()
        )
        return [
            (row.path, dict(row.data or {}))
            for row in rows
            if (row.data or {}).get(attribute) == value
        ]


__all__ = ["DocumentStore", "SqlDocumentStore"]
