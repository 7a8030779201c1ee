"""
Models package for FieldSeal.

Usage:
    from src.models import Base, StoredDocument, DocumentChangeEvent
"""

from src.models.base import Base
from src.models.document import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    DocumentChangeEvent,
    FieldMutation,
    FieldSentinel,
    StoredDocument,
    apply_mutation,
)

__all__ = [
    "Base",
    "StoredDocument",
    "DocumentChangeEvent",
    "FieldMutation",
    "FieldSentinel",
    "DELETE_FIELD",
    "SERVER_TIMESTAMP",
    "apply_mutation",
]
