"""
Services for FieldSeal.

Services:
    - WritePipeline: seals policy-declared fields on each change event
    - SqlDocumentStore: SQLAlchemy-backed document persistence
    - ResidentRequestSanitizer: strips display-only PII
    - seal_shop_email: admin-only sealed email write
    - find_by_lookup: equality search by blind index
"""

from .admin_seal import seal_shop_email
from .document_store import DocumentStore, SqlDocumentStore
from .pii_lookup import find_by_lookup
from .pii_sanitizer import ResidentRequestSanitizer
from .write_pipeline import (
    PipelineResult,
    PipelineStatus,
    WritePipeline,
    build_pipeline,
    plan_mutation,
)

__all__ = [
    "DocumentStore",
    "SqlDocumentStore",
    "WritePipeline",
    "PipelineResult",
    "PipelineStatus",
    "build_pipeline",
    "plan_mutation",
    "ResidentRequestSanitizer",
    "seal_shop_email",
    "find_by_lookup",
]
