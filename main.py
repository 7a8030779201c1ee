"""
FieldSeal -- Process Entry Point.

Wires logging, keys, the document store and the event handlers once per
process. The hosting platform calls `handle_event` for every document
change notification.

Usage:
    python main.py              # Startup check: validates keys and the database

Environment:
    PII_AES_KEY_B64, PII_HMAC_KEY_B64   base64 secrets (required)
    FIELDSEAL_DATABASE_URL              SQLAlchemy URL (default: in-memory SQLite)
    FIELDSEAL_DEV_MODE=1                human-readable logs
"""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.lib.exceptions import ConfigurationError
from src.lib.logging import event_context, setup_logging
from src.models.base import Base
from src.models.document import DocumentChangeEvent
from src.services.document_store import SqlDocumentStore
from src.services.pii_sanitizer import ResidentRequestSanitizer
from src.services.write_pipeline import PipelineResult, WritePipeline, build_pipeline

logger = structlog.get_logger(__name__)


@dataclass
class Handlers:
    store: SqlDocumentStore
    pipeline: WritePipeline
    sanitizer: ResidentRequestSanitizer


def create_handlers(environ: Mapping[str, str] | None = None) -> Handlers:
    """
    Build the store and handlers.

    Raises:
        ConfigurationError: If the key secrets are missing or malformed
    """
    env = os.environ if environ is None else environ
    engine = create_engine(env.get("FIELDSEAL_DATABASE_URL", "sqlite:///:memory:"))
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine)()

    store = SqlDocumentStore(session)
    return Handlers(
        store=store,
        pipeline=build_pipeline(store, environ=env),
        sanitizer=ResidentRequestSanitizer(store),
    )


def handle_event(handlers: Handlers, payload: Mapping[str, Any]) -> PipelineResult:
    """Dispatch one change notification to the sanitizer and the write pipeline."""
    event = DocumentChangeEvent.from_dict(payload)
    with event_context(event):
        handlers.sanitizer.process(event)
        return handlers.pipeline.process(event)


if __name__ == "__main__":
    setup_logging()
    try:
        create_handlers()
    except ConfigurationError as e:
        logger.critical("fieldseal_startup_failed", error=str(e))
        sys.exit(1)
    logger.info("fieldseal_ready")
