"""
Structured logging for FieldSeal.

structlog is the front end; stdlib logging is the sink, so records from
SQLAlchemy and other libraries share one formatter with ours.

Plaintext PII must never reach a log line. Every record passes through
`redact_plaintext`, which masks the values of known source attributes
(`email`, `customerName`, ...) if a caller ever passes one as a key.
Field *names* and document ids are fine to log; values are not.

Usage:
    from src.lib.logging import setup_logging, event_context

    setup_logging()  # once per process

    with event_context(event):
        pipeline.process(event)  # every record carries event_id and path
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterable, Iterator, MutableMapping
from contextlib import contextmanager
from typing import Any

import structlog

REDACTED = "[redacted]"

DEFAULT_REDACTED_KEYS: frozenset[str] = frozenset({
    "email",
    "emailDisplay",
    "publicName",
    "customerName",
    "plaintext",
    "normalized",
    "raw_value",
    "value",
})

_redacted_keys: frozenset[str] = DEFAULT_REDACTED_KEYS


def redact_plaintext(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor: mask values stored under sensitive keys."""
    for key in _redacted_keys.intersection(event_dict):
        if event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def setup_logging(
    dev_mode: bool | None = None,
    level: str | None = None,
    redacted_keys: Iterable[str] = DEFAULT_REDACTED_KEYS,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        dev_mode: Console renderer instead of JSON. Defaults to FIELDSEAL_DEV_MODE=1.
        level: Root level name. Defaults to LOG_LEVEL, then INFO.
        redacted_keys: Event keys whose values are always masked
    """
    global _redacted_keys
    _redacted_keys = frozenset(redacted_keys)

    if dev_mode is None:
        dev_mode = os.environ.get("FIELDSEAL_DEV_MODE") == "1"
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        redact_plaintext,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = structlog.dev.ConsoleRenderer() if dev_mode else structlog.processors.JSONRenderer()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # Engine echo logs bound parameters, i.e. document payloads
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


@contextmanager
def event_context(event: Any) -> Iterator[None]:
    """Bind the change event's correlation ids for every record logged inside."""
    with structlog.contextvars.bound_contextvars(
        event_id=event.event_id,
        collection=event.collection_path,
        document_id=event.document_id,
    ):
        yield


__all__ = ["REDACTED", "event_context", "redact_plaintext", "setup_logging"]
