"""
Tests for logging configuration and PII redaction.
"""

import logging

import structlog

from src.lib.logging import REDACTED, event_context, redact_plaintext, setup_logging
from src.models.document import DocumentChangeEvent


class TestRedaction:

    def test_masks_sensitive_values(self):
        event_dict = {"event": "x", "email": "a@b.com", "customerName": "Juan", "field": "email"}
        result = redact_plaintext(None, "info", event_dict)

        assert result["email"] == REDACTED
        assert result["customerName"] == REDACTED
        assert result["field"] == "email"

    def test_leaves_none_alone(self):
        assert redact_plaintext(None, "info", {"email": None})["email"] is None

    def test_custom_keys(self):
        setup_logging(dev_mode=False, redacted_keys={"phone"})
        try:
            result = redact_plaintext(None, "info", {"phone": "0917", "email": "a@b.com"})
            assert result == {"phone": REDACTED, "email": "a@b.com"}
        finally:
            setup_logging(dev_mode=False)


class TestSetupLogging:

    def test_sets_root_level(self):
        setup_logging(dev_mode=True, level="warning")
        assert logging.getLogger().level == logging.WARNING
        setup_logging(dev_mode=False, level="INFO")
        assert logging.getLogger().level == logging.INFO

    def test_quiets_sql_echo(self):
        setup_logging(dev_mode=False)
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_json_output_is_redacted(self, capsys):
        setup_logging(dev_mode=False)
        structlog.get_logger("fieldseal.test").info("redaction_check", email="a@b.com")

        err = capsys.readouterr().err
        assert "a@b.com" not in err
        assert REDACTED in err


def test_event_context_binds_ids():
    event = DocumentChangeEvent(collection_path="Junkshop", document_id="shop-1", event_id="evt-9")

    with event_context(event):
        bound = structlog.contextvars.get_contextvars()
        assert bound["event_id"] == "evt-9"
        assert bound["document_id"] == "shop-1"
        assert bound["collection"] == "Junkshop"

    assert "event_id" not in structlog.contextvars.get_contextvars()
