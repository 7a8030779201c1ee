"""
Tests for the resident request sanitizer.
"""

from unittest.mock import Mock

from src.models.document import DocumentChangeEvent
from src.services.pii_sanitizer import ResidentRequestSanitizer


def _event(store, data, collection="residentRequests", document_id="req-1"):
    store.set(f"{collection}/{document_id}", data)
    return DocumentChangeEvent(
        collection_path=collection,
        document_id=document_id,
        after=store.get(f"{collection}/{document_id}"),
    )


class TestResidentRequestSanitizer:

    def test_strips_both_display_attributes(self, store):
        sanitizer = ResidentRequestSanitizer(store)
        event = _event(store, {"emailDisplay": "a@b.com", "publicName": "Ana", "status": "open"})

        assert sanitizer.process(event) is True
        assert store.get("residentRequests/req-1") == {"status": "open"}

    def test_strips_when_only_one_present(self, store):
        sanitizer = ResidentRequestSanitizer(store)
        event = _event(store, {"publicName": "Ana"})

        assert sanitizer.process(event) is True
        assert store.get("residentRequests/req-1") == {}

    def test_clean_document_is_not_written(self):
        store = Mock()
        event = DocumentChangeEvent(
            collection_path="residentRequests", document_id="r", after={"status": "open"}
        )

        assert ResidentRequestSanitizer(store).process(event) is False
        store.update.assert_not_called()

    def test_own_write_is_noop(self, store):
        sanitizer = ResidentRequestSanitizer(store)
        sanitizer.process(_event(store, {"emailDisplay": "a@b.com"}))

        resend = DocumentChangeEvent(
            collection_path="residentRequests",
            document_id="req-1",
            before={"emailDisplay": "a@b.com"},
            after=store.get("residentRequests/req-1"),
        )
        assert sanitizer.process(resend) is False

    def test_ignores_other_collections(self):
        store = Mock()
        event = DocumentChangeEvent(
            collection_path="Junkshop", document_id="s", after={"publicName": "Ana"}
        )

        assert ResidentRequestSanitizer(store).process(event) is False
        store.update.assert_not_called()

    def test_ignores_deletions(self):
        store = Mock()
        event = DocumentChangeEvent(
            collection_path="residentRequests", document_id="r", before={"publicName": "Ana"}
        )

        assert ResidentRequestSanitizer(store).process(event) is False
        store.update.assert_not_called()

    def test_document_deleted_before_update(self, store):
        event = DocumentChangeEvent(
            collection_path="residentRequests",
            document_id="gone",
            after={"emailDisplay": "a@b.com"},
        )

        assert ResidentRequestSanitizer(store).process(event) is False
        assert store.get("residentRequests/gone") is None
