"""
Tests for SqlDocumentStore.

Uses an in-memory SQLite database with a real SQLAlchemy session.
"""

from datetime import UTC, datetime
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from src.lib.exceptions import DocumentNotFoundError, TransientWriteError
from src.models.document import DELETE_FIELD, SERVER_TIMESTAMP, FieldMutation
from src.services.document_store import SqlDocumentStore

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)


def test_get_missing(store):
    assert store.get("Junkshop/nope") is None


def test_set_and_get(store):
    store.set("Junkshop/shop-1", {"name": "Shop", "email": "a@b.com"})
    assert store.get("Junkshop/shop-1") == {"name": "Shop", "email": "a@b.com"}


def test_set_overwrites_without_merge(store):
    store.set("Junkshop/shop-1", {"name": "Shop", "email": "a@b.com"})
    store.set("Junkshop/shop-1", {"name": "Other"})
    assert store.get("Junkshop/shop-1") == {"name": "Other"}


def test_set_merge(store):
    store.set("Junkshop/shop-1", {"name": "Shop", "email": "a@b.com"})
    store.set("Junkshop/shop-1", {"email": DELETE_FIELD, "x": 1}, merge=True)
    assert store.get("Junkshop/shop-1") == {"name": "Shop", "x": 1}


def test_set_merge_creates(store):
    store.set("Junkshop/shop-2", {"x": 1}, merge=True)
    assert store.get("Junkshop/shop-2") == {"x": 1}


def test_update_applies_sentinels(db_session):
    store = SqlDocumentStore(db_session, clock=lambda: NOW)
    store.set("Junkshop/shop-1", {"email": "a@b.com"})
    store.update(
        "Junkshop/shop-1",
        FieldMutation({"email": DELETE_FIELD, "shopEmailSetAt": SERVER_TIMESTAMP}),
    )
    assert store.get("Junkshop/shop-1") == {"shopEmailSetAt": NOW.isoformat()}


def test_update_missing_document(store):
    with pytest.raises(DocumentNotFoundError):
        store.update("Junkshop/nope", {"a": 1})


def test_get_returns_copy(store):
    store.set("Junkshop/shop-1", {"a": 1})
    doc = store.get("Junkshop/shop-1")
    doc["a"] = 2
    assert store.get("Junkshop/shop-1") == {"a": 1}


def test_delete(store):
    store.set("Junkshop/shop-1", {"a": 1})
    store.delete("Junkshop/shop-1")
    assert store.get("Junkshop/shop-1") is None
    store.delete("Junkshop/shop-1")


def test_find_by(store):
    store.set("Junkshop/s1/transaction/t1", {"k": "x"})
    store.set("Junkshop/s1/transaction/t2", {"k": "y"})
    store.set("Junkshop/s2/transaction/t3", {"k": "x"})

    assert store.find_by("Junkshop/s1/transaction", "k", "x") == [
        ("Junkshop/s1/transaction/t1", {"k": "x"}),
    ]


def test_database_failure_becomes_transient(db_session):
    store = SqlDocumentStore(db_session)
    store.set("Junkshop/shop-1", {"a": 1})

    db_session.commit = Mock(side_effect=OperationalError("UPDATE", {}, Exception("db down")))
    db_session.rollback = Mock()

    with pytest.raises(TransientWriteError):
        store.update("Junkshop/shop-1", {"a": 2})
    db_session.rollback.assert_called_once()
