"""
Shared test fixtures for FieldSeal.

This module provides common fixtures used across all test modules:
- Fixed test key material (and its base64 environment form)
- Database session (in-memory SQLite)
- SqlDocumentStore on that session
- WritePipeline with a frozen clock

Usage:
    All fixtures are automatically available to any test in the tests/ directory.
"""

from __future__ import annotations

import base64
from datetime import UTC, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.lib.keys import KeyMaterial, reset_key_material
from src.models.base import Base
from src.models.document import StoredDocument  # noqa: F401
from src.services.document_store import SqlDocumentStore
from src.services.write_pipeline import WritePipeline

TEST_CIPHER_KEY = b"test-cipher-key-for-fieldseal-32"  # exactly 32 bytes
TEST_HMAC_KEY = b"test-hmac-key-for-fieldseal-blind-index"  # 39 bytes

FROZEN_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)
FROZEN_MS = 1714564800000


def key_env(cipher_key: bytes = TEST_CIPHER_KEY, hmac_key: bytes = TEST_HMAC_KEY) -> dict[str, str]:
    """Build an environment mapping carrying the two base64 secrets."""
    return {
        "PII_AES_KEY_B64": base64.b64encode(cipher_key).decode(),
        "PII_HMAC_KEY_B64": base64.b64encode(hmac_key).decode(),
    }


@pytest.fixture(autouse=True)
def _reset_key_cache():
    """Never leak the process-wide key cache between tests."""
    reset_key_material()
    yield
    reset_key_material()


@pytest.fixture()
def keys() -> KeyMaterial:
    return KeyMaterial(cipher_key=TEST_CIPHER_KEY, hmac_key=TEST_HMAC_KEY)


@pytest.fixture()
def key_environ() -> dict[str, str]:
    return key_env()


@pytest.fixture()
def db_session():
    """
    Provide a SQLAlchemy session backed by an in-memory SQLite database.

    A fresh database is created for every test that requests this fixture.
    """
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    TestingSession = sessionmaker(bind=engine)
    session = TestingSession()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture()
def store(db_session) -> SqlDocumentStore:
    return SqlDocumentStore(db_session, clock=lambda: FROZEN_NOW)


@pytest.fixture()
def pipeline(store, keys) -> WritePipeline:
    return WritePipeline(store=store, keys=keys, clock=lambda: FROZEN_MS)
