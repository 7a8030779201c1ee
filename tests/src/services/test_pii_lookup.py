"""
Tests for blind-index equality search.
"""

from src.config.field_policy import SHOP_EMAIL, TOTAL_AMOUNT
from src.models.document import DocumentChangeEvent
from src.services.pii_lookup import find_by_lookup


def _seal(store, pipeline, collection, document_id, data):
    path = f"{collection}/{document_id}"
    store.set(path, data)
    pipeline.process(
        DocumentChangeEvent(collection_path=collection, document_id=document_id, after=store.get(path))
    )


def test_finds_by_differently_formatted_email(store, pipeline, keys):
    _seal(store, pipeline, "Junkshop", "shop-1", {"email": "a@b.com"})
    _seal(store, pipeline, "Junkshop", "shop-2", {"email": "c@d.com"})

    matches = find_by_lookup(store, "Junkshop", SHOP_EMAIL, "  A@B.COM ", keys)

    assert [path for path, _ in matches] == ["Junkshop/shop-1"]
    assert "email" not in matches[0][1]


def test_finds_by_money_value(store, pipeline, keys):
    _seal(store, pipeline, "Junkshop/s1/transaction", "t1", {"totalAmount": "₱1,234.5"})
    _seal(store, pipeline, "Junkshop/s1/transaction", "t2", {"totalAmount": 99})

    matches = find_by_lookup(store, "Junkshop/s1/transaction", TOTAL_AMOUNT, 1234.50, keys)

    assert [path for path, _ in matches] == ["Junkshop/s1/transaction/t1"]


def test_no_match(store, pipeline, keys):
    _seal(store, pipeline, "Junkshop", "shop-1", {"email": "a@b.com"})
    assert find_by_lookup(store, "Junkshop", SHOP_EMAIL, "x@y.com", keys) == []
