"""
Tests for the field policy table.

Covers:
- Policy validation (display field rules, array-safe placement)
- Collection path matching
- The default table's per-field decisions
"""

import pytest

from src.config.field_policy import (
    CUSTOMER_NAME,
    ITEM_SUBTOTAL,
    POLICY_TABLE,
    SHOP_EMAIL,
    TOTAL_AMOUNT,
    TOTAL_PRICE,
    CollectionPolicy,
    FieldPolicy,
    RetentionMode,
    find_policy,
)
from src.lib.exceptions import ConfigurationError
from src.lib.normalize import NormalizationKind


class TestFieldPolicy:

    def test_attribute_names_follow_prefix(self):
        assert SHOP_EMAIL.attributes.enc == "shopEmail_enc"
        assert SHOP_EMAIL.attributes.lookup == "shopEmail_lookup"

    def test_display_field_required_for_duplicate(self):
        with pytest.raises(ConfigurationError, match="display_field"):
            FieldPolicy(
                source="name",
                prefix="name",
                kind=NormalizationKind.TEXT,
                retention=RetentionMode.DUPLICATE_TO_DISPLAY,
            )

    def test_display_field_only_for_duplicate(self):
        with pytest.raises(ConfigurationError):
            FieldPolicy(
                source="name",
                prefix="name",
                kind=NormalizationKind.TEXT,
                retention=RetentionMode.KEEP_PLAINTEXT,
                display_field="nameDisplay",
            )


class TestCollectionPolicy:

    def test_top_level_field_cannot_be_array_safe(self):
        with pytest.raises(ConfigurationError):
            CollectionPolicy(collection="x", fields=(ITEM_SUBTOTAL,))

    def test_array_field_must_be_array_safe(self):
        with pytest.raises(ConfigurationError):
            CollectionPolicy(collection="x", array_fields={"items": (TOTAL_AMOUNT,)})

    @pytest.mark.parametrize(
        "path, expected",
        [
            ("Junkshop/shop-1/transaction", True),
            ("/Junkshop/shop-1/transaction/", True),
            ("Junkshop/transaction", False),
            ("Junkshop/shop-1/items", False),
            ("Junkshop/shop-1/transaction/tx-1/extra", False),
        ],
    )
    def test_matches_wildcards(self, path, expected):
        policy = CollectionPolicy(collection="Junkshop/{shopId}/transaction")
        assert policy.matches(path) is expected

    def test_all_policies(self):
        policy = find_policy("Junkshop/s/transaction")
        assert policy is not None
        assert policy.all_policies() == [CUSTOMER_NAME, TOTAL_AMOUNT, TOTAL_PRICE, ITEM_SUBTOTAL]


class TestDefaultTable:

    def test_shop_email_is_deleted_after_sealing(self):
        assert find_policy("Junkshop").fields == (SHOP_EMAIL,)
        assert SHOP_EMAIL.kind == NormalizationKind.EMAIL
        assert SHOP_EMAIL.retention == RetentionMode.DELETE_PLAINTEXT

    def test_customer_name_duplicates_to_display(self):
        assert CUSTOMER_NAME.retention == RetentionMode.DUPLICATE_TO_DISPLAY
        assert CUSTOMER_NAME.display_field == "customerNameDisplay"

    def test_money_fields_keep_plaintext(self):
        for policy in (TOTAL_AMOUNT, TOTAL_PRICE, ITEM_SUBTOTAL):
            assert policy.kind == NormalizationKind.MONEY
            assert policy.retention == RetentionMode.KEEP_PLAINTEXT

    def test_items_subtotal_is_array_safe(self):
        policy = find_policy("Junkshop/shop-1/transaction")
        assert policy.array_fields == {"items": (ITEM_SUBTOTAL,)}
        assert ITEM_SUBTOTAL.array_safe is True

    def test_unknown_collection(self):
        assert find_policy("residentRequests") is None
        assert find_policy("Junkshop/shop-1/inventory") is None

    def test_table_order(self):
        assert [p.collection for p in POLICY_TABLE] == [
            "Junkshop",
            "Junkshop/{shopId}/transaction",
        ]
