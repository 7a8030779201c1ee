"""
Field Transform Policy for FieldSeal.

Declares, per collection, which document attributes are sealed and what
happens to their plaintext afterwards. The table is static configuration:
nothing here is persisted per document.

Retention modes:
- DELETE_PLAINTEXT: source attribute removed after sealing
- KEEP_PLAINTEXT: source attribute left untouched (UI displays it directly)
- DUPLICATE_TO_DISPLAY: source removed, value copied into a non-indexed
  display attribute

Monetary fields keep their plaintext because the shop UI renders amounts
without a decrypt round-trip. Names and emails do not. Retention is an
explicit per-field choice, never a blanket rule.

Reference: src/services/write_pipeline.py consumes POLICY_TABLE
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from src.lib.encryption import AttributeNames
from src.lib.exceptions import ConfigurationError
from src.lib.normalize import NormalizationKind

# Written as `piiVersion` on every top-level seal
POLICY_VERSION = 1
PII_VERSION_ATTR = "piiVersion"


class RetentionMode(Enum):
    """What happens to the plaintext source once a field is sealed."""
    DELETE_PLAINTEXT = "delete_plaintext"
    KEEP_PLAINTEXT = "keep_plaintext"
    DUPLICATE_TO_DISPLAY = "duplicate_to_display"


@dataclass(frozen=True)
class FieldPolicy:
    """
    Sealing rule for one logical field.

    Attributes:
        source: Plaintext attribute read from the document (or array element)
        prefix: Prefix of the sealed attributes (P_enc, P_nonce, ...)
        kind: Normalization applied before sealing
        retention: What happens to the plaintext source
        array_safe: True when the field lives inside array elements; such
            fields never receive server timestamp sentinels
        display_field: Target attribute for DUPLICATE_TO_DISPLAY
    """
    source: str
    prefix: str
    kind: NormalizationKind
    retention: RetentionMode = RetentionMode.DELETE_PLAINTEXT
    array_safe: bool = False
    display_field: str | None = None

    def __post_init__(self) -> None:
        needs_display = self.retention == RetentionMode.DUPLICATE_TO_DISPLAY
        if needs_display and not self.display_field:
            raise ConfigurationError(f"Policy for {self.source!r} duplicates to display but has no display_field")
        if not needs_display and self.display_field:
            raise ConfigurationError(f"Policy for {self.source!r} sets display_field without DUPLICATE_TO_DISPLAY")

    @property
    def attributes(self) -> AttributeNames:
        return AttributeNames.for_prefix(self.prefix)


@dataclass(frozen=True)
class CollectionPolicy:
    """
    All field policies that apply to documents of one collection.

    Attributes:
        collection: Collection path pattern, e.g. "Junkshop/{shopId}/transaction".
            Segments in braces match any concrete segment.
        fields: Policies for top-level attributes
        array_fields: Array attribute name -> policies for its elements
    """
    collection: str
    fields: tuple[FieldPolicy, ...] = ()
    array_fields: dict[str, tuple[FieldPolicy, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for policy in self.fields:
            if policy.array_safe:
                raise ConfigurationError(f"Top-level policy {policy.source!r} must not be array_safe")
        for array_name, policies in self.array_fields.items():
            for policy in policies:
                if not policy.array_safe:
                    raise ConfigurationError(f"Element policy {array_name}[].{policy.source} must be array_safe")

    def matches(self, collection_path: str) -> bool:
        """Check whether a concrete collection path matches this pattern."""
        pattern = self.collection.strip("/").split("/")
        actual = collection_path.strip("/").split("/")
        if len(pattern) != len(actual):
            return False
        return all(
            (p.startswith("{") and p.endswith("}") and a) or p == a
            for p, a in zip(pattern, actual)
        )

    def all_policies(self) -> list[FieldPolicy]:
        """Every field policy, top-level first."""
        result = list(self.fields)
        for policies in self.array_fields.values():
            result.extend(policies)
        return result


# =============================================================================
# Default policy table
# =============================================================================

SHOP_EMAIL = FieldPolicy(
    source="email",
    prefix="shopEmail",
    kind=NormalizationKind.EMAIL,
    retention=RetentionMode.DELETE_PLAINTEXT,
)

CUSTOMER_NAME = FieldPolicy(
    source="customerName",
    prefix="customerName",
    kind=NormalizationKind.TEXT,
    retention=RetentionMode.DUPLICATE_TO_DISPLAY,
    display_field="customerNameDisplay",
)

TOTAL_AMOUNT = FieldPolicy(
    source="totalAmount",
    prefix="totalAmount",
    kind=NormalizationKind.MONEY,
    retention=RetentionMode.KEEP_PLAINTEXT,
)

TOTAL_PRICE = FieldPolicy(
    source="totalPrice",
    prefix="totalPrice",
    kind=NormalizationKind.MONEY,
    retention=RetentionMode.KEEP_PLAINTEXT,
)

ITEM_SUBTOTAL = FieldPolicy(
    source="subtotal",
    prefix="subtotal",
    kind=NormalizationKind.MONEY,
    retention=RetentionMode.KEEP_PLAINTEXT,
    array_safe=True,
)

JUNKSHOP_POLICY = CollectionPolicy(
    collection="Junkshop",
    fields=(SHOP_EMAIL,),
)

TRANSACTION_POLICY = CollectionPolicy(
    collection="Junkshop/{shopId}/transaction",
    fields=(CUSTOMER_NAME, TOTAL_AMOUNT, TOTAL_PRICE),
    array_fields={"items": (ITEM_SUBTOTAL,)},
)

POLICY_TABLE: tuple[CollectionPolicy, ...] = (
    JUNKSHOP_POLICY,
    TRANSACTION_POLICY,
)


def find_policy(
    collection_path: str,
    table: tuple[CollectionPolicy, ...] = POLICY_TABLE,
) -> CollectionPolicy | None:
    """Return the first collection policy matching collection_path, if any."""
    for policy in table:
        if policy.matches(collection_path):
            return policy
    return None


__all__ = [
    "POLICY_TABLE",
    "POLICY_VERSION",
    "PII_VERSION_ATTR",
    "CollectionPolicy",
    "FieldPolicy",
    "RetentionMode",
    "find_policy",
]
