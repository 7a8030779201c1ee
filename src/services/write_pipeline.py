"""
Idempotent Write Pipeline for FieldSeal.

Invoked once per document change event. For every policy-declared field
that still holds plaintext, the pipeline normalizes the value, seals it
(AES-256-GCM + blind index), applies the field's retention mode, and
commits everything in a single write.

Idempotency:
    Planning is a pure function of the document's current attributes. A
    field whose `P_enc` attribute already exists is never sealed again, so a
    redelivered event, or the change event caused by our own commit,
    produces an empty mutation and no write at all.

Concurrency:
    There is no lock. Two invocations racing on the same document may both
    see "not sealed" and both commit; the last commit wins and the document
    still holds exactly one valid sealed field. Only the work is wasted.

Failure semantics:
    - ValidationError on a field: logged, that field is skipped, the rest
      of the event proceeds
    - Any other error while planning: logged with correlation ids, the
      document is left untouched and the next write retries from scratch
    - TransientWriteError on commit: logged and re-raised for redelivery
    - ConfigurationError: never swallowed
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from src.config.field_policy import (
    PII_VERSION_ATTR,
    POLICY_TABLE,
    POLICY_VERSION,
    CollectionPolicy,
    FieldPolicy,
    RetentionMode,
    find_policy,
)
from src.infra.monitoring import (
    record_event,
    record_field_sealed,
    record_field_skipped,
    track_event,
)
from src.lib.encryption import FieldSealer
from src.lib.exceptions import (
    ConfigurationError,
    DocumentNotFoundError,
    TransientWriteError,
    ValidationError,
)
from src.lib.keys import KeyMaterial, get_key_material, load_key_material
from src.lib.normalize import normalize
from src.models.document import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    DocumentChangeEvent,
    FieldMutation,
)
from src.services.document_store import DocumentStore

logger = structlog.get_logger(__name__)

_ELEMENT_INDEX = re.compile(r"\[\d+\]")


def epoch_millis() -> int:
    return int(time.time() * 1000)


def _metric_field(label: str) -> str:
    # items[3].subtotal -> items[].subtotal
    return _ELEMENT_INDEX.sub("[]", label)


# =============================================================================
# Results
# =============================================================================

class PipelineStatus(Enum):
    """Outcome of one event."""
    SKIPPED_DELETED = "skipped_deleted"
    NO_POLICY = "no_policy"
    NOOP = "noop"
    WRITTEN = "written"
    FAILED = "failed"


@dataclass
class MutationPlan:
    """
    What one event would change.

    Attributes:
        mutation: Attributes to commit (empty when nothing needs sealing)
        sealed: Field labels sealed by this plan, e.g. "email", "items[0].subtotal"
        invalid: Field labels skipped because their value failed validation
        already_sealed: Field labels skipped because `P_enc` is present
    """
    mutation: FieldMutation = field(default_factory=FieldMutation)
    sealed: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)
    already_sealed: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PipelineResult:
    status: PipelineStatus
    sealed: tuple[str, ...] = ()
    invalid: tuple[str, ...] = ()

    @property
    def written(self) -> bool:
        return self.status == PipelineStatus.WRITTEN


# =============================================================================
# Planning (pure)
# =============================================================================

def has_plaintext(value: Any) -> bool:
    """A source counts as present unless it is None or a blank string."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def _is_sealed(container: Mapping[str, Any], policy: FieldPolicy) -> bool:
    return bool(container.get(policy.attributes.enc))


def _seal_into(
    target: dict[str, Any],
    source_value: Any,
    policy: FieldPolicy,
    sealer: FieldSealer,
    delete_marker: Any,
) -> None:
    """Write the sealed attributes and apply retention to target."""
    normalized = normalize(policy.kind, source_value)
    sealed = sealer.seal(normalized)
    target.update(sealed.to_attributes(policy.attributes))

    if policy.retention == RetentionMode.DELETE_PLAINTEXT:
        target[policy.source] = delete_marker
    elif policy.retention == RetentionMode.DUPLICATE_TO_DISPLAY and policy.display_field:
        target[policy.display_field] = source_value
        target[policy.source] = delete_marker


def _plan_top_level(
    document: Mapping[str, Any],
    policy: FieldPolicy,
    sealer: FieldSealer,
    plan: MutationPlan,
    log: Any,
) -> None:
    if _is_sealed(document, policy):
        plan.already_sealed.append(policy.source)
        return
    if not has_plaintext(document.get(policy.source)):
        return

    staged: dict[str, Any] = {}
    try:
        _seal_into(staged, document[policy.source], policy, sealer, DELETE_FIELD)
    except ValidationError as e:
        log.warning("pii_field_skipped_invalid", field=policy.source, error_type=type(e).__name__)
        plan.invalid.append(policy.source)
        return

    staged[policy.attributes.set_at] = SERVER_TIMESTAMP
    staged[PII_VERSION_ATTR] = POLICY_VERSION
    plan.mutation.update(staged)
    plan.sealed.append(policy.source)


def _plan_array(
    document: Mapping[str, Any],
    array_name: str,
    policies: tuple[FieldPolicy, ...],
    sealer: FieldSealer,
    clock: Callable[[], int],
    plan: MutationPlan,
    log: Any,
) -> None:
    elements = document.get(array_name)
    if not isinstance(elements, list) or not elements:
        return

    changed = False
    new_elements: list[Any] = []
    for index, element in enumerate(elements):
        if not isinstance(element, Mapping):
            new_elements.append(element)
            continue

        copy = dict(element)
        for policy in policies:
            label = f"{array_name}[{index}].{policy.source}"
            if _is_sealed(copy, policy):
                plan.already_sealed.append(label)
                continue
            if not has_plaintext(copy.get(policy.source)):
                continue

            staged: dict[str, Any] = {}
            try:
                # Array elements cannot hold sentinels: delete means "leave out"
                _seal_into(staged, copy[policy.source], policy, sealer, DELETE_FIELD)
            except ValidationError as e:
                log.warning("pii_field_skipped_invalid", field=label, error_type=type(e).__name__)
                plan.invalid.append(label)
                continue

            for attr, value in staged.items():
                if value is DELETE_FIELD:
                    copy.pop(attr, None)
                else:
                    copy[attr] = value
            copy[policy.attributes.set_at_ms] = clock()
            plan.sealed.append(label)
            changed = True

        new_elements.append(copy)

    if changed:
        plan.mutation[array_name] = new_elements


def plan_mutation(
    document: Mapping[str, Any],
    policy: CollectionPolicy,
    sealer: FieldSealer,
    clock: Callable[[], int] = epoch_millis,
    log: Any = None,
) -> MutationPlan:
    """
    Compute the mutation that seals every unsealed field of a document.

    Args:
        document: Current document attributes (the event's `after`)
        policy: Collection policy for the document
        sealer: Cipher and blind index for the active key pair
        clock: Epoch-millisecond source for array element timestamps
        log: structlog logger bound with correlation ids

    Returns:
        MutationPlan; its mutation is empty when nothing needs sealing
    """
    log = log or logger
    plan = MutationPlan()

    for field_policy in policy.fields:
        _plan_top_level(document, field_policy, sealer, plan, log)

    for array_name, element_policies in policy.array_fields.items():
        _plan_array(document, array_name, element_policies, sealer, clock, plan, log)

    return plan


# =============================================================================
# Pipeline
# =============================================================================

class WritePipeline:
    """
    Seals policy-declared fields on each document change event.

    Example:
        >>> pipeline = WritePipeline(store=store, keys=get_key_material())
        >>> result = pipeline.process(event)
        >>> result.status
        <PipelineStatus.WRITTEN: 'written'>
    """

    def __init__(
        self,
        store: DocumentStore,
        keys: KeyMaterial,
        policies: tuple[CollectionPolicy, ...] = POLICY_TABLE,
        clock: Callable[[], int] = epoch_millis,
    ):
        """
        Initialize the pipeline.

        Args:
            store: Document store the mutation is committed to
            keys: Validated key material, shared read-only
            policies: Collection policy table
            clock: Epoch-millisecond source for array element timestamps

        Raises:
            ConfigurationError: If the keys are malformed
        """
        self._store = store
        self._sealer = FieldSealer(keys)
        self._policies = policies
        self._clock = clock

    def process(self, event: DocumentChangeEvent) -> PipelineResult:
        """
        Process one change event.

        Returns:
            PipelineResult describing what happened

        Raises:
            TransientWriteError: If the commit fails (redelivery retries it)
            ConfigurationError: If key material is unusable
        """
        log = logger.bind(
            event_id=event.event_id,
            collection_path=event.collection_path,
            document_id=event.document_id,
        )

        after = event.after
        if after is None:
            return PipelineResult(status=PipelineStatus.SKIPPED_DELETED)

        policy = find_policy(event.collection_path, self._policies)
        if policy is None:
            log.debug("pii_event_no_policy")
            return PipelineResult(status=PipelineStatus.NO_POLICY)

        with track_event(policy.collection):
            result = self._process(event.path, after, policy, log)
        record_event(policy.collection, result.status.value)
        return result

    def _process(
        self,
        path: str,
        after: Mapping[str, Any],
        policy: CollectionPolicy,
        log: Any,
    ) -> PipelineResult:
        try:
            plan = plan_mutation(after, policy, self._sealer, self._clock, log)
        except ConfigurationError:
            log.error("pii_event_configuration_error")
            raise
        except Exception as e:
            log.error("pii_event_failed", error_type=type(e).__name__, exc_info=True)
            return PipelineResult(status=PipelineStatus.FAILED)

        for label in plan.invalid:
            record_field_skipped(policy.collection, _metric_field(label), "invalid")
        for label in plan.already_sealed:
            record_field_skipped(policy.collection, _metric_field(label), "already_sealed")

        if plan.mutation.is_empty:
            return PipelineResult(status=PipelineStatus.NOOP, invalid=tuple(plan.invalid))

        try:
            self._store.update(path, plan.mutation)
        except DocumentNotFoundError:
            log.warning("pii_event_document_gone")
            return PipelineResult(status=PipelineStatus.SKIPPED_DELETED)
        except TransientWriteError:
            log.error("pii_event_write_failed", exc_info=True)
            raise

        for label in plan.sealed:
            record_field_sealed(policy.collection, _metric_field(label))
        log.info("pii_fields_sealed", fields=plan.sealed)

        return PipelineResult(
            status=PipelineStatus.WRITTEN,
            sealed=tuple(plan.sealed),
            invalid=tuple(plan.invalid),
        )


def build_pipeline(
    store: DocumentStore,
    environ: Mapping[str, str] | None = None,
    policies: tuple[CollectionPolicy, ...] = POLICY_TABLE,
) -> WritePipeline:
    """
    Load keys and wire a pipeline.

    Raises:
        ConfigurationError: If the key secrets are missing or malformed.
            No event may be processed in that case.
    """
    keys = load_key_material(environ) if environ is not None else get_key_material()
    return WritePipeline(store=store, keys=keys, policies=policies)


__all__ = [
    "MutationPlan",
    "PipelineResult",
    "PipelineStatus",
    "WritePipeline",
    "build_pipeline",
    "has_plaintext",
    "plan_mutation",
]
