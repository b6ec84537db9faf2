# apps/production/services/guards.py
"""
Lookup, locking and compare-and-set helpers shared by the mutating services.

Lock order is always SubBatch -> Workflow -> WorkAssignment so that two
requests touching the same sub-batch serialize on the sub-batch row instead of
deadlocking. Every helper here must be called inside ``transaction.atomic()``.
"""
import logging

from django.db.models import F
from django.utils import timezone

from ..exceptions import ConcurrentModification, InvalidQuantity, NotFound, SubBatchFrozen
from ..models import SubBatch, WorkAssignment, Workflow

logger = logging.getLogger(__name__)


def lock_sub_batch(sub_batch_id) -> SubBatch:
    try:
        return SubBatch.objects.select_for_update().get(pk=sub_batch_id)
    except SubBatch.DoesNotExist:
        raise NotFound(f"Sub-batch {sub_batch_id} not found.", sub_batch_id=sub_batch_id)


def ensure_not_frozen(sub_batch: SubBatch):
    if sub_batch.is_frozen:
        raise SubBatchFrozen(
            f"Sub-batch {sub_batch.pk} is completed and can no longer be changed.",
            sub_batch_id=sub_batch.pk,
        )


def lock_workflow(sub_batch: SubBatch) -> Workflow:
    try:
        return Workflow.objects.select_for_update().get(sub_batch=sub_batch)
    except Workflow.DoesNotExist:
        raise NotFound(f"Sub-batch {sub_batch.pk} has not been sent to production.", sub_batch_id=sub_batch.pk)


def lock_assignment(assignment_id):
    """Return ``(sub_batch, assignment)`` with both rows locked."""
    sub_batch_id = (
        WorkAssignment.objects.filter(pk=assignment_id).values_list("sub_batch_id", flat=True).first()
    )
    if sub_batch_id is None:
        raise NotFound(f"Work assignment {assignment_id} not found.", assignment_id=assignment_id)
    sub_batch = lock_sub_batch(sub_batch_id)
    assignment = WorkAssignment.objects.select_for_update().get(pk=assignment_id)
    return sub_batch, assignment


def update_versioned(assignment: WorkAssignment, require_current=False, **changes):
    """
    Write ``changes`` only if the row still carries the version we read.

    Raises ConcurrentModification when another request got there first; the
    in-memory instance is refreshed with the new values and version on success.
    """
    now = timezone.now()
    qs = WorkAssignment.objects.filter(pk=assignment.pk, version=assignment.version)
    if require_current:
        qs = qs.filter(is_current=True)
    updated = qs.update(version=F("version") + 1, updated_at=now, **changes)
    if updated != 1:
        logger.warning(
            "Lost update on work assignment %s (expected version %s)", assignment.pk, assignment.version
        )
        raise ConcurrentModification(
            f"Work assignment {assignment.pk} was changed by another request.",
            assignment_id=assignment.pk,
        )
    for field, value in changes.items():
        setattr(assignment, field, value)
    assignment.version += 1
    assignment.updated_at = now
    return assignment


def retire(assignment: WorkAssignment):
    """Take a card out of the current lineage heads (never deletes it)."""
    return update_versioned(assignment, require_current=True, is_current=False, retired_at=timezone.now())


def coerce_quantity(value, field="quantity") -> int:
    if isinstance(value, bool):
        raise InvalidQuantity(f"{field} must be a whole number.", **{field: value})
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise InvalidQuantity(f"{field} must be a whole number.", **{field: str(value)})
    if quantity != value and not isinstance(value, str):
        raise InvalidQuantity(f"{field} must be a whole number.", **{field: str(value)})
    if quantity <= 0:
        raise InvalidQuantity(f"{field} must be greater than zero.", **{field: quantity})
    return quantity
