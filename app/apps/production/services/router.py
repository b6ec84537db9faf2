# apps/production/services/router.py
"""
Workflow routing: dispatching a sub-batch onto its planned departments and
moving cards from one department to the next.

Main-lineage cards (Main and the per-worker Assigned shares carved from it)
follow ``Workflow.current_step_index``.
Rejected/Altered branch cards carry their own ``step_index`` and move with
``advance_branch``; they never merge back into the main lineage.
"""
import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.masters.models import Department, Worker

from ..exceptions import (
    AlreadyDispatched, ConcurrentModification, IncompleteWork, InvalidQuantity, InvalidRequest, NotFound,
)
from ..models import (
    BRANCH_LINEAGE, MAIN_LINEAGE, LineageKind, Stage, SubBatch, WorkAssignment, Workflow, WorkflowStep,
)
from .guards import (
    coerce_quantity, ensure_not_frozen, lock_assignment, lock_sub_batch, lock_workflow, retire, update_versioned,
)
from .history import record_stage_change
from .ledger import compute_progress, sync_remaining

logger = logging.getLogger(__name__)


def current_main_cards(sub_batch, step_index, lock=False):
    qs = WorkAssignment.objects.filter(
        sub_batch=sub_batch, step_index=step_index, lineage__in=MAIN_LINEAGE, is_current=True,
    ).order_by("id")
    if lock:
        qs = qs.select_for_update()
    return list(qs)


def _get_worker(worker_id):
    worker = Worker.objects.filter(pk=worker_id).first()
    if worker is None:
        raise NotFound(f"Worker {worker_id} not found.", worker_id=worker_id)
    return worker


def open_card(sub_batch, department, lineage, quantity, *, step_index=None, source=None,
              sent_from=None, reason="", history_reason="", worker=None):
    """
    Put ``quantity`` pieces on the current card for (sub-batch, department, lineage),
    keyed also by ``worker`` for Assigned shares.

    A new card is created unless one is already current for that key, in which
    case the pieces are added to it (reopening it if it was marked completed).
    Returns ``(card, created)``.
    """
    existing = WorkAssignment.objects.select_for_update().filter(
        sub_batch=sub_batch, department=department, lineage=lineage, is_current=True,
    )
    if lineage == LineageKind.ASSIGNED:
        existing = existing.filter(assigned_worker=worker)
    existing = existing.first()
    if existing is not None:
        reopened_from = existing.stage if existing.stage == Stage.COMPLETED else None
        changes = {"quantity_received": existing.quantity_received + quantity}
        if reopened_from:
            changes["stage"] = Stage.IN_PROGRESS.value
        update_versioned(existing, **changes)
        if reopened_from:
            record_stage_change(existing, reopened_from, Stage.IN_PROGRESS.value,
                                reason="Reopened for additional pieces", from_department=sent_from)
        sync_remaining(existing)
        logger.info(
            "Added %s pieces to %s card %s at department %s", quantity, lineage, existing.pk, department.pk
        )
        return existing, False

    card = WorkAssignment.objects.create(
        sub_batch=sub_batch,
        department=department,
        step_index=step_index,
        stage=Stage.NEW_ARRIVAL.value,
        lineage=lineage,
        is_current=True,
        quantity_received=quantity,
        quantity_remaining=quantity,
        source_assignment=source,
        sent_from_department=sent_from,
        reason=reason or "",
        assigned_worker=worker,
    )
    record_stage_change(card, None, Stage.NEW_ARRIVAL.value, reason=history_reason, from_department=sent_from)
    return card, True


def dispatch(sub_batch_id, department_ids):
    """Send a sub-batch to production along ``department_ids`` (in order)."""
    try:
        department_ids = [int(d) for d in (department_ids or [])]
    except (TypeError, ValueError):
        raise InvalidRequest("Department ids must be integers.")
    if not department_ids:
        raise InvalidRequest("At least one department must be provided.")
    if len(set(department_ids)) != len(department_ids):
        raise InvalidRequest("A department can appear only once in a workflow.", department_ids=department_ids)

    with transaction.atomic():
        sub_batch = lock_sub_batch(sub_batch_id)
        ensure_not_frozen(sub_batch)
        if sub_batch.status == SubBatch.Status.CANCELLED:
            raise InvalidRequest(f"Sub-batch {sub_batch.pk} is cancelled.", sub_batch_id=sub_batch.pk)
        if Workflow.objects.filter(sub_batch=sub_batch).exists():
            raise AlreadyDispatched(
                f"Sub-batch {sub_batch.pk} has already been sent to production.", sub_batch_id=sub_batch.pk
            )

        departments = Department.objects.in_bulk(department_ids)
        missing = [d for d in department_ids if d not in departments]
        if missing:
            raise NotFound(f"Departments not found: {missing}.", department_ids=missing)
        inactive = [d for d in department_ids if not departments[d].active]
        if inactive:
            raise InvalidRequest(f"Departments are inactive: {inactive}.", department_ids=inactive)

        try:
            with transaction.atomic():
                workflow = Workflow.objects.create(sub_batch=sub_batch, current_step_index=0)
        except IntegrityError:
            raise AlreadyDispatched(
                f"Sub-batch {sub_batch.pk} has already been sent to production.", sub_batch_id=sub_batch.pk
            )
        WorkflowStep.objects.bulk_create([
            WorkflowStep(workflow=workflow, department=departments[dept_id], step_index=index)
            for index, dept_id in enumerate(department_ids)
        ])

        open_card(
            sub_batch, departments[department_ids[0]], LineageKind.MAIN.value, sub_batch.estimated_pieces,
            step_index=0, history_reason="Initial sub-batch arrival",
        )
        sub_batch.status = SubBatch.Status.IN_PRODUCTION
        sub_batch.save(update_fields=["status", "updated_at"])

    logger.info("Sub-batch %s dispatched through departments %s", sub_batch.pk, department_ids)
    return workflow


def advance(sub_batch_id):
    """
    Forward the main lineage to the next planned department.

    Returns the new card, or None when the sub-batch already sits at its last
    department. Only pieces actually worked travel on; rejected/altered pieces
    stay with their branches.
    """
    with transaction.atomic():
        sub_batch = lock_sub_batch(sub_batch_id)
        ensure_not_frozen(sub_batch)
        workflow = lock_workflow(sub_batch)
        steps = workflow.ordered_steps()
        cursor = workflow.current_step_index

        if cursor + 1 >= len(steps):
            logger.info("Sub-batch %s is already at its last department", sub_batch.pk)
            return None

        heads = current_main_cards(sub_batch, cursor, lock=True)
        if not heads:
            raise NotFound(
                f"No current card for sub-batch {sub_batch.pk} at step {cursor}.",
                sub_batch_id=sub_batch.pk, step_index=cursor,
            )

        worked = 0
        for head in heads:
            progress = compute_progress(head)
            if not progress.is_settled:
                raise IncompleteWork(
                    f"{progress.remaining} pieces are still unaccounted for at {head.department.name}.",
                    assignment_id=head.pk, remaining=progress.remaining,
                )
            worked += progress.worked

        for head in heads:
            retire(head)

        moved = Workflow.objects.filter(pk=workflow.pk, current_step_index=cursor).update(
            current_step_index=cursor + 1, updated_at=timezone.now()
        )
        if moved != 1:
            logger.warning("Workflow %s cursor moved under us (expected %s)", workflow.pk, cursor)
            raise ConcurrentModification(
                f"Sub-batch {sub_batch.pk} was advanced by another request.", sub_batch_id=sub_batch.pk
            )
        workflow.current_step_index = cursor + 1

        source = heads[0]
        card, _ = open_card(
            sub_batch, steps[cursor + 1].department, LineageKind.MAIN.value, worked,
            step_index=cursor + 1, source=source, sent_from=source.department,
            history_reason="Forwarded from previous department",
        )

    logger.info(
        "Sub-batch %s advanced to step %s (%s pieces)", sub_batch.pk, workflow.current_step_index, worked
    )
    return card


def _lock_branch(assignment_id):
    sub_batch, card = lock_assignment(assignment_id)
    ensure_not_frozen(sub_batch)
    if card.lineage not in BRANCH_LINEAGE:
        raise InvalidRequest(
            f"Work assignment {card.pk} is on the main lineage; use advance for the sub-batch.",
            assignment_id=card.pk,
        )
    if not card.is_current:
        raise InvalidRequest(f"Work assignment {card.pk} is no longer current.", assignment_id=card.pk)
    return sub_batch, card


def _ensure_settled(card):
    progress = compute_progress(card)
    if not progress.is_settled:
        raise IncompleteWork(
            f"{progress.remaining} pieces are still unaccounted for on card {card.pk}.",
            assignment_id=card.pk, remaining=progress.remaining,
        )
    return progress


def advance_branch(assignment_id):
    """Forward a rejected/altered card to the next planned department, keeping its lineage."""
    with transaction.atomic():
        sub_batch, card = _lock_branch(assignment_id)
        if card.step_index is None:
            raise InvalidRequest(
                f"Work assignment {card.pk} is outside the planned flow; close it instead.",
                assignment_id=card.pk,
            )
        workflow = lock_workflow(sub_batch)
        steps = workflow.ordered_steps()
        if card.step_index + 1 >= len(steps):
            return None

        progress = _ensure_settled(card)
        retire(card)
        next_card, _ = open_card(
            sub_batch, steps[card.step_index + 1].department, card.lineage, progress.worked,
            step_index=card.step_index + 1, source=card, sent_from=card.department, reason=card.reason,
            history_reason=f"{card.lineage} pieces forwarded",
        )

    logger.info("%s card %s forwarded as card %s", card.lineage, card.pk, next_card.pk)
    return next_card


def close_branch(assignment_id):
    """Retire a fully accounted rejected/altered card."""
    with transaction.atomic():
        _, card = _lock_branch(assignment_id)
        _ensure_settled(card)
        if card.stage != Stage.COMPLETED:
            from_stage = card.stage
            update_versioned(card, stage=Stage.COMPLETED.value)
            record_stage_change(card, from_stage, Stage.COMPLETED.value, reason="Branch closed")
        retire(card)

    logger.info("%s card %s closed", card.lineage, card.pk)
    return card


def assign_worker(assignment_id, worker_id):
    """Record who a card is assigned to; ``None`` clears the assignment."""
    with transaction.atomic():
        sub_batch, card = lock_assignment(assignment_id)
        ensure_not_frozen(sub_batch)
        if not card.is_current:
            raise InvalidRequest(f"Work assignment {card.pk} is no longer current.", assignment_id=card.pk)
        if card.lineage == LineageKind.ASSIGNED:
            raise InvalidRequest(
                f"Work assignment {card.pk} is a worker share; split again from the main card instead.",
                assignment_id=card.pk,
            )
        worker = _get_worker(worker_id) if worker_id is not None else None
        update_versioned(card, assigned_worker=worker)
    return card


def split_to_worker(assignment_id, worker_id, quantity):
    """
    Carve ``quantity`` pieces out of a Main card into an Assigned share for one worker.

    The share sits at the same department and step as the Main card and counts
    against its remaining. A second split to the same worker tops up the
    worker's current share. Shares travel with the cursor: ``advance`` needs
    every share settled and forwards their worked pieces with the Main card's.
    """
    quantity = coerce_quantity(quantity)
    with transaction.atomic():
        sub_batch, card = lock_assignment(assignment_id)
        ensure_not_frozen(sub_batch)
        if not card.is_current:
            raise InvalidRequest(f"Work assignment {card.pk} is no longer current.", assignment_id=card.pk)
        if card.lineage != LineageKind.MAIN:
            raise InvalidRequest(
                f"Only Main cards can be split; work assignment {card.pk} is {card.lineage}.",
                assignment_id=card.pk,
            )
        if card.stage == Stage.COMPLETED:
            raise InvalidRequest(f"Work assignment {card.pk} is completed.", assignment_id=card.pk)
        worker = _get_worker(worker_id)

        progress = compute_progress(card)
        if quantity > progress.remaining:
            raise InvalidQuantity(
                f"Cannot hand {quantity} pieces to {worker.name}: only {progress.remaining} remain on card {card.pk}.",
                assignment_id=card.pk, quantity=quantity, remaining=progress.remaining,
            )

        share, _ = open_card(
            sub_batch, card.department, LineageKind.ASSIGNED.value, quantity,
            step_index=card.step_index, source=card, sent_from=card.sent_from_department,
            worker=worker, history_reason=f"Assigned to {worker.name}",
        )
        sync_remaining(card)

    logger.info("Card %s: %s pieces handed to worker %s on card %s", card.pk, quantity, worker.code, share.pk)
    return share
