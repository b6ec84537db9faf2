# apps/production/services/worklogs.py
"""
Work-log persistence for cards.

Logs may be recorded while a card is NEW_ARRIVAL or IN_PROGRESS; the first log
moves a NEW_ARRIVAL card to IN_PROGRESS. Logs are frozen once the card is
COMPLETED, once it has been forwarded, and once the sub-batch is completed.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.utils.dateparse import parse_date

from apps.masters.models import Worker

from ..exceptions import InvalidQuantity, InvalidRequest, NotFound
from ..models import Stage, WorkAssignment, WorkLogEntry
from .guards import coerce_quantity, ensure_not_frozen, lock_assignment, lock_sub_batch, update_versioned
from .history import record_stage_change
from .ledger import compute_progress, sync_remaining

logger = logging.getLogger(__name__)


def _coerce_date(value):
    if isinstance(value, str):
        try:
            parsed = parse_date(value)
        except ValueError:
            parsed = None
        if parsed is None:
            raise InvalidRequest(f"work_date '{value}' is not a valid date.", work_date=value)
        return parsed
    return value


def _ensure_open(card):
    if not card.is_current:
        raise InvalidRequest(f"Work assignment {card.pk} is no longer current.", assignment_id=card.pk)
    if card.stage == Stage.COMPLETED:
        raise InvalidRequest(
            f"Work assignment {card.pk} is completed; move it back to in progress to change its work logs.",
            assignment_id=card.pk,
        )


def log_work(assignment_id, worker_id, quantity_worked, *, quantity_received=None, unit_price=0,
             work_date=None, size_category="", particulars=""):
    quantity_worked = coerce_quantity(quantity_worked, field="quantity_worked")
    if quantity_received is None:
        quantity_received = quantity_worked
    else:
        quantity_received = coerce_quantity(quantity_received, field="quantity_received")
    try:
        unit_price = Decimal(str(unit_price or 0))
    except InvalidOperation:
        raise InvalidRequest("unit_price must be a number.", unit_price=str(unit_price))

    with transaction.atomic():
        sub_batch, card = lock_assignment(assignment_id)
        ensure_not_frozen(sub_batch)
        _ensure_open(card)

        worker = Worker.objects.filter(pk=worker_id).first()
        if worker is None:
            raise NotFound(f"Worker {worker_id} not found.", worker_id=worker_id)

        progress = compute_progress(card)
        if quantity_worked > progress.remaining:
            raise InvalidQuantity(
                f"Cannot log {quantity_worked} pieces on card {card.pk}: only {progress.remaining} remain.",
                assignment_id=card.pk, quantity_worked=quantity_worked, remaining=progress.remaining,
            )

        extra = {"work_date": _coerce_date(work_date)} if work_date else {}
        entry = WorkLogEntry.objects.create(
            assignment=card,
            sub_batch=sub_batch,
            worker=worker,
            quantity_received=quantity_received,
            quantity_worked=quantity_worked,
            unit_price=unit_price,
            activity_type=card.activity_type,
            size_category=size_category or "",
            particulars=particulars or "",
            **extra,
        )
        if card.stage == Stage.NEW_ARRIVAL:
            update_versioned(card, stage=Stage.IN_PROGRESS.value)
            record_stage_change(card, Stage.NEW_ARRIVAL.value, Stage.IN_PROGRESS.value, reason="Work started")
        sync_remaining(card)

    logger.info("Logged %s pieces by worker %s on card %s", quantity_worked, worker.code, card.pk)
    return entry


def delete_work_log(work_log_id):
    """Remove a mistaken log; logs that rejections/alterations point at cannot be removed."""
    sub_batch_id = WorkLogEntry.objects.filter(pk=work_log_id).values_list("sub_batch_id", flat=True).first()
    if sub_batch_id is None:
        raise NotFound(f"Work log {work_log_id} not found.", work_log_id=work_log_id)

    with transaction.atomic():
        sub_batch = lock_sub_batch(sub_batch_id)
        ensure_not_frozen(sub_batch)
        entry = WorkLogEntry.objects.select_for_update().filter(pk=work_log_id).first()
        if entry is None:
            raise NotFound(f"Work log {work_log_id} not found.", work_log_id=work_log_id)
        card = WorkAssignment.objects.select_for_update().get(pk=entry.assignment_id)
        _ensure_open(card)
        if entry.exceptions.exists():
            raise InvalidRequest(
                f"Work log {entry.pk} has rejections or alterations recorded against it.",
                work_log_id=entry.pk,
            )
        entry.delete()
        sync_remaining(card)

    logger.info("Deleted work log %s from card %s", work_log_id, card.pk)


def get_work_logs(sub_batch_id=None, assignment_id=None):
    qs = WorkLogEntry.objects.select_related("worker", "assignment__department")
    if sub_batch_id is not None:
        qs = qs.filter(sub_batch_id=sub_batch_id)
    if assignment_id is not None:
        qs = qs.filter(assignment_id=assignment_id)
    return qs.order_by("work_date", "id")
