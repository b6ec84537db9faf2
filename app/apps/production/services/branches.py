# apps/production/services/branches.py
"""
Rejection and alteration branches.

Both operations take pieces off a card (through the ledger, by recording an
ExceptionEntry against it) and open a separately tracked card at the target
department. Alterations correct earlier work, so their target must be a
department that comes before the source card in the planned flow; rejections
may go anywhere, including departments outside the flow.
"""
import logging

from django.db import transaction
from django.db.models import Sum

from apps.masters.models import Department

from ..exceptions import InvalidAlterationTarget, InvalidQuantity, InvalidRequest, NotFound
from ..models import ExceptionEntry, ExceptionKind, LineageKind, Stage, WorkLogEntry, Workflow
from .guards import coerce_quantity, ensure_not_frozen, lock_assignment
from .ledger import compute_progress, sync_remaining
from .router import open_card

logger = logging.getLogger(__name__)

_BRANCH_LINEAGE = {
    ExceptionKind.REJECTED.value: LineageKind.REJECTED.value,
    ExceptionKind.ALTERED.value: LineageKind.ALTERED.value,
}


def reject(from_assignment_id, work_log_id, quantity, target_department_id, reason=""):
    return _open_branch(ExceptionKind.REJECTED.value, from_assignment_id, work_log_id, quantity,
                        target_department_id, reason)


def alter(from_assignment_id, work_log_id, quantity, target_department_id, reason=""):
    return _open_branch(ExceptionKind.ALTERED.value, from_assignment_id, work_log_id, quantity,
                        target_department_id, reason)


def _open_branch(kind, from_assignment_id, work_log_id, quantity, target_department_id, reason):
    quantity = coerce_quantity(quantity)

    with transaction.atomic():
        sub_batch, source = lock_assignment(from_assignment_id)
        ensure_not_frozen(sub_batch)
        if not source.is_current:
            raise InvalidRequest(f"Work assignment {source.pk} is no longer current.", assignment_id=source.pk)
        if source.stage == Stage.COMPLETED:
            raise InvalidRequest(
                f"Work assignment {source.pk} is completed; move it back to in progress first.",
                assignment_id=source.pk,
            )

        work_log = WorkLogEntry.objects.select_for_update().filter(pk=work_log_id).first()
        if work_log is None:
            raise NotFound(f"Work log {work_log_id} not found.", work_log_id=work_log_id)
        if work_log.assignment_id != source.pk:
            raise InvalidRequest(
                f"Work log {work_log.pk} was not recorded against work assignment {source.pk}.",
                work_log_id=work_log.pk, assignment_id=source.pk,
            )

        already = work_log.exceptions.aggregate(total=Sum("quantity"))["total"] or 0
        if already + quantity > work_log.quantity_worked:
            raise InvalidQuantity(
                f"Cannot take {quantity} pieces from work log {work_log.pk}: "
                f"{work_log.quantity_worked - already} of {work_log.quantity_worked} left.",
                work_log_id=work_log.pk, quantity=quantity, available=work_log.quantity_worked - already,
            )
        progress = compute_progress(source)
        if quantity > progress.remaining:
            raise InvalidQuantity(
                f"Cannot take {quantity} pieces from card {source.pk}: only {progress.remaining} remain.",
                assignment_id=source.pk, quantity=quantity, remaining=progress.remaining,
            )

        target = Department.objects.filter(pk=target_department_id).first()
        if target is None:
            raise NotFound(f"Department {target_department_id} not found.", department_id=target_department_id)

        workflow = Workflow.objects.filter(sub_batch=sub_batch).first()
        positions = workflow.step_positions() if workflow else {}
        target_step = positions.get(target.pk)
        if kind == ExceptionKind.ALTERED:
            if target_step is None or source.step_index is None or target_step >= source.step_index:
                raise InvalidAlterationTarget(
                    f"{target.name} does not come before {source.department.name} in this sub-batch's flow.",
                    assignment_id=source.pk, target_department_id=target.pk,
                )

        if target.pk == source.department_id and source.lineage == _BRANCH_LINEAGE[kind]:
            raise InvalidRequest(
                f"Work assignment {source.pk} is already the {source.lineage} card at {target.name}.",
                assignment_id=source.pk, target_department_id=target.pk,
            )

        note = f"{ExceptionKind(kind).label} from {source.department.name}"
        branch, created = open_card(
            sub_batch, target, _BRANCH_LINEAGE[kind], quantity,
            step_index=target_step, source=source, sent_from=source.department, reason=reason,
            history_reason=f"{note}: {reason}" if reason else note,
        )
        entry = ExceptionEntry.objects.create(
            kind=kind,
            sub_batch=sub_batch,
            work_log=work_log,
            source_assignment=source,
            created_assignment=branch,
            source_department=source.department,
            target_department=target,
            quantity=quantity,
            reason=reason or "",
        )
        sync_remaining(source)

    logger.info(
        "%s %s pieces of sub-batch %s from card %s to %s (card %s, %s)",
        kind.lower(), quantity, sub_batch.pk, source.pk, target.code, branch.pk,
        "new" if created else "merged",
    )
    return entry
