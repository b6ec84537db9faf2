# apps/production/services/history.py
"""
Append-only stage history plus the read models built from it.

``reconstruct_flow`` and ``get_workflow_status`` only read; they take the
planned order from WorkflowStep rows and group everything else per card so
that forked (rejected/altered) lineages show up as their own groups.
"""
from collections import defaultdict

from ..exceptions import NotFound
from ..models import (
    ExceptionKind, LineageKind, StageHistoryEntry, SubBatch, WorkAssignment, WorkLogEntry, Workflow,
)
from .ledger import tally


def record_stage_change(assignment, from_stage, to_stage, reason="", from_department=None):
    return StageHistoryEntry.objects.create(
        assignment=assignment,
        sub_batch_id=assignment.sub_batch_id,
        from_stage=from_stage,
        to_stage=to_stage,
        from_department=from_department,
        to_department_id=assignment.department_id,
        reason=(reason or "")[:255],
    )


def _get_sub_batch(sub_batch_id):
    sub_batch = SubBatch.objects.filter(pk=sub_batch_id).first()
    if sub_batch is None:
        raise NotFound(f"Sub-batch {sub_batch_id} not found.", sub_batch_id=sub_batch_id)
    return sub_batch


def _exception_detail(entry):
    return {
        "id": entry.pk,
        "quantity": entry.quantity,
        "reason": entry.reason,
        "target_department_id": entry.target_department_id,
        "target_department_name": entry.target_department.name,
        "created_assignment_id": entry.created_assignment_id,
        "created_at": entry.created_at,
    }


def _work_log_detail(log):
    exceptions = list(log.exceptions.all())
    return {
        "id": log.pk,
        "worker_id": log.worker_id,
        "worker_name": log.worker.name,
        "work_date": log.work_date,
        "size_category": log.size_category,
        "particulars": log.particulars,
        "quantity_received": log.quantity_received,
        "quantity_worked": log.quantity_worked,
        "unit_price": log.unit_price,
        "activity_type": log.activity_type,
        "rejected": [_exception_detail(e) for e in exceptions if e.kind == ExceptionKind.REJECTED],
        "altered": [_exception_detail(e) for e in exceptions if e.kind == ExceptionKind.ALTERED],
    }


def _card_detail(card, logs, history, assigned=0):
    worked = sum(log.quantity_worked for log in logs)
    raised = [e for log in logs for e in log.exceptions.all()]
    progress = tally(
        card.quantity_received,
        worked=worked,
        rejected=sum(e.quantity for e in raised if e.kind == ExceptionKind.REJECTED),
        altered=sum(e.quantity for e in raised if e.kind == ExceptionKind.ALTERED),
        assigned=assigned,
        assignment_id=card.pk,
    )
    return {
        "assignment_id": card.pk,
        "department_id": card.department_id,
        "department_name": card.department.name,
        "step_index": card.step_index,
        "lineage": card.lineage,
        "stage": card.stage,
        "is_current": card.is_current,
        "source_assignment_id": card.source_assignment_id,
        "sent_from_department_name": card.sent_from_department.name if card.sent_from_department else None,
        "reason": card.reason,
        "assigned_worker_name": card.assigned_worker.name if card.assigned_worker else None,
        "arrived_at": card.created_at,
        "retired_at": card.retired_at,
        "progress": progress._asdict(),
        "stage_history": [
            {
                "from_stage": h.from_stage,
                "to_stage": h.to_stage,
                "reason": h.reason,
                "recorded_at": h.recorded_at,
            }
            for h in history
        ],
        "work_logs": [_work_log_detail(log) for log in logs],
    }


def reconstruct_flow(sub_batch_id):
    """Planned department order plus one detail group per card, in arrival order."""
    sub_batch = _get_sub_batch(sub_batch_id)
    workflow = Workflow.objects.filter(sub_batch=sub_batch).first()
    steps = workflow.ordered_steps() if workflow else []

    cards = list(
        WorkAssignment.objects.filter(sub_batch=sub_batch)
        .select_related("department", "sent_from_department", "assigned_worker")
        .order_by("created_at", "id")
    )
    logs_by_card = defaultdict(list)
    logs = (
        WorkLogEntry.objects.filter(sub_batch=sub_batch)
        .select_related("worker")
        .prefetch_related("exceptions__target_department")
        .order_by("work_date", "id")
    )
    for log in logs:
        logs_by_card[log.assignment_id].append(log)
    history_by_card = defaultdict(list)
    for entry in StageHistoryEntry.objects.filter(sub_batch=sub_batch).order_by("recorded_at", "id"):
        history_by_card[entry.assignment_id].append(entry)
    assigned_by_card = defaultdict(int)
    for card in cards:
        if card.lineage == LineageKind.ASSIGNED and card.source_assignment_id:
            assigned_by_card[card.source_assignment_id] += card.quantity_received

    return {
        "sub_batch_id": sub_batch.pk,
        "name": sub_batch.name,
        "status": sub_batch.status,
        "current_step_index": workflow.current_step_index if workflow else None,
        "department_flow": [step.department.name for step in steps],
        "departments": [
            _card_detail(card, logs_by_card[card.pk], history_by_card[card.pk], assigned_by_card[card.pk])
            for card in cards
        ],
    }


def get_workflow_status(sub_batch_id):
    """Per-step view of the main lineage: where the sub-batch is and what each step looks like."""
    sub_batch = _get_sub_batch(sub_batch_id)
    workflow = Workflow.objects.filter(sub_batch=sub_batch).first()
    if workflow is None:
        raise NotFound(f"Sub-batch {sub_batch.pk} has not been sent to production.", sub_batch_id=sub_batch.pk)

    latest_main = {}
    main_cards = WorkAssignment.objects.filter(
        sub_batch=sub_batch, lineage=LineageKind.MAIN, step_index__isnull=False,
    ).order_by("created_at", "id")
    for card in main_cards:
        latest_main[card.step_index] = card

    steps = []
    current_department = None
    for step in workflow.ordered_steps():
        card = latest_main.get(step.step_index)
        steps.append({
            "step_index": step.step_index,
            "department_id": step.department_id,
            "department_name": step.department.name,
            "stage": card.stage if card else None,
            "lineage": card.lineage if card else None,
            "is_current": bool(card and card.is_current),
            "quantity_received": card.quantity_received if card else None,
            "quantity_remaining": card.quantity_remaining if card else None,
        })
        if step.step_index == workflow.current_step_index:
            current_department = {"id": step.department_id, "name": step.department.name}

    return {
        "sub_batch_id": sub_batch.pk,
        "status": sub_batch.status,
        "current_step_index": workflow.current_step_index,
        "current_department": current_department,
        "steps": steps,
    }
