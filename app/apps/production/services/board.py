# apps/production/services/board.py
"""Kanban read model: a department's current cards grouped by stage."""
from collections import defaultdict

from django.db.models import Sum

from apps.masters.models import Department

from ..exceptions import NotFound
from ..models import ExceptionEntry, ExceptionKind, LineageKind, Stage, WorkAssignment, WorkLogEntry

_COLUMNS = (
    (Stage.NEW_ARRIVAL, "new_arrival"),
    (Stage.IN_PROGRESS, "in_progress"),
    (Stage.COMPLETED, "completed"),
)


def _branch_source(entry):
    if entry is None:
        return None
    return {
        "kind": entry.kind,
        "from_department_id": entry.source_department_id,
        "from_department_name": entry.source_department.name,
        "quantity": entry.quantity,
        "reason": entry.reason,
    }


def get_kanban_view(department_id):
    department = Department.objects.filter(pk=department_id).first()
    if department is None:
        raise NotFound(f"Department {department_id} not found.", department_id=department_id)

    cards = list(
        WorkAssignment.objects.filter(department=department, is_current=True)
        .select_related("sub_batch", "assigned_worker", "sent_from_department")
        .order_by("created_at", "id")
    )
    card_ids = [card.pk for card in cards]

    worked = dict(
        WorkLogEntry.objects.filter(assignment_id__in=card_ids).order_by()
        .values_list("assignment_id").annotate(total=Sum("quantity_worked"))
    )
    branched = defaultdict(dict)
    rows = (
        ExceptionEntry.objects.filter(source_assignment_id__in=card_ids).order_by()
        .values_list("source_assignment_id", "kind").annotate(total=Sum("quantity"))
    )
    for card_id, kind, total in rows:
        branched[card_id][kind] = total
    shared = dict(
        WorkAssignment.objects.filter(source_assignment_id__in=card_ids, lineage=LineageKind.ASSIGNED).order_by()
        .values_list("source_assignment_id").annotate(total=Sum("quantity_received"))
    )
    # first exception that opened each branch card
    origins = {}
    for entry in (
        ExceptionEntry.objects.filter(created_assignment_id__in=card_ids)
        .select_related("source_department").order_by("created_at", "id")
    ):
        origins.setdefault(entry.created_assignment_id, entry)

    board = {key: [] for _, key in _COLUMNS}
    column_for = {stage.value: key for stage, key in _COLUMNS}
    for card in cards:
        board[column_for[card.stage]].append({
            "id": card.pk,
            "sub_batch_id": card.sub_batch_id,
            "sub_batch_name": card.sub_batch.name,
            "sub_batch_status": card.sub_batch.status,
            "lineage": card.lineage,
            "stage": card.stage,
            "step_index": card.step_index,
            "quantity_received": card.quantity_received,
            "quantity_worked": worked.get(card.pk, 0),
            "quantity_remaining": card.quantity_remaining,
            "total_rejected": branched[card.pk].get(ExceptionKind.REJECTED.value, 0),
            "total_altered": branched[card.pk].get(ExceptionKind.ALTERED.value, 0),
            "total_assigned": shared.get(card.pk, 0),
            "assigned_worker": (
                {"id": card.assigned_worker_id, "name": card.assigned_worker.name}
                if card.assigned_worker else None
            ),
            "sent_from_department_name": card.sent_from_department.name if card.sent_from_department else None,
            "reason": card.reason,
            "branch_source": _branch_source(origins.get(card.pk)),
        })

    return {"department_id": department.pk, "department_name": department.name, **board}
