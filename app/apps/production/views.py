# /code/apps/production/views.py
"""
JSON endpoints for the production floor (mounted under /production/ in
project urls).

Every endpoint requires a logged-in user. Mutating endpoints take a JSON body
and are POST only. Refused operations come back as

    {"error": {"kind": "<WorkflowError kind>", "message": "...", ...context}}

with the status code carried by the error class (404/409/422/500).
"""
import json
import logging
from functools import wraps

from django.contrib.auth.decorators import login_required
from django.http import HttpRequest, JsonResponse
from django.views.decorators.http import require_GET, require_POST

from . import services
from .exceptions import ConservationViolation, InvalidRequest, WorkflowError

logger = logging.getLogger(__name__)


def _json_api(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except WorkflowError as exc:
            level = logging.ERROR if isinstance(exc, ConservationViolation) else logging.WARNING
            logger.log(level, "%s %s refused: %s %s", request.method, request.path, exc.kind, exc.message)
            return JsonResponse({"error": exc.as_dict()}, status=exc.status_code)
    return wrapper


def _read_json(request: HttpRequest) -> dict:
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body)
    except (TypeError, ValueError):
        raise InvalidRequest("Request body must be valid JSON.")
    if not isinstance(payload, dict):
        raise InvalidRequest("Request body must be a JSON object.")
    return payload


def _require(payload: dict, *names):
    missing = [name for name in names if payload.get(name) in (None, "")]
    if missing:
        raise InvalidRequest(f"Missing fields: {', '.join(missing)}.", missing=missing)
    return [payload[name] for name in names]


def _card(card):
    return {
        "id": card.pk,
        "sub_batch_id": card.sub_batch_id,
        "department_id": card.department_id,
        "step_index": card.step_index,
        "stage": card.stage,
        "lineage": card.lineage,
        "is_current": card.is_current,
        "quantity_received": card.quantity_received,
        "quantity_remaining": card.quantity_remaining,
        "assigned_worker_id": card.assigned_worker_id,
        "version": card.version,
    }


def _work_log(entry):
    return {
        "id": entry.pk,
        "assignment_id": entry.assignment_id,
        "sub_batch_id": entry.sub_batch_id,
        "worker_id": entry.worker_id,
        "work_date": entry.work_date.isoformat(),
        "size_category": entry.size_category,
        "particulars": entry.particulars,
        "quantity_received": entry.quantity_received,
        "quantity_worked": entry.quantity_worked,
        "unit_price": str(entry.unit_price),
        "activity_type": entry.activity_type,
    }


def _exception(entry):
    return {
        "id": entry.pk,
        "kind": entry.kind,
        "quantity": entry.quantity,
        "reason": entry.reason,
        "work_log_id": entry.work_log_id,
        "source_assignment_id": entry.source_assignment_id,
        "created_assignment_id": entry.created_assignment_id,
        "target_department_id": entry.target_department_id,
    }


# ---- sub-batch level -------------------------------------------------------

@login_required
@require_POST
@_json_api
def dispatch_sub_batch(request, sub_batch_id):
    (department_ids,) = _require(_read_json(request), "department_ids")
    if not isinstance(department_ids, list):
        raise InvalidRequest("department_ids must be a list.")
    workflow = services.dispatch(sub_batch_id, department_ids)
    return JsonResponse(services.get_workflow_status(workflow.sub_batch_id), status=201)


@login_required
@require_POST
@_json_api
def advance_sub_batch(request, sub_batch_id):
    card = services.advance(sub_batch_id)
    if card is None:
        return JsonResponse({"advanced": False, "detail": "Sub-batch is already at its last department."})
    return JsonResponse({"advanced": True, "assignment": _card(card)})


@login_required
@require_POST
@_json_api
def complete_sub_batch(request, sub_batch_id):
    payload = _read_json(request)
    if payload.get("confirm") is not True:
        raise InvalidRequest("Completing a sub-batch is irreversible; send \"confirm\": true.")
    sub_batch = services.mark_completed(sub_batch_id)
    return JsonResponse({
        "sub_batch_id": sub_batch.pk,
        "status": sub_batch.status,
        "completed_at": sub_batch.completed_at.isoformat(),
    })


@login_required
@require_GET
@_json_api
def sub_batch_flow(request, sub_batch_id):
    return JsonResponse(services.reconstruct_flow(sub_batch_id))


@login_required
@require_GET
@_json_api
def sub_batch_status(request, sub_batch_id):
    return JsonResponse(services.get_workflow_status(sub_batch_id))


# ---- card level -------------------------------------------------------------

@login_required
@require_POST
@_json_api
def move_assignment_stage(request, assignment_id):
    payload = _read_json(request)
    (to_stage,) = _require(payload, "stage")
    card = services.move_stage(assignment_id, to_stage, reason=payload.get("reason", ""))
    return JsonResponse(_card(card))


@login_required
@_json_api
def assignment_work_logs(request, assignment_id):
    """GET lists the card's logs, POST records a new one."""
    if request.method == "GET":
        logs = services.get_work_logs(assignment_id=assignment_id)
        return JsonResponse({"results": [_work_log(entry) for entry in logs]})
    if request.method != "POST":
        return JsonResponse({"error": {"kind": "MethodNotAllowed", "message": "Use GET or POST."}}, status=405)

    payload = _read_json(request)
    worker_id, quantity_worked = _require(payload, "worker_id", "quantity_worked")
    entry = services.log_work(
        assignment_id,
        worker_id,
        quantity_worked,
        quantity_received=payload.get("quantity_received"),
        unit_price=payload.get("unit_price", 0),
        work_date=payload.get("work_date"),
        size_category=payload.get("size_category", ""),
        particulars=payload.get("particulars", ""),
    )
    return JsonResponse(_work_log(entry), status=201)


def _branch_view(operation):
    @login_required
    @require_POST
    @_json_api
    def view(request, assignment_id):
        payload = _read_json(request)
        work_log_id, quantity, target = _require(payload, "work_log_id", "quantity", "target_department_id")
        entry = operation(assignment_id, work_log_id, quantity, target, reason=payload.get("reason", ""))
        return JsonResponse(_exception(entry), status=201)
    return view


reject_pieces = _branch_view(services.reject)
alter_pieces = _branch_view(services.alter)


@login_required
@require_POST
@_json_api
def advance_assignment(request, assignment_id):
    card = services.advance_branch(assignment_id)
    if card is None:
        return JsonResponse({"advanced": False, "detail": "Card is already at the last department."})
    return JsonResponse({"advanced": True, "assignment": _card(card)})


@login_required
@require_POST
@_json_api
def close_assignment(request, assignment_id):
    return JsonResponse(_card(services.close_branch(assignment_id)))


@login_required
@require_POST
@_json_api
def assign_assignment_worker(request, assignment_id):
    payload = _read_json(request)
    card = services.assign_worker(assignment_id, payload.get("worker_id"))
    return JsonResponse(_card(card))


@login_required
@require_POST
@_json_api
def split_assignment(request, assignment_id):
    worker_id, quantity = _require(_read_json(request), "worker_id", "quantity")
    share = services.split_to_worker(assignment_id, worker_id, quantity)
    return JsonResponse(_card(share), status=201)


# ---- department / work-log level --------------------------------------------

@login_required
@require_GET
@_json_api
def department_kanban(request, department_id):
    return JsonResponse(services.get_kanban_view(department_id))


@login_required
@require_POST
@_json_api
def delete_work_log(request, work_log_id):
    services.delete_work_log(work_log_id)
    return JsonResponse({"deleted": True, "id": work_log_id})
