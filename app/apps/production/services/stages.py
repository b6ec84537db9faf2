# apps/production/services/stages.py
import logging

from django.db import transaction

from ..exceptions import InvalidRequest
from ..models import Stage
from .guards import ensure_not_frozen, lock_assignment, update_versioned
from .history import record_stage_change

logger = logging.getLogger(__name__)

STAGE_ORDER = (Stage.NEW_ARRIVAL, Stage.IN_PROGRESS, Stage.COMPLETED)


def move_stage(assignment_id, to_stage, reason=""):
    """
    Move a card between Kanban columns and record the transition.

    Quantities are untouched; completing a card does not forward it. Backward
    moves (e.g. COMPLETED -> IN_PROGRESS) are allowed for corrections and are
    recorded like any other transition.
    """
    try:
        to_stage = Stage(to_stage)
    except ValueError:
        raise InvalidRequest(f"Unknown stage '{to_stage}'.", to_stage=str(to_stage))

    with transaction.atomic():
        sub_batch, assignment = lock_assignment(assignment_id)
        ensure_not_frozen(sub_batch)

        from_stage = assignment.stage
        if from_stage == to_stage:
            return assignment

        if STAGE_ORDER.index(to_stage) < STAGE_ORDER.index(Stage(from_stage)):
            logger.info("Work assignment %s moved back from %s to %s", assignment.pk, from_stage, to_stage)

        update_versioned(assignment, stage=to_stage.value)
        record_stage_change(assignment, from_stage, to_stage.value, reason=reason)
    return assignment
