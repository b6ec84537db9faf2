# apps/production/services/ledger.py
"""
Quantity ledger for work assignments.

Nothing here keeps state: progress is derived from the card's received
quantity, its work-log entries and the rejections/alterations raised from it.

    received == worked + rejected + altered + assigned + remaining

``assigned`` counts pieces handed from a Main card to per-worker Assigned
cards at the same department; those pieces are then accounted on the shares.

A negative remaining is never clamped; it means the stored rows disagree and
is reported as ConservationViolation.
"""
import logging
from typing import NamedTuple

from django.db.models import Sum

from ..exceptions import ConservationViolation
from ..models import ExceptionKind, LineageKind, WorkAssignment
from .guards import update_versioned

logger = logging.getLogger(__name__)


class Progress(NamedTuple):
    received: int
    worked: int
    rejected: int
    altered: int
    assigned: int
    remaining: int

    @property
    def is_settled(self) -> bool:
        return self.remaining == 0


def tally(received, worked=0, rejected=0, altered=0, assigned=0, assignment_id=None) -> Progress:
    remaining = received - worked - rejected - altered - assigned
    if remaining < 0:
        logger.error(
            "Conservation violated on work assignment %s: received=%s worked=%s rejected=%s altered=%s assigned=%s",
            assignment_id, received, worked, rejected, altered, assigned,
        )
        raise ConservationViolation(
            f"Work assignment {assignment_id} accounts for more pieces than it received.",
            assignment_id=assignment_id,
            received=received,
            worked=worked,
            rejected=rejected,
            altered=altered,
            assigned=assigned,
        )
    return Progress(received, worked, rejected, altered, assigned, remaining)


def compute_progress(assignment: WorkAssignment) -> Progress:
    worked = assignment.work_logs.aggregate(total=Sum("quantity_worked"))["total"] or 0
    branched = dict(
        assignment.exceptions_raised.order_by()
        .values_list("kind")
        .annotate(total=Sum("quantity"))
    )
    assigned = (
        assignment.descendants.filter(lineage=LineageKind.ASSIGNED)
        .aggregate(total=Sum("quantity_received"))["total"] or 0
    )
    return tally(
        assignment.quantity_received,
        worked=worked,
        rejected=branched.get(ExceptionKind.REJECTED.value, 0),
        altered=branched.get(ExceptionKind.ALTERED.value, 0),
        assigned=assigned,
        assignment_id=assignment.pk,
    )


def sync_remaining(assignment: WorkAssignment) -> Progress:
    """Store the derived remaining on the card; the only writer of that column."""
    progress = compute_progress(assignment)
    if assignment.quantity_remaining != progress.remaining:
        update_versioned(assignment, quantity_remaining=progress.remaining)
    return progress
