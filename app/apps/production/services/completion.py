# apps/production/services/completion.py
import logging

from django.db import transaction
from django.utils import timezone

from ..exceptions import IncompleteWork, NotAtFinalDepartment, SubBatchFrozen
from ..models import Stage, SubBatch, Workflow
from .guards import lock_sub_batch
from .ledger import compute_progress
from .router import current_main_cards

logger = logging.getLogger(__name__)


def mark_completed(sub_batch_id):
    """
    Freeze a sub-batch once its last department has completed its card.

    Irreversible: afterwards every routing, stage, work-log and branch
    operation on the sub-batch raises SubBatchFrozen.
    """
    with transaction.atomic():
        sub_batch = lock_sub_batch(sub_batch_id)
        if sub_batch.is_frozen:
            raise SubBatchFrozen(f"Sub-batch {sub_batch.pk} is already completed.", sub_batch_id=sub_batch.pk)

        workflow = Workflow.objects.select_for_update().filter(sub_batch=sub_batch).first()
        if workflow is None:
            raise NotAtFinalDepartment(
                f"Sub-batch {sub_batch.pk} has not been sent to production.", sub_batch_id=sub_batch.pk
            )
        last_index = workflow.last_step_index
        if workflow.current_step_index != last_index:
            raise NotAtFinalDepartment(
                f"Sub-batch {sub_batch.pk} is at step {workflow.current_step_index} of {last_index}.",
                sub_batch_id=sub_batch.pk, current_step_index=workflow.current_step_index,
            )

        heads = current_main_cards(sub_batch, last_index)
        if not heads or any(head.stage != Stage.COMPLETED for head in heads):
            raise NotAtFinalDepartment(
                f"The final department has not completed sub-batch {sub_batch.pk}.", sub_batch_id=sub_batch.pk
            )
        for head in heads:
            progress = compute_progress(head)
            if not progress.is_settled:
                raise IncompleteWork(
                    f"{progress.remaining} pieces are still unaccounted for at the final department.",
                    assignment_id=head.pk, remaining=progress.remaining,
                )

        sub_batch.status = SubBatch.Status.COMPLETED
        sub_batch.completed_at = timezone.now()
        sub_batch.save(update_fields=["status", "completed_at", "updated_at"])

    logger.info("Sub-batch %s marked completed", sub_batch.pk)
    return sub_batch
