"""
Production flow services.

Every public function here is one operation exposed to the views, the admin
and other apps; mutating ones run in their own transaction.
"""
from .board import get_kanban_view
from .branches import alter, reject
from .completion import mark_completed
from .history import get_workflow_status, reconstruct_flow
from .ledger import Progress, compute_progress, tally
from .router import advance, advance_branch, assign_worker, close_branch, dispatch, split_to_worker
from .stages import move_stage
from .worklogs import delete_work_log, get_work_logs, log_work

__all__ = [
    "Progress", "advance", "advance_branch", "alter", "assign_worker", "close_branch", "compute_progress",
    "delete_work_log", "dispatch", "get_kanban_view", "get_work_logs", "get_workflow_status", "log_work",
    "mark_completed", "move_stage", "reconstruct_flow", "reject", "split_to_worker", "tally",
]
