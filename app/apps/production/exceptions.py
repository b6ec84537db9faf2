# apps/production/exceptions.py
"""
Errors raised by the production flow services.

Every error carries a stable ``kind`` string the HTTP layer and admin pass
through to the operator, a human message, and optional context (ids,
quantities) for structured responses.
"""


class WorkflowError(Exception):
    kind = "WorkflowError"
    status_code = 400
    default_message = "Operation refused."

    def __init__(self, message=None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def as_dict(self):
        payload = {"kind": self.kind, "message": self.message}
        payload.update(self.context)
        return payload


class NotFound(WorkflowError):
    kind = "NotFound"
    status_code = 404
    default_message = "Requested record does not exist."


class AlreadyDispatched(WorkflowError):
    kind = "AlreadyDispatched"
    status_code = 409
    default_message = "Sub-batch has already been sent to production."


class IncompleteWork(WorkflowError):
    kind = "IncompleteWork"
    status_code = 409
    default_message = "Complete the remaining work before advancing."


class ConservationViolation(WorkflowError):
    kind = "ConservationViolation"
    status_code = 500
    default_message = "Recorded quantities exceed the quantity received."


class InvalidAlterationTarget(WorkflowError):
    kind = "InvalidAlterationTarget"
    status_code = 422
    default_message = "Alterations can only be sent to an earlier department in the flow."


class SubBatchFrozen(WorkflowError):
    kind = "SubBatchFrozen"
    status_code = 409
    default_message = "Sub-batch is completed and can no longer be changed."


class ConcurrentModification(WorkflowError):
    kind = "ConcurrentModification"
    status_code = 409
    default_message = "Record was changed by another request; reload and retry."


class NotAtFinalDepartment(WorkflowError):
    kind = "NotAtFinalDepartment"
    status_code = 409
    default_message = "Sub-batch has not finished its final department."


class InvalidQuantity(WorkflowError):
    kind = "InvalidQuantity"
    status_code = 422
    default_message = "Quantity is not valid for this operation."


class InvalidRequest(WorkflowError):
    kind = "InvalidRequest"
    status_code = 422
    default_message = "Request is not valid for the current state."
