"""Caller-facing errors raised by the claim and pickup workflow.

Every error carries a stable ``error_code`` and the HTTP status the JSON
error handler answers with, so a client can tell "already claimed" apart
from "does not exist" or "wrong code" apart from "code expired".
"""


class WorkflowError(Exception):
    error_code = "WORKFLOW_ERROR"
    http_status = 400

    def __init__(self, message=None, **context):
        self.message = message or self.__class__.__name__
        self.context = context
        super().__init__(self.message)

    def to_dict(self):
        payload = {"ok": False, "error": self.error_code, "message": self.message}
        if self.context:
            payload["details"] = self.context
        return payload


class NotFound(WorkflowError):
    error_code = "NOT_FOUND"
    http_status = 404


class PostNotFound(NotFound):
    error_code = "POST_NOT_FOUND"


class ClaimNotFound(NotFound):
    error_code = "CLAIM_NOT_FOUND"


class StateConflict(WorkflowError):
    error_code = "STATE_CONFLICT"
    http_status = 409


class PostNotAvailable(StateConflict):
    error_code = "POST_NOT_AVAILABLE"


class ClaimConflict(StateConflict):
    error_code = "CLAIM_CONFLICT"


class ClaimNotActive(StateConflict):
    error_code = "CLAIM_NOT_ACTIVE"


class InvalidInput(WorkflowError):
    error_code = "INVALID_INPUT"
    http_status = 400


class InvalidPickupSlot(InvalidInput):
    error_code = "INVALID_PICKUP_SLOT"


class InvalidStatus(InvalidInput):
    error_code = "INVALID_STATUS"


class InvalidCodeFormat(InvalidInput):
    error_code = "INVALID_CODE_FORMAT"


class InvalidCode(WorkflowError):
    error_code = "INVALID_CODE"
    http_status = 422


class PickupCodeAlreadyUsed(ClaimNotActive, InvalidCode):
    # A consumed code submitted again: the claim is no longer active and
    # the code no longer matches anything.
    error_code = "CODE_ALREADY_USED"
    http_status = 409


class CodeExpired(WorkflowError):
    error_code = "CODE_EXPIRED"
    http_status = 410


class OutsidePickupWindow(WorkflowError):
    error_code = "OUTSIDE_PICKUP_WINDOW"
    http_status = 422

    def __init__(self, message=None, reason=None, **context):
        self.reason = reason
        super().__init__(message, reason=reason, **context)


class Forbidden(WorkflowError):
    error_code = "FORBIDDEN"
    http_status = 403
