from typing import Dict, Optional

from fastapi import HTTPException, status


class IBlindError(Exception):
    """Base class for errors raised by the iBlind services."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DraftValidationError(IBlindError):
    """A wizard step (or a submitted draft) has missing or out-of-range fields.

    ``errors`` maps field name to a user-facing message.
    """

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, errors: Dict[str, str], step: Optional[str] = None):
        self.errors = dict(errors)
        self.step = step
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"Invalid fields{f' in step {step}' if step else ''}: {fields}")


class PreconditionViolation(IBlindError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(IBlindError):
    status_code = status.HTTP_404_NOT_FOUND


class SubmissionInProgressError(IBlindError):
    status_code = status.HTTP_409_CONFLICT


class PersistenceError(IBlindError):
    """The backing store rejected or could not complete a write/read."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class PartialCompletionError(IBlindError):
    """A primary record was written but one of its secondary effects was not."""

    status_code = status.HTTP_207_MULTI_STATUS

    def __init__(self, message: str, record_id: str, effect_type: str):
        super().__init__(message)
        self.record_id = record_id
        self.effect_type = effect_type


def to_http_exception(error: IBlindError) -> HTTPException:
    detail = {"message": error.message}
    if isinstance(error, DraftValidationError):
        detail["errors"] = error.errors
        if error.step:
            detail["step"] = error.step
    return HTTPException(status_code=error.status_code, detail=detail)
