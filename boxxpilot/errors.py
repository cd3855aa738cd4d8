"""
Domain errors for quotation and job transitions

Each error is local to a single entity transition. The HTTP status is a
class attribute so main.py can render every error with one handler.
"""

from datetime import datetime
from typing import Any


class LifecycleError(Exception):
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"detail": self.message, "error": type(self).__name__}
        for key, value in self.details.items():
            body[key] = value.isoformat() if isinstance(value, datetime) else value
        return body


class ValidationError(LifecycleError):
    """Required input for a transition is missing"""

    status_code = 400


class NotFoundError(LifecycleError):
    status_code = 404


class InvalidStateError(LifecycleError):
    """Transition attempted from a state that does not permit it"""

    status_code = 409


class PreconditionFailed(LifecycleError):
    """Time-dependent or setup precondition unmet"""

    status_code = 412


class MissingScheduleError(PreconditionFailed, ValidationError):
    status_code = 412

    def __init__(self, message: str = "missing schedule", **details: Any):
        super().__init__(message, **details)


class NotYetStartable(PreconditionFailed):
    """Start requested before the start window opens"""


class WindowLapsed(PreconditionFailed):
    """Start requested after the start window closed"""


class ExpiredError(LifecycleError):
    status_code = 410


class ConflictError(LifecycleError):
    """Another writer changed the entity first; refetch and re-evaluate"""

    status_code = 409


class AlreadyResolvedError(LifecycleError):
    """Duplicate or contradicting terminal action"""

    status_code = 409
