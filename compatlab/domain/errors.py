"""Error taxonomy shared by the store, registry and dispatcher."""
from __future__ import annotations


class CompatError(RuntimeError):
    """Base class for every error raised by the job layer."""


class NotFound(CompatError):
    """Raised when a key is absent and no default was supplied."""

    def __init__(self, key: str, message: str | None = None) -> None:
        super().__init__(message or f"key not found: {key}")
        self.key = key


class UnknownJob(NotFound):
    """Raised when a job id has never been created."""

    def __init__(self, job_id: str) -> None:
        super().__init__(job_id, f"unknown job: {job_id}")
        self.job_id = job_id


class DuplicateId(CompatError):
    """Raised when a job id is created twice."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"job already exists: {job_id}")
        self.job_id = job_id


class IllegalTransition(CompatError):
    """Raised when a state change is not a legal edge for the job."""

    def __init__(self, job_id: str, current: str, requested: str, reason: str | None = None) -> None:
        message = f"illegal transition for {job_id}: {current} -> {requested}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.job_id = job_id
        self.current = current
        self.requested = requested


class StoreUnavailable(CompatError):
    """Raised when the persistence medium cannot be reached."""


class TransientFailure(CompatError):
    """Raised when a bounded retry budget is exhausted."""


class TestStepError(CompatError):
    """Raised by a test runner when the step itself could not be executed."""

    __test__ = False
