"""Domain layer definitions."""

from .errors import (
    CompatError,
    DuplicateId,
    IllegalTransition,
    NotFound,
    StoreUnavailable,
    TestStepError,
    TransientFailure,
    UnknownJob,
)
from .jobs import (
    LEGAL_TRANSITIONS,
    TERMINAL_STATES,
    ExecutionTicket,
    Job,
    JobState,
    JobSubmission,
    TestStepResult,
)

__all__ = [
    "CompatError",
    "DuplicateId",
    "ExecutionTicket",
    "IllegalTransition",
    "Job",
    "JobState",
    "JobSubmission",
    "LEGAL_TRANSITIONS",
    "NotFound",
    "StoreUnavailable",
    "TERMINAL_STATES",
    "TestStepError",
    "TestStepResult",
    "TransientFailure",
    "UnknownJob",
]
