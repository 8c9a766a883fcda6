"""Domain entities for compatibility-test jobs."""
from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class JobState(str, Enum):
    """Lifecycle states of a job."""

    CREATED = "created"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES: frozenset[JobState] = frozenset({JobState.PASSED, JobState.FAILED, JobState.ERRORED})

LEGAL_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.CREATED: frozenset({JobState.RUNNING}),
    JobState.RUNNING: TERMINAL_STATES,
    JobState.PASSED: frozenset(),
    JobState.FAILED: frozenset(),
    JobState.ERRORED: frozenset(),
}


@dataclass(slots=True)
class Job:
    """One compatibility-test execution for an uploaded package."""

    id: str
    package_path: str
    state: JobState = JobState.CREATED
    created_at: str | None = None
    started_at: str | None = None
    finished_at: str | None = None
    result: dict[str, Any] | None = None
    ticket: str | None = None

    def to_record(self) -> dict[str, Any]:
        record = asdict(self)
        record["state"] = self.state.value
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Job":
        return cls(
            id=str(record["id"]),
            package_path=str(record.get("package_path") or ""),
            state=JobState(record.get("state") or JobState.CREATED.value),
            created_at=record.get("created_at"),
            started_at=record.get("started_at"),
            finished_at=record.get("finished_at"),
            result=record.get("result"),
            ticket=record.get("ticket"),
        )


@dataclass(slots=True)
class JobSubmission:
    """A job handed to the dispatcher by the upload layer."""

    id: str
    package_path: str


@dataclass(slots=True, frozen=True)
class ExecutionTicket:
    """Authorises exactly one worker to drive a job to its terminal state."""

    job_id: str
    token: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(slots=True)
class TestStepResult:
    """Structured outcome reported by the external test step."""

    __test__ = False

    passed: bool
    issues: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def state(self) -> JobState:
        return JobState.PASSED if self.passed else JobState.FAILED

    def to_record(self) -> dict[str, Any]:
        return {"passed": self.passed, "issues": list(self.issues), "details": dict(self.details)}
