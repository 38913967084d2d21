"""
Job state machine.

`pending` and `queued` are two spellings of the same logical state: a job that
is eligible for claiming. Both labels are kept in storage for compatibility with
older rows; everything else reasons in terms of phases.
"""

import enum

from .errors import InvalidTransition


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def phase(self) -> "Phase":
        return _PHASES[self]

    @property
    def is_ready(self) -> bool:
        return self.phase is Phase.READY

    @property
    def is_terminal(self) -> bool:
        return self.phase in (Phase.COMPLETED, Phase.FAILED)


class Phase(str, enum.Enum):
    READY = "ready"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


_PHASES = {
    JobStatus.PENDING: Phase.READY,
    JobStatus.QUEUED: Phase.READY,
    JobStatus.PROCESSING: Phase.PROCESSING,
    JobStatus.COMPLETED: Phase.COMPLETED,
    JobStatus.FAILED: Phase.FAILED,
}

READY_STATUSES = (JobStatus.PENDING, JobStatus.QUEUED)

TRANSITIONS: dict[Phase, frozenset[Phase]] = {
    Phase.READY: frozenset({Phase.PROCESSING}),
    Phase.PROCESSING: frozenset({Phase.COMPLETED, Phase.FAILED}),
    Phase.COMPLETED: frozenset(),
    Phase.FAILED: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return target.phase in TRANSITIONS[current.phase]


def check_transition(current: JobStatus, target: JobStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(f"{current.value} -> {target.value} is not a valid job transition")


class Quality(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
