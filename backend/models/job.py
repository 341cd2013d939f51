"""
Transcription job record and its lifecycle.
"""

import enum
import uuid
from dataclasses import dataclass, field, replace, asdict
from datetime import datetime, timezone
from typing import Optional


class JobStatus(enum.Enum):
    """Status of a queued transcription job."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)


# pending -> processing -> {completed | error}; terminal states have no exits
ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.PROCESSING},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.ERROR},
    JobStatus.COMPLETED: set(),
    JobStatus.ERROR: set(),
}

# Fixed for the lifetime of a record
IMMUTABLE_FIELDS = frozenset({"id", "source_url", "added_at"})

# Statuses a user may remove from the queue
REMOVABLE_STATUSES = (JobStatus.PENDING, JobStatus.ERROR)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class JobRecord:
    """
    One submitted post URL and its transcription state.

    Records are immutable; the queue store swaps in an updated copy on every
    change so nobody can hold a private copy that drifts from the queue.
    """
    id: str
    source_url: str
    status: JobStatus = JobStatus.PENDING
    transcript: Optional[str] = None
    error_message: Optional[str] = None
    title: Optional[str] = None
    added_at: datetime = field(default_factory=utc_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def create(cls, source_url: str) -> "JobRecord":
        return cls(id=new_job_id(), source_url=source_url)

    def can_transition_to(self, status: JobStatus) -> bool:
        return status == self.status or status in ALLOWED_TRANSITIONS[self.status]

    @property
    def is_removable(self) -> bool:
        return self.status in REMOVABLE_STATUSES

    def merged(self, **patch) -> "JobRecord":
        """Return a copy with the patch applied; fields not in the patch are kept."""
        return replace(self, **patch)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        for key in ("added_at", "started_at", "completed_at"):
            value = data[key]
            data[key] = _isoformat(value) if value else None
        return data


def _isoformat(value: datetime) -> str:
    return value.astimezone(timezone.utc).replace(tzinfo=None).isoformat() + "Z"
