"""
In-memory queue of transcription jobs.
Insertion order is scheduling order; listeners are told about every change.
"""

import logging
from typing import Callable, Optional

from models.job import IMMUTABLE_FIELDS, JobRecord, JobStatus
from utils.exceptions import ValidationError, InvalidTransitionError, QueueFullError

logger = logging.getLogger(__name__)

QueueListener = Callable[[str, JobRecord], None]

# Event names passed to listeners
ENQUEUED = "enqueued"
REMOVED = "removed"
UPDATED = "updated"


class QueueStore:
    """
    Owns every JobRecord in the queue.

    All mutation goes through enqueue(), remove() and update_status().
    `busy` is derived from the records, so it is true exactly when one
    record is processing.
    """

    def __init__(self, max_pending: int = 0):
        self._jobs: list[JobRecord] = []
        self._issued_ids: set[str] = set()
        self._listeners: list[QueueListener] = []
        self.max_pending = max_pending

    # ── Observers ──────────────────────────────────────────────────────

    def subscribe(self, listener: QueueListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str, job: JobRecord) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, job)
            except Exception as e:
                logger.error(f"Queue listener failed on {event} for job {job.id}: {e}")

    # ── Mutations ──────────────────────────────────────────────────────

    def enqueue(self, source_url: str) -> JobRecord:
        """Append a new pending job for the given URL."""
        url = (source_url or "").strip()
        if not url:
            raise ValidationError("Video post URL is required")

        if self.max_pending and self.count(JobStatus.PENDING) >= self.max_pending:
            raise QueueFullError(self.max_pending)

        job = JobRecord.create(url)
        while job.id in self._issued_ids:
            job = JobRecord.create(url)
        self._issued_ids.add(job.id)

        self._jobs.append(job)
        logger.info(f"Job enqueued: id={job.id}, url={url}, queue_size={len(self._jobs)}")
        self._notify(ENQUEUED, job)
        return job

    def remove(self, job_id: str) -> bool:
        """
        Delete a job by id. Missing ids are ignored.

        No status check happens here; callers decide which jobs are removable.
        """
        index = self._index_of(job_id)
        if index is None:
            return False
        job = self._jobs.pop(index)
        logger.info(f"Job removed: id={job_id}, status={job.status.value}")
        self._notify(REMOVED, job)
        return True

    def update_status(self, job_id: str, **patch) -> Optional[JobRecord]:
        """
        Merge a partial update into a job. Returns the updated record,
        or None if the id is unknown.

        Raises:
            ValidationError: if the patch touches id, source_url or added_at
            InvalidTransitionError: if the patch moves status against the lifecycle
        """
        locked = IMMUTABLE_FIELDS.intersection(patch)
        if locked:
            raise ValidationError(f"Cannot change {', '.join(sorted(locked))} of a job")

        index = self._index_of(job_id)
        if index is None:
            logger.debug(f"Update for unknown job ignored: id={job_id}")
            return None

        current = self._jobs[index]
        status = patch.get("status")
        if status is not None and not current.can_transition_to(status):
            raise InvalidTransitionError(job_id, current.status.value, status.value)

        updated = current.merged(**patch)
        self._jobs[index] = updated
        if status is not None and status != current.status:
            logger.info(f"Job {job_id}: {current.status.value} -> {status.value}")
        self._notify(UPDATED, updated)
        return updated

    # ── Queries ────────────────────────────────────────────────────────

    def find_oldest_pending(self) -> Optional[JobRecord]:
        """First pending job in insertion order, if any."""
        for job in self._jobs:
            if job.status == JobStatus.PENDING:
                return job
        return None

    def get(self, job_id: str) -> Optional[JobRecord]:
        index = self._index_of(job_id)
        return self._jobs[index] if index is not None else None

    @property
    def jobs(self) -> tuple[JobRecord, ...]:
        """Snapshot of all jobs in queue order."""
        return tuple(self._jobs)

    @property
    def busy(self) -> bool:
        return any(job.status == JobStatus.PROCESSING for job in self._jobs)

    def count(self, status: JobStatus) -> int:
        return sum(1 for job in self._jobs if job.status == status)

    def counts(self) -> dict[str, int]:
        return {status.value: self.count(status) for status in JobStatus}

    def __len__(self) -> int:
        return len(self._jobs)

    def _index_of(self, job_id: str) -> Optional[int]:
        for index, job in enumerate(self._jobs):
            if job.id == job_id:
                return index
        return None
