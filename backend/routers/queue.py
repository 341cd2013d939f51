"""
Transcription queue endpoints: add, list, view, copy, remove.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from deps import get_queue_store
from engine.queue_store import QueueStore
from models.job import JobStatus
from utils.exceptions import NotFoundError, ConflictError, ValidationError

logger = logging.getLogger(__name__)
router = APIRouter()


class EnqueueRequest(BaseModel):
    """Request body for adding a post URL to the queue."""
    url: str


def _get_job_or_404(store: QueueStore, job_id: str):
    job = store.get(job_id)
    if not job:
        raise NotFoundError("Job not found")
    return job


@router.get("/")
async def list_jobs(store: QueueStore = Depends(get_queue_store)):
    """All jobs in queue order, plus the busy flag and per-status counts."""
    return {
        "jobs": [job.to_dict() for job in store.jobs],
        "busy": store.busy,
        "counts": store.counts(),
    }


@router.post("/", status_code=201)
async def enqueue_job(
    request: EnqueueRequest,
    store: QueueStore = Depends(get_queue_store)
):
    """
    Add a post URL to the end of the queue.

    The job waits as pending until the worker reaches it and an API key is set.
    """
    job = store.enqueue(request.url)
    return job.to_dict()


@router.delete("/")
async def clear_finished_jobs(
    status: str = "completed",
    store: QueueStore = Depends(get_queue_store)
):
    """Remove every completed (or every failed) job in one go."""
    if status not in (JobStatus.COMPLETED.value, JobStatus.ERROR.value):
        raise ValidationError("Only completed or error jobs can be cleared")

    target = JobStatus(status)
    removed = 0
    for job in store.jobs:
        if job.status == target and store.remove(job.id):
            removed += 1

    logger.info(f"Cleared {removed} {status} jobs")
    return {"removed": removed}


@router.get("/{job_id}")
async def get_job(job_id: str, store: QueueStore = Depends(get_queue_store)):
    """Get one job, including its transcript once completed."""
    return _get_job_or_404(store, job_id).to_dict()


@router.get("/{job_id}/transcript", response_class=PlainTextResponse)
async def get_job_transcript(job_id: str, store: QueueStore = Depends(get_queue_store)):
    """Transcript as plain text, ready to copy."""
    job = _get_job_or_404(store, job_id)
    if job.status != JobStatus.COMPLETED:
        raise ConflictError(f"Transcript not available for a job in {job.status.value} state")
    return job.transcript


@router.delete("/{job_id}")
async def remove_job(job_id: str, store: QueueStore = Depends(get_queue_store)):
    """Remove a pending or failed job."""
    job = _get_job_or_404(store, job_id)
    if not job.is_removable:
        raise ConflictError(f"Cannot remove job in {job.status.value} state")

    store.remove(job_id)
    return {"message": "Job removed", "id": job_id}
