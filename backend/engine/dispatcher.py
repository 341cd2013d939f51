"""
Single-worker dispatcher for the transcription queue.
Runs at most one job at a time, oldest pending first.
"""

import asyncio
import logging
from typing import Callable, Optional, Protocol

from engine.executor import JobExecutor
from engine.queue_store import QueueStore
from models.job import JobRecord, JobStatus, utc_now

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Interrupted: the server stopped while this job was running. Add the URL again to retry."
FAILED_MESSAGE = "Transcription failed unexpectedly. Add the URL again to retry."


class CredentialSource(Protocol):
    """Anything that holds the current API key and announces changes to it."""

    def get(self) -> str: ...

    def subscribe(self, listener: Callable[[str], None]) -> Callable[[], None]: ...


class Dispatcher:
    """
    Background worker that drains the queue whenever a credential is available.

    The worker sleeps on an event that is set by every queue change and every
    credential change. Each wake-up it starts pending jobs one after another
    until none is eligible, so a job added mid-flight waits for all jobs
    ahead of it.
    """

    def __init__(
        self,
        store: QueueStore,
        executor: JobExecutor,
        credentials: CredentialSource,
    ):
        self.store = store
        self.executor = executor
        self.credentials = credentials
        self._wake_event = asyncio.Event()
        self._worker_task: Optional[asyncio.Task] = None
        self._unsubscribers: list[Callable[[], None]] = []
        self._running = False
        self._current_job_id: Optional[str] = None

    def wake(self, *_args) -> None:
        """Ask the worker to re-evaluate. Safe to use as a listener callback."""
        self._wake_event.set()

    async def start_worker(self) -> None:
        """Start the background worker loop."""
        if self._running:
            logger.warning("Dispatcher already running")
            return

        self._running = True
        self._unsubscribers = [
            self.store.subscribe(self.wake),
            self.credentials.subscribe(self.wake),
        ]
        self._worker_task = asyncio.create_task(self._worker_loop())
        self.wake()
        logger.info("Dispatcher started (concurrency=1)")

    async def stop_worker(self, wait_for_current: bool = True) -> None:
        """
        Stop the worker loop.

        Args:
            wait_for_current: If True, let the running job finish first;
                otherwise cancel it and mark it as interrupted.
        """
        self._running = False
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

        task = self._worker_task
        self._worker_task = None
        if task is None:
            return

        self.wake()
        if not wait_for_current:
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Dispatcher stopped")

    def _next_eligible(self) -> tuple[Optional[JobRecord], str]:
        """Pick the job to start now, with the credential snapshot to use."""
        if self.store.busy:
            return None, ""
        credential = (self.credentials.get() or "").strip()
        if not credential:
            return None, ""
        return self.store.find_oldest_pending(), credential

    async def _worker_loop(self) -> None:
        """Main worker loop - processes one job at a time."""
        while self._running:
            try:
                await self._wake_event.wait()
                self._wake_event.clear()

                while self._running:
                    job, credential = self._next_eligible()
                    if job is None:
                        if self.store.count(JobStatus.PENDING) and not credential and not self.store.busy:
                            logger.info("Pending jobs waiting for an API key")
                        break
                    try:
                        await self._dispatch(job, credential)
                    except Exception as e:
                        logger.error(f"Job failed: id={job.id}, error={e}", exc_info=True)
            except asyncio.CancelledError:
                logger.info("Worker cancelled")
                raise
            except Exception as e:
                logger.error(f"Worker error: {e}", exc_info=True)
                # Re-evaluate on the next pass instead of sleeping until the next change
                self._wake_event.set()
                await asyncio.sleep(0.1)

    async def _dispatch(self, job: JobRecord, credential: str) -> None:
        self._current_job_id = job.id
        self.store.update_status(job.id, status=JobStatus.PROCESSING, started_at=utc_now())
        logger.info(f"Processing job: id={job.id}, url={job.source_url}")
        try:
            await self.executor.run(job.id, job.source_url, credential)
        except Exception as e:
            logger.error(f"Job failed: id={job.id}, error={e}", exc_info=True)
            self._close_if_processing(job.id, FAILED_MESSAGE)
        finally:
            # Only reached still processing when the worker was cancelled mid-job
            self._close_if_processing(job.id, INTERRUPTED_MESSAGE)
            self._current_job_id = None

    def _close_if_processing(self, job_id: str, message: str) -> None:
        current = self.store.get(job_id)
        if current is not None and current.status == JobStatus.PROCESSING:
            logger.warning(f"Job left processing, marking error: id={job_id}, reason={message}")
            self.store.update_status(
                job_id,
                status=JobStatus.ERROR,
                error_message=message,
                completed_at=utc_now(),
            )

    @property
    def current_job_id(self) -> Optional[str]:
        """Id of the job in flight, if any."""
        return self._current_job_id

    @property
    def is_running(self) -> bool:
        """Whether the worker is running."""
        return self._running
