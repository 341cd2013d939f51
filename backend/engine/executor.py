"""
Runs one transcription attempt for one queued job.
"""

import logging

import httpx

from engine.queue_store import QueueStore
from models.job import JobStatus, utc_now
from models.transcription import Transcriber, TranscriptionOutcome
from utils.exceptions import AppError, ErrorCode

logger = logging.getLogger(__name__)

EMPTY_TRANSCRIPT_MESSAGE = "Transcription returned an empty transcript"
MALFORMED_RESPONSE_MESSAGE = "Transcription failed: malformed response from the transcriber"


class JobExecutor:
    """
    Calls the transcriber for a processing job and writes the terminal state.

    Every failure is turned into an `error` status here; nothing but task
    cancellation escapes run().
    """

    def __init__(self, store: QueueStore, transcriber: Transcriber):
        self.store = store
        self.transcriber = transcriber

    async def run(self, job_id: str, source_url: str, credential: str) -> TranscriptionOutcome:
        """Transcribe `source_url` with `credential` and close the job."""
        try:
            outcome = await self.transcriber(source_url, credential)
        except AppError as e:
            logger.error(f"Transcription failed: job_id={job_id}, error={e.message}")
            outcome = TranscriptionOutcome.failed(e.message, e.error_code)
        except httpx.HTTPError as e:
            logger.error(f"Transcription network failure: job_id={job_id}, error={e}")
            outcome = TranscriptionOutcome.failed(f"Network error: {e}", ErrorCode.API_ERROR)
        except Exception as e:
            logger.error(f"Unexpected transcription error: job_id={job_id}, error={e}", exc_info=True)
            outcome = TranscriptionOutcome.failed(str(e) or "Failed to transcribe")

        if not isinstance(outcome, TranscriptionOutcome):
            logger.error(f"Transcriber returned {type(outcome).__name__}: job_id={job_id}")
            outcome = TranscriptionOutcome.failed(MALFORMED_RESPONSE_MESSAGE, ErrorCode.API_ERROR)

        if outcome.success and not (outcome.transcript or "").strip():
            logger.warning(f"Empty transcript treated as failure: job_id={job_id}")
            outcome = TranscriptionOutcome.failed(EMPTY_TRANSCRIPT_MESSAGE, ErrorCode.API_ERROR)

        if outcome.success:
            self.store.update_status(
                job_id,
                status=JobStatus.COMPLETED,
                transcript=outcome.transcript,
                title=outcome.title,
                completed_at=utc_now(),
            )
            logger.info(f"Job completed: job_id={job_id}, chars={len(outcome.transcript)}")
        else:
            self.store.update_status(
                job_id,
                status=JobStatus.ERROR,
                error_message=outcome.error_message or "Failed to transcribe",
                completed_at=utc_now(),
            )
        return outcome
