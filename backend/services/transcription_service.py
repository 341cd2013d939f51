"""
Transcription pipeline for a single post URL.
Extract video -> download -> size check -> Whisper -> cleanup.
"""

import logging
from pathlib import Path
from typing import Optional

from models.transcription import TranscriptionOutcome
from services.file_service import FileService
from services.video_extractor import VideoExtractor
from services.whisper_client import WhisperClient, estimate_transcription_cost, validate_api_key_format
from utils.exceptions import AppError, ErrorCode, VideoTooLargeError
from utils.perf_logger import perf_logger
from config import settings

logger = logging.getLogger(__name__)


class TranscriptionService:
    """
    Turns a Twitter/X post URL into a transcript.

    transcribe() never raises for pipeline failures; it reports them as an
    unsuccessful TranscriptionOutcome carrying an ErrorCode.
    """

    def __init__(
        self,
        extractor: Optional[VideoExtractor] = None,
        file_service: Optional[FileService] = None,
        whisper: Optional[WhisperClient] = None,
    ):
        self.extractor = extractor or VideoExtractor()
        self.file_service = file_service or FileService()
        self.whisper = whisper or WhisperClient()

    async def transcribe(self, source_url: str, api_key: str) -> TranscriptionOutcome:
        """Run the whole pipeline for one URL with the given OpenAI key."""
        source_url = (source_url or "").strip()
        api_key = (api_key or "").strip()

        if not source_url:
            return TranscriptionOutcome.failed("Twitter URL is required", ErrorCode.INVALID_URL)
        if not api_key:
            return TranscriptionOutcome.failed("OpenAI API key is required", ErrorCode.INVALID_API_KEY)
        if not validate_api_key_format(api_key):
            return TranscriptionOutcome.failed(
                'Invalid OpenAI API key format. Keys should start with "sk-"',
                ErrorCode.INVALID_API_KEY,
            )

        logger.info(f"Starting transcription for URL: {source_url}")
        temp_files: list[Path] = []
        try:
            return await self._run(source_url, api_key, temp_files)
        except AppError as e:
            logger.error(f"Transcription failed for {source_url}: {e.message}")
            return TranscriptionOutcome.failed(e.message, e.error_code)
        except Exception as e:
            logger.error(f"Unexpected error for {source_url}: {e}", exc_info=True)
            return TranscriptionOutcome.failed(
                "An unexpected error occurred. Please try again.", ErrorCode.UNKNOWN_ERROR
            )
        finally:
            for path in temp_files:
                await self.file_service.cleanup_file(path)

    async def _run(self, source_url: str, api_key: str, temp_files: list[Path]) -> TranscriptionOutcome:
        with perf_logger.phase(f"Video Extraction ({source_url})"):
            video = await self.extractor.extract(source_url)

        video_path = self.file_service.get_temp_file_path("mp4")
        temp_files.append(video_path)
        with perf_logger.phase(f"Video Download ({video_path.name})"):
            await self.file_service.download_file(video.video_url, video_path)

        if not self.file_service.is_file_size_valid(video_path, settings.max_video_size_mb):
            raise VideoTooLargeError(
                f"Video file is too large (maximum {settings.max_video_size_mb}MB). Please try a shorter video."
            )

        if video.duration:
            logger.info(f"Estimated Whisper cost: ${estimate_transcription_cost(video.duration):.3f}")
        with perf_logger.phase(f"Whisper Transcription ({video_path.name})"):
            transcript = await self.whisper.transcribe(str(video_path), api_key)

        return TranscriptionOutcome.ok(transcript, title=video.title, duration=video.duration)
