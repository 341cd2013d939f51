"""
OpenAI Whisper API client.
Transcribes a downloaded video with the user's own API key.
"""

import logging
import math
from pathlib import Path
from typing import Optional

import aiofiles
import openai
from openai import AsyncOpenAI

from config import settings
from utils.exceptions import (
    AppError,
    InvalidApiKeyError,
    RateLimitError,
    TranscriptionApiError,
    VideoTooLargeError,
)

logger = logging.getLogger(__name__)

COST_PER_MINUTE_USD = 0.006

# Common subset of the languages Whisper accepts as a hint
SUPPORTED_LANGUAGES = [
    "en", "es", "fr", "de", "it", "pt", "nl", "pl", "ru", "ja", "ko",
    "zh", "ar", "hi", "tr", "sv", "da", "no", "fi", "uk", "vi", "th",
]


def validate_api_key_format(api_key: str) -> bool:
    """OpenAI keys start with 'sk-' and are longer than 20 characters."""
    return bool(api_key) and api_key.startswith("sk-") and len(api_key) > 20


def estimate_transcription_cost(duration_seconds: float) -> float:
    """Whisper pricing: $0.006 per started minute."""
    minutes = math.ceil(duration_seconds / 60)
    return round(minutes * COST_PER_MINUTE_USD, 6)


class WhisperClient:
    """Thin wrapper over the OpenAI audio transcription endpoint."""

    def __init__(
        self,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        max_size_mb: Optional[int] = None,
    ):
        self.model = model or settings.openai_model
        self.timeout = timeout or settings.openai_timeout_seconds
        self.max_retries = settings.openai_max_retries if max_retries is None else max_retries
        self.max_size_mb = max_size_mb or settings.max_video_size_mb

    def _client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, timeout=self.timeout, max_retries=self.max_retries)

    async def transcribe(
        self,
        video_path: str,
        api_key: str,
        language: Optional[str] = None,
        prompt: Optional[str] = None,
        temperature: float = 0,
    ) -> str:
        """
        Transcribe the audio track of a video file.

        Args:
            video_path: Path to the downloaded video
            api_key: The user's OpenAI key
            language: Optional language hint (auto-detect if None)
            prompt: Optional text to guide the model's style

        Returns:
            Transcript text (may be empty)
        """
        if not api_key or not api_key.strip():
            raise InvalidApiKeyError("OpenAI API key is required")

        path = Path(video_path)
        if not path.exists():
            raise TranscriptionApiError("Video file not found")

        size = path.stat().st_size
        logger.info(f"File size: {size / 1024 / 1024:.2f} MB")
        if size > self.max_size_mb * 1024 * 1024:
            raise VideoTooLargeError(f"Video file is too large. Maximum file size is {self.max_size_mb}MB.")

        # Whole file in memory; streaming uploads tend to hang up mid-request
        async with aiofiles.open(path, 'rb') as f:
            content = await f.read()

        options = {
            "model": self.model,
            "response_format": "text",
            "temperature": temperature,
        }
        if language in SUPPORTED_LANGUAGES:
            options["language"] = language
        elif language:
            logger.warning(f"Ignoring unsupported language hint '{language}', auto-detecting")
        if prompt:
            options["prompt"] = prompt

        try:
            logger.info(f"Calling OpenAI Whisper API (model={self.model})")
            transcription = await self._client(api_key.strip()).audio.transcriptions.create(
                file=("audio.mp4", content, "video/mp4"),
                **options,
            )
        except Exception as e:
            raise classify_openai_error(e) from e

        logger.info("Transcription received successfully")
        if isinstance(transcription, str):
            return transcription.strip()
        return (getattr(transcription, "text", "") or "").strip()


def classify_openai_error(error: Exception) -> AppError:
    """Map an OpenAI SDK failure onto the application's error types."""
    logger.error(f"OpenAI error: {type(error).__name__}: {error}")
    code = getattr(error, "code", None)
    status = getattr(error, "status_code", None)

    if isinstance(error, openai.AuthenticationError) or code == "invalid_api_key":
        return InvalidApiKeyError()
    if code == "insufficient_quota":
        return RateLimitError("OpenAI API quota exceeded. Please check your billing settings.")
    if isinstance(error, openai.RateLimitError) or code == "rate_limit_exceeded":
        return RateLimitError("OpenAI rate limit exceeded. Please try again later or check your quota.")
    if status == 413:
        return VideoTooLargeError()
    if isinstance(error, openai.APIConnectionError):
        return TranscriptionApiError("Network error: Cannot connect to OpenAI. Check your internet connection.")

    message = getattr(error, "message", None) or str(error) or "Failed to transcribe audio"
    return TranscriptionApiError(f"{message}. Please try again.")
