"""
Direct transcription endpoint (one URL, one key, synchronous result).
"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config import settings
from deps import get_transcription_service
from services.transcription_service import TranscriptionService
from utils.exceptions import ErrorCode

logger = logging.getLogger(__name__)
router = APIRouter()

# Input, extraction and size problems are the caller's; the rest are ours
CLIENT_ERROR_CODES = {
    ErrorCode.INVALID_URL,
    ErrorCode.VIDEO_NOT_FOUND,
    ErrorCode.PRIVATE_VIDEO,
    ErrorCode.VIDEO_TOO_LARGE,
    ErrorCode.UNSUPPORTED_FORMAT,
    ErrorCode.INVALID_API_KEY,
}


class TranscribeRequest(BaseModel):
    """Request body for a direct transcription."""
    twitterUrl: Optional[str] = None
    openaiApiKey: Optional[str] = None


@router.post("")
async def transcribe(
    request: TranscribeRequest,
    service: TranscriptionService = Depends(get_transcription_service)
):
    """Transcribe a Twitter/X video post with the caller's OpenAI key."""
    start_time = time.perf_counter()
    outcome = await service.transcribe(request.twitterUrl or "", request.openaiApiKey or "")
    logger.info(f"Total processing time: {(time.perf_counter() - start_time) * 1000:.0f}ms")

    if outcome.success:
        return JSONResponse(status_code=200, content=outcome.to_response())

    if outcome.error_code in CLIENT_ERROR_CODES:
        status_code = 400
    elif outcome.error_code == ErrorCode.RATE_LIMIT:
        status_code = 429
    else:
        status_code = 500
    return JSONResponse(status_code=status_code, content=outcome.to_response())


@router.get("")
async def transcribe_health():
    """Health check for the direct endpoint."""
    return {
        "status": "ok",
        "message": f"{settings.app_name} API",
        "version": settings.version,
    }
