"""
Centralized exception definitions for the backend application.
"""

import enum


class ErrorCode(str, enum.Enum):
    """Machine-readable failure kinds reported by the transcription pipeline."""
    INVALID_URL = "INVALID_URL"
    VIDEO_NOT_FOUND = "VIDEO_NOT_FOUND"
    PRIVATE_VIDEO = "PRIVATE_VIDEO"
    VIDEO_TOO_LARGE = "VIDEO_TOO_LARGE"
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    INVALID_API_KEY = "INVALID_API_KEY"
    API_ERROR = "API_ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class AppError(Exception):
    """Base class for application errors."""
    def __init__(
        self,
        message: str,
        status_code: int = 500,
        detail: str = None,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail or message
        self.error_code = error_code

class NotFoundError(AppError):
    """Raised when a resource is not found."""
    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=404)

class ValidationError(AppError):
    """Raised when input validation fails."""
    def __init__(self, message: str = "Invalid input"):
        super().__init__(message, status_code=400)

class ConflictError(AppError):
    """Raised when there is a resource conflict."""
    def __init__(self, message: str = "Resource conflict"):
        super().__init__(message, status_code=409)

class ProcessingError(AppError):
    """Raised when an operation fails during processing (e.g., transcription)."""
    def __init__(self, message: str = "Processing failed"):
        super().__init__(message, status_code=422)


# --- Queue errors ---

class InvalidTransitionError(ConflictError):
    """Raised when a job status change violates the lifecycle."""
    def __init__(self, job_id: str, current: str, requested: str):
        super().__init__(f"Job {job_id} cannot move from {current} to {requested}")
        self.job_id = job_id
        self.current = current
        self.requested = requested

class QueueFullError(ConflictError):
    """Raised when the pending-job limit is reached."""
    def __init__(self, limit: int):
        super().__init__(f"Queue is full ({limit} pending jobs). Wait for some to finish.")
        self.limit = limit


# --- Transcription pipeline errors ---

class InvalidUrlError(AppError):
    def __init__(self, message: str = "Invalid Twitter/X URL"):
        super().__init__(message, status_code=400, error_code=ErrorCode.INVALID_URL)

class VideoNotFoundError(AppError):
    def __init__(self, message: str = "No video found in this post"):
        super().__init__(message, status_code=400, error_code=ErrorCode.VIDEO_NOT_FOUND)

class PrivateVideoError(AppError):
    def __init__(self, message: str = "This post is private or protected"):
        super().__init__(message, status_code=400, error_code=ErrorCode.PRIVATE_VIDEO)

class VideoTooLargeError(AppError):
    def __init__(self, message: str = "Video file is too large. Maximum file size is 25MB."):
        super().__init__(message, status_code=400, error_code=ErrorCode.VIDEO_TOO_LARGE)

class DownloadFailedError(AppError):
    def __init__(self, message: str = "Failed to download video. Please try again."):
        super().__init__(message, status_code=500, error_code=ErrorCode.DOWNLOAD_FAILED)

class InvalidApiKeyError(AppError):
    def __init__(self, message: str = "Invalid OpenAI API key. Please check your key and try again."):
        super().__init__(message, status_code=400, error_code=ErrorCode.INVALID_API_KEY)

class RateLimitError(AppError):
    def __init__(self, message: str = "Rate limit exceeded. Please try again later."):
        super().__init__(message, status_code=429, error_code=ErrorCode.RATE_LIMIT)

class TranscriptionApiError(AppError):
    """Raised when the speech-to-text API fails for a reason not covered above."""
    def __init__(self, message: str = "Failed to transcribe audio. Please try again."):
        super().__init__(message, status_code=500, error_code=ErrorCode.API_ERROR)
