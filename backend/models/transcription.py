"""
Result types exchanged with the transcription pipeline.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from utils.exceptions import ErrorCode


@dataclass(frozen=True)
class TranscriptionOutcome:
    """What one transcription attempt produced."""
    success: bool
    transcript: Optional[str] = None
    title: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    duration: Optional[float] = None

    @classmethod
    def ok(cls, transcript: str, title: Optional[str] = None, duration: Optional[float] = None) -> "TranscriptionOutcome":
        return cls(success=True, transcript=transcript, title=title, duration=duration)

    @classmethod
    def failed(cls, message: str, error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR) -> "TranscriptionOutcome":
        return cls(success=False, error_message=message, error_code=error_code)

    def to_response(self) -> dict:
        """Body of the /api/transcribe response."""
        if self.success:
            body = {"success": True, "transcript": self.transcript}
            if self.title:
                body["title"] = self.title
            if self.duration is not None:
                body["duration"] = self.duration
            return body
        return {
            "success": False,
            "error": self.error_message,
            "errorCode": self.error_code.value if self.error_code else ErrorCode.UNKNOWN_ERROR.value,
        }


# (source_url, credential) -> outcome
Transcriber = Callable[[str, str], Awaitable[TranscriptionOutcome]]
