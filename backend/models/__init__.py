"""
Data models package.
"""

from models.job import JobRecord, JobStatus
from models.transcription import TranscriptionOutcome, Transcriber

__all__ = [
    "JobRecord",
    "JobStatus",
    "TranscriptionOutcome",
    "Transcriber",
]
