"""
Services package.
"""

from services.credential_service import CredentialService
from services.file_service import FileService
from services.github_service import GitHubService
from services.transcription_service import TranscriptionService
from services.video_extractor import VideoExtractor
from services.whisper_client import WhisperClient

__all__ = [
    "CredentialService",
    "FileService",
    "GitHubService",
    "TranscriptionService",
    "VideoExtractor",
    "WhisperClient",
]
