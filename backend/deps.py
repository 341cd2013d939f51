"""
Process-wide queue components, exposed as FastAPI dependencies.
"""

from typing import Optional

from config import settings
from engine.dispatcher import Dispatcher
from engine.executor import JobExecutor
from engine.queue_store import QueueStore
from services.credential_service import CredentialService
from services.github_service import GitHubService
from services.transcription_service import TranscriptionService

_queue_store: Optional[QueueStore] = None
_credentials: Optional[CredentialService] = None
_transcription_service: Optional[TranscriptionService] = None
_dispatcher: Optional[Dispatcher] = None
_github_service: Optional[GitHubService] = None


def get_queue_store() -> QueueStore:
    global _queue_store
    if _queue_store is None:
        _queue_store = QueueStore(max_pending=settings.max_pending_jobs)
    return _queue_store


def get_credentials() -> CredentialService:
    global _credentials
    if _credentials is None:
        _credentials = CredentialService()
    return _credentials


def get_transcription_service() -> TranscriptionService:
    global _transcription_service
    if _transcription_service is None:
        _transcription_service = TranscriptionService()
    return _transcription_service


def get_dispatcher() -> Dispatcher:
    global _dispatcher
    if _dispatcher is None:
        store = get_queue_store()
        executor = JobExecutor(store, get_transcription_service().transcribe)
        _dispatcher = Dispatcher(store, executor, get_credentials())
    return _dispatcher


def get_github_service() -> GitHubService:
    global _github_service
    if _github_service is None:
        _github_service = GitHubService()
    return _github_service
