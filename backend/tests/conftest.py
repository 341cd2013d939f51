import asyncio
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from main import app
from deps import (
    get_credentials,
    get_dispatcher,
    get_queue_store,
    get_transcription_service,
)
from engine.dispatcher import Dispatcher
from engine.executor import JobExecutor
from engine.queue_store import QueueStore
from models.job import JobStatus
from models.transcription import TranscriptionOutcome
from services.credential_service import CredentialService

VALID_KEY = "sk-test-0123456789abcdefghij"


# --- Mock Transcriber ---
class FakeTranscriber:
    """
    Stands in for the transcription pipeline.

    Records every call. With `hold = True` each call blocks until
    release(url) is called, so tests can observe the processing state.
    """

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.results: dict = {}
        self.hold = False
        self._gates: dict[str, asyncio.Event] = {}

    def _gate(self, url: str) -> asyncio.Event:
        return self._gates.setdefault(url, asyncio.Event())

    def release(self, url: str) -> None:
        self._gate(url).set()

    async def __call__(self, source_url: str, credential: str) -> TranscriptionOutcome:
        self.calls.append((source_url, credential))
        if self.hold:
            await self._gate(source_url).wait()
        result = self.results.get(
            source_url,
            TranscriptionOutcome.ok(f"transcript of {source_url}", title=f"title of {source_url}"),
        )
        if isinstance(result, Exception):
            raise result
        return result

    @property
    def urls(self) -> list[str]:
        return [url for url, _ in self.calls]


class ProcessingMonitor:
    """Queue listener that checks mutual exclusion after every change."""

    def __init__(self, store: QueueStore):
        self.store = store
        self.max_processing = 0
        self.started: list[str] = []
        self.busy_mismatch = False

    def __call__(self, event: str, job) -> None:
        processing = self.store.count(JobStatus.PROCESSING)
        self.max_processing = max(self.max_processing, processing)
        if self.store.busy != (processing == 1):
            self.busy_mismatch = True
        if event == "updated" and job.status == JobStatus.PROCESSING and job.id not in self.started:
            self.started.append(job.id)


@pytest.fixture
def store() -> QueueStore:
    return QueueStore()


@pytest.fixture
def credentials(tmp_path) -> CredentialService:
    return CredentialService(tmp_path / "credential.json")


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def monitor(store) -> ProcessingMonitor:
    monitor = ProcessingMonitor(store)
    store.subscribe(monitor)
    return monitor


@pytest_asyncio.fixture
async def dispatcher(store, credentials, transcriber) -> AsyncGenerator[Dispatcher, None]:
    dispatcher = Dispatcher(store, JobExecutor(store, transcriber), credentials)
    await dispatcher.start_worker()
    yield dispatcher
    # Unblock anything still held so shutdown is clean
    transcriber.hold = False
    for url in transcriber.urls:
        transcriber.release(url)
    await dispatcher.stop_worker(wait_for_current=False)


@pytest.fixture
def wait_until() -> Callable:
    """Await until predicate() is true, letting the worker run in between."""
    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not reached before timeout")
            await asyncio.sleep(0.005)
    return _wait


@pytest.fixture
def settle() -> Callable:
    """Give the worker several scheduling rounds without expecting anything."""
    async def _settle(rounds: int = 20) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)
    return _settle


# --- Client Setup ---
@pytest_asyncio.fixture(scope="function")
async def client(store, credentials, dispatcher) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_queue_store] = lambda: store
    app.dependency_overrides[get_credentials] = lambda: credentials
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def override_transcription_service():
    """Install a stand-in TranscriptionService for the direct endpoint."""
    def _install(service) -> None:
        app.dependency_overrides[get_transcription_service] = lambda: service
    yield _install
    app.dependency_overrides.pop(get_transcription_service, None)
