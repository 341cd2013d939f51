import asyncio

import httpx
import pytest

from engine.dispatcher import Dispatcher, FAILED_MESSAGE, INTERRUPTED_MESSAGE
from engine.executor import JobExecutor, EMPTY_TRANSCRIPT_MESSAGE, MALFORMED_RESPONSE_MESSAGE
from models.job import JobStatus
from models.transcription import TranscriptionOutcome
from utils.exceptions import ErrorCode, RateLimitError

from conftest import VALID_KEY


def statuses(store):
    return [job.status for job in store.jobs]


@pytest.mark.asyncio
async def test_job_completes_with_credential(store, credentials, transcriber, dispatcher, wait_until):
    credentials.set(VALID_KEY)
    job = store.enqueue("u1")

    await wait_until(lambda: store.get(job.id).status == JobStatus.COMPLETED)

    done = store.get(job.id)
    assert done.transcript == "transcript of u1"
    assert done.title == "title of u1"
    assert done.started_at is not None and done.completed_at is not None
    assert done.error_message is None
    assert transcriber.calls == [("u1", VALID_KEY)]
    assert store.busy is False


@pytest.mark.asyncio
async def test_second_job_waits_for_first(store, credentials, transcriber, dispatcher, wait_until, settle):
    """A then B: A is terminal before B leaves pending, and B starts on its own."""
    transcriber.hold = True
    credentials.set(VALID_KEY)
    a = store.enqueue("u1")
    await wait_until(lambda: store.get(a.id).status == JobStatus.PROCESSING)

    b = store.enqueue("u2")
    await settle()
    assert store.get(b.id).status == JobStatus.PENDING
    assert transcriber.urls == ["u1"]

    transcriber.release("u1")
    await wait_until(lambda: store.get(b.id).status == JobStatus.PROCESSING)
    assert store.get(a.id).status == JobStatus.COMPLETED
    assert store.get(b.id).started_at >= store.get(a.id).completed_at

    transcriber.release("u2")
    await wait_until(lambda: store.get(b.id).status == JobStatus.COMPLETED)


@pytest.mark.asyncio
async def test_jobs_start_in_enqueue_order_despite_removals(
    store, credentials, transcriber, monitor, dispatcher, wait_until
):
    jobs = [store.enqueue(f"u{i}") for i in range(6)]
    store.remove(jobs[2].id)
    store.remove(jobs[4].id)

    credentials.set(VALID_KEY)
    await wait_until(lambda: all(s == JobStatus.COMPLETED for s in statuses(store)))

    expected = [j.id for j in jobs if j.id not in (jobs[2].id, jobs[4].id)]
    assert monitor.started == expected
    assert transcriber.urls == ["u0", "u1", "u3", "u5"]


@pytest.mark.asyncio
async def test_never_more_than_one_processing(store, credentials, transcriber, monitor, dispatcher, wait_until):
    credentials.set(VALID_KEY)
    for i in range(10):
        store.enqueue(f"u{i}")
        await asyncio.sleep(0)

    await wait_until(lambda: store.count(JobStatus.COMPLETED) == 10)
    assert monitor.max_processing == 1
    assert monitor.busy_mismatch is False


@pytest.mark.asyncio
async def test_no_credential_keeps_jobs_pending(store, transcriber, dispatcher, settle):
    for i in range(5):
        store.enqueue(f"u{i}")
    await settle()

    assert statuses(store) == [JobStatus.PENDING] * 5
    assert transcriber.calls == []
    assert store.busy is False


@pytest.mark.asyncio
async def test_setting_credential_later_starts_waiting_job(store, credentials, transcriber, dispatcher, wait_until, settle):
    job = store.enqueue("u1")
    await settle()
    assert store.get(job.id).status == JobStatus.PENDING

    credentials.set(VALID_KEY)
    await wait_until(lambda: store.get(job.id).status == JobStatus.COMPLETED)
    assert len(store) == 1
    assert transcriber.calls == [("u1", VALID_KEY)]


@pytest.mark.asyncio
async def test_clearing_credential_pauses_the_queue(store, credentials, transcriber, dispatcher, wait_until, settle):
    transcriber.hold = True
    credentials.set(VALID_KEY)
    a = store.enqueue("u1")
    b = store.enqueue("u2")
    await wait_until(lambda: store.get(a.id).status == JobStatus.PROCESSING)

    credentials.clear()
    transcriber.release("u1")
    await wait_until(lambda: store.get(a.id).status == JobStatus.COMPLETED)
    await settle()
    assert store.get(b.id).status == JobStatus.PENDING

    transcriber.release("u2")
    credentials.set(VALID_KEY)
    await wait_until(lambda: store.get(b.id).status == JobStatus.COMPLETED)


@pytest.mark.asyncio
async def test_credential_is_snapshotted_at_dispatch(store, credentials, transcriber, dispatcher, wait_until):
    transcriber.hold = True
    credentials.set(VALID_KEY)
    a = store.enqueue("u1")
    await wait_until(lambda: store.get(a.id).status == JobStatus.PROCESSING)

    other_key = "sk-other-abcdefghijklmnopqrstuv"
    credentials.set(other_key)
    b = store.enqueue("u2")
    transcriber.release("u1")
    transcriber.release("u2")
    await wait_until(lambda: store.get(b.id).status == JobStatus.COMPLETED)

    assert transcriber.calls == [("u1", VALID_KEY), ("u2", other_key)]


@pytest.mark.asyncio
async def test_removed_job_is_never_processed(store, credentials, transcriber, dispatcher, wait_until, settle):
    a = store.enqueue("u1")
    store.remove(a.id)
    await settle()

    credentials.set(VALID_KEY)
    b = store.enqueue("u2")
    await wait_until(lambda: store.get(b.id).status == JobStatus.COMPLETED)

    assert store.get(a.id) is None
    assert transcriber.urls == ["u2"]


@pytest.mark.asyncio
async def test_failure_does_not_halt_queue(store, credentials, transcriber, dispatcher, wait_until):
    transcriber.results["bad"] = TranscriptionOutcome.failed("Invalid OpenAI API key", ErrorCode.INVALID_API_KEY)
    credentials.set(VALID_KEY)
    bad = store.enqueue("bad")
    good = store.enqueue("good")

    await wait_until(lambda: store.get(good.id).status == JobStatus.COMPLETED)

    failed = store.get(bad.id)
    assert failed.status == JobStatus.ERROR
    assert failed.error_message == "Invalid OpenAI API key"
    assert failed.transcript is None
    assert failed.completed_at is not None


@pytest.mark.asyncio
async def test_empty_transcript_becomes_error(store, credentials, transcriber, dispatcher, wait_until):
    transcriber.results["u1"] = TranscriptionOutcome.ok("   ")
    credentials.set(VALID_KEY)
    job = store.enqueue("u1")

    await wait_until(lambda: store.get(job.id).status == JobStatus.ERROR)
    assert store.get(job.id).error_message == EMPTY_TRANSCRIPT_MESSAGE
    assert store.get(job.id).title is None


@pytest.mark.asyncio
@pytest.mark.parametrize("exc, message", [
    (RateLimitError("OpenAI rate limit exceeded."), "OpenAI rate limit exceeded."),
    (httpx.ConnectError("connection refused"), "Network error: connection refused"),
    (ValueError("malformed response"), "malformed response"),
])
async def test_raised_errors_are_absorbed(store, credentials, transcriber, dispatcher, wait_until, exc, message):
    transcriber.results["u1"] = exc
    credentials.set(VALID_KEY)
    job = store.enqueue("u1")
    follow_up = store.enqueue("u2")

    await wait_until(lambda: store.get(follow_up.id).status == JobStatus.COMPLETED)
    assert store.get(job.id).status == JobStatus.ERROR
    assert store.get(job.id).error_message == message


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_result", [None, "just a string", {"success": True}])
async def test_malformed_outcome_is_recorded_and_queue_continues(
    store, credentials, transcriber, dispatcher, wait_until, bad_result
):
    transcriber.results["bad"] = bad_result
    credentials.set(VALID_KEY)
    bad = store.enqueue("bad")
    good = store.enqueue("good")

    await wait_until(lambda: store.get(good.id).status == JobStatus.COMPLETED)

    failed = store.get(bad.id)
    assert failed.status == JobStatus.ERROR
    assert failed.error_message == MALFORMED_RESPONSE_MESSAGE
    assert dispatcher.is_running is True
    assert store.busy is False


@pytest.mark.asyncio
async def test_executor_crash_does_not_stop_the_worker(store, credentials, transcriber, dispatcher, wait_until):
    real_run = dispatcher.executor.run

    async def crashing_run(job_id, source_url, credential):
        if source_url == "crash":
            raise RuntimeError("executor bug")
        return await real_run(job_id, source_url, credential)

    dispatcher.executor.run = crashing_run
    credentials.set(VALID_KEY)
    crashed = store.enqueue("crash")
    store.enqueue("later")
    await wait_until(lambda: store.count(JobStatus.COMPLETED) == 1)

    assert store.get(crashed.id).status == JobStatus.ERROR
    assert store.get(crashed.id).error_message == FAILED_MESSAGE

    # the worker is still alive and picks up new work
    follow_up = store.enqueue("after crash")
    await wait_until(lambda: store.get(follow_up.id).status == JobStatus.COMPLETED)
    assert dispatcher.current_job_id is None


@pytest.mark.asyncio
async def test_stop_without_waiting_marks_job_interrupted(store, credentials, transcriber, wait_until):
    transcriber.hold = True
    dispatcher = Dispatcher(store, JobExecutor(store, transcriber), credentials)
    await dispatcher.start_worker()
    credentials.set(VALID_KEY)
    job = store.enqueue("u1")
    await wait_until(lambda: store.get(job.id).status == JobStatus.PROCESSING)
    assert dispatcher.current_job_id == job.id

    await dispatcher.stop_worker(wait_for_current=False)

    interrupted = store.get(job.id)
    assert interrupted.status == JobStatus.ERROR
    assert interrupted.error_message == INTERRUPTED_MESSAGE
    assert store.busy is False
    assert dispatcher.is_running is False
    assert dispatcher.current_job_id is None


@pytest.mark.asyncio
async def test_stop_waits_for_current_job(store, credentials, transcriber, wait_until):
    transcriber.hold = True
    dispatcher = Dispatcher(store, JobExecutor(store, transcriber), credentials)
    await dispatcher.start_worker()
    credentials.set(VALID_KEY)
    a = store.enqueue("u1")
    b = store.enqueue("u2")
    await wait_until(lambda: store.get(a.id).status == JobStatus.PROCESSING)

    stopping = asyncio.create_task(dispatcher.stop_worker(wait_for_current=True))
    await asyncio.sleep(0)
    transcriber.release("u1")
    await stopping

    assert store.get(a.id).status == JobStatus.COMPLETED
    assert store.get(b.id).status == JobStatus.PENDING


@pytest.mark.asyncio
async def test_jobs_enqueued_before_start_are_picked_up(store, credentials, transcriber, wait_until):
    credentials.set(VALID_KEY)
    job = store.enqueue("u1")

    dispatcher = Dispatcher(store, JobExecutor(store, transcriber), credentials)
    await dispatcher.start_worker()
    try:
        await wait_until(lambda: store.get(job.id).status == JobStatus.COMPLETED)
    finally:
        await dispatcher.stop_worker()
