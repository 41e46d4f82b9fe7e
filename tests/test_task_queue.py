"""Tests for the serial task executor."""

import asyncio

import pytest

from minc_extension.shared.task_queue import SerialTaskExecutor


@pytest.mark.asyncio
async def test_serial_executor_runs_in_submission_order():
    """Work submitted concurrently should run one at a time, first in first out."""

    executor = SerialTaskExecutor()
    events: list[str] = []

    def job(name: str):
        async def _run():
            events.append(f"start {name}")
            await asyncio.sleep(0.01)
            events.append(f"end {name}")
            return name

        return _run

    results = await asyncio.gather(*(executor.submit(job(n)) for n in ("a", "b", "c")))

    assert results == ["a", "b", "c"]
    assert events == ["start a", "end a", "start b", "end b", "start c", "end c"]
    await executor.shutdown()


@pytest.mark.asyncio
async def test_failure_reaches_submitter_and_queue_continues():
    """An exception is raised to its own submitter only."""

    executor = SerialTaskExecutor()

    async def boom():
        raise ValueError("boom")

    async def ok():
        return "ok"

    failed, succeeded = await asyncio.gather(executor.submit(boom), executor.submit(ok), return_exceptions=True)

    assert isinstance(failed, ValueError)
    assert succeeded == "ok"
    await executor.shutdown()


@pytest.mark.asyncio
async def test_worker_stops_when_idle():
    executor = SerialTaskExecutor()

    async def noop():
        return None

    await executor.submit(noop)
    await asyncio.sleep(0)

    assert not executor._queue
    assert executor._worker is None or executor._worker.done()


@pytest.mark.asyncio
async def test_cancelled_submitter_skips_queued_work():
    executor = SerialTaskExecutor()
    ran: list[str] = []
    release = asyncio.Event()

    async def blocker():
        await release.wait()
        ran.append("blocker")

    async def later():
        ran.append("later")

    first = asyncio.ensure_future(executor.submit(blocker))
    second = asyncio.ensure_future(executor.submit(later))
    await asyncio.sleep(0.01)
    second.cancel()
    release.set()
    await first

    with pytest.raises(asyncio.CancelledError):
        await second
    await asyncio.sleep(0.01)
    assert ran == ["blocker"]


@pytest.mark.asyncio
async def test_shutdown_rejects_new_work():
    executor = SerialTaskExecutor("scanner")
    await executor.shutdown()

    async def noop():
        return None

    with pytest.raises(RuntimeError, match="scanner is shut down"):
        await executor.submit(noop)
