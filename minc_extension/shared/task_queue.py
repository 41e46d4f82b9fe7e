"""Serial task execution: one queued coroutine at a time, in order."""

from __future__ import annotations

import asyncio
import contextlib
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Optional


@dataclass
class _QueuedTask:
    """Internal representation of queued work."""

    create_coro: Callable[[], Awaitable[Any]]
    future: asyncio.Future


class SerialTaskExecutor:
    """Execute coroutine factories strictly one after another.

    The worker starts on demand and exits once the queue drains, so an idle
    executor holds no task.
    """

    def __init__(self, name: str = "executor") -> None:
        self.name = name
        self._queue: Deque[_QueuedTask] = deque()
        self._worker: Optional[asyncio.Task[Any]] = None
        self._lock = asyncio.Lock()
        self._closed = False

    async def _ensure_worker(self) -> None:
        """Start a worker if one is not already running."""

        if self._worker and not self._worker.done():
            return

        loop = asyncio.get_running_loop()
        self._worker = loop.create_task(self._worker_loop())

    async def _worker_loop(self) -> None:
        """Continuously drain the queue until no tasks remain."""

        while True:
            async with self._lock:
                if not self._queue:
                    self._worker = None
                    return
                task = self._queue.popleft()

            if task.future.cancelled():
                continue

            try:
                result = await task.create_coro()
            except asyncio.CancelledError:
                task.future.cancel()
                raise
            except Exception as exc:
                if not task.future.cancelled():
                    task.future.set_exception(exc)
            else:
                if not task.future.cancelled():
                    task.future.set_result(result)

    async def submit(self, create_coro: Callable[[], Awaitable[Any]]) -> Any:
        """Queue a coroutine factory and await its result."""

        if self._closed:
            raise RuntimeError(f"{self.name} is shut down")

        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()

        queued = _QueuedTask(create_coro=create_coro, future=future)
        async with self._lock:
            self._queue.append(queued)
            await self._ensure_worker()

        try:
            return await future
        except asyncio.CancelledError:
            future.cancel()
            raise

    async def shutdown(self) -> None:
        """Cancel outstanding work and stop the worker."""

        async with self._lock:
            self._closed = True
            while self._queue:
                task = self._queue.popleft()
                if not task.future.done():
                    task.future.cancel()
            worker = self._worker
            self._worker = None

        if worker:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
