"""In-process event emitters and disposable handles.

Listeners may be plain callables or coroutine functions. Coroutine listeners
are scheduled on the running loop; their failures are logged because the
emitter has no caller to report them to.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Generic, List, Optional, Set, TypeVar

T = TypeVar("T")

_logger = logging.getLogger(__name__)


class Disposable:
    """Handle releasing a registration exactly once."""

    def __init__(self, on_dispose: Optional[Callable[[], None]] = None) -> None:
        self._on_dispose = on_dispose
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        if self._on_dispose is not None:
            self._on_dispose()


class EventEmitter(Generic[T]):
    """Simple fan-out of values to subscribed listeners."""

    def __init__(self, name: str = "event") -> None:
        self._name = name
        self._listeners: List[Callable[[T], Any]] = []
        self._pending: Set[asyncio.Task[Any]] = set()

    def event(self, listener: Callable[[T], Any]) -> Disposable:
        """Subscribe ``listener`` and return a handle that unsubscribes it."""

        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Disposable(_remove)

    def fire(self, value: T) -> List[asyncio.Task[Any]]:
        """Deliver ``value`` to every listener.

        Returns the tasks created for coroutine listeners so callers (and
        tests) can await them.
        """

        tasks: List[asyncio.Task[Any]] = []
        for listener in list(self._listeners):
            try:
                result = listener(value)
            except Exception:
                _logger.exception("Listener for %s failed", self._name)
                continue
            if asyncio.iscoroutine(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._on_done)
                tasks.append(task)
        return tasks

    def _on_done(self, task: "asyncio.Task[Any]") -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Listener for %s failed: %s", self._name, exc)

    def dispose(self) -> None:
        self._listeners.clear()
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
