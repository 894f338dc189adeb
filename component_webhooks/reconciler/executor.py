"""Background task runner owned by the reconciler."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from threading import Lock
from typing import Any, Callable, Protocol, Set

from component_webhooks.core.logger import get_logger
from component_webhooks.core.observability import capture_exception


logger = get_logger("component_webhooks.reconciler.executor")


class TaskRunner(Protocol):
    def submit(self, fn: Callable[..., Any], *args: Any, task_name: str = "") -> Future:
        """Schedule ``fn(*args)`` without blocking the caller."""


class BackgroundExecutor:
    """Thread pool that tracks in-flight tasks and logs how each one ended.

    Task exceptions are logged and reported; they never reach the code that
    submitted the task.
    """

    def __init__(self, *, max_workers: int = 8, thread_name_prefix: str = "webhook") -> None:
        if max_workers <= 0:
            raise ValueError("max_workers must be positive")
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=thread_name_prefix)
        self._lock = Lock()
        self._in_flight: Set[Future] = set()

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def submit(self, fn: Callable[..., Any], *args: Any, task_name: str = "") -> Future:
        future = self._pool.submit(fn, *args)
        with self._lock:
            self._in_flight.add(future)
        future.add_done_callback(lambda done: self._on_done(done, task_name))
        return future

    def _on_done(self, future: Future, task_name: str) -> None:
        with self._lock:
            self._in_flight.discard(future)
        if future.cancelled():
            logger.warning("background_task_cancelled", task=task_name)
            return
        exc = future.exception()
        if exc is not None:
            capture_exception(exc)
            logger.error("background_task_failed", task=task_name, error=str(exc))
            return
        logger.debug("background_task_completed", task=task_name)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every submitted task has finished; False on timeout."""

        with self._lock:
            pending = set(self._in_flight)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, *, wait_for_tasks: bool = True) -> None:
        self._pool.shutdown(wait=wait_for_tasks)
