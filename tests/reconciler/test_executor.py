from __future__ import annotations

from threading import Event

import pytest

from component_webhooks.reconciler.executor import BackgroundExecutor


def test_submit_runs_task_without_blocking_caller() -> None:
    executor = BackgroundExecutor(max_workers=2)
    release = Event()
    results = []

    def task(value: int) -> None:
        release.wait(timeout=5)
        results.append(value)

    executor.submit(task, 7, task_name="slow")
    assert results == []
    assert executor.in_flight == 1

    release.set()
    assert executor.wait_idle(timeout=5) is True
    assert results == [7]
    executor.shutdown()


def test_task_failure_does_not_reach_the_caller() -> None:
    executor = BackgroundExecutor(max_workers=1)

    def boom() -> None:
        raise RuntimeError("boom")

    future = executor.submit(boom, task_name="boom")

    assert executor.wait_idle(timeout=5) is True
    assert isinstance(future.exception(timeout=5), RuntimeError)
    executor.shutdown()


def test_wait_idle_times_out_while_tasks_run() -> None:
    executor = BackgroundExecutor(max_workers=1)
    release = Event()
    executor.submit(release.wait, 5, task_name="blocked")

    assert executor.wait_idle(timeout=0.05) is False

    release.set()
    assert executor.wait_idle(timeout=5) is True
    executor.shutdown()


def test_rejects_non_positive_worker_count() -> None:
    with pytest.raises(ValueError):
        BackgroundExecutor(max_workers=0)
