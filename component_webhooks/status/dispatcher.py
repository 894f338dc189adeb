"""Decide which deploying components still need a webhook run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from component_webhooks.status.model import (
    DeploymentStatus,
    WebhookKey,
    WebhookState,
    WebhookStatus,
)


DEFAULT_WEBHOOK_WAIT_SECONDS = 300


@dataclass(frozen=True)
class PendingWork:
    component: str


@dataclass(frozen=True)
class WaitRequirement:
    needs_wait: bool
    wait_seconds: int = 0
    webhook_name: str = ""


def find_pending(status: DeploymentStatus, webhook_name: str) -> List[PendingWork]:
    """Return components that are deploying and not yet handled for this generation."""

    pending: List[PendingWork] = []
    seen: set[str] = set()
    for component in status.deployed_components:
        if component.name in seen:
            continue
        seen.add(component.name)
        if not component.is_deploying:
            continue
        existing = status.webhooks.get(WebhookKey(component.name, webhook_name))
        if existing is not None and existing.observed_generation == status.generation:
            continue
        pending.append(PendingWork(component=component.name))
    return pending


def mark_running(
    status: DeploymentStatus,
    pending: List[PendingWork],
    *,
    webhook_name: str,
    wait_duration_seconds: int,
) -> None:
    for work in pending:
        status.webhooks.set(
            WebhookKey(work.component, webhook_name),
            WebhookStatus(
                name=webhook_name,
                status=WebhookState.RUNNING,
                observed_generation=status.generation,
                wait_duration_seconds=wait_duration_seconds,
            ),
        )


def dispatch(
    status: DeploymentStatus,
    *,
    webhook_name: str,
    wait_duration_seconds: int,
) -> List[PendingWork]:
    """Find pending components and mark each one Running in ``status``.

    The mark lands in the same copy the trigger hands back, so a second
    trigger on the same generation sees it and does nothing.
    """

    pending = find_pending(status, webhook_name)
    mark_running(
        status,
        pending,
        webhook_name=webhook_name,
        wait_duration_seconds=wait_duration_seconds,
    )
    return pending


def needs_wait(
    status: Optional[DeploymentStatus],
    component_name: str,
    *,
    skip_webhooks: bool = False,
) -> WaitRequirement:
    """Report whether a deployment should wait on a Running webhook for a component.

    YOLO packages never wait. An entry without ``waitDurationSeconds`` waits
    for ``DEFAULT_WEBHOOK_WAIT_SECONDS``.
    """

    if skip_webhooks or status is None or status.is_yolo:
        return WaitRequirement(needs_wait=False)

    for webhook_name, webhook in status.webhooks.for_component(component_name):
        if webhook.is_running:
            return WaitRequirement(
                needs_wait=True,
                wait_seconds=webhook.wait_duration_seconds or DEFAULT_WEBHOOK_WAIT_SECONDS,
                webhook_name=webhook_name,
            )
    return WaitRequirement(needs_wait=False)
