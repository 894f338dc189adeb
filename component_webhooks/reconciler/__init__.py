"""Webhook reconciliation: admission pass, background runs and write-back."""

from component_webhooks.reconciler.actions import (
    HttpWebhookAction,
    SimulatedWebhookAction,
    WebhookAction,
    WebhookActionError,
    WebhookRun,
)
from component_webhooks.reconciler.executor import BackgroundExecutor, TaskRunner
from component_webhooks.reconciler.patcher import PatchOutcome, StatePatcher
from component_webhooks.reconciler.reconciler import (
    HookDefinition,
    ReconcileResult,
    WebhookReconciler,
    build_reconciler,
    get_reconciler,
)

__all__ = [
    "BackgroundExecutor",
    "HookDefinition",
    "HttpWebhookAction",
    "PatchOutcome",
    "ReconcileResult",
    "SimulatedWebhookAction",
    "StatePatcher",
    "TaskRunner",
    "WebhookAction",
    "WebhookActionError",
    "WebhookReconciler",
    "WebhookRun",
    "build_reconciler",
    "get_reconciler",
]
