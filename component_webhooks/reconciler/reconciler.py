"""Composition root: react to package secret changes and launch webhook runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from threading import Lock
from typing import List, Optional, Set, Tuple

from component_webhooks.core.config import Settings, get_settings
from component_webhooks.core.logger import get_logger, package_context
from component_webhooks.core.metrics import (
    record_payload_decode_error,
    record_webhook_action_failure,
    record_webhooks_dispatched,
)
from component_webhooks.core.observability import capture_exception, sentry_scope
from component_webhooks.reconciler.actions import (
    WebhookAction,
    WebhookActionError,
    WebhookRun,
    build_webhook_action,
)
from component_webhooks.reconciler.executor import BackgroundExecutor, TaskRunner
from component_webhooks.reconciler.patcher import PatchOutcome, StatePatcher
from component_webhooks.status.codec import EncodingMode, PayloadDecodeError, encode_payload
from component_webhooks.status.dispatcher import PendingWork, dispatch
from component_webhooks.status.model import load_status
from component_webhooks.store.base import ObjectRef, ObjectStore, SharedObject
from component_webhooks.store.kubernetes import get_kubernetes_store


logger = get_logger("component_webhooks.reconciler")


@dataclass(frozen=True)
class HookDefinition:
    name: str
    wait_duration_seconds: int

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("webhook name must not be empty")
        if self.wait_duration_seconds < 0:
            raise ValueError("wait_duration_seconds must be zero or positive")


@dataclass(frozen=True)
class ReconcileResult:
    object: SharedObject
    runs: List[WebhookRun] = field(default_factory=list)
    mode: Optional[EncodingMode] = None

    @property
    def mutated(self) -> bool:
        return bool(self.runs)

    @property
    def pending(self) -> List[PendingWork]:
        return [PendingWork(component=run.component) for run in self.runs]


class WebhookReconciler:
    """Dispatch webhook runs for deploying components, one per generation.

    ``reconcile`` is the synchronous admission pass: it marks pending runs
    Running in the returned copy. ``launch`` hands the runs to the executor
    and must only be called once that copy has been admitted.

    A run is keyed by secret, component, webhook and generation. While a key
    is in flight, launching it again is a no-op, so a trigger that fires
    twice for the same object version starts the webhook once.
    """

    def __init__(
        self,
        *,
        hook: HookDefinition,
        action: WebhookAction,
        executor: TaskRunner,
        patcher: StatePatcher,
        payload_key: str = "data",
        namespace: Optional[str] = None,
    ) -> None:
        self._hook = hook
        self._action = action
        self._executor = executor
        self._patcher = patcher
        self._payload_key = payload_key
        self._namespace = namespace
        self._lock = Lock()
        self._in_flight: Set[Tuple[ObjectRef, str, str, int]] = set()

    @property
    def hook(self) -> HookDefinition:
        return self._hook

    @property
    def payload_key(self) -> str:
        return self._payload_key

    def reconcile(self, obj: SharedObject) -> ReconcileResult:
        if self._namespace and obj.namespace != self._namespace:
            logger.debug("package_secret_outside_namespace", secret=str(obj.ref), namespace=self._namespace)
            return ReconcileResult(object=obj)

        raw = obj.data.get(self._payload_key)
        if raw is None:
            logger.debug("package_payload_absent", secret=str(obj.ref))
            return ReconcileResult(object=obj)

        try:
            status, mode = load_status(raw)
            pending = dispatch(
                status,
                webhook_name=self._hook.name,
                wait_duration_seconds=self._hook.wait_duration_seconds,
            )
        except PayloadDecodeError as exc:
            record_payload_decode_error(source="admission")
            logger.error("package_payload_decode_failed", secret=str(obj.ref), error=str(exc))
            raise

        if not pending:
            logger.debug("webhook_dispatch_noop", package=status.name, generation=status.generation)
            return ReconcileResult(object=obj, mode=mode)

        mutated = obj.with_field(self._payload_key, encode_payload(status.to_json(), mode))
        runs = [
            WebhookRun(
                ref=obj.ref,
                package=status.name,
                component=work.component,
                webhook=self._hook.name,
                generation=status.generation,
                wait_duration_seconds=self._hook.wait_duration_seconds,
                payload_key=self._payload_key,
                mode=mode,
            )
            for work in pending
        ]
        record_webhooks_dispatched(webhook=self._hook.name, count=len(runs))
        logger.info(
            "webhook_dispatched",
            package=status.name,
            generation=status.generation,
            components=[run.component for run in runs],
            webhook=self._hook.name,
            encoding=mode.value,
        )
        return ReconcileResult(object=mutated, runs=runs, mode=mode)

    def _claim(self, run: WebhookRun) -> bool:
        with self._lock:
            if run.key in self._in_flight:
                return False
            self._in_flight.add(run.key)
            return True

    def _release(self, run: WebhookRun) -> None:
        with self._lock:
            self._in_flight.discard(run.key)

    def launch(self, result: ReconcileResult) -> None:
        for run in result.runs:
            if not self._claim(run):
                logger.info(
                    "webhook_run_already_in_flight",
                    package=run.package,
                    component=run.component,
                    webhook=run.webhook,
                    generation=run.generation,
                )
                continue
            try:
                self._executor.submit(
                    self.execute,
                    run,
                    task_name=f"{run.package}/{run.component}/{run.webhook}@{run.generation}",
                )
            except RuntimeError:
                self._release(run)
                raise

    def handle(self, obj: SharedObject) -> SharedObject:
        """Reconcile and launch in one call, for triggers without an after-response hook."""

        result = self.reconcile(obj)
        self.launch(result)
        return result.object

    def execute(self, run: WebhookRun) -> Optional[PatchOutcome]:
        """Background body: run the action, then converge the secret."""

        try:
            with package_context(run.package), sentry_scope(package=run.package, component=run.component):
                try:
                    self._action.run(run)
                except WebhookActionError as exc:
                    # Status stays Running; the deployment owner times it out.
                    record_webhook_action_failure(webhook=run.webhook)
                    capture_exception(exc)
                    logger.error(
                        "webhook_action_failed",
                        component=run.component,
                        webhook=run.webhook,
                        generation=run.generation,
                        error=str(exc),
                    )
                    return None
                return self._patcher.complete(run)
        finally:
            self._release(run)


def build_reconciler(
    settings: Settings,
    *,
    store: Optional[ObjectStore] = None,
    executor: Optional[TaskRunner] = None,
    action: Optional[WebhookAction] = None,
) -> WebhookReconciler:
    return WebhookReconciler(
        hook=HookDefinition(
            name=settings.webhook_name.strip(),
            wait_duration_seconds=settings.webhook_wait_duration_seconds,
        ),
        action=action or build_webhook_action(settings),
        executor=executor or BackgroundExecutor(max_workers=settings.executor_max_workers),
        patcher=StatePatcher(
            store=store or get_kubernetes_store(),
            field_manager=settings.field_manager.strip(),
        ),
        payload_key=settings.package_payload_key.strip(),
        namespace=settings.package_namespace.strip(),
    )


@lru_cache(maxsize=1)
def get_reconciler() -> WebhookReconciler:
    return build_reconciler(get_settings())
