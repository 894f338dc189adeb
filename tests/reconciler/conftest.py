from __future__ import annotations

import base64
from concurrent.futures import Future
import json
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from component_webhooks.reconciler.actions import WebhookActionError, WebhookRun
from component_webhooks.reconciler.patcher import StatePatcher
from component_webhooks.reconciler.reconciler import HookDefinition, WebhookReconciler
from component_webhooks.status.codec import EncodingMode
from component_webhooks.status.model import DeploymentStatus, load_status
from component_webhooks.store.base import FieldPatch, ObjectNotFoundError, ObjectRef, SharedObject
from component_webhooks.store.memory import InMemoryObjectStore


WEBHOOK = "test-webhook"
OWNER = "zarf"
FIELD_MANAGER = "component-webhooks"
SECRET_REF = ObjectRef(namespace="zarf", name="zarf-package-test-pkg")


class ManualExecutor:
    """Queues submitted tasks and runs them only when asked."""

    def __init__(self) -> None:
        self.tasks: List[Tuple[str, Callable[..., Any], Tuple[Any, ...]]] = []

    def submit(self, fn: Callable[..., Any], *args: Any, task_name: str = "") -> Future:
        self.tasks.append((task_name, fn, args))
        return Future()

    def run_all(self) -> List[Any]:
        tasks, self.tasks = self.tasks, []
        return [fn(*args) for _, fn, args in tasks]


class RecordingAction:
    def __init__(self, *, error: Optional[Exception] = None, before: Optional[Callable[[WebhookRun], None]] = None) -> None:
        self.runs: List[WebhookRun] = []
        self._error = error
        self._before = before

    def run(self, run: WebhookRun) -> None:
        self.runs.append(run)
        if self._before is not None:
            self._before(run)
        if self._error is not None:
            raise self._error


def package_payload(
    *,
    generation: int = 3,
    components: Iterable[Tuple[str, str]] = (("db", "Deploying"),),
    webhooks: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None,
    name: str = "test-pkg",
    **extra: Any,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "name": name,
        "generation": generation,
        "deployedComponents": [
            {"name": component, "status": status, "installedCharts": []} for component, status in components
        ],
        **extra,
    }
    if webhooks is not None:
        payload["componentWebhooks"] = webhooks
    return payload


def encode(payload: Dict[str, Any], mode: EncodingMode = EncodingMode.BASE64) -> str:
    text = json.dumps(payload)
    if mode is EncodingMode.BASE64:
        return base64.b64encode(text.encode("utf-8")).decode("ascii")
    return text


def package_secret(
    payload: Dict[str, Any],
    *,
    mode: EncodingMode = EncodingMode.BASE64,
    ref: ObjectRef = SECRET_REF,
) -> SharedObject:
    return SharedObject(
        name=ref.name,
        namespace=ref.namespace,
        data={"data": encode(payload, mode)},
        labels={"package-deploy-info": "test-pkg"},
    )


def read_status(store: InMemoryObjectStore, ref: ObjectRef = SECRET_REF) -> DeploymentStatus:
    status, _ = load_status(store.get(ref).data["data"])
    return status


def build_test_reconciler(
    store: InMemoryObjectStore,
    *,
    action: Optional[RecordingAction] = None,
    executor: Optional[ManualExecutor] = None,
    wait_duration_seconds: int = 15,
    namespace: Optional[str] = None,
) -> Tuple[WebhookReconciler, ManualExecutor, RecordingAction]:
    executor = executor or ManualExecutor()
    action = action or RecordingAction()
    reconciler = WebhookReconciler(
        hook=HookDefinition(name=WEBHOOK, wait_duration_seconds=wait_duration_seconds),
        action=action,
        executor=executor,
        patcher=StatePatcher(store=store, field_manager=FIELD_MANAGER),
        namespace=namespace,
    )
    return reconciler, executor, action


def admit(store: InMemoryObjectStore, obj: SharedObject) -> SharedObject:
    """Persist an admitted object as the deployment owner would."""

    try:
        store.get(obj.ref)
    except ObjectNotFoundError:
        return store.create(obj, field_manager=OWNER)
    for key, value in obj.data.items():
        store.apply_field(obj.ref, FieldPatch(key=key, value=value), field_manager=OWNER, force=True)
    return store.get(obj.ref)


def failing_action(message: str = "endpoint unreachable") -> RecordingAction:
    return RecordingAction(error=WebhookActionError(message))
