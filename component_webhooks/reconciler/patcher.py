"""Write a finished webhook run back onto the live package secret."""

from __future__ import annotations

from dataclasses import dataclass

from component_webhooks.core.logger import get_logger
from component_webhooks.core.metrics import record_webhook_patch
from component_webhooks.core.observability import capture_exception
from component_webhooks.reconciler.actions import WebhookRun
from component_webhooks.status.codec import PayloadDecodeError, encode_payload
from component_webhooks.status.model import WebhookKey, WebhookState, load_status
from component_webhooks.store.base import FieldPatch, ObjectStore, ObjectStoreError


logger = get_logger("component_webhooks.reconciler.patcher")

PATCHED = "patched"
SUPERSEDED = "superseded"
ALREADY_COMPLETE = "already_complete"
MISSING = "missing"
FETCH_FAILED = "fetch_failed"
DECODE_FAILED = "decode_failed"
WRITE_FAILED = "write_failed"


@dataclass(frozen=True)
class PatchOutcome:
    status: str
    detail: str = ""

    @property
    def written(self) -> bool:
        return self.status == PATCHED


class StatePatcher:
    """Mark a webhook run Succeeded on a freshly read copy of its secret.

    The secret is also written by the deployment owner, so every cycle
    re-reads it, checks the run still belongs to the current generation, and
    applies only the payload field with forced ownership.
    """

    def __init__(self, *, store: ObjectStore, field_manager: str) -> None:
        self._store = store
        self._field_manager = field_manager

    def complete(self, run: WebhookRun) -> PatchOutcome:
        outcome = self._complete(run)
        record_webhook_patch(webhook=run.webhook, outcome=outcome.status)
        return outcome

    def _complete(self, run: WebhookRun) -> PatchOutcome:
        log = logger.bind(
            package=run.package,
            component=run.component,
            webhook=run.webhook,
            generation=run.generation,
        )

        try:
            current = self._store.get(run.ref)
        except ObjectStoreError as exc:
            capture_exception(exc)
            log.error("webhook_patch_fetch_failed", error=str(exc))
            return PatchOutcome(status=FETCH_FAILED, detail=str(exc))

        raw = current.data.get(run.payload_key)
        key = WebhookKey(run.component, run.webhook)
        try:
            status, mode = load_status(raw, mode=run.mode)
            entry = status.webhooks.get(key)
        except PayloadDecodeError as exc:
            capture_exception(exc)
            log.error("webhook_patch_decode_failed", error=str(exc))
            return PatchOutcome(status=DECODE_FAILED, detail=str(exc))

        if entry is None:
            log.warning("webhook_patch_entry_missing")
            return PatchOutcome(status=MISSING)
        if status.generation != run.generation or entry.observed_generation != run.generation:
            log.info(
                "webhook_patch_superseded",
                current_generation=status.generation,
                observed_generation=entry.observed_generation,
            )
            return PatchOutcome(status=SUPERSEDED)
        if not entry.is_running:
            log.info("webhook_patch_already_complete", webhook_status=entry.status_text)
            return PatchOutcome(status=ALREADY_COMPLETE)

        status.webhooks.set(key, entry.with_status(WebhookState.SUCCEEDED))
        patch = FieldPatch(key=run.payload_key, value=encode_payload(status.to_json(), mode), mode=mode)
        try:
            self._store.apply_field(run.ref, patch, field_manager=self._field_manager, force=True)
        except ObjectStoreError as exc:
            capture_exception(exc)
            log.error("webhook_patch_write_failed", error=str(exc))
            return PatchOutcome(status=WRITE_FAILED, detail=str(exc))

        log.info("webhook_patch_succeeded", encoding=mode.value)
        return PatchOutcome(status=PATCHED)
