"""Side-effecting webhook actions run for each pending component."""

from __future__ import annotations

from dataclasses import dataclass
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import httpx

from component_webhooks.core.config import Settings
from component_webhooks.status.codec import EncodingMode
from component_webhooks.store.base import ObjectRef


Sleep = Callable[[float], None]


class WebhookActionError(RuntimeError):
    """Raised when a webhook action fails or times out."""


@dataclass(frozen=True)
class WebhookRun:
    """One webhook invocation for a component at a given package generation."""

    ref: ObjectRef
    package: str
    component: str
    webhook: str
    generation: int
    wait_duration_seconds: int
    payload_key: str
    mode: EncodingMode

    @property
    def key(self) -> Tuple[ObjectRef, str, str, int]:
        return (self.ref, self.component, self.webhook, self.generation)

    def as_payload(self) -> Dict[str, Any]:
        return {
            "package": self.package,
            "namespace": self.ref.namespace,
            "secret": self.ref.name,
            "component": self.component,
            "webhook": self.webhook,
            "generation": self.generation,
            "waitDurationSeconds": self.wait_duration_seconds,
        }


class WebhookAction(Protocol):
    def run(self, run: WebhookRun) -> None:
        """Perform the webhook; raise WebhookActionError on failure."""


class SimulatedWebhookAction:
    """Stand-in action that only waits, modelling background processing time."""

    def __init__(self, *, delay_seconds: float = 30.0, sleep: Optional[Sleep] = None) -> None:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be zero or positive")
        self._delay_seconds = delay_seconds
        self._sleep = sleep or time.sleep

    def run(self, run: WebhookRun) -> None:
        del run
        self._sleep(self._delay_seconds)


class HttpWebhookAction:
    def __init__(
        self,
        *,
        url: str,
        token: str = "",
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._url = url.strip()
        self._token = token.strip()
        self._client = client

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def run(self, run: WebhookRun) -> None:
        if not self._url:
            raise WebhookActionError("webhook_endpoint_url_missing")

        timeout = max(1, run.wait_duration_seconds)
        try:
            if self._client is not None:
                response = self._client.post(
                    self._url,
                    headers=self._headers(),
                    json=run.as_payload(),
                    timeout=timeout,
                )
            else:
                with httpx.Client(timeout=timeout) as client:
                    response = client.post(
                        self._url,
                        headers=self._headers(),
                        json=run.as_payload(),
                    )
        except httpx.TimeoutException as exc:
            raise WebhookActionError(f"webhook_timed_out after={timeout}s") from exc
        except httpx.HTTPError as exc:
            raise WebhookActionError(f"webhook_request_failed: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            detail = response.text.strip()
            if len(detail) > 200:
                detail = detail[:200] + "..."
            raise WebhookActionError(
                f"webhook_failed status={response.status_code} detail={detail}"
            )


def build_webhook_action(settings: Settings, *, sleep: Optional[Sleep] = None) -> WebhookAction:
    action = settings.webhook_action.strip().lower()
    if action == "http":
        return HttpWebhookAction(
            url=settings.webhook_endpoint_url,
            token=settings.webhook_endpoint_token,
        )
    return SimulatedWebhookAction(
        delay_seconds=settings.webhook_simulated_delay_seconds,
        sleep=sleep,
    )
