"""Package status payload codec, model and webhook dispatch rules."""

from component_webhooks.status.codec import (
    DecodedPayload,
    EncodingMode,
    PayloadDecodeError,
    decode_payload,
    encode_payload,
)
from component_webhooks.status.dispatcher import (
    PendingWork,
    WaitRequirement,
    dispatch,
    find_pending,
    mark_running,
    needs_wait,
)
from component_webhooks.status.model import (
    ComponentState,
    ComponentStatus,
    DeploymentStatus,
    WebhookKey,
    WebhookLedger,
    WebhookState,
    WebhookStatus,
    load_status,
)

__all__ = [
    "ComponentState",
    "ComponentStatus",
    "DecodedPayload",
    "DeploymentStatus",
    "EncodingMode",
    "PayloadDecodeError",
    "PendingWork",
    "WaitRequirement",
    "WebhookKey",
    "WebhookLedger",
    "WebhookState",
    "WebhookStatus",
    "decode_payload",
    "dispatch",
    "encode_payload",
    "find_pending",
    "load_status",
    "mark_running",
    "needs_wait",
]
