"""Typed view of the deployed-package status stored in a package secret."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from component_webhooks.core.logger import get_logger
from component_webhooks.status.codec import (
    EncodingMode,
    PayloadDecodeError,
    RawPayload,
    decode_payload,
    dump_json_object,
    parse_json_object,
)


logger = get_logger("component_webhooks.status.model")


class ComponentState(str, Enum):
    DEPLOYING = "Deploying"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    REMOVING = "Removing"


class WebhookState(str, Enum):
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    REMOVING = "Removing"


def _require_str(payload: Mapping[str, Any], key: str, *, where: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str):
        raise PayloadDecodeError(f"{where}.{key} must be a string")
    return value


def _require_int(payload: Mapping[str, Any], key: str, *, where: str, default: Optional[int] = None) -> int:
    value = payload.get(key, default)
    # bool is an int subclass; a JSON true/false is not a generation.
    if isinstance(value, bool) or not isinstance(value, int):
        raise PayloadDecodeError(f"{where}.{key} must be an integer")
    return value


@dataclass(frozen=True)
class ComponentStatus:
    name: str
    status: str
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_deploying(self) -> bool:
        return self.status == ComponentState.DEPLOYING.value

    @classmethod
    def from_payload(cls, payload: Any) -> "ComponentStatus":
        if not isinstance(payload, dict):
            raise PayloadDecodeError("deployedComponents entries must be objects")
        name = _require_str(payload, "name", where="deployedComponents[]")
        status = payload.get("status", "")
        if not isinstance(status, str):
            raise PayloadDecodeError("deployedComponents[].status must be a string")
        extra = {key: value for key, value in payload.items() if key not in {"name", "status"}}
        return cls(name=name, status=status, extra=extra)

    def to_payload(self) -> Dict[str, Any]:
        return {"name": self.name, **self.extra, "status": self.status}


@dataclass(frozen=True)
class WebhookStatus:
    """One ``componentWebhooks`` entry.

    ``status`` is a ``WebhookState`` when the value is one of the known
    states and the plain string otherwise, since other webhooks write their
    own entries. Keys this service does not model are kept in ``extra``.
    """

    name: str
    status: Union[WebhookState, str]
    observed_generation: int
    wait_duration_seconds: int = 0
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_running(self) -> bool:
        return self.status == WebhookState.RUNNING

    @property
    def status_text(self) -> str:
        return self.status.value if isinstance(self.status, WebhookState) else self.status

    @classmethod
    def from_payload(cls, payload: Any, *, name: str, where: str) -> "WebhookStatus":
        if not isinstance(payload, dict):
            raise PayloadDecodeError(f"{where} must be an object")
        raw_status = _require_str(payload, "status", where=where)
        try:
            status: Union[WebhookState, str] = WebhookState(raw_status)
        except ValueError:
            status = raw_status
        raw_name = payload.get("name", name)
        if not isinstance(raw_name, str):
            raise PayloadDecodeError(f"{where}.name must be a string")
        return cls(
            name=raw_name,
            status=status,
            observed_generation=_require_int(payload, "observedGeneration", where=where),
            wait_duration_seconds=_require_int(payload, "waitDurationSeconds", where=where, default=0),
            extra={key: value for key, value in payload.items() if key not in _WEBHOOK_KEYS},
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            **self.extra,
            "name": self.name,
            "status": self.status_text,
            "observedGeneration": self.observed_generation,
            "waitDurationSeconds": self.wait_duration_seconds,
        }

    def with_status(self, status: WebhookState) -> "WebhookStatus":
        return replace(self, status=status)


_WEBHOOK_KEYS = {"name", "status", "observedGeneration", "waitDurationSeconds"}


@dataclass(frozen=True, order=True)
class WebhookKey:
    component: str
    webhook: str


class WebhookLedger:
    """Webhook statuses keyed by ``(component, webhook)``.

    The wire format nests them as ``componentWebhooks[component][webhook]``;
    the nesting only exists in ``from_payload``/``to_payload``.

    Entries written by other webhooks are not validated up front. An entry
    that cannot be read is kept verbatim and only raises when it is looked up
    through ``get``; a component value that is not a map is kept verbatim
    until this service writes an entry for that component.
    """

    def __init__(self, entries: Optional[Mapping[WebhookKey, WebhookStatus]] = None) -> None:
        self._entries: Dict[WebhookKey, WebhookStatus] = dict(entries or {})
        self._unreadable: Dict[WebhookKey, Tuple[Any, str]] = {}
        self._opaque_components: Dict[str, Any] = {}

    @classmethod
    def from_payload(cls, payload: Any) -> "WebhookLedger":
        ledger = cls()
        if payload is None:
            return ledger
        if not isinstance(payload, dict):
            raise PayloadDecodeError("componentWebhooks must be an object")
        for component, hooks in payload.items():
            if not isinstance(hooks, dict):
                ledger._opaque_components[component] = hooks
                continue
            for webhook, status_payload in hooks.items():
                key = WebhookKey(component, webhook)
                where = f"componentWebhooks.{component}.{webhook}"
                try:
                    ledger._entries[key] = WebhookStatus.from_payload(status_payload, name=webhook, where=where)
                except PayloadDecodeError as exc:
                    logger.debug("webhook_entry_unreadable", component=component, webhook=webhook, error=str(exc))
                    ledger._unreadable[key] = (status_payload, str(exc))
        return ledger

    def to_payload(self) -> Dict[str, Any]:
        nested: Dict[str, Any] = dict(self._opaque_components)
        for key, (raw, _) in self._unreadable.items():
            nested.setdefault(key.component, {})[key.webhook] = raw
        for key, status in self._entries.items():
            nested.setdefault(key.component, {})[key.webhook] = status.to_payload()
        return nested

    def get(self, key: WebhookKey) -> Optional[WebhookStatus]:
        unreadable = self._unreadable.get(key)
        if unreadable is not None:
            raise PayloadDecodeError(unreadable[1])
        return self._entries.get(key)

    def set(self, key: WebhookKey, status: WebhookStatus) -> None:
        self._opaque_components.pop(key.component, None)
        self._unreadable.pop(key, None)
        self._entries[key] = status

    def for_component(self, component: str) -> List[Tuple[str, WebhookStatus]]:
        return [(key.webhook, status) for key, status in self._entries.items() if key.component == component]

    def __contains__(self, key: object) -> bool:
        return key in self._entries or key in self._unreadable

    def __iter__(self) -> Iterator[WebhookKey]:
        return iter([*self._entries, *self._unreadable])

    def __len__(self) -> int:
        return len(self._entries) + len(self._unreadable)

    def __bool__(self) -> bool:
        return bool(self._entries or self._unreadable or self._opaque_components)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WebhookLedger):
            return NotImplemented
        return (
            self._entries == other._entries
            and self._unreadable == other._unreadable
            and self._opaque_components == other._opaque_components
        )

    def __repr__(self) -> str:
        return f"WebhookLedger({self._entries!r})"


@dataclass
class DeploymentStatus:
    """Decoded package secret payload.

    Only ``componentWebhooks`` is written by this service. Every other key,
    known or not, is carried through ``extra`` untouched.
    """

    name: str
    generation: int
    deployed_components: List[ComponentStatus] = field(default_factory=list)
    webhooks: WebhookLedger = field(default_factory=WebhookLedger)
    extra: Dict[str, Any] = field(default_factory=dict)
    had_webhooks_key: bool = field(default=False, compare=False, repr=False)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "DeploymentStatus":
        components_payload = payload.get("deployedComponents")
        if components_payload is None:
            components_payload = []
        if not isinstance(components_payload, list):
            raise PayloadDecodeError("deployedComponents must be a list")

        known = {"name", "generation", "deployedComponents", "componentWebhooks"}
        return cls(
            name=_require_str(payload, "name", where="package"),
            generation=_require_int(payload, "generation", where="package"),
            deployed_components=[ComponentStatus.from_payload(item) for item in components_payload],
            webhooks=WebhookLedger.from_payload(payload.get("componentWebhooks")),
            extra={key: value for key, value in payload.items() if key not in known},
            had_webhooks_key="componentWebhooks" in payload,
        )

    @classmethod
    def from_json(cls, text: str) -> "DeploymentStatus":
        return cls.from_payload(parse_json_object(text))

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            **self.extra,
            "generation": self.generation,
            "deployedComponents": [component.to_payload() for component in self.deployed_components],
        }
        if self.webhooks or self.had_webhooks_key:
            payload["componentWebhooks"] = self.webhooks.to_payload()
        return payload

    def to_json(self) -> str:
        return dump_json_object(self.to_payload())

    @property
    def is_yolo(self) -> bool:
        """True for packages deployed in YOLO mode (``data.metadata.yolo``)."""

        package = self.extra.get("data")
        metadata = package.get("metadata") if isinstance(package, dict) else None
        return isinstance(metadata, dict) and metadata.get("yolo") is True


def load_status(raw: RawPayload, *, mode: Optional[EncodingMode] = None) -> Tuple[DeploymentStatus, EncodingMode]:
    """Decode a raw payload field into a ``DeploymentStatus``.

    Returns the encoding mode the caller must use when writing back: the
    detected one when ``mode`` is None, otherwise ``mode`` itself.
    """

    decoded = decode_payload(raw, mode=mode)
    try:
        return DeploymentStatus.from_json(decoded.text), mode or decoded.mode
    except PayloadDecodeError:
        if mode is None or decoded.mode is not mode:
            raise
        # A store may hand back base64 for a value that was written as text.
        try:
            alternate = decode_payload(raw, mode=mode.other)
            status = DeploymentStatus.from_json(alternate.text)
        except PayloadDecodeError:
            pass
        else:
            logger.warning("payload_encoding_mismatch", expected=mode.value, detected=alternate.mode.value)
            return status, mode
        raise
