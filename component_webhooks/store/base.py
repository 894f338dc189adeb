"""Shared object contracts for the package secret store."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Protocol

from component_webhooks.status.codec import EncodingMode


class ObjectStoreError(RuntimeError):
    """Raised when the object store cannot serve a read or a write."""


class ObjectNotFoundError(ObjectStoreError):
    """Raised when the referenced object does not exist."""


class ApplyConflictError(ObjectStoreError):
    """Raised when another field manager owns the field being applied."""


@dataclass(frozen=True, order=True)
class ObjectRef:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class SharedObject:
    """Copy of a secret-like object: identity, labels and string data fields."""

    name: str
    namespace: str
    data: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    resource_version: str = ""

    @property
    def ref(self) -> ObjectRef:
        return ObjectRef(namespace=self.namespace, name=self.name)

    def with_field(self, key: str, value: str) -> "SharedObject":
        data = dict(self.data)
        data[key] = value
        return replace(self, data=data)


@dataclass(frozen=True)
class FieldPatch:
    """One payload field to apply, with the encoding it was produced in."""

    key: str
    value: str
    mode: EncodingMode = EncodingMode.BASE64

    @property
    def section(self) -> str:
        # Secrets take base64 under ``data`` and plain text under ``stringData``.
        return "data" if self.mode is EncodingMode.BASE64 else "stringData"


class ObjectStore(Protocol):
    def get(self, ref: ObjectRef) -> SharedObject:
        """Return a fresh copy of the object."""

    def apply_field(
        self,
        ref: ObjectRef,
        patch: FieldPatch,
        *,
        field_manager: str,
        force: bool = True,
    ) -> SharedObject:
        """Apply one field, claiming ownership of only that field."""
