"""In-process object store with per-field ownership."""

from __future__ import annotations

from threading import Lock
from typing import Dict, Tuple

from component_webhooks.store.base import (
    ApplyConflictError,
    FieldPatch,
    ObjectNotFoundError,
    ObjectRef,
    SharedObject,
)


class InMemoryObjectStore:
    """Object store kept in a dict, tracking which manager owns each data field.

    An unforced apply over a field owned by another manager is rejected; a
    forced apply takes ownership of that one field and leaves the rest alone.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._objects: Dict[ObjectRef, SharedObject] = {}
        self._owners: Dict[Tuple[ObjectRef, str], str] = {}
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def create(self, obj: SharedObject, *, field_manager: str) -> SharedObject:
        with self._lock:
            stored = SharedObject(
                name=obj.name,
                namespace=obj.namespace,
                data=dict(obj.data),
                labels=dict(obj.labels),
                resource_version=self._next_version(),
            )
            self._objects[stored.ref] = stored
            for key in stored.data:
                self._owners[(stored.ref, key)] = field_manager
            return stored

    def get(self, ref: ObjectRef) -> SharedObject:
        with self._lock:
            stored = self._objects.get(ref)
            if stored is None:
                raise ObjectNotFoundError(f"object_not_found: {ref}")
            return SharedObject(
                name=stored.name,
                namespace=stored.namespace,
                data=dict(stored.data),
                labels=dict(stored.labels),
                resource_version=stored.resource_version,
            )

    def field_owner(self, ref: ObjectRef, key: str) -> str | None:
        with self._lock:
            return self._owners.get((ref, key))

    def apply_field(
        self,
        ref: ObjectRef,
        patch: FieldPatch,
        *,
        field_manager: str,
        force: bool = True,
    ) -> SharedObject:
        with self._lock:
            stored = self._objects.get(ref)
            if stored is None:
                raise ObjectNotFoundError(f"object_not_found: {ref}")

            owner = self._owners.get((ref, patch.key))
            if owner is not None and owner != field_manager and not force:
                raise ApplyConflictError(
                    f"apply_conflict: field {patch.key!r} of {ref} is owned by {owner!r}"
                )

            data = dict(stored.data)
            data[patch.key] = patch.value
            updated = SharedObject(
                name=stored.name,
                namespace=stored.namespace,
                data=data,
                labels=dict(stored.labels),
                resource_version=self._next_version(),
            )
            self._objects[ref] = updated
            self._owners[(ref, patch.key)] = field_manager
            return updated
