"""Object store contracts and implementations for package secrets."""

from component_webhooks.store.base import (
    ApplyConflictError,
    FieldPatch,
    ObjectNotFoundError,
    ObjectRef,
    ObjectStore,
    ObjectStoreError,
    SharedObject,
)
from component_webhooks.store.memory import InMemoryObjectStore

__all__ = [
    "ApplyConflictError",
    "FieldPatch",
    "InMemoryObjectStore",
    "ObjectNotFoundError",
    "ObjectRef",
    "ObjectStore",
    "ObjectStoreError",
    "SharedObject",
]
