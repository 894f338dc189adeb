"""Kubernetes secret store using the core API and server-side apply."""

from __future__ import annotations

from functools import lru_cache
import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx

from component_webhooks.core.config import get_settings
from component_webhooks.store.base import (
    ApplyConflictError,
    FieldPatch,
    ObjectNotFoundError,
    ObjectRef,
    ObjectStoreError,
    SharedObject,
)


APPLY_PATCH_CONTENT_TYPE = "application/apply-patch+yaml"


def _read_optional(path: str) -> str:
    candidate = Path(path) if path else None
    if candidate is None or not candidate.exists():
        return ""
    return candidate.read_text(encoding="utf-8").strip()


def _detail(response: httpx.Response) -> str:
    detail = response.text.strip()
    if len(detail) > 200:
        detail = detail[:200] + "..."
    return detail


class KubernetesObjectStore:
    def __init__(
        self,
        *,
        api_url: str,
        token: str = "",
        verify: Union[bool, str] = True,
        timeout_seconds: int = 20,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._token = token.strip()
        self._verify = verify
        self._timeout_seconds = max(1, timeout_seconds)
        self._client = client

    def _headers(self, content_type: Optional[str] = None) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if content_type:
            headers["Content-Type"] = content_type
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _secret_url(self, ref: ObjectRef) -> str:
        return f"{self._api_url}/api/v1/namespaces/{ref.namespace}/secrets/{ref.name}"

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            if self._client is not None:
                return self._client.request(method, url, **kwargs)
            with httpx.Client(timeout=self._timeout_seconds, verify=self._verify) as client:
                return client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ObjectStoreError(f"kubernetes_request_failed: {exc}") from exc

    def _raise_for_status(self, response: httpx.Response, ref: ObjectRef) -> None:
        if response.status_code == 404:
            raise ObjectNotFoundError(f"object_not_found: {ref}")
        if response.status_code == 409:
            raise ApplyConflictError(f"apply_conflict: {ref} detail={_detail(response)}")
        if response.status_code < 200 or response.status_code >= 300:
            raise ObjectStoreError(
                f"kubernetes_request_failed status={response.status_code} detail={_detail(response)}"
            )

    def _to_shared_object(self, body: Any, ref: ObjectRef) -> SharedObject:
        if not isinstance(body, dict):
            raise ObjectStoreError(f"kubernetes_invalid_payload: {ref}")
        metadata = body.get("metadata") or {}
        return SharedObject(
            name=str(metadata.get("name") or ref.name),
            namespace=str(metadata.get("namespace") or ref.namespace),
            data={str(key): str(value) for key, value in (body.get("data") or {}).items()},
            labels={str(key): str(value) for key, value in (metadata.get("labels") or {}).items()},
            resource_version=str(metadata.get("resourceVersion") or ""),
        )

    def get(self, ref: ObjectRef) -> SharedObject:
        response = self._request("GET", self._secret_url(ref), headers=self._headers())
        self._raise_for_status(response, ref)
        try:
            body = response.json()
        except ValueError as exc:
            raise ObjectStoreError(f"kubernetes_invalid_json_response: {ref}") from exc
        return self._to_shared_object(body, ref)

    def apply_field(
        self,
        ref: ObjectRef,
        patch: FieldPatch,
        *,
        field_manager: str,
        force: bool = True,
    ) -> SharedObject:
        manifest = {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": ref.name, "namespace": ref.namespace},
            patch.section: {patch.key: patch.value},
        }
        params = {"fieldManager": field_manager}
        if force:
            params["force"] = "true"
        response = self._request(
            "PATCH",
            self._secret_url(ref),
            params=params,
            headers=self._headers(APPLY_PATCH_CONTENT_TYPE),
            content=json.dumps(manifest).encode("utf-8"),
        )
        self._raise_for_status(response, ref)
        try:
            body = response.json()
        except ValueError as exc:
            raise ObjectStoreError(f"kubernetes_invalid_json_response: {ref}") from exc
        return self._to_shared_object(body, ref)


@lru_cache(maxsize=1)
def get_kubernetes_store() -> KubernetesObjectStore:
    settings = get_settings()
    ca_path = settings.kubernetes_ca_path
    return KubernetesObjectStore(
        api_url=settings.kubernetes_api_url,
        token=_read_optional(settings.kubernetes_token_path),
        verify=ca_path if ca_path and Path(ca_path).exists() else True,
        timeout_seconds=settings.kubernetes_timeout_seconds,
    )
