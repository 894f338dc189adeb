"""Mutating admission endpoint for package secrets."""

from __future__ import annotations

import base64
import json
from typing import Any, Dict, List

from fastapi import APIRouter, BackgroundTasks, Depends

from component_webhooks.core.config import get_settings
from component_webhooks.core.logger import bind_request_context, get_logger
from component_webhooks.reconciler.reconciler import ReconcileResult, WebhookReconciler, get_reconciler
from component_webhooks.schemas.admission import (
    AdmissionResponse,
    AdmissionReviewRequest,
    AdmissionReviewResponse,
    AdmissionStatus,
)
from component_webhooks.status.codec import PayloadDecodeError
from component_webhooks.store.base import SharedObject


router = APIRouter(tags=["admission"])
logger = get_logger("component_webhooks.api.admission")

PACKAGE_LABEL = "package-deploy-info"


def _escape_pointer(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


def shared_object_from_manifest(manifest: Dict[str, Any], *, namespace: str | None = None) -> SharedObject:
    metadata = manifest.get("metadata") or {}
    return SharedObject(
        name=str(metadata.get("name") or ""),
        namespace=str(metadata.get("namespace") or namespace or ""),
        data={str(key): str(value) for key, value in (manifest.get("data") or {}).items()},
        labels={str(key): str(value) for key, value in (metadata.get("labels") or {}).items()},
        resource_version=str(metadata.get("resourceVersion") or ""),
    )


def build_json_patch(result: ReconcileResult, *, payload_key: str) -> List[Dict[str, Any]]:
    if not result.mutated:
        return []
    return [
        {
            "op": "replace",
            "path": f"/data/{_escape_pointer(payload_key)}",
            "value": result.object.data[payload_key],
        }
    ]


@router.post("/mutate", response_model=AdmissionReviewResponse, response_model_exclude_none=True)
def mutate(
    review: AdmissionReviewRequest,
    background_tasks: BackgroundTasks,
    reconciler: WebhookReconciler = Depends(get_reconciler),
) -> AdmissionReviewResponse:
    request = review.request
    if not request.object:
        return AdmissionReviewResponse(response=AdmissionResponse(uid=request.uid, allowed=True))

    obj = shared_object_from_manifest(request.object, namespace=request.namespace)
    bind_request_context(package=obj.labels.get(PACKAGE_LABEL) or obj.name)
    try:
        result = reconciler.reconcile(obj)
    except PayloadDecodeError as exc:
        message = f"package payload could not be decoded: {exc}"
        if get_settings().admission_fail_closed:
            return AdmissionReviewResponse(
                response=AdmissionResponse(
                    uid=request.uid,
                    allowed=False,
                    status=AdmissionStatus(code=400, message=message),
                )
            )
        return AdmissionReviewResponse(
            response=AdmissionResponse(uid=request.uid, allowed=True, warnings=[message])
        )

    patch = build_json_patch(result, payload_key=reconciler.payload_key)
    if not patch:
        return AdmissionReviewResponse(response=AdmissionResponse(uid=request.uid, allowed=True))

    # Runs start after the response is sent, once the Running mark is admitted.
    background_tasks.add_task(reconciler.launch, result)
    logger.info(
        "admission_patched",
        secret=str(obj.ref),
        operation=request.operation,
        runs=len(result.runs),
    )
    encoded_patch = base64.b64encode(json.dumps(patch).encode("utf-8")).decode("ascii")
    return AdmissionReviewResponse(
        response=AdmissionResponse(
            uid=request.uid,
            allowed=True,
            patch_type="JSONPatch",
            patch=encoded_patch,
        )
    )
