"""Pydantic schemas for Kubernetes admission.k8s.io/v1 AdmissionReview."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


ADMISSION_API_VERSION = "admission.k8s.io/v1"
ADMISSION_KIND = "AdmissionReview"


class AdmissionRequest(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    uid: str
    namespace: Optional[str] = None
    operation: str = ""
    object: Optional[Dict[str, Any]] = None


class AdmissionReviewRequest(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: str = Field(default=ADMISSION_API_VERSION, alias="apiVersion")
    kind: str = ADMISSION_KIND
    request: AdmissionRequest


class AdmissionStatus(BaseModel):
    code: int
    message: str


class AdmissionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uid: str
    allowed: bool
    patch_type: Optional[str] = Field(default=None, alias="patchType")
    patch: Optional[str] = None
    status: Optional[AdmissionStatus] = None
    warnings: Optional[List[str]] = None


class AdmissionReviewResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_version: str = Field(default=ADMISSION_API_VERSION, alias="apiVersion")
    kind: str = ADMISSION_KIND
    response: AdmissionResponse
