"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from src.domain.enums import PermitStatus, PhotoSlot


# ── Responses ─────────────────────────────────────────────────────────


class PhotoResponse(BaseModel):
    id: int
    slot: PhotoSlot
    filename: str
    original_name: str
    mime_type: str
    size: int
    url: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PermitResponse(BaseModel):
    id: int
    driver_id: int
    status: PermitStatus
    checklist: dict[str, bool]
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    order_routing_enabled: bool = False
    created_at: Optional[datetime] = None
    photos: list[PhotoResponse] = []

    model_config = {"from_attributes": True}


class CurrentPermitResponse(BaseModel):
    status: PermitStatus
    permit: PermitResponse


class ChecklistResponse(BaseModel):
    checklist: dict[str, bool]


class SlotUploadResponse(BaseModel):
    slot: str
    success: bool
    replaced: bool = False
    code: Optional[str] = None
    error: Optional[str] = None
    photo: Optional[PhotoResponse] = None


class UploadResponse(BaseModel):
    results: list[SlotUploadResponse]
    photos: list[PhotoResponse]


class ReadinessResponse(BaseModel):
    permit_id: int
    ready: bool
    missing_checklist: list[str] = []
    missing_photos: list[str] = []


class OrderRoutingSync(BaseModel):
    synced: bool
    error: Optional[str] = None


class SubmitResponse(BaseModel):
    permit: PermitResponse
    order_routing: OrderRoutingSync


class HistoryResponse(BaseModel):
    permits: list[PermitResponse]


class DriverStatusResponse(BaseModel):
    orders_enabled: bool
    last_checked: Optional[datetime] = None
    synced: bool
    has_active_permit: bool
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None
