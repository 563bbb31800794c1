"""
Permit endpoints
================

GET  /api/v1/permits/current   -- active permit, else the pending one (created if absent)
POST /api/v1/permits/checklist -- merge checklist flags into the pending permit
POST /api/v1/permits/photos    -- upload readiness photos (multipart, one file per slot)
GET  /api/v1/permits/ready     -- readiness of the pending permit
POST /api/v1/permits/submit    -- activate the pending permit for 16 hours
GET  /api/v1/permits/history   -- newest-first permit history

Every route acts on the authenticated driver's own permits.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, Query, Request, UploadFile

from src.api.dependencies import get_current_driver, get_engine
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import (
    ChecklistResponse,
    CurrentPermitResponse,
    ErrorResponse,
    HistoryResponse,
    OrderRoutingSync,
    PermitResponse,
    PhotoResponse,
    ReadinessResponse,
    SlotUploadResponse,
    SubmitResponse,
    UploadResponse,
)
from src.domain.enums import PhotoSlot
from src.infrastructure.models import DriverModel
from src.services.permit_engine import PermitEngine, PhotoUpload

router = APIRouter(prefix="/permits", tags=["permits"])


@router.get(
    "/current",
    response_model=CurrentPermitResponse,
    summary="Get the current permit",
    description="Returns the active permit if one is still valid, otherwise "
    "the driver's pending permit, creating it on first access.",
)
@limiter.limit(RATE_LIMIT)
async def get_current(
    request: Request,
    driver: DriverModel = Depends(get_current_driver),
    engine: PermitEngine = Depends(get_engine),
):
    permit, status = await engine.get_current_or_pending(driver.id)
    return CurrentPermitResponse(
        status=status, permit=PermitResponse.model_validate(permit)
    )


@router.post(
    "/checklist",
    response_model=ChecklistResponse,
    summary="Update the readiness checklist",
    responses={409: {"model": ErrorResponse}},
)
@limiter.limit(RATE_LIMIT)
async def update_checklist(
    request: Request,
    flags: dict[str, bool] = Body(..., examples=[{"plafon": True, "dashcam": True}]),
    driver: DriverModel = Depends(get_current_driver),
    engine: PermitEngine = Depends(get_engine),
):
    permit = await engine.get_or_create_pending_permit(driver.id)
    checklist = await engine.update_checklist(permit.id, flags)
    return ChecklistResponse(checklist=checklist)


@router.post(
    "/photos",
    response_model=UploadResponse,
    summary="Upload readiness photos",
    description="Each slot is validated and stored independently; a failure "
    "in one slot is reported in ``results`` and does not affect the others.",
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(RATE_LIMIT)
async def upload_photos(
    request: Request,
    waybill_1: Optional[UploadFile] = File(None),
    waybill_2: Optional[UploadFile] = File(None),
    car_exterior: Optional[UploadFile] = File(None),
    car_interior: Optional[UploadFile] = File(None),
    driver: DriverModel = Depends(get_current_driver),
    engine: PermitEngine = Depends(get_engine),
):
    provided = {
        PhotoSlot.WAYBILL_1.value: waybill_1,
        PhotoSlot.WAYBILL_2.value: waybill_2,
        PhotoSlot.CAR_EXTERIOR.value: car_exterior,
        PhotoSlot.CAR_INTERIOR.value: car_interior,
    }
    files: dict[str, PhotoUpload] = {}
    for slot, upload in provided.items():
        if upload is None:
            continue
        files[slot] = PhotoUpload(
            data=await upload.read(),
            original_name=upload.filename or slot,
            mime_type=upload.content_type or "",
        )
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")

    permit = await engine.get_or_create_pending_permit(driver.id)
    outcome = await engine.upload_photos(permit.id, files)

    results = [
        SlotUploadResponse(
            slot=r.slot,
            success=r.success,
            replaced=r.replaced,
            code=r.error.code if r.error else None,
            error=r.error.message if r.error else None,
            photo=PhotoResponse.model_validate(r.photo) if r.photo else None,
        )
        for r in outcome.results
    ]
    return UploadResponse(
        results=results,
        photos=[PhotoResponse.model_validate(p) for p in outcome.saved_photos],
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Check whether the pending permit can be submitted",
)
@limiter.limit(RATE_LIMIT)
async def check_ready(
    request: Request,
    driver: DriverModel = Depends(get_current_driver),
    engine: PermitEngine = Depends(get_engine),
):
    permit = await engine.get_or_create_pending_permit(driver.id)
    readiness = await engine.check_readiness(permit.id)
    return ReadinessResponse(
        permit_id=permit.id,
        ready=readiness.ready,
        missing_checklist=list(readiness.missing_checklist),
        missing_photos=list(readiness.missing_photos),
    )


@router.post(
    "/submit",
    response_model=SubmitResponse,
    summary="Submit the pending permit",
    description="Activates the permit for 16 hours and asks the dispatch "
    "platform to enable orders.  A failed dispatch call does not undo the "
    "activation; it is reported in ``order_routing`` and retried by the sweeper.",
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(RATE_LIMIT)
async def submit(
    request: Request,
    driver: DriverModel = Depends(get_current_driver),
    engine: PermitEngine = Depends(get_engine),
):
    permit = await engine.get_or_create_pending_permit(driver.id)
    result = await engine.submit_permit(permit.id)
    return SubmitResponse(
        permit=PermitResponse.model_validate(result.permit),
        order_routing=OrderRoutingSync(
            synced=result.order_routing.success, error=result.order_routing.error
        ),
    )


@router.get(
    "/history",
    response_model=HistoryResponse,
    summary="Permit history, newest first",
)
@limiter.limit(RATE_LIMIT)
async def history(
    request: Request,
    limit: int = Query(10, ge=1, le=100),
    driver: DriverModel = Depends(get_current_driver),
    engine: PermitEngine = Depends(get_engine),
):
    permits = await engine.get_permit_history(driver.id, limit)
    return HistoryResponse(permits=[PermitResponse.model_validate(p) for p in permits])
