"""Translate domain errors into structured JSON responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.domain.errors import (
    InvalidState,
    NotFound,
    NotReady,
    PermitError,
    UpstreamFailure,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_CODES: dict[type[PermitError], int] = {
    NotFound: 404,
    InvalidState: 409,
    NotReady: 400,
    ValidationError: 422,
    UpstreamFailure: 502,
}


def status_code_for(exc: PermitError) -> int:
    for error_type, code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return code
    return 400


async def permit_error_handler(request: Request, exc: PermitError) -> JSONResponse:
    body: dict = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, NotReady):
        body["missing_checklist"] = exc.missing_checklist
        body["missing_photos"] = exc.missing_photos
    if isinstance(exc, ValidationError):
        body["errors"] = exc.errors
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.warning("%s %s failed upstream: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PermitError, permit_error_handler)
