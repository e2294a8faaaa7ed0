from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.market.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    LeaseExpiredError,
    MarketError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

_STATUS_CODES: dict[type[MarketError], int] = {
    NotFoundError: 404,
    ForbiddenError: 403,
    InvalidStateError: 400,
    ConflictError: 409,
    LeaseExpiredError: 410,
}


def status_code_for(exc: MarketError) -> int:
    for exc_type, status_code in _STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return status_code
    return 500


async def _market_error_handler(request: Request, exc: MarketError) -> JSONResponse:
    status_code = status_code_for(exc)
    logger.info(
        "Request rejected",
        extra={"path": request.url.path, "code": exc.code, "status_code": status_code},
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": exc.code})


async def _value_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc), "code": "invalid_argument"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketError, _market_error_handler)
    app.add_exception_handler(ValueError, _value_error_handler)
