from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from spicecart.core.logging import get_logger
from spicecart.schemas.cart import ErrorResponse
from spicecart.services.exceptions import (
    ChannelMismatchError,
    DomainValidationError,
    ResourceNotFoundError,
    ServiceError,
    StoreFailure,
)

logger = get_logger(__name__)


def _error(status_code: int, exc: ServiceError) -> JSONResponse:
    body = ErrorResponse(
        code=exc.code,
        detail=exc.detail,
        contact_label=getattr(exc, "contact_label", None),
        contact_url=getattr(exc, "contact_url", None),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ResourceNotFoundError)
    async def handle_not_found(_: Request, exc: ResourceNotFoundError) -> JSONResponse:
        return _error(404, exc)

    @app.exception_handler(DomainValidationError)
    async def handle_validation(_: Request, exc: DomainValidationError) -> JSONResponse:
        return _error(422, exc)

    @app.exception_handler(ChannelMismatchError)
    async def handle_channel_mismatch(_: Request, exc: ChannelMismatchError) -> JSONResponse:
        return _error(409, exc)

    @app.exception_handler(StoreFailure)
    async def handle_store_failure(request: Request, exc: StoreFailure) -> JSONResponse:
        logger.warning("Store failure surfaced to client", extra={"path": request.url.path})
        return _error(503, exc)

    @app.exception_handler(ServiceError)
    async def handle_service_error(_: Request, exc: ServiceError) -> JSONResponse:
        return _error(400, exc)
