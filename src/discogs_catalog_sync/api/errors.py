"""Translate domain errors into HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..exceptions import (
    AlreadyExists,
    ConflictError,
    NotFoundError,
    RemoteApiError,
    RemoteConfigError,
    RemoteUnavailable,
)

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers mapping domain exceptions to status codes."""

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        logger.info("Not found at %s: %s", request.url.path, exc)
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
        logger.warning("Conflict at %s: %s", request.url.path, exc)
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

    @app.exception_handler(AlreadyExists)
    async def already_exists_handler(request: Request, exc: AlreadyExists) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

    @app.exception_handler(RemoteApiError)
    async def remote_api_error_handler(request: Request, exc: RemoteApiError) -> JSONResponse:
        logger.error("Discogs error at %s: %s", request.url.path, exc)
        # Pass client errors through; anything else is a bad gateway
        code = exc.status if 400 <= exc.status < 500 else status.HTTP_502_BAD_GATEWAY
        return JSONResponse(status_code=code, content={"detail": str(exc)})

    @app.exception_handler(RemoteUnavailable)
    async def remote_unavailable_handler(request: Request, exc: RemoteUnavailable) -> JSONResponse:
        logger.error("Discogs unavailable at %s: %s", request.url.path, exc)
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})

    @app.exception_handler(RemoteConfigError)
    async def remote_config_handler(request: Request, exc: RemoteConfigError) -> JSONResponse:
        logger.error("Discogs not configured: %s", exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)})
