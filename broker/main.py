"""
FastAPI application entrypoint for the OneDrive token broker.
"""

from __future__ import annotations

import logging
import time
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from broker import __version__
from broker.api.drive import drive_folders_router, onedrive_router, sharepoint_router
from broker.api.routes import auth_router, router as api_router
from broker.clients.graph_drive import GraphApiError
from broker.core.config import get_settings
from broker.core.errors import TokenError, TokenErrorKind
from broker.core.logging import configure_logging

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    TokenErrorKind.CREDENTIAL_NOT_FOUND: HTTPStatus.UNAUTHORIZED,
    TokenErrorKind.REFRESH_UNAVAILABLE: HTTPStatus.UNAUTHORIZED,
    TokenErrorKind.UPSTREAM_AUTH_ERROR: HTTPStatus.UNAUTHORIZED,
    TokenErrorKind.INTEGRITY_ERROR: HTTPStatus.INTERNAL_SERVER_ERROR,
    TokenErrorKind.TRANSPORT_ERROR: HTTPStatus.SERVICE_UNAVAILABLE,
    TokenErrorKind.STORE_ERROR: HTTPStatus.INTERNAL_SERVER_ERROR,
}


async def handle_token_error(request: Request, exc: TokenError) -> JSONResponse:
    status_code = ERROR_STATUS.get(exc.kind, HTTPStatus.INTERNAL_SERVER_ERROR)
    log = logger.error if status_code >= 500 else logger.warning
    log("%s on %s %s: %s", exc.kind.value, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(exc.to_dict()))


async def handle_graph_error(request: Request, exc: GraphApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "graph_error", "detail": exc.message},
    )


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=HTTPStatus.BAD_REQUEST,
        content={"error": "invalid_request", "detail": jsonable_encoder(exc.errors())},
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        content={"error": "internal_error", "detail": "Internal server error."},
    )


async def handle_not_found(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=HTTPStatus.NOT_FOUND,
        content={"error": "not_found", "detail": "Route not found."},
    )


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="OneDrive Token Broker",
        version=__version__,
        description="Brokers Microsoft OAuth tokens and OneDrive access per tenant.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    app.add_exception_handler(TokenError, handle_token_error)
    app.add_exception_handler(GraphApiError, handle_graph_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(HTTPStatus.NOT_FOUND.value, handle_not_found)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(api_router)
    app.include_router(auth_router)
    app.include_router(onedrive_router)
    app.include_router(drive_folders_router)
    app.include_router(sharepoint_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
