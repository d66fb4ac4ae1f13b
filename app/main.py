"""FastAPI entrypoint for the task service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import register_api_handlers
from app.config import load_config
from app.errors import ApiError, ErrorResponse, error_response
from app.logging_setup import setup_logging
from app.user_scope import (
    AUTH_EXEMPT_PATHS,
    SERVICE_TOKEN_HEADER,
    USER_ID_HEADER,
    normalize_user_id,
)

logger = logging.getLogger(__name__)

CORS_ALLOWED_HEADERS = [
    "authorization",
    "x-client-info",
    "apikey",
    "content-type",
    USER_ID_HEADER,
    SERVICE_TOKEN_HEADER,
]


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        config = load_config()
        setup_logging(config.log_level)
        app.state.config = config
        app.state.data_path = config.data_path
        logger.info("task service starting with data root %s", config.data_path)
        yield

    app = FastAPI(lifespan=lifespan)

    # Registered first so it runs inside CORS and the identity check.
    @app.middleware("http")
    async def convert_unexpected_errors(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.exception("unhandled error on %s", request.url.path)
            error = ErrorResponse(
                code="INTERNAL_ERROR",
                message="Unexpected server error.",
            )
            return JSONResponse(status_code=500, content=error_response(error))

    @app.middleware("http")
    async def enforce_request_identity(request: Request, call_next):
        path = request.url.path
        if path in AUTH_EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        config = getattr(request.app.state, "config", None)
        require_user_header = bool(
            getattr(config, "require_user_header", True)
        )
        service_token = getattr(config, "service_token", None)

        if require_user_header:
            raw_user_id = request.headers.get(USER_ID_HEADER)
            if raw_user_id is None:
                error = ErrorResponse(
                    code="AUTH_REQUIRED",
                    message="Missing required user identity header.",
                    details={"header": USER_ID_HEADER},
                )
                return JSONResponse(
                    status_code=401, content=error_response(error)
                )
            try:
                request.state.user_id = normalize_user_id(raw_user_id)
            except ApiError as exc:
                return JSONResponse(
                    status_code=401, content=error_response(exc.error)
                )

        if service_token:
            supplied_token = request.headers.get(SERVICE_TOKEN_HEADER)
            if supplied_token != service_token:
                logger.warning("rejected request to %s: bad service token", path)
                error = ErrorResponse(
                    code="AUTH_FORBIDDEN",
                    message="Invalid service token.",
                    details={"header": SERVICE_TOKEN_HEADER},
                )
                return JSONResponse(
                    status_code=403, content=error_response(error)
                )

        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=CORS_ALLOWED_HEADERS,
    )

    @app.exception_handler(ApiError)
    def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "%s failed: %s %s", request.url.path, exc.error.code, exc.error.message
            )
        return JSONResponse(
            status_code=exc.status_code, content=error_response(exc.error)
        )

    @app.get("/health", status_code=200)
    def health() -> dict[str, str]:
        return {"status": "ok"}

    register_api_handlers(app)
    return app


app = create_app()
