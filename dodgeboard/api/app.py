"""
FastAPI application factory.

`create_app()` wires the ServiceContainer into the app lifespan, binds a
LogContext to every request and translates domain and infrastructure
exceptions into `{success: false, error, error_code}` bodies.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dodgeboard import __version__
from dodgeboard.api.dependencies import get_fingerprint
from dodgeboard.api.routes import router
from dodgeboard.core.exceptions import (
    DodgeboardError,
    FastStoreUnavailableError,
    ScoreLedgerWriteError,
)
from dodgeboard.core.logging.logger import LogContext, get_logger
from dodgeboard.core.services.container import ServiceContainer
from dodgeboard.modules.shared.exceptions import (
    AuthorizationError,
    DodgeboardDomainException,
    NotFoundError,
    ValidationError,
)

logger = get_logger(__name__)


def _error(
    status_code: int, message: str, error_code: str, exc: Optional[DodgeboardError] = None
) -> JSONResponse:
    if exc is not None:
        logger.log(
            exc.severity.log_level,
            "Request failed: %s",
            exc,
            extra={"error_code": exc.error_code, "status_code": status_code},
        )
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, "error_code": error_code},
    )


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, exc.validation_message, exc.error_code, exc)

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid {location}" if location else "Invalid request"
        return _error(400, message, "VALIDATION_REQUEST")

    @app.exception_handler(AuthorizationError)
    async def _unauthorized(request: Request, exc: AuthorizationError) -> JSONResponse:
        return _error(403, "Unauthorized", exc.error_code, exc)

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, exc.message, exc.error_code, exc)

    @app.exception_handler(DodgeboardDomainException)
    async def _domain(request: Request, exc: DodgeboardDomainException) -> JSONResponse:
        return _error(400, exc.message, exc.error_code, exc)

    @app.exception_handler(FastStoreUnavailableError)
    async def _fast_store(request: Request, exc: FastStoreUnavailableError) -> JSONResponse:
        return _error(503, "Redis not connected", exc.error_code, exc)

    @app.exception_handler(ScoreLedgerWriteError)
    async def _ledger(request: Request, exc: ScoreLedgerWriteError) -> JSONResponse:
        return _error(500, "Failed to submit score", exc.error_code, exc)

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error",
            extra={
                "path": request.url.path,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
            exc_info=exc,
        )
        return _error(500, "Internal server error", "INTERNAL_ERROR")


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the app. Pass a container to share stores with tests; otherwise
    one is created from the environment.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        active = container or ServiceContainer()
        app.state.container = active
        await active.initialize()
        try:
            yield
        finally:
            await active.shutdown()

    app = FastAPI(title="Dodgeboard", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def _request_context(request: Request, call_next):
        start = time.perf_counter()
        async with LogContext(
            route=f"{request.method} {request.url.path}",
            fingerprint=get_fingerprint(request),
            component="api",
        ) as context:
            response = await call_next(request)
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra={
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                },
            )
            response.headers["X-Request-ID"] = context.request_id
            return response

    _register_exception_handlers(app)
    app.include_router(router)
    return app
