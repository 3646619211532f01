from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api import router
from logging_config import configure_logging
from services.errors import StorageError
from services.ingestion import build_default_coordinator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    try:
        coordinator = build_default_coordinator()
    except StorageError:
        logger.exception("Storage could not be initialized; serving 503 until restart")
        coordinator = None
    app.state.store_ready = coordinator is not None
    try:
        yield
    finally:
        app.state.store_ready = False
        if coordinator is not None:
            coordinator.shutdown()
            build_default_coordinator.cache_clear()


async def require_store(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    if not getattr(request.app.state, "store_ready", False):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Service unavailable: storage not initialized"},
        )
    return await call_next(request)


async def invalid_body_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


async def route_not_found_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": f"Route not found: {request.url.path}"},
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="UltraSense Alerts",
        description="Distance ingestion service that fans out push alerts per experience.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.store_ready = False
    app.middleware("http")(require_store)
    app.add_exception_handler(RequestValidationError, invalid_body_handler)
    # A known path with the wrong method is still an unmatched route.
    app.add_exception_handler(status.HTTP_404_NOT_FOUND, route_not_found_handler)
    app.add_exception_handler(status.HTTP_405_METHOD_NOT_ALLOWED, route_not_found_handler)
    app.include_router(router)
    return app

app = create_app()
