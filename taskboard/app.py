"""
FastAPI application entry point for the taskboard service.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskboard.config import get_settings
from taskboard.dependencies import build_store
from taskboard.errors import (
    ConcurrentModificationError,
    InvalidRequestError,
    NotFoundError,
    StorageError,
)
from taskboard.routes import router
from taskboard.store import UserProjectStore

logger = logging.getLogger(__name__)


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"message": exc.message})

    @app.exception_handler(InvalidRequestError)
    async def invalid_request(request: Request, exc: InvalidRequestError):
        return JSONResponse(status_code=400, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "message": "Invalid request data",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(ConcurrentModificationError)
    async def conflict(request: Request, exc: ConcurrentModificationError):
        return JSONResponse(status_code=409, content={"message": exc.message})

    @app.exception_handler(StorageError)
    async def storage_failure(request: Request, exc: StorageError):
        logger.error(
            "Storage failure during %s %s: %s",
            request.method,
            request.url.path,
            exc.message,
        )
        return JSONResponse(status_code=500, content={"message": "Server error"})


def create_app(store: Optional[UserProjectStore] = None) -> FastAPI:
    """
    Build the app around `store`, or around a store built from settings when
    none is given. The store is closed when the app shuts down.
    """
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Closing user store")
        app.state.store.close()

    app = FastAPI(title="Taskboard", version="0.1.0", lifespan=lifespan)
    app.state.store = store if store is not None else build_store(settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app)
    app.include_router(router, prefix=settings.api_prefix)
    return app
