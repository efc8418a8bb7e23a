from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.errors import storage_error_handler
from app.db.session import init_models
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.request_context import RequestContextMiddleware
from app.routers import admin, allocations, auth, bookings, events, reports, slots

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("feriamatch")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    logger.info("startup_complete", extra={"environment": settings.environment})
    yield


def create_app() -> FastAPI:
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router)
    app.include_router(admin.router)
    app.include_router(events.router)
    app.include_router(slots.router)
    app.include_router(allocations.router)
    app.include_router(bookings.router)
    app.include_router(reports.router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
