from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from sqlalchemy import text
from sqlalchemy.exc import OperationalError as SAOperationalError
from sqlalchemy.exc import SQLAlchemyError

import psycopg2

from api.router import api_router
from core.config import settings
from core.db import DatabaseUnavailableError, ENGINE, init_db, is_transient_db_connectivity_error
from core.errors import PersistenceError, TimetableError
from core.logging import setup_logging


logger = logging.getLogger(__name__)


def _error(status_code: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "code": code, "message": message, "details": details or {}},
    )


def _unavailable() -> JSONResponse:
    return _error(503, "DATABASE_UNAVAILABLE", "Database temporarily unavailable. Please retry.")


def create_app(*, create_tables: bool = True) -> FastAPI:
    setup_logging(
        environment=settings.environment,
        level=settings.log_level,
        solver_level=settings.solver_log_level,
    )
    is_production = settings.environment.lower() == "production"

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        if create_tables:
            try:
                init_db()
            except SQLAlchemyError:
                # The API still starts; /health reports the database as down.
                logger.exception("Table creation failed at startup")
        yield

    app = FastAPI(
        title="School Timetable Generator API",
        version="0.1.0",
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
        lifespan=lifespan,
    )

    @app.exception_handler(TimetableError)
    def _timetable_error(_request, exc: TimetableError):
        if isinstance(exc, PersistenceError):
            logger.warning("Persistence failure (503)", exc_info=exc)
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_payload()))

    @app.exception_handler(RequestValidationError)
    def _request_validation_error(_request, exc: RequestValidationError):
        return _error(400, "VALIDATION_ERROR", "Invalid request", {"errors": jsonable_encoder(exc.errors())})

    @app.exception_handler(HTTPException)
    def _http_error(_request, exc: HTTPException):
        detail = exc.detail
        if isinstance(detail, dict):
            code = str(detail.get("code") or "HTTP_ERROR")
            return _error(exc.status_code, code, code, {k: v for k, v in detail.items() if k != "code"})
        return _error(exc.status_code, str(detail), str(detail))

    @app.exception_handler(DatabaseUnavailableError)
    def _db_unavailable(_request, _exc: DatabaseUnavailableError):
        logger.warning("Database unavailable (503)", exc_info=_exc)
        return _unavailable()

    @app.exception_handler(SAOperationalError)
    def _sqlalchemy_operational_error(_request, exc: SAOperationalError):
        if is_transient_db_connectivity_error(exc):
            logger.warning("Database transient connectivity error (503)", exc_info=exc)
            return _unavailable()
        return _error(500, "DATABASE_ERROR", "Database operation failed.")

    @app.exception_handler(psycopg2.OperationalError)
    def _psycopg2_operational_error(_request, exc: Exception):
        if is_transient_db_connectivity_error(exc):
            logger.warning("Database transient connectivity error (503)", exc_info=exc)
            return _unavailable()
        return _error(500, "DATABASE_ERROR", "Database operation failed.")

    allow_origins = [settings.frontend_origin]
    allow_origin_regex = None
    if not is_production:
        # Dev-friendly: allow the configured origin and any localhost port.
        allow_origins.extend(["http://localhost:5173", "http://127.0.0.1:5173"])
        allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_origin_regex=allow_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict:
        # Always respond; reflect DB availability without crashing.
        db_status = "ok"
        try:
            with ENGINE.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            db_status = "down"

        return {"app": "ok", "database": db_status}

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
