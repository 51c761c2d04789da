"""
Error translation: store exceptions -> HTTP errors, and the JSON error
envelope every response uses (`{"error": ..., "details": ...}`).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

import asyncpg
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


@contextmanager
def integrity_errors(
    *,
    unique_detail: str = "Resource already exists",
    foreign_key_status: int = status.HTTP_400_BAD_REQUEST,
    foreign_key_detail: str = "Invalid foreign key",
) -> Iterator[None]:
    """
    Map constraint violations raised inside the block to HTTP errors.

    Foreign-key violations are a client error on insert/update (unknown
    parent) and a conflict on delete (row still referenced).
    """
    try:
        yield
    except asyncpg.UniqueViolationError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=unique_detail) from exc
    except asyncpg.ForeignKeyViolationError as exc:
        raise HTTPException(status_code=foreign_key_status, detail=foreign_key_detail) from exc
    except asyncpg.NotNullViolationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing value for {exc.column_name or 'required column'}",
        ) from exc
    except asyncpg.CheckViolationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Constraint violated: {exc.constraint_name or 'check'}",
        ) from exc


def _error_content(detail: object) -> dict:
    if isinstance(detail, dict):
        return dict(detail)
    return {"error": detail}


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail
        if exc.status_code == status.HTTP_404_NOT_FOUND and detail == "Not Found":
            detail = "Route not found"
        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder(_error_content(detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {"loc": list(err.get("loc", ())), "msg": str(err.get("msg", ""))}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request", "details": details},
        )

    # Server-side class 22 errors (bad uuid text, numeric overflow) and
    # asyncpg's client-side argument encoding errors. The latter subclass
    # ValueError, so other ValueErrors reaching this handler are bugs.
    @app.exception_handler(asyncpg.exceptions.DataError)
    @app.exception_handler(ValueError)
    async def data_error_handler(request: Request, exc: Exception) -> JSONResponse:
        if not isinstance(exc, (asyncpg.exceptions.DataError, asyncpg.InterfaceError)):
            return _server_error(request, exc)
        logger.warning("invalid_input path=%s error=%s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid input", "details": str(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        return _server_error(request, exc)


def _server_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_error path=%s error_type=%s",
        request.url.path,
        type(exc).__name__,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Server error", "details": str(exc)},
    )
