# FILE: ova/api/exception_handlers.py
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


def error_response(msg: str,
                   *,
                   status_code: int = 400,
                   code: Optional[str] = None,
                   details: Any = None) -> JSONResponse:
    """{"ok": false, "error": {"msg", "code", "details"}}"""
    body = {"ok": False, "error": {"msg": msg, "code": code, "details": details}}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
            request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail
        if isinstance(detail, dict):
            # feedback refusals carry their reason as the code
            return error_response(str(detail.get("msg") or "Request failed"),
                                  code=detail.get("code"),
                                  details=detail.get("details"),
                                  status_code=exc.status_code)
        if isinstance(detail, str):
            return error_response(detail, status_code=exc.status_code)
        return error_response("Request failed",
                              details=detail,
                              status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
            request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response("Validation error",
                              code="validation_error",
                              details=exc.errors(),
                              status_code=422)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request,
                                          exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method,
                         request.url.path)
        return error_response("Internal server error", status_code=500)
