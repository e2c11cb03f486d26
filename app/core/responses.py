"""Uniform error envelope: every failure reaches the caller as {"ok": false, "error", "code"}."""
import logging
from typing import Any, Dict, Sequence

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import ServiceError

logger = logging.getLogger(__name__)

_LOC_PREFIXES = {"body", "query", "path", "header"}


def error_body(message: str, code: int) -> Dict[str, Any]:
    return {"ok": False, "error": message, "code": code}


def first_validation_message(errors: Sequence[Dict[str, Any]]) -> str:
    """Human-readable message for the first failing field of a pydantic error list."""
    if not errors:
        return "Invalid request"
    err = errors[0]
    msg = str(err.get("msg", "Invalid value"))
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    loc = [str(p) for p in err.get("loc", ()) if str(p) not in _LOC_PREFIXES]
    if loc:
        return f"{'.'.join(loc)}: {msg}"
    return msg


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.status_code))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    code = status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=code, content=error_body(first_validation_message(exc.errors()), code))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=code, content=error_body("Internal server error", code))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
