"""
Proctorly error taxonomy and its HTTP mapping.

Services raise these; routers let them propagate and the handlers
registered in ``main.py`` turn them into JSON error responses.
"""

import logging
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("proctorly.errors")


class ProctorlyError(Exception):
    """Base class for every error kind surfaced by the core"""
    status_code = 500

    def __init__(self, message: str, headers: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.headers = headers


class ValidationError(ProctorlyError):
    """Malformed or missing required input"""
    status_code = 400


class NotFound(ProctorlyError):
    """Referenced subject, event set or media object does not exist"""
    status_code = 404


class Conflict(ProctorlyError):
    """Duplicate subject identifier on creation"""
    status_code = 400


class RangeError(ProctorlyError):
    """Requested byte range is malformed or out of bounds"""
    status_code = 416

    def __init__(self, message: str, total_size: Optional[int] = None):
        headers = {"Content-Range": f"bytes */{total_size}"} if total_size is not None else None
        super().__init__(message, headers=headers)
        self.total_size = total_size


class StoreFailure(ProctorlyError):
    """Underlying store unreachable or erroring"""
    status_code = 500


async def proctorly_error_handler(request: Request, exc: ProctorlyError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.debug(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=exc.headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "request"
    return JSONResponse(
        status_code=ValidationError.status_code,
        content={"error": f"{field}: {first.get('msg', 'invalid input')}"},
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(ProctorlyError, proctorly_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
