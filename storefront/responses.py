"""
Response envelope and error translation.

Every endpoint answers with {"success": bool, "message"?: str, ...payload}.
Handlers raise ApiError subclasses; anything else is logged with full
detail and collapsed to a generic message so internals never leak.
"""

import traceback
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from storefront.logger import get_logger

logger = get_logger("errors")

GENERIC_ERROR_MESSAGE = "An error occurred. Please try again."

# Messages containing one of these keywords are safe to show verbatim
SAFE_ERROR_KEYWORDS = ("validation", "required", "invalid", "not found", "unauthorized", "forbidden")


class ApiError(Exception):
    """Base error carrying the HTTP status and extra envelope fields."""
    status_code = 400

    def __init__(self, message: str, status_code: Optional[int] = None, **extra: Any):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra


class ValidationError(ApiError):
    status_code = 400


class AuthenticationError(ApiError):
    status_code = 401


class AuthorizationError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class MethodNotAllowedError(ApiError):
    status_code = 405


class ConflictError(ApiError):
    status_code = 409


def sanitize_error(error: Any) -> str:
    """
    Return a message that is safe to send to the client.

    Exception messages pass through only when they contain a whitelisted
    keyword; plain strings are already caller-chosen and pass unchanged.
    """
    if isinstance(error, BaseException):
        message = str(error)
        lowered = message.lower()
        if message and any(keyword in lowered for keyword in SAFE_ERROR_KEYWORDS):
            return message
        return GENERIC_ERROR_MESSAGE
    if isinstance(error, str):
        return error
    return GENERIC_ERROR_MESSAGE


def create_error_response(
    message: Any,
    status: int = 400,
    extra: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "message": sanitize_error(message)}
    if extra:
        body.update(extra)
    return JSONResponse(status_code=status, content=jsonable_encoder(body))


def create_success_response(
    data: Any = None,
    message: Optional[str] = None,
    status: int = 200,
) -> JSONResponse:
    """Dict payloads are merged into the envelope; anything else goes under "data"."""
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if isinstance(data, dict):
        body.update(data)
    elif data is not None:
        body["data"] = data
    return JSONResponse(status_code=status, content=jsonable_encoder(body))


async def handle_async_error(fn: Callable[[], Awaitable[Response]]) -> Response:
    """
    Await a handler and convert any escaped exception into an envelope.

    The error's own status is kept when it carries one, otherwise 500.
    """
    try:
        return await fn()
    except ApiError as exc:
        return create_error_response(exc.message, exc.status_code, exc.extra)
    except Exception as exc:
        logger.error("Unhandled exception: %s\n%s", exc, traceback.format_exc())
        status = getattr(exc, "status_code", None)
        if not isinstance(status, int) or status < 400:
            status = 500
        return create_error_response(exc, status)


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    return create_error_response(exc.message, exc.status_code, exc.extra)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        errors.append(f"{location}: {err.get('msg')}" if location else err.get("msg"))
    return create_error_response("Validation failed", 400, {"errors": errors})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Unknown routes and unsupported methods get the same envelope
    return create_error_response(str(exc.detail), exc.status_code)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
