"""
JSON envelope used by every endpoint, and the exception handlers that map
errors onto it.

Success:  ``{"success": true,  "message": "...", "data": ...}``
Failure:  ``{"success": false, "message": "..." | {field: [msgs]}}``

500 responses carry a generic message; the raw exception text is logged and
only echoed back under ``error`` when ``EXPOSE_ERROR_DETAILS`` is enabled.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from blog_api.config import settings
from blog_api.errors import BlogAPIError, ValidationFailed

logger = logging.getLogger(__name__)


def success(message: str, data=None) -> dict:
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return body


def failure(status_code: int, message, error: str | None = None) -> JSONResponse:
    body = {"success": False, "message": message}
    if error is not None and settings.EXPOSE_ERROR_DETAILS:
        body["error"] = error
    return JSONResponse(status_code=status_code, content=body)


def _field_label(field: str) -> str:
    return field.split(".")[-1].replace("_", " ").capitalize()


def validation_messages(errors) -> dict[str, list[str]]:
    """Collapse Pydantic error dicts into ``{field: [message, ...]}``."""
    messages: dict[str, list[str]] = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        field = ".".join(loc[1:]) if len(loc) > 1 else (loc[0] if loc else "request")
        if err.get("type") == "missing":
            text = f"{_field_label(field)} is required."
        else:
            text = err.get("msg", "Invalid value.").removeprefix("Value error, ")
        messages.setdefault(field, []).append(text)
    return messages


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

async def _request_validation_handler(request: Request, exc: RequestValidationError):
    messages = validation_messages(exc.errors())
    logger.warning(
        "Validation failed on %s %s: fields=%s",
        request.method, request.url.path, sorted(messages),
    )
    return failure(422, messages)


async def _blog_error_handler(request: Request, exc: BlogAPIError):
    if isinstance(exc, ValidationFailed):
        logger.warning(
            "Validation failed on %s %s: fields=%s",
            request.method, request.url.path, sorted(exc.errors),
        )
        return failure(422, exc.errors)
    if exc.status_code >= 500:
        cause = exc.__cause__ or exc
        logger.error("%s %s failed: %s", request.method, request.url.path, cause)
        return failure(exc.status_code, exc.message, error=str(cause))
    return failure(exc.status_code, exc.message)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    return failure(exc.status_code, str(exc.detail))


async def _store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Store failure on %s %s", request.method, request.url.path)
    return failure(500, "Operation failed.", error=str(exc))


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return failure(500, "Operation failed.", error=str(exc))


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(BlogAPIError, _blog_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, _store_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
