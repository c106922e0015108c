"""Outermost error handling for API routes.

Every error that escapes a route is logged once here with the request
context (request id, client ip, user agent, url, method) and turned into a
sanitized JSON body. Detailed messages are only returned in development.
"""

import logging
import re
import traceback
import uuid as uuid_pkg
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from zephra.config import settings
from zephra.core.exceptions import AppError, ErrorSeverity, ErrorType
from zephra.core.rate_limit import get_client_ip

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"
MAX_MESSAGE_LENGTH = 1000
MAX_STACK_FRAMES = 20
MAX_STACK_LENGTH = 5000

_SENSITIVE_PATTERN = re.compile(r"(password|token|key|secret)([=:])\s*\S+", re.IGNORECASE)


def redact(message: str) -> str:
    """Mask password/token/key/secret assignments and cap the length."""
    return _SENSITIVE_PATTERN.sub(r"\1\2***", message)[:MAX_MESSAGE_LENGTH]


def sanitize_stack_trace(error: BaseException) -> str:
    lines = traceback.format_exception(type(error), error, error.__traceback__)
    text = "".join(lines).splitlines()[-MAX_STACK_FRAMES:]
    return _SENSITIVE_PATTERN.sub(r"\1\2***", "\n".join(text))[:MAX_STACK_LENGTH]


def request_context(request: Request) -> dict[str, str | None]:
    """Request fields attached to every error log line."""
    return {
        "request_id": getattr(request.state, "request_id", None)
        or request.headers.get("x-request-id")
        or str(uuid_pkg.uuid4()),
        "ip_address": get_client_ip(request),
        "user_agent": request.headers.get("user-agent"),
        "url": str(request.url),
        "method": request.method,
    }


def log_error(error: BaseException, context: dict[str, Any]) -> None:
    """Log an error with redacted message and request context."""
    if isinstance(error, AppError):
        error_type, severity = error.error_type, error.severity
        extra = {k: redact(str(v)) for k, v in error.context.items()}
    else:
        error_type, severity = ErrorType.SYSTEM, ErrorSeverity.MEDIUM
        extra = {}

    level = logging.ERROR if severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL) else logging.WARNING
    logger.log(
        level,
        f"{error_type.value} error [{severity.value}] {redact(str(error))} | "
        f"request_id={context.get('request_id')} ip={context.get('ip_address')} "
        f"ua={context.get('user_agent')} {context.get('method')} {context.get('url')}"
        + (f" | context={extra}" if extra else ""),
    )
    if not isinstance(error, AppError) or error.status_code >= 500:
        logger.debug(sanitize_stack_trace(error))


def format_error_response(error: BaseException, is_development: bool | None = None) -> dict[str, Any]:
    """Build the client-facing error body.

    Client errors (4xx AppError) keep their message. Server errors are
    replaced by a generic message outside development.
    """
    if is_development is None:
        is_development = settings.is_development

    if isinstance(error, AppError):
        if error.status_code < 500 or is_development:
            body: dict[str, Any] = {"error": error.message, "code": error.error_type.value}
        else:
            body = {"error": GENERIC_ERROR_MESSAGE, "code": error.error_type.value}
        if is_development:
            body["details"] = {"severity": error.severity.value}
        return body

    if is_development:
        return {"error": str(error) or GENERIC_ERROR_MESSAGE, "details": {"type": type(error).__name__}}
    return {"error": GENERIC_ERROR_MESSAGE}


async def app_error_handler(request: Request, exc: Exception) -> JSONResponse:
    context = request_context(request)
    log_error(exc, context)

    status_code = exc.status_code if isinstance(exc, AppError) else 500
    headers = exc.headers if isinstance(exc, AppError) else None
    body = format_error_response(exc)
    body["request_id"] = context["request_id"]
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, app_error_handler)
