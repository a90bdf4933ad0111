"""
Global exception handlers with translated error messages.

Every error response has the same shape::

    {"statusCode": 401, "error": "...", "message": "Yetkisiz Erişim",
     "timestamp": "...", "path": "/login", "language": "tr"}

``message`` comes from a per-status catalog in the caller's language.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lider_gateway.api.auth import get_client_ip
from lider_gateway.config import get_settings
from lider_gateway.constants import (
    CUSTOM_LANG_HEADER,
    LANG_QUERY_PARAMS,
    SUPPORTED_LANGUAGES,
)
from lider_gateway.exceptions import (
    AuthenticationError,
    RemoteOperationError,
    SerializationError,
)
from lider_gateway.types.api import ErrorResponse

logger = logging.getLogger(__name__)

MESSAGES: dict[str, dict[int, str]] = {
    "en": {
        400: "Bad Request",
        401: "Unauthorized Access",
        403: "Access Forbidden",
        404: "Resource Not Found",
        429: "Too Many Requests",
        500: "Internal Server Error",
        502: "Bad Gateway",
        503: "Service Unavailable",
    },
    "tr": {
        400: "Geçersiz İstek",
        401: "Yetkisiz Erişim",
        403: "Erişim Yasak",
        404: "Kaynak Bulunamadı",
        429: "Çok Fazla İstek",
        500: "Sunucu Hatası",
        502: "Ağ Geçidi Hatası",
        503: "Hizmet Kullanılamıyor",
    },
}


def _supported(language: str | None) -> str | None:
    if not language:
        return None
    primary = language.strip().split("-")[0].split("_")[0].lower()
    return primary if primary in SUPPORTED_LANGUAGES else None


def _accept_language(header: str) -> list[str]:
    ranked: list[tuple[float, int, str]] = []
    for position, part in enumerate(header.split(",")):
        tag, _, params = part.strip().partition(";")
        quality = 1.0
        if params.strip().startswith("q="):
            try:
                quality = float(params.strip()[2:])
            except ValueError:
                quality = 0.0
        if tag:
            ranked.append((-quality, position, tag))
    return [tag for _, _, tag in sorted(ranked)]


def resolve_language(request: Request) -> str:
    """
    Pick the response language.

    Order: ``?lang=``/``?l=`` query, ``x-custom-lang`` header,
    ``Accept-Language``, then FALLBACK_LANGUAGE (or English).
    """
    candidates = [request.query_params.get(param) for param in LANG_QUERY_PARAMS]
    candidates.append(request.headers.get(CUSTOM_LANG_HEADER))
    candidates.extend(_accept_language(request.headers.get("accept-language", "")))

    for candidate in candidates:
        language = _supported(candidate)
        if language:
            return language

    return _supported(get_settings().fallback_language) or "en"


def translate(status_code: int, language: str) -> str:
    """Translated message for a status code; unknown codes use the 500 message."""
    catalog = MESSAGES.get(language, MESSAGES["en"])
    return catalog.get(status_code, catalog[status.HTTP_500_INTERNAL_SERVER_ERROR])


def error_response(
    request: Request,
    status_code: int,
    error: Any,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the standard translated error response and log it."""
    language = resolve_language(request)
    body = ErrorResponse(
        status_code=status_code,
        error=error,
        message=translate(status_code, language),
        timestamp=datetime.now(timezone.utc),
        path=request.url.path,
        language=language,
    )

    logger.warning(
        "Exception caught",
        extra={
            "method": request.method,
            "url": request.url.path,
            "real_ip": get_client_ip(request),
            "status_code": status_code,
            "error": error,
        },
    )

    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True),
        headers=headers,
    )


def _format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    fields: dict[str, list[str]] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        fields.setdefault(".".join(location), []).append(error.get("msg", "Invalid value"))
    return [{"field": field, "errors": errors} for field, errors in fields.items()]


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(request, exc.status_code, exc.detail, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        _format_validation_errors(exc),
    )


async def authentication_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    return error_response(request, status.HTTP_401_UNAUTHORIZED, str(exc))


async def remote_operation_error_handler(request: Request, exc: RemoteOperationError) -> JSONResponse:
    return error_response(request, status.HTTP_502_BAD_GATEWAY, str(exc))


async def serialization_error_handler(request: Request, exc: SerializationError) -> JSONResponse:
    return error_response(request, status.HTTP_400_BAD_REQUEST, str(exc))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception", extra={"url": request.url.path})
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the translated error handlers on an application."""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(AuthenticationError, authentication_error_handler)
    app.add_exception_handler(RemoteOperationError, remote_operation_error_handler)
    app.add_exception_handler(SerializationError, serialization_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
