"""RFC 7807 Problem Details rendering for every error the API returns."""
from __future__ import annotations

from http import HTTPStatus
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .domain_errors import DomainError

PROBLEM_TYPE_BASE = "https://api.taskflow.local/problems"

# Stable codes for errors raised by framework dependencies (bearer scheme, permission checks).
_HTTP_STATUS_CODES = {
    401: "AUTH_REQUIRED",
    403: "PERMISSION_DENIED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def _status_title(http_status: int) -> str:
    try:
        return HTTPStatus(http_status).phrase
    except ValueError:
        return "Domain Error"


def problem_response(
    *,
    code: str,
    http_status: int,
    detail: str,
    details: Optional[dict[str, Any]] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    payload: dict[str, object] = {
        "type": f"{PROBLEM_TYPE_BASE}/{code.lower()}",
        "title": _status_title(http_status),
        "status": http_status,
        "detail": detail,
        "code": code,
    }
    if details is not None:
        payload["details"] = details
    return JSONResponse(
        status_code=http_status,
        content=payload,
        media_type="application/problem+json",
        headers=headers,
    )


def build_problem_details_response(exc: DomainError) -> JSONResponse:
    """Render DomainError as RFC 7807 payload with stable domain code."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.http_status == 401 else None
    return problem_response(
        code=exc.code,
        http_status=exc.http_status,
        detail=exc.message,
        details=exc.details,
        headers=headers,
    )


async def domain_error_handler(_: Request, exc: DomainError) -> JSONResponse:
    return build_problem_details_response(exc)


async def http_exception_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
    return problem_response(
        code=code,
        http_status=exc.status_code,
        detail=str(exc.detail),
        headers=getattr(exc, "headers", None),
    )
