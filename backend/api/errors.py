from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    VALIDATION_FAILED = "VALIDATION_FAILED"
    NO_FIELDS_TO_UPDATE = "NO_FIELDS_TO_UPDATE"
    NO_TOKEN_PROVIDED = "NO_TOKEN_PROVIDED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_RESET_TOKEN = "INVALID_RESET_TOKEN"
    CANNOT_MODIFY_SYSTEM_DEFAULT = "CANNOT_MODIFY_SYSTEM_DEFAULT"
    CANNOT_MODIFY_OTHER_USER = "CANNOT_MODIFY_OTHER_USER"
    CANNOT_DELETE_OTHER_USER = "CANNOT_DELETE_OTHER_USER"
    CANNOT_LOG_OTHER_USER = "CANNOT_LOG_OTHER_USER"
    NOT_FOUND = "NOT_FOUND"
    EMAIL_ALREADY_EXISTS = "EMAIL_ALREADY_EXISTS"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(frozen=True)
class ValidationDetail:
    field: str
    message: str


class AppError(Exception):
    """Operational error surfaced to the client as ``{"error": ..., "details": [...]}``."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: ErrorCode,
        details: list[ValidationDetail] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code
        self.details = details or []

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = [{"field": d.field, "message": d.message} for d in self.details]
        return body

    @classmethod
    def bad_request(cls, message: str, code: ErrorCode = ErrorCode.VALIDATION_FAILED) -> "AppError":
        return cls(400, message, code)

    @classmethod
    def validation(cls, details: list[ValidationDetail]) -> "AppError":
        return cls(400, "Validation failed", ErrorCode.VALIDATION_FAILED, details)

    @classmethod
    def no_fields_to_update(cls) -> "AppError":
        return cls(400, "No fields to update", ErrorCode.NO_FIELDS_TO_UPDATE)

    @classmethod
    def unauthorized(cls, message: str, code: ErrorCode = ErrorCode.INVALID_TOKEN) -> "AppError":
        return cls(401, message, code)

    @classmethod
    def forbidden(cls, message: str, code: ErrorCode = ErrorCode.CANNOT_MODIFY_OTHER_USER) -> "AppError":
        return cls(403, message, code)

    @classmethod
    def not_found(cls, message: str, code: ErrorCode = ErrorCode.NOT_FOUND) -> "AppError":
        return cls(404, message, code)

    @classmethod
    def conflict(cls, message: str, code: ErrorCode = ErrorCode.EMAIL_ALREADY_EXISTS) -> "AppError":
        return cls(409, message, code)

    @classmethod
    def internal(cls, message: str = "Internal server error") -> "AppError":
        return cls(500, message, ErrorCode.INTERNAL_ERROR)


_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie"}


def validation_details(errors: list[dict[str, Any]]) -> list[ValidationDetail]:
    details: list[ValidationDetail] = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in _LOCATION_PREFIXES:
            loc = loc[1:]
        message = str(err.get("msg") or "Invalid value")
        # pydantic prefixes custom validator messages with "Value error, "
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        details.append(ValidationDetail(field=".".join(loc), message=message))
    return details


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    _ = request
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    _ = request
    error = AppError.validation(validation_details(list(exc.errors())))
    return JSONResponse(status_code=error.status_code, content=error.to_response())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    _ = request
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    error = AppError.internal()
    return JSONResponse(status_code=error.status_code, content=error.to_response())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
