"""Structured application errors and JSON error responses."""

from __future__ import annotations

import json
import logging
import os
import traceback
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any

logger = logging.getLogger(__name__)


class AppError(Exception):
    """An error carrying an HTTP status and a client-facing message."""

    def __init__(self, status_code: int, message: str, error_code: str = "",
                 internal: BaseException | None = None) -> None:
        super().__init__(message)
        self.status_code = int(status_code)
        self.message = message
        self.error_code = error_code
        self.internal = internal

    def __str__(self) -> str:
        if self.internal is not None:
            return f"[{self.error_code}] {self.message}: {self.internal}"
        return f"[{self.error_code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message}
        if self.error_code:
            body["error_code"] = self.error_code
        return body


@dataclass
class ErrorResponse:
    """The JSON body sent for an error, with its HTTP status."""

    status_code: int
    message: str
    error_code: str = ""
    stack: str = ""
    status: str = "error"

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"status": self.status, "message": self.message}
        if self.error_code:
            body["error_code"] = self.error_code
        if self.stack:
            body["stack"] = self.stack
        return body

    def to_json(self) -> bytes:
        return (json.dumps(self.to_dict()) + "\n").encode()


class ServiceError(Exception):
    """A business-rule failure raised by the service layer."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"

    def to_app_error(self) -> AppError:
        return AppError(self.status_code, str(self), self.error_code, self)


class NotFoundError(ServiceError):
    status_code = HTTPStatus.NOT_FOUND
    error_code = "NOT_FOUND"


class PermissionDeniedError(ServiceError):
    status_code = HTTPStatus.FORBIDDEN
    error_code = "FORBIDDEN"


class ConflictError(ServiceError):
    status_code = HTTPStatus.CONFLICT
    error_code = "CONFLICT"


class InvalidInputError(ServiceError):
    status_code = HTTPStatus.BAD_REQUEST
    error_code = "VALIDATION_ERROR"


def error_response(message: str, status_code: int, error_code: str = "",
                   internal: BaseException | None = None,
                   production: bool | None = None) -> ErrorResponse:
    """Log an error and build its response; 5xx outside production carry a stack."""
    level = logging.ERROR if status_code >= 500 else logging.WARNING
    logger.log(level, "%s status_code=%s error_code=%s internal_err=%s",
               message, int(status_code), error_code, internal)

    if production is None:
        production = os.environ.get("NODE_ENV") == "production"
    stack = ""
    if status_code >= 500 and not production:
        stack = "".join(traceback.format_stack())
    return ErrorResponse(int(status_code), message, error_code, stack)


def validation_error(message: str, internal: BaseException | None = None) -> ErrorResponse:
    return error_response(message, HTTPStatus.BAD_REQUEST, "VALIDATION_ERROR", internal)


def unauthorized_error(message: str, internal: BaseException | None = None) -> ErrorResponse:
    return error_response(message, HTTPStatus.UNAUTHORIZED, "UNAUTHORIZED", internal)


def forbidden_error(message: str, internal: BaseException | None = None) -> ErrorResponse:
    return error_response(message, HTTPStatus.FORBIDDEN, "FORBIDDEN", internal)


def not_found_error(message: str, internal: BaseException | None = None) -> ErrorResponse:
    return error_response(message, HTTPStatus.NOT_FOUND, "NOT_FOUND", internal)


def internal_error(message: str, internal: BaseException | None = None) -> ErrorResponse:
    return error_response(message, HTTPStatus.INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", internal)


def as_app_error(err: BaseException | None) -> AppError | None:
    """Return the first AppError in an exception's cause chain, if any."""
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        if isinstance(err, AppError):
            return err
        seen.add(id(err))
        err = err.__cause__ or err.__context__
    return None