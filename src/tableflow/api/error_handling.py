from __future__ import annotations

from typing import Any, cast

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tableflow.api.middleware.request_id import get_request_id
from tableflow.application.use_cases.errors import (
    InvalidIssueTypeError,
    InvalidOrderError,
    InvalidTransitionError,
    IssueTooEarlyError,
    LifecycleConflictError,
    OrderAlreadyClosedError,
    OrderNotFoundError,
    TicketNotFoundError,
)
from tableflow.application.use_cases.list_issues import InvalidIssueStatusFilterError
from tableflow.application.use_cases.table_summary import InvalidTableNumberError


def _error_response(
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
            },
            "requestId": get_request_id(),
        },
    )


def _exception_handler(status_code: int, code: str):
    async def handler(_: Request, exc: Exception) -> JSONResponse:
        details = getattr(exc, "details", None)
        return _error_response(
            status_code=status_code,
            code=code,
            message=str(exc),
            details=details if isinstance(details, dict) else None,
        )

    return handler


async def _http_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    http_exc = cast(StarletteHTTPException, exc)
    message = str(http_exc.detail) if http_exc.detail else "request failed"
    code = "HTTP_ERROR"
    if http_exc.status_code == 404:
        code = "NOT_FOUND"
    elif http_exc.status_code == 400:
        code = "BAD_REQUEST"
    elif http_exc.status_code == 409:
        code = "CONFLICT"
    return _error_response(
        status_code=http_exc.status_code,
        code=code,
        message=message,
    )


async def _validation_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    validation_exc = cast(RequestValidationError, exc)
    return _error_response(
        status_code=400,
        code="INVALID_REQUEST",
        message="request validation failed",
        details={"errors": jsonable_encoder(validation_exc.errors())},
    )


def register_exception_handlers(app: FastAPI) -> None:
    mappings: list[tuple[type[Exception], int, str]] = [
        (OrderNotFoundError, 404, "ORDER_NOT_FOUND"),
        (TicketNotFoundError, 404, "TICKET_NOT_FOUND"),
        (InvalidTransitionError, 409, "INVALID_TRANSITION"),
        (IssueTooEarlyError, 400, "ISSUE_TOO_EARLY"),
        (InvalidIssueTypeError, 400, "INVALID_ISSUE_TYPE"),
        (OrderAlreadyClosedError, 409, "ORDER_CLOSED"),
        (LifecycleConflictError, 409, "CONFLICT"),
        (InvalidOrderError, 400, "INVALID_ORDER"),
        (InvalidIssueStatusFilterError, 400, "INVALID_ISSUE_FILTER"),
        (InvalidTableNumberError, 400, "INVALID_TABLE_NUMBER"),
    ]

    for exc_cls, status_code, code in mappings:
        app.add_exception_handler(exc_cls, _exception_handler(status_code, code))

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
