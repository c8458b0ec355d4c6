"""
Error taxonomy and FastAPI exception handlers.

Every failure the API reports is a `WarehouseError` carrying a machine-readable
code. Handlers render them as `{"error": <code>, ...}` with the matching status.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class WarehouseError(Exception):
    code = "SERVER_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        super().__init__(message or self.code)
        self.message = message
        self.extra = extra

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.code}
        if self.message:
            payload["message"] = self.message
        payload.update(self.extra)
        return payload


class Unauthenticated(WarehouseError):
    code = "UNAUTHENTICATED"
    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidCredentials(WarehouseError):
    code = "INVALID_CREDENTIALS"
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(WarehouseError):
    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidEntry(WarehouseError):
    code = "INVALID_ENTRY"
    status_code = status.HTTP_400_BAD_REQUEST


class MissingParams(WarehouseError):
    code = "MISSING_PARAMS"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidPayload(WarehouseError):
    code = "INVALID_PAYLOAD"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(WarehouseError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class CaseNotFound(WarehouseError):
    code = "CASE_NOT_FOUND"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, shipment_id: str, case_number: str) -> None:
        super().__init__(shipmentId=shipment_id, caseNumber=case_number)
        self.shipment_id = shipment_id
        self.case_number = case_number


class ExceedsRemaining(WarehouseError):
    code = "EXCEEDS_REMAINING"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, remaining: int, shipment_id: str = "", case_number: str = "") -> None:
        super().__init__(remaining=remaining, shipmentId=shipment_id, caseNumber=case_number)
        self.remaining = remaining
        self.shipment_id = shipment_id
        self.case_number = case_number


class DuplicateRequest(WarehouseError):
    code = "DUPLICATE_REQUEST"
    status_code = status.HTTP_409_CONFLICT


class TransactionConflict(WarehouseError):
    code = "TRANSACTION_CONFLICT"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, attempts: int) -> None:
        super().__init__(attempts=attempts)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(WarehouseError)
    async def _warehouse_error(request: Request, exc: WarehouseError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request failed path=%s method=%s error=%s", request.url.path, request.method, exc.code)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("Rejected request body path=%s errors=%s", request.url.path, len(exc.errors()))
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": InvalidEntry.code})

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error path=%s method=%s", request.url.path, request.method)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": WarehouseError.code, "message": str(exc) or type(exc).__name__},
        )
