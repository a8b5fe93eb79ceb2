from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core import metrics
from app.core.logging_config import get_logger

logger = get_logger(__name__)


class GroupDirectoryError(Exception):
    """Base class for errors surfaced to API clients as {"error": message}."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GroupDirectoryError):
    """Client-caused failure: missing field, bad link, rejected image."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, reason: str = "invalid"):
        super().__init__(message)
        self.reason = reason


class StorageFault(GroupDirectoryError):
    """
    Server-caused failure reading or writing persisted state.

    ``detail`` is logged server-side only; clients get a generic message.
    """

    public_message = "Internal storage error."

    def __init__(self, message: str, operation: str = "unknown", detail: str = ""):
        super().__init__(message)
        self.operation = operation
        self.detail = detail


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.warning(
        "request_rejected",
        path=request.url.path,
        reason=exc.reason,
        error=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def storage_fault_handler(request: Request, exc: StorageFault) -> JSONResponse:
    metrics.storage_faults_total.labels(operation=exc.operation).inc()
    logger.error(
        "storage_fault",
        path=request.url.path,
        operation=exc.operation,
        error=exc.message,
        detail=exc.detail,
        exc_info=exc,
    )
    return JSONResponse(status_code=exc.status_code, content={"error": StorageFault.public_message})


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request."
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", message)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(StorageFault, storage_fault_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
