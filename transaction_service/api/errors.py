"""
Mapping of ledger error kinds onto HTTP responses
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse

from ..logging_config import get_logger, log_action
from ..results import ErrorKind, LedgerOperationError
from .schemas import ErrorResponse


ERROR_STATUS = {
    ErrorKind.INVALID_ACCOUNT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_AMOUNT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INSUFFICIENT_FUNDS: status.HTTP_400_BAD_REQUEST,
    ErrorKind.ACCOUNT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
}

# OpenAPI documentation of the error body for routers that return ledger results
ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse, "description": "Invalid account, invalid amount or insufficient funds"},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse, "description": "Account or payment not found"},
}

logger = get_logger("transaction_service.api")


def status_for(kind: ErrorKind) -> int:
    return ERROR_STATUS[kind]


async def ledger_error_handler(request: Request, exc: LedgerOperationError) -> JSONResponse:
    status_code = status_for(exc.kind)
    log_action(
        logger, "info", f"{request.method} {request.url.path} -> {status_code}",
        action="http_error", extra={"error": exc.kind.value, "detail": str(exc)}
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": exc.kind.value},
    )
