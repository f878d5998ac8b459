"""Mapping of FailureReason to HTTP status codes and error payloads."""

from typing import Any

from fastapi.responses import JSONResponse

from fleet_kernel.domain.payments import FailureReason
from fleet_kernel.exceptions import (
    AmountMismatchError,
    PaymentNotFoundError,
    TransitionValidationError,
)

REASON_STATUS: dict[FailureReason, int] = {
    FailureReason.AUTH_FAILURE: 401,
    FailureReason.BAD_REFERENCE: 400,
    FailureReason.VALIDATION: 400,
    FailureReason.NOT_FOUND: 404,
    FailureReason.AMOUNT_MISMATCH: 409,
}

REASON_CODE: dict[FailureReason, str] = {
    FailureReason.AUTH_FAILURE: "INVALID_SIGNATURE",
    FailureReason.BAD_REFERENCE: "INVALID_REFERENCE",
    FailureReason.VALIDATION: TransitionValidationError.code,
    FailureReason.NOT_FOUND: PaymentNotFoundError.code,
    FailureReason.AMOUNT_MISMATCH: AmountMismatchError.code,
}


def error_response(
    reason: FailureReason,
    message: str | None,
    **extra: Any,
) -> JSONResponse:
    """JSON error body ``{error, code, message, ...}`` with the mapped status."""
    body: dict[str, Any] = {
        "error": reason.value,
        "code": REASON_CODE[reason],
        "message": message or reason.value,
    }
    body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=REASON_STATUS[reason], content=body)
