"""
Bank webhook endpoints.

The POST handler reads the body as raw bytes and hands them to the
WebhookProcessor untouched; the signature is computed over those bytes.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from fleet_api.dependencies import get_processor
from fleet_api.errors import error_response
from fleet_kernel.services.webhook_processor import WebhookProcessor

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

DELIVERY_ID_HEADER = "X-Delivery-Id"


@router.post("/commbank")
async def receive_commbank_payment(
    request: Request,
    processor: WebhookProcessor = Depends(get_processor),
):
    """Apply a signed CommBank payment notification."""
    raw_body = await request.body()
    signature = request.headers.get(request.app.state.signature_header)
    result = await run_in_threadpool(
        processor.process,
        raw_body,
        signature,
        request.headers.get(DELIVERY_ID_HEADER),
    )

    if not result.is_success:
        return error_response(
            result.reason,
            result.message,
            deliveryId=result.delivery_id,
            rentalId=result.rental_id,
            fieldErrors=list(result.field_errors) or None,
        )

    return JSONResponse(
        status_code=200,
        content={
            "status": result.status.value,
            "message": result.message,
            "deliveryId": result.delivery_id,
            "rentalId": result.rental_id,
        },
    )


@router.get("/commbank")
def verify_commbank_endpoint(
    challenge: str | None = None,
    processor: WebhookProcessor = Depends(get_processor),
) -> dict[str, Any]:
    """Liveness check used by the bank when registering the webhook."""
    return processor.verification_response(challenge)
