"""Request-scoped access to the services assembled by create_app()."""

from fastapi import Request

from fleet_kernel.services.payment_ledger import PaymentLedger
from fleet_kernel.services.webhook_processor import WebhookProcessor


def get_ledger(request: Request) -> PaymentLedger:
    return request.app.state.ledger


def get_processor(request: Request) -> WebhookProcessor:
    return request.app.state.processor
