"""
Application assembly.

``create_app`` is the composition root: it reads configuration once, builds
the single PaymentLedger and WebhookProcessor for the process, and hangs
them on ``app.state`` for the route dependencies.
"""

from uuid import uuid4

from fastapi import FastAPI, Request

from fleet_api.routes import payments, webhooks
from fleet_config import ConfigurationError, FleetConfig, get_active_config
from fleet_kernel import __version__
from fleet_kernel.db.engine import create_tables, get_session_factory, init_engine_from_url
from fleet_kernel.domain.clock import Clock
from fleet_kernel.logging_config import LogContext, configure_logging, get_logger
from fleet_kernel.services.payment_ledger import PaymentLedger
from fleet_kernel.services.webhook_processor import WebhookProcessor
from fleet_kernel.stores.base import PaymentStore
from fleet_kernel.stores.sql import SqlAlchemyPaymentStore

logger = get_logger("api")

CORRELATION_HEADER = "X-Request-Id"


def _default_store(config: FleetConfig) -> PaymentStore:
    engine = init_engine_from_url(config.database.url, echo=config.database.echo)
    create_tables(engine)
    return SqlAlchemyPaymentStore(get_session_factory())


def create_app(
    config: FleetConfig | None = None,
    *,
    store: PaymentStore | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """
    Build the HTTP application.

    Args:
        config: Effective configuration; loaded via get_active_config()
            when omitted.
        store: Payment store; a SQL store on ``config.database.url`` when
            omitted.
        clock: Clock shared by the ledger and processor.

    Raises:
        ConfigurationError: No webhook secret is configured.
    """
    config = config or get_active_config()
    configure_logging(level=config.logging.level)

    if not config.webhook.has_secret:
        raise ConfigurationError(
            config.webhook.secret_env, "webhook secret is not set"
        )

    ledger = PaymentLedger(
        store if store is not None else _default_store(config),
        clock=clock,
        amount_tolerance=config.ledger.amount_tolerance,
        grace_period_days=config.ledger.grace_period_days,
    )
    processor = WebhookProcessor(
        ledger,
        config.webhook.secret,
        provider_name=config.webhook.provider_name,
        clock=clock,
    )

    app = FastAPI(title="Fleet payments", version=__version__)
    app.state.config = config
    app.state.ledger = ledger
    app.state.processor = processor
    app.state.signature_header = config.webhook.signature_header

    @app.middleware("http")
    async def bind_correlation_id(request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid4())
        with LogContext.bind(correlation_id=correlation_id):
            response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response

    app.include_router(webhooks.router)
    app.include_router(payments.router)

    logger.info(
        "app_created",
        extra={
            "config_id": config.config_id,
            "checksum": config.checksum,
            "webhook_provider": config.webhook.provider_name,
        },
    )
    return app
