"""
FleetConfig schema.

Frozen dataclasses describing the runtime configuration of the payment
kernel.  YAML sets are parsed into these types by the loader; callers only
ever see the assembled ``FleetConfig``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WebhookConfig:
    """Inbound bank webhook settings."""

    provider_name: str = "CommBank"
    signature_header: str = "X-CommBank-Signature"
    secret_env: str = "COMMBANK_WEBHOOK_SECRET"
    # Read from the environment variable named by secret_env, never from YAML
    secret: str | None = field(default=None, repr=False)

    @property
    def has_secret(self) -> bool:
        return bool(self.secret)


@dataclass(frozen=True)
class LedgerConfig:
    """Payment ledger policy."""

    amount_tolerance: Decimal | None = Decimal("0.01")  # None disables matching
    grace_period_days: int = 7


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///:memory:"
    echo: bool = False


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FleetConfig:
    """Effective configuration after YAML and environment overrides."""

    config_id: str
    version: str
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""
