"""
Configuration Loader (``fleet_config.loader``).

Responsibility
--------------
Loads a YAML configuration set, applies environment overrides, and parses
the result into the frozen dataclasses of ``fleet_config.schema``.  The
public entry point is ``fleet_config.get_active_config()``; this module is
its implementation.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* The webhook secret is only ever read from the environment.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  effective configuration, with the secret reduced to a presence flag.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range or unparsable values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from fleet_config.schema import (
    DatabaseConfig,
    FleetConfig,
    LedgerConfig,
    LoggingConfig,
    WebhookConfig,
)

ENV_CONFIG_PATH = "FLEET_CONFIG_PATH"
ENV_DATABASE_URL = "DATABASE_URL"
ENV_AMOUNT_TOLERANCE = "FLEET_AMOUNT_TOLERANCE"
ENV_GRACE_PERIOD_DAYS = "FLEET_GRACE_PERIOD_DAYS"
ENV_LOG_LEVEL = "FLEET_LOG_LEVEL"

_DISABLED = frozenset({"none", "off", "disabled"})
_LOG_LEVELS = frozenset(logging.getLevelNamesMapping())


class ConfigurationError(ValueError):
    """Configuration value is missing or invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"{key}: {message}")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def parse_tolerance(value: Any, key: str = "ledger.amount_tolerance") -> Decimal | None:
    """Non-negative Decimal, or None when matching is switched off."""
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in _DISABLED:
        return None
    if isinstance(value, bool):
        raise ConfigurationError(key, f"not a number: {value!r}")
    try:
        tolerance = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ConfigurationError(key, f"not a number: {value!r}") from exc
    if not tolerance.is_finite() or tolerance < 0:
        raise ConfigurationError(key, f"must be a non-negative number: {value!r}")
    return tolerance


def parse_grace_period(value: Any, key: str = "ledger.grace_period_days") -> int:
    if isinstance(value, bool):
        raise ConfigurationError(key, f"not an integer: {value!r}")
    try:
        days = int(str(value).strip())
    except ValueError as exc:
        raise ConfigurationError(key, f"not an integer: {value!r}") from exc
    if days < 0:
        raise ConfigurationError(key, f"must be >= 0: {days}")
    return days


def parse_log_level(value: Any, key: str = "logging.level") -> str:
    level = str(value).strip().upper()
    if level not in _LOG_LEVELS:
        raise ConfigurationError(key, f"unknown log level: {value!r}")
    return level


def parse_webhook(data: Mapping[str, Any], environ: Mapping[str, str]) -> WebhookConfig:
    defaults = WebhookConfig()
    secret_env = str(data.get("secret_env", defaults.secret_env))
    return WebhookConfig(
        provider_name=str(data.get("provider_name", defaults.provider_name)),
        signature_header=str(data.get("signature_header", defaults.signature_header)),
        secret_env=secret_env,
        secret=environ.get(secret_env) or None,
    )


def parse_ledger(data: Mapping[str, Any], environ: Mapping[str, str]) -> LedgerConfig:
    defaults = LedgerConfig()
    tolerance = parse_tolerance(data.get("amount_tolerance", defaults.amount_tolerance))
    if ENV_AMOUNT_TOLERANCE in environ:
        tolerance = parse_tolerance(environ[ENV_AMOUNT_TOLERANCE], ENV_AMOUNT_TOLERANCE)

    grace = parse_grace_period(data.get("grace_period_days", defaults.grace_period_days))
    if ENV_GRACE_PERIOD_DAYS in environ:
        grace = parse_grace_period(environ[ENV_GRACE_PERIOD_DAYS], ENV_GRACE_PERIOD_DAYS)

    return LedgerConfig(amount_tolerance=tolerance, grace_period_days=grace)


def parse_database(data: Mapping[str, Any], environ: Mapping[str, str]) -> DatabaseConfig:
    defaults = DatabaseConfig()
    url = environ.get(ENV_DATABASE_URL) or data.get("url", defaults.url)
    if not url:
        raise ConfigurationError("database.url", "must not be empty")
    return DatabaseConfig(url=str(url), echo=bool(data.get("echo", defaults.echo)))


def parse_logging(data: Mapping[str, Any], environ: Mapping[str, str]) -> LoggingConfig:
    if ENV_LOG_LEVEL in environ:
        return LoggingConfig(level=parse_log_level(environ[ENV_LOG_LEVEL], ENV_LOG_LEVEL))
    return LoggingConfig(level=parse_log_level(data.get("level", LoggingConfig().level)))


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, Mapping):
        raise ConfigurationError(name, "must be a mapping")
    return section


def build_config(data: Mapping[str, Any], environ: Mapping[str, str]) -> FleetConfig:
    """
    Assemble the effective FleetConfig from parsed YAML and an environment.

    Postconditions:
        - ``checksum`` fingerprints every effective value; the secret
          contributes only whether it is set.
    """
    webhook = parse_webhook(_section(data, "webhook"), environ)
    ledger = parse_ledger(_section(data, "ledger"), environ)
    database = parse_database(_section(data, "database"), environ)
    log_config = parse_logging(_section(data, "logging"), environ)

    config = FleetConfig(
        config_id=str(data.get("config_id", "default")),
        version=str(data.get("version", "1")),
        webhook=webhook,
        ledger=ledger,
        database=database,
        logging=log_config,
    )
    return replace(config, checksum=compute_checksum(_fingerprint_data(config)))


def _fingerprint_data(config: FleetConfig) -> dict[str, Any]:
    return {
        "config_id": config.config_id,
        "version": config.version,
        "webhook": {
            "provider_name": config.webhook.provider_name,
            "signature_header": config.webhook.signature_header,
            "secret_env": config.webhook.secret_env,
            "has_secret": config.webhook.has_secret,
        },
        "ledger": {
            "amount_tolerance": config.ledger.amount_tolerance,
            "grace_period_days": config.ledger.grace_period_days,
        },
        "database": {"url": config.database.url, "echo": config.database.echo},
        "logging": {"level": config.logging.level},
    }


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Returns a hex-encoded SHA-256 hash string.
        - Identical ``data`` always produces identical checksums
          (deterministic).
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
