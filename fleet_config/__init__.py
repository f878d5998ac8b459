"""
fleet_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly; the kernel receives plain values
    (tolerance, grace period, secret) from whoever assembles it.

Architecture position:
    Configuration -- sits beside ``fleet_kernel`` and below ``fleet_api``.
    The kernel MUST NEVER import from ``fleet_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Deterministic checksum: the same YAML and environment always produce
      the same ``FleetConfig.checksum``.
    - The webhook secret never comes from a file.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ConfigurationError`` (a ``ValueError``) -- invalid values.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``FLEET_CONFIG_TRACE`` log entry with the config id, version, checksum
    and whether a webhook secret is present (never the secret itself).
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from fleet_config.loader import (
    ENV_CONFIG_PATH,
    ConfigurationError,
    build_config,
    compute_checksum,
    load_yaml_file,
)
from fleet_config.schema import (
    DatabaseConfig,
    FleetConfig,
    LedgerConfig,
    LoggingConfig,
    WebhookConfig,
)

_logger = logging.getLogger("fleet_kernel.config")

# Default configuration set
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

__all__ = [
    "ConfigurationError",
    "DEFAULT_CONFIG_PATH",
    "DatabaseConfig",
    "FleetConfig",
    "LedgerConfig",
    "LoggingConfig",
    "WebhookConfig",
    "compute_checksum",
    "get_active_config",
]


def get_active_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> FleetConfig:
    """The ONLY public configuration entrypoint.

    Resolution order for the YAML file: ``config_path`` argument, then the
    ``FLEET_CONFIG_PATH`` environment variable, then the packaged default
    set.  Environment overrides are applied on top of the YAML values.

    Args:
        config_path: Explicit YAML file.
        environ: Environment mapping; defaults to ``os.environ``.  Tests
            pass a plain dict.

    Returns:
        Frozen FleetConfig.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        ConfigurationError: If a value is invalid.
    """
    env = os.environ if environ is None else environ
    path = Path(config_path or env.get(ENV_CONFIG_PATH) or DEFAULT_CONFIG_PATH)

    config = build_config(load_yaml_file(path), env)

    _logger.info(
        "FLEET_CONFIG_TRACE",
        extra={
            "trace_type": "FLEET_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
            "webhook_provider": config.webhook.provider_name,
            "webhook_secret_present": config.webhook.has_secret,
            "amount_tolerance": config.ledger.amount_tolerance,
            "grace_period_days": config.ledger.grace_period_days,
        },
    )

    return config
