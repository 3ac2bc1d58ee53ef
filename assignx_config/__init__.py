"""
assignx_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the only way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables.  Returns a frozen ``EngineConfig``.

Architecture position:
    Configuration.  Sits above ``assignx_kernel`` and below
    ``assignx_services``.  The kernel never imports from this package;
    ``assignx_config.bridges`` converts sections into kernel policy values.

Failure modes:
    - ``FileNotFoundError`` -- the requested override file does not exist.
    - ``ConfigurationError`` -- a value failed validation.

Audit relevance:
    Every successful load emits an ``ASSIGNX_CONFIG_TRACE`` log entry with
    the config id, version, checksum and source path.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from assignx_config.loader import load_config_file
from assignx_config.schema import (
    AssignmentConfig,
    AutoApprovalConfig,
    EngineConfig,
    LifecycleConfig,
    PayoutConfig,
    PricingConfig,
)

_logger = logging.getLogger("assignx_kernel.config")

CONFIG_ENV_VAR = "ASSIGNX_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> EngineConfig:
    """The only public configuration entrypoint.

    Resolution order: the explicit ``path`` argument, then the file named by
    the ``ASSIGNX_CONFIG`` environment variable, then the packaged
    ``defaults.yaml``.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    source = Path(path)
    config = load_config_file(source)

    _logger.info(
        "ASSIGNX_CONFIG_TRACE",
        extra={
            "trace_type": "ASSIGNX_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(source),
        },
    )
    return config


__all__ = [
    "AssignmentConfig",
    "AutoApprovalConfig",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "EngineConfig",
    "LifecycleConfig",
    "PayoutConfig",
    "PricingConfig",
    "get_active_config",
]
