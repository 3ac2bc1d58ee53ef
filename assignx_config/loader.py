"""
Configuration Loader (``assignx_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``assignx_config.schema``, validating every value on the way.  Runtime
code goes through ``assignx_config.get_active_config()`` rather than
calling this module directly.

Invariants enforced
-------------------
* Rates and multipliers become ``Decimal`` via their string form, so a YAML
  float such as ``0.15`` never leaks binary rounding into pricing.
* Every violation raises ``ConfigurationError(field, reason)``; nothing is
  silently defaulted when present but invalid.
* ``compute_checksum`` is deterministic for the same parsed content.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from assignx_config.schema import (
    AssignmentConfig,
    AutoApprovalConfig,
    EngineConfig,
    LifecycleConfig,
    PayoutConfig,
    PricingConfig,
)
from assignx_kernel.domain.currency import CurrencyRegistry
from assignx_kernel.domain.dtos import RankingKey
from assignx_kernel.domain.quote_calculator import (
    DEFAULT_COMPLEXITY_MULTIPLIERS,
    DEFAULT_URGENCY_MULTIPLIERS,
)
from assignx_kernel.exceptions import ConfigurationError


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


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_decimal(value: Any, field_name: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ConfigurationError(field_name, f"expected a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(field_name, f"expected a number, got {value!r}") from None
    if not result.is_finite():
        raise ConfigurationError(field_name, "must be finite")
    return result


def parse_int(value: Any, field_name: str, *, minimum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(field_name, f"expected an integer, got {value!r}")
    if minimum is not None and value < minimum:
        raise ConfigurationError(field_name, f"must be >= {minimum}, got {value}")
    return value


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(name, "section must be a mapping")
    return section


def _multipliers(
    raw: Any, field_name: str, defaults: dict[str, Decimal]
) -> dict[str, Decimal]:
    if raw is None:
        return dict(defaults)
    if not isinstance(raw, dict) or not raw:
        raise ConfigurationError(field_name, "must be a non-empty mapping")
    parsed = {}
    for tier, value in raw.items():
        multiplier = parse_decimal(value, f"{field_name}.{tier}")
        if multiplier <= 0:
            raise ConfigurationError(f"{field_name}.{tier}", "multiplier must be positive")
        parsed[str(tier)] = multiplier
    return parsed


def parse_pricing(data: dict[str, Any]) -> PricingConfig:
    defaults = PricingConfig()
    currency = str(data.get("currency", defaults.currency))
    if not CurrencyRegistry.is_supported(currency):
        raise ConfigurationError("pricing.currency", f"unsupported currency {currency!r}")

    rate_per_word = parse_decimal(data.get("rate_per_word", defaults.rate_per_word), "pricing.rate_per_word")
    rate_per_page = parse_decimal(data.get("rate_per_page", defaults.rate_per_page), "pricing.rate_per_page")
    for name, rate in (("rate_per_word", rate_per_word), ("rate_per_page", rate_per_page)):
        if rate <= 0:
            raise ConfigurationError(f"pricing.{name}", "must be positive")

    commission = parse_decimal(
        data.get("commission_rate", defaults.commission_rate), "pricing.commission_rate"
    )
    platform_fee = parse_decimal(
        data.get("platform_fee_rate", defaults.platform_fee_rate), "pricing.platform_fee_rate"
    )
    if commission < 0 or platform_fee < 0:
        raise ConfigurationError("pricing", "commission and platform fee rates must be >= 0")
    if commission + platform_fee > 1:
        raise ConfigurationError("pricing", "commission_rate + platform_fee_rate must not exceed 1")

    return PricingConfig(
        currency=currency,
        rate_per_word=rate_per_word,
        rate_per_page=rate_per_page,
        commission_rate=commission,
        platform_fee_rate=platform_fee,
        urgency_multipliers=_multipliers(
            data.get("urgency_multipliers"), "pricing.urgency_multipliers",
            dict(DEFAULT_URGENCY_MULTIPLIERS),
        ),
        complexity_multipliers=_multipliers(
            data.get("complexity_multipliers"), "pricing.complexity_multipliers",
            dict(DEFAULT_COMPLEXITY_MULTIPLIERS),
        ),
    )


def parse_lifecycle(data: dict[str, Any]) -> LifecycleConfig:
    defaults = LifecycleConfig()
    auto_deliver = data.get("auto_deliver_on_qc_approval", defaults.auto_deliver_on_qc_approval)
    if not isinstance(auto_deliver, bool):
        raise ConfigurationError("lifecycle.auto_deliver_on_qc_approval", "must be true or false")
    return LifecycleConfig(
        max_revisions=parse_int(
            data.get("max_revisions", defaults.max_revisions), "lifecycle.max_revisions", minimum=0
        ),
        auto_approve_hours=parse_int(
            data.get("auto_approve_hours", defaults.auto_approve_hours),
            "lifecycle.auto_approve_hours",
            minimum=1,
        ),
        auto_deliver_on_qc_approval=auto_deliver,
    )


def parse_assignment(data: dict[str, Any]) -> AssignmentConfig:
    ranking = data.get("ranking", list(AssignmentConfig().ranking))
    if not isinstance(ranking, list) or not ranking:
        raise ConfigurationError("assignment.ranking", "must be a non-empty list")
    known = {k.value for k in RankingKey}
    for key in ranking:
        if key not in known:
            raise ConfigurationError(
                "assignment.ranking", f"unknown ranking key {key!r}; expected one of {sorted(known)}"
            )
    if len(set(ranking)) != len(ranking):
        raise ConfigurationError("assignment.ranking", "duplicate ranking keys")
    return AssignmentConfig(ranking=tuple(ranking))


def parse_payout(data: dict[str, Any]) -> PayoutConfig:
    return PayoutConfig(
        minimum_payout=parse_int(
            data.get("minimum_payout", PayoutConfig().minimum_payout),
            "payout.minimum_payout",
            minimum=1,
        )
    )


def parse_auto_approval(data: dict[str, Any]) -> AutoApprovalConfig:
    return AutoApprovalConfig(
        batch_size=parse_int(
            data.get("batch_size", AutoApprovalConfig().batch_size),
            "auto_approval.batch_size",
            minimum=1,
        )
    )


def parse_engine_config(data: dict[str, Any]) -> EngineConfig:
    """Parse and validate a whole configuration document."""
    return EngineConfig(
        config_id=str(data.get("config_id", "assignx-default")),
        version=parse_int(data.get("version", 1), "version", minimum=1),
        pricing=parse_pricing(_section(data, "pricing")),
        lifecycle=parse_lifecycle(_section(data, "lifecycle")),
        assignment=parse_assignment(_section(data, "assignment")),
        payout=parse_payout(_section(data, "payout")),
        auto_approval=parse_auto_approval(_section(data, "auto_approval")),
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> EngineConfig:
    return parse_engine_config(load_yaml_file(path))
