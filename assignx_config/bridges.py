"""
Config -> Kernel bridges.

Convert EngineConfig sections into the policy values the kernel accepts.
These live in assignx_config (the producer) because the kernel must never
import assignx_config.

Usage:
    from assignx_config.bridges import build_lifecycle_policy, build_pricing_policy

    config = get_active_config()
    machine = ProjectStateMachine(
        session,
        policy=build_lifecycle_policy(config),
        pricing=build_pricing_policy(config),
        assignment_policy=build_assignment_policy(config),
    )
"""

from __future__ import annotations

from assignx_config.schema import EngineConfig
from assignx_kernel.domain.dtos import (
    AssignmentPolicy,
    LifecyclePolicy,
    PricingPolicy,
    RankingKey,
)


def build_lifecycle_policy(config: EngineConfig) -> LifecyclePolicy:
    lifecycle = config.lifecycle
    return LifecyclePolicy(
        max_revisions=lifecycle.max_revisions,
        auto_approve_hours=lifecycle.auto_approve_hours,
        auto_deliver_on_qc_approval=lifecycle.auto_deliver_on_qc_approval,
    )


def build_pricing_policy(config: EngineConfig) -> PricingPolicy:
    pricing = config.pricing
    return PricingPolicy(
        rate_per_word=pricing.rate_per_word,
        rate_per_page=pricing.rate_per_page,
        commission_rate=pricing.commission_rate,
        platform_fee_rate=pricing.platform_fee_rate,
        urgency_multipliers=dict(pricing.urgency_multipliers),
        complexity_multipliers=dict(pricing.complexity_multipliers),
    )


def build_assignment_policy(config: EngineConfig) -> AssignmentPolicy:
    return AssignmentPolicy(ranking=tuple(RankingKey(k) for k in config.assignment.ranking))
