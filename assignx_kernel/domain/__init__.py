"""
Pure domain layer.

Data transfer objects, quote arithmetic, workflow tables and the clock.
No dependencies on the ORM, the database, or I/O (SystemClock aside).
"""

from assignx_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from assignx_kernel.domain.currency import (
    CurrencyInfo,
    CurrencyRegistry,
    format_minor,
    round_half_up,
    to_minor_units,
)
from assignx_kernel.domain.project_workflow import (
    PROJECT_WORKFLOW,
    ProjectEvent,
    ProjectStatus,
    accepted_events,
)
from assignx_kernel.domain.quote_calculator import (
    QuoteBreakdown,
    QuoteUnit,
    compute_quote,
    urgency_tier_for_deadline,
)
from assignx_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DeterministicClock",
    "Guard",
    "PROJECT_WORKFLOW",
    "ProjectEvent",
    "ProjectStatus",
    "QuoteBreakdown",
    "QuoteUnit",
    "SystemClock",
    "Transition",
    "Workflow",
    "accepted_events",
    "compute_quote",
    "format_minor",
    "round_half_up",
    "to_minor_units",
    "urgency_tier_for_deadline",
]
