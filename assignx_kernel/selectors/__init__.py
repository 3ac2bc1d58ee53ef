"""Read-only selectors (query side)."""

from assignx_kernel.selectors.ledger_selector import LedgerSelector, ReplayedBalance
from assignx_kernel.selectors.project_selector import ProjectSelector, StatusHistoryInfo

__all__ = [
    "LedgerSelector",
    "ProjectSelector",
    "ReplayedBalance",
    "StatusHistoryInfo",
]
