"""
Monitor Package
===============

Periodic treasury balance monitoring.

Components:
- orchestrator.py: TreasuryMonitor with scheduling and the cycle
- balances.py: BalanceReader (concurrent balance queries)
- delta.py: display formatting and change detection
- state.py: StateStore (atomic JSON persistence)
- report.py: ReportAggregator (totals, valuation, report fields)
- publisher.py: TelegramPublisher (edit-in-place dashboard)
"""

from .orchestrator import TreasuryMonitor, CycleResult
from .balances import BalanceReader
from .delta import format_amount, display_changed, compute_change, apply_observation
from .state import StateStore, add_account, remove_account
from .report import Report, ReportField, ReportAggregator
from .publisher import TelegramPublisher, PublisherConfig

__all__ = [
    "TreasuryMonitor",
    "CycleResult",
    "BalanceReader",
    "format_amount",
    "display_changed",
    "compute_change",
    "apply_observation",
    "StateStore",
    "add_account",
    "remove_account",
    "Report",
    "ReportField",
    "ReportAggregator",
    "TelegramPublisher",
    "PublisherConfig",
]
