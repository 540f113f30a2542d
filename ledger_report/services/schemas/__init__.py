"""Shared dataclasses for ledger report services."""

from ledger_report.services.schemas.ledger import ReportWindow, RewardTransaction
from ledger_report.services.schemas.results import (
    AccountEarnings,
    EarningsResult,
    RewardEntry,
    RunningTotals,
    SkippedReward,
)

__all__ = [
    # Ledger schemas
    "ReportWindow",
    "RewardTransaction",
    # Result schemas
    "AccountEarnings",
    "EarningsResult",
    "RewardEntry",
    "RunningTotals",
    "SkippedReward",
]
