"""Ledger-API data transfer objects."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ledger_report.services._helpers import filename_stamp


@dataclass(frozen=True)
class ReportWindow:
    """Inclusive time range ``[start, end]`` of a report."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("Report window bounds must be timezone-aware")
        if self.end < self.start:
            raise ValueError(f"Report window ends before it starts: {self.start} > {self.end}")

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts <= self.end

    @property
    def slug(self) -> str:
        return f"{filename_stamp(self.start)}_{filename_stamp(self.end)}"


@dataclass(frozen=True)
class RewardTransaction:
    """One entry of an account's reward feed, amount in native tokens."""

    timestamp: datetime
    hash: str
    block: int
    amount: Decimal
    gateway: str | None = None
    type: str | None = None

    @property
    def dedupe_key(self) -> tuple[str, str | None, str | None]:
        # one reward transaction can pay the same account for several
        # gateways and reward types
        return (self.hash, self.gateway, self.type)
