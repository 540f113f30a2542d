"""Result dataclasses returned by service operations."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from ledger_report.services.accounts import AccountConfig
from ledger_report.services.schemas.ledger import ReportWindow


@dataclass(frozen=True)
class RewardEntry:
    account_label: str
    pubkey: str
    timestamp: datetime
    hash: str
    block: int
    raw_amount: Decimal
    oracle_price: Decimal
    ownership_weight: Decimal  # percent
    native_value: Decimal
    fiat_value: Decimal


@dataclass(frozen=True)
class SkippedReward:
    account_label: str
    pubkey: str
    hash: str
    block: int
    reason: str


@dataclass
class RunningTotals:
    total_native: Decimal = Decimal(0)
    total_fiat: Decimal = Decimal(0)

    def add(self, native: Decimal, fiat: Decimal) -> None:
        self.total_native += native
        self.total_fiat += fiat

    def merge(self, other: "RunningTotals") -> None:
        self.add(other.total_native, other.total_fiat)


@dataclass
class AccountEarnings:
    account: AccountConfig
    entries: list[RewardEntry] = field(default_factory=list)
    totals: RunningTotals = field(default_factory=RunningTotals)
    skipped: list[SkippedReward] = field(default_factory=list)
    duplicates: int = 0
    error: str | None = None
    output_path: Path | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class EarningsResult:
    window: ReportWindow
    accounts: list[AccountEarnings]
    grand_totals: RunningTotals
    warnings: list[str]
    details_path: Path | None = None
    summary_path: Path | None = None

    @property
    def accounts_processed(self) -> int:
        return sum(1 for a in self.accounts if not a.failed)

    @property
    def accounts_failed(self) -> int:
        return sum(1 for a in self.accounts if a.failed)

    @property
    def entries_created(self) -> int:
        return sum(len(a.entries) for a in self.accounts)

    @property
    def rows_skipped(self) -> int:
        return sum(len(a.skipped) for a in self.accounts)

    @property
    def skipped(self) -> list[SkippedReward]:
        return [s for a in self.accounts for s in a.skipped]
