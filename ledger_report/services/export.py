"""Export service for writing earnings and transaction reports as CSV."""

import csv
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path

import structlog

from ledger_report.services._helpers import filename_stamp, format_decimal
from ledger_report.services.accounts import AccountConfig
from ledger_report.services.errors import ExportError, ReportWriteError
from ledger_report.services.projection import TransactionRow
from ledger_report.services.schemas import (
    AccountEarnings,
    EarningsResult,
    ReportWindow,
    RewardEntry,
)

logger = structlog.get_logger(__name__)

EARNINGS_COLUMNS: list[str] = [
    "pubkey",
    "timestamp",
    "hash",
    "block",
    "amount",
    "oracle_price",
    "ownership",
    "usd_value",
]

SUMMARY_COLUMNS: list[str] = ["label", "pubkey", "total_native", "total_fiat"]

TRANSACTION_COLUMNS: list[str] = [
    "Type",
    "Date",
    "Block",
    "Hash",
    "Counterparty",
    "HNT",
    "DC",
    "Fee",
]


def _entry_row(entry: RewardEntry) -> list[str]:
    # "amount" is the ownership-weighted native value
    return [
        entry.pubkey,
        entry.timestamp.isoformat(),
        entry.hash,
        str(entry.block),
        format_decimal(entry.native_value),
        format_decimal(entry.oracle_price),
        format_decimal(entry.ownership_weight),
        format_decimal(entry.fiat_value),
    ]


class ReportExporter:
    """Writes report CSVs under ``export_dir``.

    Any filesystem failure surfaces as ReportWriteError, which aborts a run:
    a report with a missing file is worse than no report.
    """

    def __init__(self, export_dir: Path | str = "output"):
        self.export_dir = Path(export_dir)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def account_path(self, account: AccountConfig, window: ReportWindow) -> Path:
        # one pubkey may be split across several labels
        return self.export_dir / f"{account.label}_{account.pubkey}_{window.slug}.csv"

    def details_path(self, window: ReportWindow) -> Path:
        return self.export_dir / f"details_{window.slug}.csv"

    def summary_path(self, window: ReportWindow) -> Path:
        return self.export_dir / f"summary_{window.slug}.csv"

    def _write(self, path: Path, rows: Iterable[Sequence[str]]) -> Path:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerows(rows)
        except OSError as e:
            raise ReportWriteError(f"Could not write {path}: {e}") from e
        return path

    # ------------------------------------------------------------------
    # Earnings reports
    # ------------------------------------------------------------------

    def write_account(self, earnings: AccountEarnings, window: ReportWindow) -> Path:
        rows: list[Sequence[str]] = [EARNINGS_COLUMNS]
        rows.extend(_entry_row(e) for e in earnings.entries)
        rows.extend(
            [f"# SKIPPED {s.hash} at block {s.block}: {s.reason}"] for s in earnings.skipped
        )
        # totals row is always last
        totals = earnings.totals
        rows.append(
            [
                "",
                "",
                "",
                "",
                format_decimal(totals.total_native),
                "",
                "",
                format_decimal(totals.total_fiat),
            ]
        )

        path = self._write(self.account_path(earnings.account, window), rows)
        logger.info(
            "Wrote account report",
            account=earnings.account.label,
            path=str(path),
            rows=len(earnings.entries),
        )
        return path

    def write_details(self, accounts: list[AccountEarnings], window: ReportWindow) -> Path:
        rows: list[Sequence[str]] = [EARNINGS_COLUMNS]
        for earnings in accounts:
            rows.extend(_entry_row(e) for e in earnings.entries)

        path = self._write(self.details_path(window), rows)
        logger.info("Wrote details report", path=str(path), rows=len(rows) - 1)
        return path

    def write_summary(self, result: EarningsResult) -> Path:
        rows: list[Sequence[str]] = [SUMMARY_COLUMNS]
        for earnings in result.accounts:
            rows.append(
                [
                    earnings.account.label,
                    earnings.account.pubkey,
                    format_decimal(earnings.totals.total_native),
                    format_decimal(earnings.totals.total_fiat),
                ]
            )
        rows.append(
            [
                "",
                "",
                format_decimal(result.grand_totals.total_native),
                format_decimal(result.grand_totals.total_fiat),
            ]
        )

        path = self._write(self.summary_path(result.window), rows)
        logger.info("Wrote summary report", path=str(path), accounts=len(rows) - 2)
        return path

    # ------------------------------------------------------------------
    # Transaction report
    # ------------------------------------------------------------------

    def write_transactions(
        self,
        address: str,
        rows: list[TransactionRow],
        generated_at: datetime | None = None,
    ) -> Path:
        stamp = filename_stamp(generated_at or datetime.now(UTC))
        path = self._write(
            self.export_dir / f"{address}_{stamp}.csv",
            [TRANSACTION_COLUMNS, *(r.as_csv_row() for r in rows)],
        )
        logger.info("Wrote transaction report", address=address, path=str(path), rows=len(rows))
        return path

    # ------------------------------------------------------------------
    # Offline merge
    # ------------------------------------------------------------------

    def read_account_rows(self, path: Path) -> list[dict[str, str]]:
        """Entry rows of a per-account CSV, without totals or comment rows."""
        try:
            with open(path, newline="", encoding="utf-8") as f:
                reader = csv.reader(f)
                header = next(reader, None)
                if header != EARNINGS_COLUMNS:
                    raise ExportError(f"{path} is not an account earnings report")
                return [
                    dict(zip(header, row))
                    for row in reader
                    if row and not row[0].startswith("#") and row[1]
                ]
        except OSError as e:
            raise ExportError(f"Could not read {path}: {e}") from e

    def merge_details(self, accounts: list[AccountConfig], window: ReportWindow) -> Path:
        """Rebuild the details CSV from per-account files already on disk."""
        rows: list[Sequence[str]] = [EARNINGS_COLUMNS]
        for account in accounts:
            logger.info("Importing account report", account=account.label)
            for record in self.read_account_rows(self.account_path(account, window)):
                rows.append([record[c] for c in EARNINGS_COLUMNS])

        path = self._write(self.details_path(window), rows)
        logger.info("Merged details report", path=str(path), rows=len(rows) - 1)
        return path
