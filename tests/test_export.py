"""Tests for ledger_report.services.export."""

import csv
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

import pytest

from ledger_report.services.accounts import AccountConfig
from ledger_report.services.errors import ExportError, ReportWriteError
from ledger_report.services.export import EARNINGS_COLUMNS, ReportExporter
from ledger_report.services.identity import AccountIdentity
from ledger_report.services.projection import TransactionRow
from ledger_report.services.schemas import (
    AccountEarnings,
    EarningsResult,
    ReportWindow,
    RewardEntry,
    RunningTotals,
    SkippedReward,
)

WINDOW: ReportWindow = ReportWindow(
    datetime(2021, 9, 24, tzinfo=UTC), datetime(2021, 12, 21, 23, 59, 59, tzinfo=UTC)
)


def _account(label: str, n: int) -> AccountConfig:
    pubkey: str = AccountIdentity.from_bytes(b"\x01" + bytes([n]) * 32).to_display()
    return AccountConfig(label=label, pubkey=pubkey, ownership=0.5)


def _earnings(account: AccountConfig, *amounts: str) -> AccountEarnings:
    earnings: AccountEarnings = AccountEarnings(account=account)
    for i, amount in enumerate(amounts):
        native: Decimal = Decimal(amount) / 2
        entry: RewardEntry = RewardEntry(
            account_label=account.label,
            pubkey=account.pubkey,
            timestamp=datetime(2021, 10, 1, 12, i, tzinfo=UTC),
            hash=f"{account.label}-h{i}",
            block=1_000 + i,
            raw_amount=Decimal(amount),
            oracle_price=Decimal("12.5"),
            ownership_weight=Decimal(50),
            native_value=native,
            fiat_value=native * Decimal("12.5"),
        )
        earnings.entries.append(entry)
        earnings.totals.add(entry.native_value, entry.fiat_value)
    return earnings


def _read(path: Path) -> list[list[str]]:
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


class TestWriteAccount:
    def test_layout(self, tmp_path: Path) -> None:
        account: AccountConfig = _account("pool", 1)
        earnings: AccountEarnings = _earnings(account, "10", "4")
        earnings.skipped.append(
            SkippedReward("pool", account.pubkey, "missing", 1_500, "No oracle price available")
        )
        path: Path = ReportExporter(tmp_path / "out").write_account(earnings, WINDOW)

        assert path.name == f"pool_{account.pubkey}_2021-09-24T00-00-00_2021-12-21T23-59-59.csv"
        rows: list[list[str]] = _read(path)
        assert rows[0] == EARNINGS_COLUMNS
        assert rows[1] == [
            account.pubkey,
            "2021-10-01T12:00:00+00:00",
            "pool-h0",
            "1000",
            "5",
            "12.5",
            "50",
            "62.5",
        ]
        assert rows[3][0].startswith("# SKIPPED missing at block 1500")
        assert rows[-1] == ["", "", "", "", "7", "", "", "87.5"]

    def test_write_failure(self, tmp_path: Path) -> None:
        blocker: Path = tmp_path / "blocker"
        blocker.write_text("not a directory")
        earnings: AccountEarnings = _earnings(_account("pool", 1), "1")
        with pytest.raises(ReportWriteError):
            ReportExporter(blocker).write_account(earnings, WINDOW)


class TestDetailsAndSummary:
    def test_details_keeps_account_order(self, tmp_path: Path) -> None:
        accounts: list[AccountEarnings] = [
            _earnings(_account("b", 2), "1", "2"),
            _earnings(_account("a", 1), "3"),
        ]
        path: Path = ReportExporter(tmp_path).write_details(accounts, WINDOW)

        rows: list[list[str]] = _read(path)
        assert path.name.startswith("details_")
        assert [r[2] for r in rows[1:]] == ["b-h0", "b-h1", "a-h0"]

    def test_summary_grand_row(self, tmp_path: Path) -> None:
        first: AccountEarnings = _earnings(_account("first", 1), "2")
        second: AccountEarnings = _earnings(_account("second", 2), "6")
        grand: RunningTotals = RunningTotals()
        grand.merge(first.totals)
        grand.merge(second.totals)
        result: EarningsResult = EarningsResult(
            window=WINDOW, accounts=[first, second], grand_totals=grand, warnings=[]
        )
        rows: list[list[str]] = _read(ReportExporter(tmp_path).write_summary(result))

        assert rows[0] == ["label", "pubkey", "total_native", "total_fiat"]
        assert rows[1][0] == "first"
        assert rows[2][2:] == ["3", "37.5"]
        assert rows[-1] == ["", "", "4", "50.0"]


class TestMergeDetails:
    def test_rebuilds_from_account_files(self, tmp_path: Path) -> None:
        exporter: ReportExporter = ReportExporter(tmp_path)
        first: AccountEarnings = _earnings(_account("first", 1), "2", "4")
        second: AccountEarnings = _earnings(_account("second", 2), "6")
        first.skipped.append(SkippedReward("first", first.account.pubkey, "x", 9, "gone"))
        exporter.write_account(first, WINDOW)
        exporter.write_account(second, WINDOW)

        path: Path = exporter.merge_details([first.account, second.account], WINDOW)
        rows: list[list[str]] = _read(path)
        assert [r[2] for r in rows[1:]] == ["first-h0", "first-h1", "second-h0"]

        direct: Path = exporter.write_details([first, second], WINDOW)
        assert _read(direct) == rows

    def test_shared_pubkey_keeps_one_file_per_label(self, tmp_path: Path) -> None:
        exporter: ReportExporter = ReportExporter(tmp_path)
        pubkey: str = _account("x", 1).pubkey
        alice: AccountEarnings = _earnings(
            AccountConfig(label="alice", pubkey=pubkey, ownership=0.6), "120"
        )
        bob: AccountEarnings = _earnings(
            AccountConfig(label="bob", pubkey=pubkey, ownership=0.4), "80"
        )
        alice_path: Path = exporter.write_account(alice, WINDOW)
        bob_path: Path = exporter.write_account(bob, WINDOW)

        assert alice_path != bob_path
        assert _read(alice_path)[1][4] == "60"
        assert _read(bob_path)[1][4] == "40"

        merged_path: Path = exporter.merge_details([alice.account, bob.account], WINDOW)
        merged: list[list[str]] = _read(merged_path)
        assert [r[2] for r in merged[1:]] == ["alice-h0", "bob-h0"]
        assert sum(Decimal(r[4]) for r in merged[1:]) == Decimal(100)

    def test_read_drops_totals_and_comments(self, tmp_path: Path) -> None:
        exporter: ReportExporter = ReportExporter(tmp_path)
        earnings: AccountEarnings = _earnings(_account("pool", 1), "2")
        earnings.skipped.append(SkippedReward("pool", earnings.account.pubkey, "x", 9, "gone"))
        path: Path = exporter.write_account(earnings, WINDOW)

        records: list[dict[str, str]] = exporter.read_account_rows(path)
        assert len(records) == 1
        assert records[0]["hash"] == "pool-h0"

    def test_missing_account_file(self, tmp_path: Path) -> None:
        with pytest.raises(ExportError):
            ReportExporter(tmp_path).merge_details([_account("pool", 1)], WINDOW)

    def test_not_an_earnings_report(self, tmp_path: Path) -> None:
        path: Path = tmp_path / "other.csv"
        path.write_text("a,b,c\n1,2,3\n")
        with pytest.raises(ExportError):
            ReportExporter(tmp_path).read_account_rows(path)


class TestWriteTransactions:
    def test_layout(self, tmp_path: Path) -> None:
        row: TransactionRow = TransactionRow(
            label="RewardsV2",
            date="2021-10-01T00:00:00+00:00",
            block=1_000,
            hash="r1",
            counterparty="Rewards",
            native_delta=Decimal("0.5"),
            fee_token_delta=Decimal(0),
            fee=0,
        )
        path: Path = ReportExporter(tmp_path).write_transactions(
            "addr", [row], generated_at=datetime(2021, 12, 1, 8, 30, tzinfo=UTC)
        )

        assert path.name == "addr_2021-12-01T08-30-00.csv"
        rows: list[list[str]] = _read(path)
        assert rows[0] == ["Type", "Date", "Block", "Hash", "Counterparty", "HNT", "DC", "Fee"]
        assert rows[1] == [
            "RewardsV2",
            "2021-10-01T00:00:00+00:00",
            "1000",
            "r1",
            "Rewards",
            "0.5",
            "0",
            "0",
        ]
