"""Tests for the ledger-report CLI commands that need no network."""

from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from ledger_report.cli.main import app, parse_day
from ledger_report.services.accounts import AccountConfig
from ledger_report.services.export import ReportExporter
from ledger_report.services.identity import AccountIdentity
from ledger_report.services.schemas import AccountEarnings, ReportWindow, RewardEntry

runner: CliRunner = CliRunner()

PUBKEY: str = AccountIdentity.from_bytes(b"\x01" + b"\x01" * 32).to_display()


class TestParseDay:
    def test_start_of_day(self) -> None:
        assert parse_day("2021-09-24") == datetime(2021, 9, 24, tzinfo=UTC)

    def test_end_of_day(self) -> None:
        assert parse_day("2021-12-21", end_of_day=True) == datetime(
            2021, 12, 21, 23, 59, 59, tzinfo=UTC
        )

    def test_bad_date(self) -> None:
        with pytest.raises(typer.BadParameter):
            parse_day("21/12/2021")


class TestMergeDetailsCommand:
    def test_merges_existing_reports(self, tmp_path: Path) -> None:
        accounts_file: Path = tmp_path / "accounts.toml"
        accounts_file.write_text(
            f'[accounts.pool]\npubkey = "{PUBKEY}"\nownership = 1.0\n', encoding="utf-8"
        )
        window: ReportWindow = ReportWindow(
            parse_day("2021-09-24"), parse_day("2021-12-21", end_of_day=True)
        )
        earnings: AccountEarnings = AccountEarnings(
            account=AccountConfig(label="pool", pubkey=PUBKEY, ownership=1.0)
        )
        earnings.entries.append(
            RewardEntry(
                account_label="pool",
                pubkey=PUBKEY,
                timestamp=datetime(2021, 10, 1, tzinfo=UTC),
                hash="h1",
                block=10,
                raw_amount=Decimal(1),
                oracle_price=Decimal(2),
                ownership_weight=Decimal(100),
                native_value=Decimal(1),
                fiat_value=Decimal(2),
            )
        )
        ReportExporter(tmp_path).write_account(earnings, window)

        result = runner.invoke(
            app,
            [
                "merge-details",
                "--start", "2021-09-24",
                "--end", "2021-12-21",
                "--accounts", str(accounts_file),
                "--output", str(tmp_path),
            ],
        )

        assert result.exit_code == 0, result.output
        assert (tmp_path / f"details_{window.slug}.csv").exists()

    def test_missing_accounts_file(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app,
            [
                "merge-details",
                "--start", "2021-09-24",
                "--end", "2021-12-21",
                "--accounts", str(tmp_path / "absent.toml"),
            ],
        )
        assert result.exit_code == 1

    def test_end_before_start(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["merge-details", "--start", "2021-12-21", "--end", "2021-09-24"]
        )
        assert result.exit_code != 0
