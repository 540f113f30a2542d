"""Main CLI entry point."""

from datetime import UTC, date, datetime, time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from config import OwnershipMode

app = typer.Typer(
    name="ledger-report",
    help="Ledger earnings and transaction reports",
    add_completion=False,
)

console = Console()


def parse_day(value: str, end_of_day: bool = False) -> datetime:
    """Parse 'YYYY-MM-DD' into the first (or last) second of that UTC day."""
    try:
        day = date.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Invalid date '{value}'. Expected format: YYYY-MM-DD")
    moment = time(23, 59, 59) if end_of_day else time(0, 0, 0)
    return datetime.combine(day, moment, tzinfo=UTC)


def parse_window(start: str, end: str):
    from ledger_report.services.schemas import ReportWindow

    try:
        return ReportWindow(parse_day(start), parse_day(end, end_of_day=True))
    except ValueError as e:
        raise typer.BadParameter(str(e))


def _load_accounts_or_exit(accounts_file: Path):
    from ledger_report.services.accounts import load_accounts
    from ledger_report.services.errors import AccountConfigError

    try:
        return load_accounts(accounts_file)
    except AccountConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@app.command("init-db")
def init_db(
    force: bool = typer.Option(False, "--force", "-f", help="Drop and recreate tables"),
):
    """Initialize the price cache schema."""
    from db.connection import init_database

    with console.status("Initializing database..."):
        init_database(drop=force)
        if force:
            console.print("[yellow]Dropped existing tables[/yellow]")

    console.print("[green]Database initialized successfully[/green]")


@app.command()
def earnings(
    start: str = typer.Option(..., "--start", "-s", help="First day (YYYY-MM-DD)"),
    end: str = typer.Option(..., "--end", "-e", help="Last day, inclusive (YYYY-MM-DD)"),
    accounts_file: Optional[Path] = typer.Option(
        None, "--accounts", "-a", help="Accounts TOML file"
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
    ownership_mode: Optional[OwnershipMode] = typer.Option(
        None, "--ownership-mode", help="How ownership fractions become percents"
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", min=1, help="Accounts fetched in parallel"
    ),
    unbounded_retry: bool = typer.Option(
        False, "--unbounded-retry", help="Retry failed fetches forever"
    ),
):
    """Earnings of every tracked account over a date window."""
    from config import get_settings
    from db.connection import get_session, init_database
    from ledger_report.services.aggregation import EarningsAggregator
    from ledger_report.services.errors import (
        AggregationError,
        InvalidIdentityError,
        ReportWriteError,
    )
    from ledger_report.services.export import ReportExporter
    from ledger_report.services.ledger_client import LedgerClient
    from ledger_report.services.oracle_price_service import OraclePriceService
    from ledger_report.services.retry import RetryPolicy
    from ledger_report.services.schemas import AccountEarnings

    settings = get_settings()
    window = parse_window(start, end)
    accounts = _load_accounts_or_exit(accounts_file or settings.report.accounts_file)
    retry_policy = (
        RetryPolicy.unbounded() if unbounded_retry else RetryPolicy.from_settings(settings.retry)
    )
    exporter = ReportExporter(output or settings.report.export_dir)

    console.print(
        f"Earnings for {len(accounts)} accounts from {window.start.isoformat()} "
        f"to {window.end.isoformat()}..."
    )

    def show_account(result: AccountEarnings) -> None:
        if result.failed:
            console.print(f"  [red]{result.account.label:28} FAILED[/red]")
            return
        console.print(
            f"  {result.account.label:28} {result.account.pubkey:52} "
            f"{result.totals.total_native:>25f} {result.totals.total_fiat:>25f}"
        )

    init_database()
    with LedgerClient(retry_policy=retry_policy) as client, get_session() as session:
        aggregator = EarningsAggregator(
            client,
            OraclePriceService(session, client),
            ownership_mode=ownership_mode or settings.report.ownership_mode,
            dedupe=settings.report.dedupe,
            max_workers=workers or settings.report.max_workers,
        )
        try:
            result = aggregator.run(accounts, window, exporter=exporter, on_account=show_account)
        except (InvalidIdentityError, AggregationError, ReportWriteError) as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)

    # Display results
    table = Table(title="Earnings Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Accounts Processed", str(result.accounts_processed))
    table.add_row("Accounts Failed", str(result.accounts_failed))
    table.add_row("Rewards Reported", str(result.entries_created))
    table.add_row("Rewards Skipped", str(result.rows_skipped))
    table.add_row("Total Native", f"{result.grand_totals.total_native:f}")
    table.add_row("Total Fiat", f"{result.grand_totals.total_fiat:f}")
    table.add_row("Details", str(result.details_path))
    table.add_row("Summary", str(result.summary_path))

    console.print(table)

    if result.skipped:
        console.print("\n[yellow]Skipped rewards:[/yellow]")
        for skipped in result.skipped[:10]:
            console.print(f"  {skipped.account_label}: {skipped.hash} at block {skipped.block}")
        if len(result.skipped) > 10:
            console.print(f"  ... and {len(result.skipped) - 10} more")

    failed = [a for a in result.accounts if a.failed]
    if failed:
        console.print("\n[red]Failed accounts:[/red]")
        for account in failed:
            console.print(f"  {account.account.label}: {account.error}")
        raise typer.Exit(1)


@app.command()
def transactions(
    address: str = typer.Argument(..., help="Account address"),
    include_all: bool = typer.Option(
        False, "--all", help="Report every transaction, not only rewards"
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
):
    """Per-transaction effects on one account."""
    from config import get_settings
    from db.connection import get_session, init_database
    from ledger_report.services.errors import (
        InvalidIdentityError,
        LedgerApiError,
        ReportWriteError,
    )
    from ledger_report.services.export import ReportExporter
    from ledger_report.services.identity import AccountIdentity
    from ledger_report.services.ledger_client import LedgerClient
    from ledger_report.services.oracle_price_service import OraclePriceService
    from ledger_report.services.projection import build_transaction_report

    settings = get_settings()
    try:
        identity = AccountIdentity.parse(address)
    except InvalidIdentityError as e:
        raise typer.BadParameter(str(e))

    scope = "all transactions" if include_all else "rewards"
    console.print(f"Reporting {scope} for {identity}...")

    init_database()
    with LedgerClient() as client, get_session() as session:
        try:
            rows = build_transaction_report(
                client, identity, OraclePriceService(session, client), include_all=include_all
            )
            path = ReportExporter(output or settings.report.export_dir).write_transactions(
                identity.to_display(), rows
            )
        except (LedgerApiError, ReportWriteError) as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)

    console.print(f"\n[green]Exported to: {path}[/green]")
    console.print(f"Rows: {len(rows)}")


@app.command("merge-details")
def merge_details(
    start: str = typer.Option(..., "--start", "-s", help="First day (YYYY-MM-DD)"),
    end: str = typer.Option(..., "--end", "-e", help="Last day, inclusive (YYYY-MM-DD)"),
    accounts_file: Optional[Path] = typer.Option(
        None, "--accounts", "-a", help="Accounts TOML file"
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Report directory"),
):
    """Rebuild the details report from existing per-account reports."""
    from config import get_settings
    from ledger_report.services.errors import ExportError
    from ledger_report.services.export import ReportExporter

    settings = get_settings()
    window = parse_window(start, end)
    accounts = _load_accounts_or_exit(accounts_file or settings.report.accounts_file)

    try:
        path = ReportExporter(output or settings.report.export_dir).merge_details(accounts, window)
    except ExportError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(f"\n[green]Merged into: {path}[/green]")


if __name__ == "__main__":
    app()
