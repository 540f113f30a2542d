"""Shared utilities for the service layer."""

from datetime import UTC, datetime
from decimal import Decimal

# Native-token amounts travel as integers of 1e-8 units ("bones").
SMALLEST_UNITS_PER_TOKEN: Decimal = Decimal(100_000_000)

# Oracle prices are integers of 1e-8 fiat.
ORACLE_PRICE_SCALE: Decimal = Decimal(100_000_000)

FILENAME_TIME_FORMAT: str = "%Y-%m-%dT%H-%M-%S"


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


def from_smallest_units(amount: int) -> Decimal:
    return Decimal(amount) / SMALLEST_UNITS_PER_TOKEN


def oracle_price_from_units(raw: int) -> Decimal:
    return Decimal(raw) / ORACLE_PRICE_SCALE


def utc_from_epoch(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=UTC)


def filename_stamp(ts: datetime) -> str:
    return ts.astimezone(UTC).strftime(FILENAME_TIME_FORMAT)


def format_decimal(value: Decimal) -> str:
    """Plain notation for report cells (never ``1E-8``)."""
    return f"{value:f}"
