"""Shared exception hierarchy for ledger report services."""

# ── Identity ──────────────────────────────────────────────────────────────────


class InvalidIdentityError(ValueError):
    """Account identity string or bytes are not a valid encoding."""


# ── Ledger API ────────────────────────────────────────────────────────────────


class LedgerApiError(Exception):
    """Base exception for ledger API errors."""


class TransportError(LedgerApiError):
    """Request failed in transit or the server answered with a transient status."""


class DeserializationError(LedgerApiError):
    """Response body could not be decoded into the expected shape."""


class FetchExhaustedError(LedgerApiError):
    """A fetch kept failing until the retry policy gave up."""


# ── Oracle ────────────────────────────────────────────────────────────────────


class OraclePriceUnavailableError(LedgerApiError):
    """No oracle price exists at or before the requested block."""

    def __init__(self, block: int, detail: str = "") -> None:
        self.block = block
        message = f"No oracle price available at block {block}"
        super().__init__(f"{message}: {detail}" if detail else message)


# ── Configuration ─────────────────────────────────────────────────────────────


class AccountConfigError(Exception):
    """Accounts file is missing or malformed."""


# ── Aggregation ───────────────────────────────────────────────────────────────


class AggregationError(Exception):
    """Base exception for aggregation errors."""


# ── Export ────────────────────────────────────────────────────────────────────


class ExportError(Exception):
    """Base exception for export errors."""


class ReportWriteError(ExportError):
    """A report file could not be written."""
