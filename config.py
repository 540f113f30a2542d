"""Application settings: single file, Pydantic-based.

DB selection (price cache):
  - DATABASE_URL set and non-empty -> that database (PostgreSQL in production)
  - DATABASE_URL absent/empty -> SQLite (DB_SQLITE_PATH, default data/ledger_report.db)
"""

import re
from enum import Enum
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _project_root() -> Path:
    """Project root. config.py lives at the root."""
    return Path(__file__).resolve().parent


def _ensure_env_loaded() -> None:
    """Load .env from the project root (then its parent). Idempotent."""
    root: Path = _project_root()
    for candidate in (root / ".env", root.parent / ".env"):
        if candidate.exists():
            load_dotenv(candidate, override=False)


_ensure_env_loaded()


class OwnershipMode(str, Enum):
    """How an account's ownership fraction is applied to its rewards."""

    EXACT = "exact"
    TRUNCATE = "truncate"  # whole percent, fraction dropped
    ROUND = "round"  # whole percent, half-up


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=(str(_project_root() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy DSN; when set, the price cache lives there.",
        validation_alias="DATABASE_URL",
    )
    sqlite_path: str | None = Field(default="data/ledger_report.db")

    def _use_external(self) -> bool:
        return bool((self.database_url or "").strip())

    def _resolved_sqlite_path(self) -> Path:
        raw: str = (self.sqlite_path or "data/ledger_report.db").strip()
        path: Path = Path(raw)
        if not path.is_absolute():
            path = (_project_root() / path).resolve()
        return path

    def _redacted_dsn(self) -> str:
        url: str = (self.database_url or "").strip()
        return re.sub(r":([^:@]+)@", r":***@", url) if url else ""

    @property
    def url(self) -> str:
        if self._use_external():
            return (self.database_url or "").strip()
        path = self._resolved_sqlite_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{path.as_posix()}"

    def db_info_for_logging(self) -> str:
        if self._use_external():
            return f"External DB @ {self._redacted_dsn()}"
        return f"SQLite @ {self._resolved_sqlite_path().as_posix()}"


class LedgerApiSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LEDGER_API_",
        env_file=(str(_project_root() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(default="https://api.helium.io/v1/")
    user_agent: str = Field(default="ledger-report/0.3.0")
    timeout: float = Field(default=30.0, description="Per-request timeout in seconds")


class RetrySettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RETRY_",
        env_file=(str(_project_root() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_attempts: int = Field(default=8, ge=1)
    base_delay: float = Field(default=1.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1)
    max_delay: float = Field(default=30.0, ge=0)
    deadline: float | None = Field(
        default=600.0, description="Seconds before a single fetch gives up; None for no deadline"
    )
    unbounded: bool = Field(
        default=False, description="Retry forever without delay (historical behaviour)"
    )


class ReportSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="REPORT_",
        env_file=(str(_project_root() / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    accounts_file: Path = Field(default=Path("accounts.toml"))
    export_dir: Path = Field(default=Path("output"))
    ownership_mode: OwnershipMode = Field(default=OwnershipMode.EXACT)
    max_workers: int = Field(default=1, ge=1)
    dedupe: bool = Field(default=True, description="Skip repeated reward entries within an account")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LEDGER_REPORT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    environment: str = Field(default="development")
    debug: bool = Field(default=False)

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    ledger_api: LedgerApiSettings = Field(default_factory=LedgerApiSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    report: ReportSettings = Field(default_factory=ReportSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()
