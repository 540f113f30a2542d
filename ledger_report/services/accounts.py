"""Tracked-account configuration loaded from a TOML file.

Expected layout, one table per account, in report order::

    [accounts.hotspot-pool]
    pubkey = "13...."
    ownership = 0.5
"""

import tomllib
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ledger_report.services.errors import AccountConfigError
from ledger_report.services.identity import AccountIdentity

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class AccountConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str = Field(min_length=1)
    pubkey: str = Field(min_length=1)
    ownership: float = Field(ge=0.0, le=1.0)

    @property
    def identity(self) -> AccountIdentity:
        """Parsed pubkey. Raises InvalidIdentityError."""
        return AccountIdentity.parse(self.pubkey)


def parse_accounts(data: dict[str, object]) -> list[AccountConfig]:
    """Build configs from the decoded TOML document, keeping table order."""
    raw_accounts: object = data.get("accounts")
    if not isinstance(raw_accounts, dict) or not raw_accounts:
        raise AccountConfigError("No [accounts.<label>] tables found")

    accounts: list[AccountConfig] = []
    for label, body in raw_accounts.items():
        if not isinstance(body, dict):
            raise AccountConfigError(f"Account {label!r} must be a table")
        try:
            accounts.append(AccountConfig(label=label, **body))
        except (TypeError, ValidationError) as e:
            raise AccountConfigError(f"Account {label!r} is invalid: {e}") from e
    return accounts


def load_accounts(path: Path) -> list[AccountConfig]:
    try:
        with open(path, "rb") as f:
            data: dict[str, object] = tomllib.load(f)
    except FileNotFoundError as e:
        raise AccountConfigError(f"Accounts file not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise AccountConfigError(f"Accounts file {path} is not valid TOML: {e}") from e

    accounts = parse_accounts(data)
    logger.info("Loaded accounts", path=str(path), count=len(accounts))
    return accounts
