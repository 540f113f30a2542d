"""Projection of transactions and their effects into report rows."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

import structlog

from ledger_report.services._helpers import format_decimal, utc_from_epoch
from ledger_report.services.effects import EconomicEffect, PriceOracle, resolve_effect
from ledger_report.services.identity import AccountIdentity
from ledger_report.services.schemas.transactions import (
    REWARD_TYPES,
    TransactionRecord,
)

logger = structlog.get_logger(__name__)

NO_COUNTERPARTY: str = "NA"


class TransactionSource(Protocol):
    def get_transactions(
        self, address: str, filter_types: list[str] | None = None
    ) -> list[TransactionRecord]: ...


@dataclass(frozen=True)
class TransactionRow:
    label: str
    date: str
    block: int
    hash: str
    counterparty: str
    native_delta: Decimal
    fee_token_delta: Decimal
    fee: int

    def as_csv_row(self) -> list[str]:
        return [
            self.label,
            self.date,
            str(self.block),
            self.hash,
            self.counterparty,
            format_decimal(self.native_delta),
            format_decimal(self.fee_token_delta),
            str(self.fee),
        ]


def project(transaction: TransactionRecord, effect: EconomicEffect) -> TransactionRow:
    return TransactionRow(
        label=transaction.transaction_type.label,
        date=utc_from_epoch(transaction.time).isoformat(),
        block=transaction.height,
        hash=transaction.hash,
        counterparty=effect.counterparty or NO_COUNTERPARTY,
        native_delta=effect.native_delta,
        fee_token_delta=effect.fee_token_delta,
        fee=effect.fee,
    )


def build_transaction_report(
    client: TransactionSource,
    account: AccountIdentity,
    prices: PriceOracle | None,
    include_all: bool = False,
) -> list[TransactionRow]:
    """Rows for ``account``'s activity, in the order the ledger returned it.

    Only reward transactions are reported unless ``include_all`` is set.
    """
    filter_types = None if include_all else sorted(t.value for t in REWARD_TYPES)
    transactions = client.get_transactions(account.to_display(), filter_types)

    rows: list[TransactionRow] = []
    for txn in transactions:
        if not include_all and txn.transaction_type not in REWARD_TYPES:
            continue
        rows.append(project(txn, resolve_effect(txn, account, price_oracle=prices)))

    logger.info(
        "Built transaction report",
        account=str(account),
        fetched=len(transactions),
        rows=len(rows),
        include_all=include_all,
    )
    return rows
