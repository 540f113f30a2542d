"""Earnings aggregation: rewards over a window, priced and ownership-weighted."""

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Protocol

import structlog

from config import OwnershipMode
from ledger_report.services.accounts import AccountConfig
from ledger_report.services.effects import PriceOracle, sum_rewards
from ledger_report.services.errors import (
    AggregationError,
    LedgerApiError,
    OraclePriceUnavailableError,
)
from ledger_report.services.identity import AccountIdentity
from ledger_report.services.schemas import (
    AccountEarnings,
    EarningsResult,
    ReportWindow,
    RewardEntry,
    RewardTransaction,
    RunningTotals,
    SkippedReward,
)

logger = structlog.get_logger(__name__)

_HUNDRED = Decimal(100)


class RewardSource(Protocol):
    def get_rewards(self, address: str, window: ReportWindow) -> list[RewardTransaction]: ...


class EarningsSink(Protocol):
    """What the aggregator needs from a report writer."""

    def write_account(self, earnings: AccountEarnings, window: ReportWindow): ...

    def write_details(self, accounts: list[AccountEarnings], window: ReportWindow): ...

    def write_summary(self, result: EarningsResult): ...


def ownership_weight(fraction: float, mode: OwnershipMode = OwnershipMode.EXACT) -> Decimal:
    """Ownership as a percent.

    ``fraction`` goes through its shortest decimal repr, so 0.29 is 29 percent
    in every mode rather than 28.999...
    """
    percent = Decimal(str(fraction)) * _HUNDRED
    match mode:
        case OwnershipMode.EXACT:
            return percent
        case OwnershipMode.TRUNCATE:
            return percent.to_integral_value(rounding=ROUND_DOWN)
        case OwnershipMode.ROUND:
            return percent.to_integral_value(rounding=ROUND_HALF_UP)
    raise ValueError(f"Unknown ownership mode: {mode!r}")


class EarningsAggregator:
    """Builds per-account and grand earnings totals for a report window.

    Accounts are independent: each one owns its rows and totals, so they can
    be fetched on a thread pool. Results are always consumed, exported and
    merged in configuration order, which keeps every output file
    deterministic whatever ``max_workers`` is.
    """

    def __init__(
        self,
        client: RewardSource,
        prices: PriceOracle,
        ownership_mode: OwnershipMode = OwnershipMode.EXACT,
        dedupe: bool = True,
        max_workers: int = 1,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.client = client
        self.prices = prices
        self.ownership_mode = ownership_mode
        self.dedupe = dedupe
        self.max_workers = max_workers

    # ------------------------------------------------------------------
    # Single account
    # ------------------------------------------------------------------

    def aggregate_account(
        self,
        account: AccountConfig,
        window: ReportWindow,
        identity: AccountIdentity | None = None,
    ) -> AccountEarnings:
        """Fetch, price and weight one account's rewards.

        A reward fetch that fails for good marks the account failed instead of
        raising. A reward whose price lookup fails is skipped on its own.
        """
        identity = identity or account.identity
        earnings = AccountEarnings(account=account)
        log = logger.bind(account=account.label)

        try:
            self._collect(earnings, identity, window)
        except LedgerApiError as e:
            log.exception("Ledger fetch failed, skipping account")
            return AccountEarnings(account=account, error=str(e))

        log.info(
            "Account aggregated",
            rewards=len(earnings.entries),
            skipped=len(earnings.skipped),
            duplicates=earnings.duplicates,
            total_native=str(earnings.totals.total_native),
            total_fiat=str(earnings.totals.total_fiat),
        )
        return earnings

    def _collect(
        self, earnings: AccountEarnings, identity: AccountIdentity, window: ReportWindow
    ) -> None:
        account = earnings.account
        log = logger.bind(account=account.label)
        rewards: list[RewardTransaction] = self.client.get_rewards(identity.to_display(), window)
        weight: Decimal = ownership_weight(account.ownership, self.ownership_mode)
        seen: set[tuple[str, str | None, str | None]] = set()

        for reward in rewards:
            if self.dedupe:
                if reward.dedupe_key in seen:
                    log.warning(
                        "Duplicate reward skipped",
                        hash=reward.hash,
                        gateway=reward.gateway,
                        reward_type=reward.type,
                    )
                    earnings.duplicates += 1
                    continue
                seen.add(reward.dedupe_key)

            # a failed price lookup costs one reward, not the account
            try:
                price: Decimal = self.prices.get_price_at_block(reward.block)
            except OraclePriceUnavailableError as e:
                log.warning("No oracle price, reward skipped", hash=reward.hash, block=e.block)
                earnings.skipped.append(self._skip(account, reward, str(e)))
                continue
            except LedgerApiError as e:
                log.exception("Oracle price fetch failed, reward skipped", hash=reward.hash)
                earnings.skipped.append(self._skip(account, reward, f"price fetch failed: {e}"))
                continue

            entry = self._price_reward(account, reward, weight, price)
            earnings.entries.append(entry)
            earnings.totals.add(entry.native_value, entry.fiat_value)

    @staticmethod
    def _skip(account: AccountConfig, reward: RewardTransaction, reason: str) -> SkippedReward:
        return SkippedReward(
            account_label=account.label,
            pubkey=account.pubkey,
            hash=reward.hash,
            block=reward.block,
            reason=reason,
        )

    def _price_reward(
        self,
        account: AccountConfig,
        reward: RewardTransaction,
        weight: Decimal,
        price: Decimal,
    ) -> RewardEntry:
        raw_amount: Decimal = sum_rewards([reward.amount])
        native_value: Decimal = raw_amount * weight / _HUNDRED
        return RewardEntry(
            account_label=account.label,
            pubkey=account.pubkey,
            timestamp=reward.timestamp,
            hash=reward.hash,
            block=reward.block,
            raw_amount=raw_amount,
            oracle_price=price,
            ownership_weight=weight,
            native_value=native_value,
            fiat_value=native_value * price,
        )

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    def run(
        self,
        accounts: list[AccountConfig],
        window: ReportWindow,
        exporter: EarningsSink | None = None,
        on_account: Callable[[AccountEarnings], None] | None = None,
    ) -> EarningsResult:
        if not accounts:
            raise AggregationError("No accounts to aggregate")

        # a bad pubkey aborts the run before anything is fetched
        identities: list[AccountIdentity] = [a.identity for a in accounts]

        logger.info(
            "Starting earnings run",
            accounts=len(accounts),
            start=window.start.isoformat(),
            end=window.end.isoformat(),
            ownership_mode=self.ownership_mode.value,
            max_workers=self.max_workers,
        )

        grand_totals = RunningTotals()
        results: list[AccountEarnings] = []
        warnings: list[str] = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            # map yields in submission order
            for earnings in pool.map(
                lambda pair: self.aggregate_account(pair[0], window, pair[1]),
                zip(accounts, identities),
            ):
                if earnings.failed:
                    warnings.append(f"{earnings.account.label}: {earnings.error}")
                else:
                    if exporter is not None:
                        earnings.output_path = exporter.write_account(earnings, window)
                    grand_totals.merge(earnings.totals)
                warnings.extend(
                    f"{s.account_label}: skipped {s.hash} at block {s.block}"
                    for s in earnings.skipped
                )
                if earnings.duplicates:
                    warnings.append(
                        f"{earnings.account.label}: {earnings.duplicates} duplicate rewards skipped"
                    )
                results.append(earnings)
                if on_account is not None:
                    on_account(earnings)

        result = EarningsResult(
            window=window,
            accounts=results,
            grand_totals=grand_totals,
            warnings=warnings,
        )
        if exporter is not None:
            result.details_path = exporter.write_details(results, window)
            result.summary_path = exporter.write_summary(result)

        logger.info(
            "Earnings run complete",
            accounts_processed=result.accounts_processed,
            accounts_failed=result.accounts_failed,
            entries_created=result.entries_created,
            rows_skipped=result.rows_skipped,
            total_native=str(grand_totals.total_native),
            total_fiat=str(grand_totals.total_fiat),
        )
        return result
