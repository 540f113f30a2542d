"""Economic effect of a single transaction on a single account."""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Protocol, cast

import structlog

from ledger_report.services._helpers import from_smallest_units
from ledger_report.services.identity import AccountIdentity
from ledger_report.services.schemas.transactions import (
    PaymentV1,
    PaymentV2,
    RewardsV1,
    TokenBurnV1,
    TransactionRecord,
    TransactionType,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

REWARDS_COUNTERPARTY: str = "Rewards"
MANY_PAYEES: str = "many_payees"


class PriceOracle(Protocol):
    def get_price_at_block(self, block: int) -> Decimal: ...


@dataclass(frozen=True, slots=True)
class EconomicEffect:
    counterparty: str | None
    native_delta: Decimal
    fee_token_delta: Decimal
    fee: int

    @classmethod
    def zero(cls) -> "EconomicEffect":
        return cls(counterparty=None, native_delta=Decimal(0), fee_token_delta=Decimal(0), fee=0)


class EffectPolicy(str, Enum):
    TRANSFER = "transfer"
    MULTI_TRANSFER = "multi_transfer"
    REWARD = "reward"
    BURN = "burn"
    NULL = "null"


POLICIES: dict[TransactionType, EffectPolicy] = {
    TransactionType.PAYMENT_V1: EffectPolicy.TRANSFER,
    TransactionType.PAYMENT_V2: EffectPolicy.MULTI_TRANSFER,
    TransactionType.REWARDS_V1: EffectPolicy.REWARD,
    TransactionType.REWARDS_V2: EffectPolicy.REWARD,
    TransactionType.TOKEN_BURN_V1: EffectPolicy.BURN,
    TransactionType.ADD_GATEWAY_V1: EffectPolicy.NULL,
    TransactionType.ASSERT_LOCATION_V1: EffectPolicy.NULL,
    TransactionType.BUNDLE_V1: EffectPolicy.NULL,
    TransactionType.COINBASE_V1: EffectPolicy.NULL,
    TransactionType.CONSENSUS_GROUP_V1: EffectPolicy.NULL,
    TransactionType.CREATE_HTLC_V1: EffectPolicy.NULL,
    TransactionType.DC_COINBASE_V1: EffectPolicy.NULL,
    TransactionType.GEN_GATEWAY_V1: EffectPolicy.NULL,
    TransactionType.GEN_PRICE_ORACLE_V1: EffectPolicy.NULL,
    TransactionType.OUI_V1: EffectPolicy.NULL,
    TransactionType.POC_RECEIPTS_V1: EffectPolicy.NULL,
    TransactionType.POC_REQUEST_V1: EffectPolicy.NULL,
    TransactionType.PRICE_ORACLE_V1: EffectPolicy.NULL,
    TransactionType.REDEEM_HTLC_V1: EffectPolicy.NULL,
    TransactionType.ROUTING_V1: EffectPolicy.NULL,
    TransactionType.SECURITY_COINBASE_V1: EffectPolicy.NULL,
    TransactionType.SECURITY_EXCHANGE_V1: EffectPolicy.NULL,
    TransactionType.STATE_CHANNEL_CLOSE_V1: EffectPolicy.NULL,
    TransactionType.STATE_CHANNEL_OPEN_V1: EffectPolicy.NULL,
    TransactionType.TOKEN_BURN_EXCHANGE_RATE_V1: EffectPolicy.NULL,
    TransactionType.TRANSFER_HOTSPOT_V1: EffectPolicy.NULL,
    TransactionType.UPDATE_GATEWAY_OUI_V1: EffectPolicy.NULL,
    TransactionType.VARS_V1: EffectPolicy.NULL,
}

_unmapped = set(TransactionType) - set(POLICIES)
if _unmapped:
    raise RuntimeError(
        "Transaction types without an effect policy: "
        + ", ".join(sorted(t.value for t in _unmapped))
    )


def sum_rewards(amounts: Iterable[int | Decimal]) -> Decimal:
    """Total of reward amounts. Integers are smallest units, Decimals are tokens."""
    total = Decimal(0)
    for amount in amounts:
        total += from_smallest_units(amount) if isinstance(amount, int) else amount
    return total


def _transfer_effect(
    payer: AccountIdentity, payee: AccountIdentity, amount: int, fee: int, account: AccountIdentity
) -> EconomicEffect:
    value = from_smallest_units(amount)
    if account.matches(payer.raw):
        return EconomicEffect(str(payee), -value, Decimal(0), fee)
    if account.matches(payee.raw):
        return EconomicEffect(str(payer), value, Decimal(0), fee)
    return EconomicEffect(None, Decimal(0), Decimal(0), fee)


def _multi_transfer_effect(txn: PaymentV2, account: AccountIdentity) -> EconomicEffect:
    if account.matches(txn.payer.raw):
        counterparty = str(txn.payments[0].payee) if len(txn.payments) == 1 else MANY_PAYEES
        paid = sum((from_smallest_units(p.amount) for p in txn.payments), Decimal(0))
        return EconomicEffect(counterparty, -paid, Decimal(0), txn.fee)

    # a payee may appear more than once
    mine = [p.amount for p in txn.payments if account.matches(p.payee.raw)]
    if not mine:
        return EconomicEffect(None, Decimal(0), Decimal(0), txn.fee)
    received = sum((from_smallest_units(a) for a in mine), Decimal(0))
    return EconomicEffect(str(txn.payer), received, Decimal(0), txn.fee)


def _reward_effect(txn: RewardsV1) -> EconomicEffect:
    # the feed is already filtered to the queried account
    return EconomicEffect(
        REWARDS_COUNTERPARTY, sum_rewards(r.amount for r in txn.rewards), Decimal(0), 0
    )


def _burn_effect(
    txn: TokenBurnV1, account: AccountIdentity, height: int, price_oracle: PriceOracle | None
) -> EconomicEffect:
    transfer = _transfer_effect(txn.payer, txn.payee, txn.amount, txn.fee, account)
    if not account.matches(txn.payee.raw):
        return transfer
    if price_oracle is None:
        raise ValueError("A price oracle is required to resolve token burns")

    price: Decimal = price_oracle.get_price_at_block(height)
    fee_token_delta = from_smallest_units(txn.amount) * price
    logger.debug("Resolved burn to fee tokens", hash=txn.hash, block=height, price=str(price))
    return EconomicEffect(transfer.counterparty, transfer.native_delta, fee_token_delta, txn.fee)


def resolve_effect(
    transaction: TransactionRecord,
    account: AccountIdentity,
    height: int | None = None,
    price_oracle: PriceOracle | None = None,
) -> EconomicEffect:
    """Economic effect of ``transaction`` on ``account``.

    Only token burns paid to ``account`` touch the network (via
    ``price_oracle``); they raise OraclePriceUnavailableError when the oracle
    has no price at ``height``, which defaults to the transaction's own height.
    Nothing here retries.
    """
    at_height = transaction.height if height is None else height
    policy = POLICIES[transaction.transaction_type]

    match policy:
        case EffectPolicy.TRANSFER:
            payment = cast(PaymentV1, transaction)
            return _transfer_effect(
                payment.payer, payment.payee, payment.amount, payment.fee, account
            )
        case EffectPolicy.MULTI_TRANSFER:
            return _multi_transfer_effect(cast(PaymentV2, transaction), account)
        case EffectPolicy.REWARD:
            return _reward_effect(cast(RewardsV1, transaction))
        case EffectPolicy.BURN:
            return _burn_effect(cast(TokenBurnV1, transaction), account, at_height, price_oracle)
        case EffectPolicy.NULL:
            return EconomicEffect.zero()
