"""Transaction records as returned by the ledger API activity feed.

Each variant is keyed by its ``type`` string. Amounts and fees are integer
smallest units; conversion to decimal happens in the effect resolver.
"""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from ledger_report.services.identity import Identity


class TransactionType(str, Enum):
    ADD_GATEWAY_V1 = "add_gateway_v1"
    ASSERT_LOCATION_V1 = "assert_location_v1"
    BUNDLE_V1 = "bundle_v1"
    COINBASE_V1 = "coinbase_v1"
    CONSENSUS_GROUP_V1 = "consensus_group_v1"
    CREATE_HTLC_V1 = "create_htlc_v1"
    DC_COINBASE_V1 = "dc_coinbase_v1"
    GEN_GATEWAY_V1 = "gen_gateway_v1"
    GEN_PRICE_ORACLE_V1 = "gen_price_oracle_v1"
    OUI_V1 = "oui_v1"
    PAYMENT_V1 = "payment_v1"
    PAYMENT_V2 = "payment_v2"
    POC_RECEIPTS_V1 = "poc_receipts_v1"
    POC_REQUEST_V1 = "poc_request_v1"
    PRICE_ORACLE_V1 = "price_oracle_v1"
    REDEEM_HTLC_V1 = "redeem_htlc_v1"
    REWARDS_V1 = "rewards_v1"
    REWARDS_V2 = "rewards_v2"
    ROUTING_V1 = "routing_v1"
    SECURITY_COINBASE_V1 = "security_coinbase_v1"
    SECURITY_EXCHANGE_V1 = "security_exchange_v1"
    STATE_CHANNEL_CLOSE_V1 = "state_channel_close_v1"
    STATE_CHANNEL_OPEN_V1 = "state_channel_open_v1"
    TOKEN_BURN_EXCHANGE_RATE_V1 = "token_burn_exchange_rate_v1"
    TOKEN_BURN_V1 = "token_burn_v1"
    TRANSFER_HOTSPOT_V1 = "transfer_hotspot_v1"
    UPDATE_GATEWAY_OUI_V1 = "update_gateway_oui_v1"
    VARS_V1 = "vars_v1"

    @property
    def label(self) -> str:
        """Report label, e.g. ``payment_v2`` -> ``PaymentV2``."""
        return "".join(part.capitalize() for part in self.value.split("_"))


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    hash: str
    height: int = Field(ge=0)
    time: int = Field(ge=0, description="Block time, epoch seconds")

    @property
    def transaction_type(self) -> TransactionType:
        return TransactionType(self.type)  # type: ignore[attr-defined]


class PaymentV1(_Record):
    type: Literal["payment_v1"]
    payer: Identity
    payee: Identity
    amount: int = Field(ge=0)
    fee: int = Field(default=0, ge=0)


class Payment(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    payee: Identity
    amount: int = Field(ge=0)


class PaymentV2(_Record):
    type: Literal["payment_v2"]
    payer: Identity
    payments: tuple[Payment, ...] = Field(min_length=1)
    fee: int = Field(default=0, ge=0)


class Reward(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    amount: int = Field(ge=0)
    account: str | None = None
    gateway: str | None = None
    type: str | None = None


class RewardsV1(_Record):
    type: Literal["rewards_v1", "rewards_v2"]
    rewards: tuple[Reward, ...] = ()
    start_epoch: int | None = None
    end_epoch: int | None = None


class TokenBurnV1(_Record):
    type: Literal["token_burn_v1"]
    payer: Identity
    payee: Identity
    amount: int = Field(ge=0)
    fee: int = Field(default=0, ge=0)
    memo: int | None = None


class AdministrativeTransaction(_Record):
    """Any variant that moves no native tokens for a holder."""

    type: Literal[
        "add_gateway_v1",
        "assert_location_v1",
        "bundle_v1",
        "coinbase_v1",
        "consensus_group_v1",
        "create_htlc_v1",
        "dc_coinbase_v1",
        "gen_gateway_v1",
        "gen_price_oracle_v1",
        "oui_v1",
        "poc_receipts_v1",
        "poc_request_v1",
        "price_oracle_v1",
        "redeem_htlc_v1",
        "routing_v1",
        "security_coinbase_v1",
        "security_exchange_v1",
        "state_channel_close_v1",
        "state_channel_open_v1",
        "token_burn_exchange_rate_v1",
        "transfer_hotspot_v1",
        "update_gateway_oui_v1",
        "vars_v1",
    ]


TransactionRecord = Annotated[
    Union[PaymentV1, PaymentV2, RewardsV1, TokenBurnV1, AdministrativeTransaction],
    Field(discriminator="type"),
]

REWARD_TYPES: frozenset[TransactionType] = frozenset(
    {TransactionType.REWARDS_V1, TransactionType.REWARDS_V2}
)

_adapter: TypeAdapter[TransactionRecord] = TypeAdapter(TransactionRecord)


def parse_transaction(data: object) -> TransactionRecord:
    """Validate one activity item into its variant. Raises pydantic.ValidationError."""
    return _adapter.validate_python(data)
