"""Data models for aggregates, snapshots, tokens, and protocol configuration."""

from decimal import Decimal
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

ZERO = Decimal("0")


class Block(BaseModel):
    """
    Reference to the chain block that triggered an update.

    Attributes
    ----------
    number : int
        Block number
    timestamp : int
        Block timestamp in seconds since epoch

    """

    number: int
    timestamp: int


class Token(BaseModel):
    """
    Token information.

    Attributes
    ----------
    address : str
        Token identifier used for price lookups
    symbol : str
        Token symbol (e.g., 'ETH', 'RPL')
    decimals : int
        Number of decimal places used to scale raw amounts
    name : str, optional
        Full token name

    """

    address: str
    symbol: str
    decimals: int = 18
    name: str | None = None


class ProtocolConfig(BaseModel):
    """
    Static description of the tracked protocol and its tokens.

    Attributes
    ----------
    id : str
        Canonical protocol identifier (the output token address)
    name : str
        Protocol display name
    slug : str
        Short protocol identifier
    network : str
        Chain name
    base_token : Token
        Primary input token (index 1 of the input token balances)
    reward_token : Token
        Secondary reward token (index 0 of the input token balances)
    output_token : Token
        Pool share token

    """

    id: str
    name: str
    slug: str
    network: str = "ethereum"
    base_token: Token
    reward_token: Token
    output_token: Token

    def token(self, token_id: str) -> Token | None:
        """Return the configured token matching ``token_id``, if any."""
        for token in (self.base_token, self.reward_token, self.output_token):
            if token.address.lower() == token_id.lower():
                return token
        return None


class Record(BaseModel):
    """Base class for everything the record store persists."""

    kind: ClassVar[str] = ""

    id: str


class Protocol(Record):
    """
    Protocol-level aggregate (singleton).

    Attributes
    ----------
    total_value_locked_usd : Decimal
        Current TVL across the protocol
    cumulative_total_revenue_usd : Decimal
        All-time total revenue
    cumulative_protocol_side_revenue_usd : Decimal
        All-time revenue retained by the protocol
    cumulative_supply_side_revenue_usd : Decimal
        All-time revenue passed to suppliers

    """

    kind: ClassVar[str] = "protocol"

    name: str = ""
    slug: str = ""
    network: str = ""
    total_value_locked_usd: Decimal = ZERO
    cumulative_total_revenue_usd: Decimal = ZERO
    cumulative_protocol_side_revenue_usd: Decimal = ZERO
    cumulative_supply_side_revenue_usd: Decimal = ZERO


class Pool(Record):
    """
    Liquid staking pool aggregate (singleton per protocol).

    Attributes
    ----------
    input_tokens : list[str]
        ``[reward_token_id, base_token_id]``
    input_token_balances : list[int]
        Raw balances ordered like ``input_tokens``; always two entries, checked
        on load and on assignment
    output_token : str
        Pool share token id
    reward_tokens : list[str]
        Reward token ids; slot order matches the snapshot emission lists
    output_token_supply : int
        Total output token shares
    output_token_price_usd : Decimal | None
        Last output token price, ``None`` until first priced

    """

    kind: ClassVar[str] = "pool"

    model_config = ConfigDict(validate_assignment=True)

    protocol: str
    input_tokens: list[str] = Field(default_factory=list)
    input_token_balances: list[int] = Field(default_factory=lambda: [0, 0])
    output_token: str = ""
    reward_tokens: list[str] = Field(default_factory=list)
    total_value_locked_usd: Decimal = ZERO
    cumulative_total_revenue_usd: Decimal = ZERO
    cumulative_protocol_side_revenue_usd: Decimal = ZERO
    cumulative_supply_side_revenue_usd: Decimal = ZERO
    output_token_supply: int = 0
    output_token_price_usd: Decimal | None = None
    created_block_number: int = 0
    created_timestamp: int = 0

    @field_validator("input_token_balances")
    @classmethod
    def _two_balances(cls, value: list[int]) -> list[int]:
        if len(value) != 2:
            msg = f"input_token_balances must have exactly 2 entries, got {len(value)}"
            raise ValueError(msg)
        return value


class FinancialsDailySnapshot(Record):
    """Protocol-wide financial metrics for one calendar day."""

    kind: ClassVar[str] = "financials_daily_snapshot"

    protocol: str
    total_value_locked_usd: Decimal = ZERO
    daily_total_revenue_usd: Decimal = ZERO
    cumulative_total_revenue_usd: Decimal = ZERO
    daily_protocol_side_revenue_usd: Decimal = ZERO
    cumulative_protocol_side_revenue_usd: Decimal = ZERO
    daily_supply_side_revenue_usd: Decimal = ZERO
    cumulative_supply_side_revenue_usd: Decimal = ZERO
    block_number: int = 0
    timestamp: int = 0


class PoolSnapshotFields(Record):
    """Fields shared by the daily and hourly pool snapshots."""

    protocol: str
    pool: str
    total_value_locked_usd: Decimal = ZERO
    cumulative_total_revenue_usd: Decimal = ZERO
    cumulative_protocol_side_revenue_usd: Decimal = ZERO
    cumulative_supply_side_revenue_usd: Decimal = ZERO
    input_token_balances: list[int] = Field(default_factory=lambda: [0, 0])
    output_token_supply: int = 0
    output_token_price_usd: Decimal | None = None
    staked_output_token_amount: int = 0
    reward_token_emissions_amount: list[int] = Field(default_factory=lambda: [0])
    reward_token_emissions_usd: list[Decimal] = Field(default_factory=lambda: [ZERO])
    block_number: int = 0
    timestamp: int = 0


class PoolDailySnapshot(PoolSnapshotFields):
    """Pool metrics for one calendar day."""

    kind: ClassVar[str] = "pool_daily_snapshot"

    daily_total_revenue_usd: Decimal = ZERO
    daily_protocol_side_revenue_usd: Decimal = ZERO
    daily_supply_side_revenue_usd: Decimal = ZERO


class PoolHourlySnapshot(PoolSnapshotFields):
    """Pool metrics for one hour."""

    kind: ClassVar[str] = "pool_hourly_snapshot"

    hourly_total_revenue_usd: Decimal = ZERO
    hourly_protocol_side_revenue_usd: Decimal = ZERO
    hourly_supply_side_revenue_usd: Decimal = ZERO


RECORD_TYPES: dict[str, type[Record]] = {
    model.kind: model
    for model in (Protocol, Pool, FinancialsDailySnapshot, PoolDailySnapshot, PoolHourlySnapshot)
}
