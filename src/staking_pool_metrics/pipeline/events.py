"""Decoded pipeline events and their YAML loaders."""

from decimal import Decimal
from pathlib import Path
from typing import Annotated, Literal

import yaml
from pydantic import BaseModel, Field, TypeAdapter

from staking_pool_metrics.core.models import Block


class DepositEvent(BaseModel):
    """
    Tokens deposited into the pool.

    Attributes
    ----------
    block : Block
        Block the event was emitted in
    base_amount : int
        Raw base token amount deposited
    reward_amount : int
        Raw reward token amount deposited

    """

    type: Literal["deposit"] = "deposit"
    block: Block
    base_amount: int
    reward_amount: int = 0


class RewardsEvent(BaseModel):
    """
    Periodic rewards report with revenue and emission figures.

    Attributes
    ----------
    block : Block
        Block the event was emitted in
    period_rewards_usd : Decimal
        Total revenue earned in the period, in USD
    period_protocol_revenue_usd : Decimal
        Part of the period revenue retained by the protocol, in USD
    reward_token_staked_amount : int
        Raw reward token amount emitted to stakers
    output_shares : int
        Output token supply after the report
    base_amount : int
        Raw base token amount added to the pool balance
    reward_amount : int
        Raw reward token amount added to the pool balance

    """

    type: Literal["rewards"] = "rewards"
    block: Block
    period_rewards_usd: Decimal
    period_protocol_revenue_usd: Decimal
    reward_token_staked_amount: int
    output_shares: int
    base_amount: int = 0
    reward_amount: int = 0


class PricePoint(BaseModel):
    """A token price effective from a block."""

    token: str
    block_number: int
    price_usd: Decimal


Event = Annotated[DepositEvent | RewardsEvent, Field(discriminator="type")]

_events_adapter = TypeAdapter(list[Event])
_prices_adapter = TypeAdapter(list[PricePoint])


def _load_yaml_list(path: str | Path) -> list:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data or []


def load_events(path: str | Path) -> list[DepositEvent | RewardsEvent]:
    """
    Load a YAML list of events.

    Parameters
    ----------
    path : str | Path
        YAML file whose top level is a list of event mappings

    Returns
    -------
    list[DepositEvent | RewardsEvent]
        Validated events in file order

    """
    return _events_adapter.validate_python(_load_yaml_list(path))


def load_prices(path: str | Path) -> list[PricePoint]:
    """Load a YAML list of ``{token, block_number, price_usd}`` entries."""
    return _prices_adapter.validate_python(_load_yaml_list(path))
