"""Core models, time buckets, and exceptions shared by every layer."""

from staking_pool_metrics.core.buckets import SECONDS_PER_DAY, SECONDS_PER_HOUR, day_id, hour_id
from staking_pool_metrics.core.exceptions import (
    MalformedAggregateError,
    MetricsError,
    MissingPriceError,
    StoreError,
)
from staking_pool_metrics.core.models import (
    Block,
    FinancialsDailySnapshot,
    Pool,
    PoolDailySnapshot,
    PoolHourlySnapshot,
    Protocol,
    ProtocolConfig,
    Token,
)

__all__ = [
    "SECONDS_PER_DAY",
    "SECONDS_PER_HOUR",
    "Block",
    "FinancialsDailySnapshot",
    "MalformedAggregateError",
    "MetricsError",
    "MissingPriceError",
    "Pool",
    "PoolDailySnapshot",
    "PoolHourlySnapshot",
    "Protocol",
    "ProtocolConfig",
    "StoreError",
    "Token",
    "day_id",
    "hour_id",
]
