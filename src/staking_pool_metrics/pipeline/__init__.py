"""Reference event pipeline driving the metrics aggregator."""

from staking_pool_metrics.pipeline.dispatcher import EventPipeline
from staking_pool_metrics.pipeline.events import DepositEvent, PricePoint, RewardsEvent, load_events, load_prices

__all__ = [
    "DepositEvent",
    "EventPipeline",
    "PricePoint",
    "RewardsEvent",
    "load_events",
    "load_prices",
]
