"""Event pipeline calling the aggregator in its fixed per-event order."""

import logging
from collections.abc import Iterable

from staking_pool_metrics.core.aggregator import FinancialMetricsAggregator
from staking_pool_metrics.pipeline.events import DepositEvent, RewardsEvent

logger = logging.getLogger(__name__)


class EventPipeline:
    """
    Routes decoded events to the metrics aggregator.

    Events are handled one at a time in the order given. Errors propagate to
    the caller unchanged; there are no retries at this level.

    Parameters
    ----------
    aggregator : FinancialMetricsAggregator
        Aggregator to update

    """

    def __init__(self, aggregator: FinancialMetricsAggregator) -> None:
        self.aggregator = aggregator

    def handle(self, event: DepositEvent | RewardsEvent) -> None:
        """
        Apply a single event.

        Parameters
        ----------
        event : DepositEvent | RewardsEvent
            Decoded event

        Raises
        ------
        TypeError
            If the event type is not supported

        """
        if isinstance(event, DepositEvent):
            self._handle_deposit(event)
        elif isinstance(event, RewardsEvent):
            self._handle_rewards(event)
        else:
            msg = f"Unsupported event type: {type(event).__name__}"
            raise TypeError(msg)

    def run(self, events: Iterable[DepositEvent | RewardsEvent]) -> int:
        """
        Apply events sequentially.

        Returns
        -------
        int
            Number of events handled

        """
        count = 0
        for event in events:
            self.handle(event)
            count += 1
        logger.info("Processed %d events", count)
        return count

    def _handle_deposit(self, event: DepositEvent) -> None:
        self.aggregator.update_tvl(event.block, event.base_amount, event.reward_amount)
        self.aggregator.propagate_tvl(event.block)

    def _handle_rewards(self, event: RewardsEvent) -> None:
        block = event.block
        self.aggregator.update_tvl(block, event.base_amount, event.reward_amount)
        self.aggregator.update_total_revenue(
            block,
            event.period_rewards_usd,
            event.reward_token_staked_amount,
            event.output_shares,
        )
        self.aggregator.update_protocol_side_revenue(block, event.period_protocol_revenue_usd)
        self.aggregator.update_supply_side_revenue(block)
        self.aggregator.propagate_tvl(block)
