"""Financial metrics aggregator keeping aggregates and snapshots in lock-step."""

import logging
from decimal import Decimal, localcontext

from staking_pool_metrics.core.exceptions import MalformedAggregateError
from staking_pool_metrics.core.models import (
    ZERO,
    Block,
    PoolDailySnapshot,
    PoolHourlySnapshot,
    ProtocolConfig,
)
from staking_pool_metrics.core.registry import AggregateRegistry
from staking_pool_metrics.core.snapshots import SnapshotRepository
from staking_pool_metrics.pricing.conversion import DECIMAL_PRECISION, UsdConverter
from staking_pool_metrics.pricing.oracle import PriceOracle
from staking_pool_metrics.storage.store import RecordStore

logger = logging.getLogger(__name__)


def supply_side_revenue(total: Decimal, protocol_side: Decimal) -> Decimal:
    """
    Revenue not retained by the protocol, never negative.

    Parameters
    ----------
    total : Decimal
        Total revenue
    protocol_side : Decimal
        Revenue retained by the protocol

    Returns
    -------
    Decimal
        ``total - protocol_side`` if positive, otherwise zero

    """
    if total <= protocol_side:
        return ZERO
    return total - protocol_side


class FinancialMetricsAggregator:
    """
    Applies per-event metric updates to the pool, protocol, and snapshots.

    Each public method loads the aggregates and the snapshot rows for the
    block's buckets, mutates them, and saves them inside a single store
    transaction. Every price an update needs is fetched before anything is
    mutated, so a missing price leaves the store untouched. USD arithmetic
    runs with ``DECIMAL_PRECISION`` significant digits.

    Typical call order for one event:

    1. ``update_tvl``
    2. ``update_total_revenue`` / ``update_protocol_side_revenue`` (optional)
    3. ``update_supply_side_revenue`` (after both revenue updates)
    4. ``propagate_tvl``

    Parameters
    ----------
    store : RecordStore
        Record store holding aggregates and snapshots
    oracle : PriceOracle
        Source of token USD prices
    config : ProtocolConfig
        Protocol and token configuration

    """

    def __init__(self, store: RecordStore, oracle: PriceOracle, config: ProtocolConfig) -> None:
        self.store = store
        self.config = config
        self.converter = UsdConverter(oracle, config)
        self.registry = AggregateRegistry(store, config)
        self.snapshots = SnapshotRepository(store)

    @property
    def base_token_id(self) -> str:
        return self.config.base_token.address

    @property
    def reward_token_id(self) -> str:
        return self.config.reward_token.address

    @property
    def output_token_id(self) -> str:
        return self.config.output_token.address

    def update_tvl(self, block: Block, base_amount: int, reward_amount: int) -> None:
        """
        Add deposits to the pool balances and recompute TVL.

        TVL is written to the pool and protocol only; ``propagate_tvl`` copies
        it into the snapshots.

        Parameters
        ----------
        block : Block
            Triggering block
        base_amount : int
            Raw base token amount added to ``input_token_balances[1]``
        reward_amount : int
            Raw reward token amount added to ``input_token_balances[0]``

        Raises
        ------
        MissingPriceError
            If either input token has no price at the block
        MalformedAggregateError
            If the pool does not hold exactly two balances

        """
        with localcontext(prec=DECIMAL_PRECISION), self.store.transaction():
            pool = self.registry.get_or_create_pool(block.number, block.timestamp)
            protocol = self.registry.get_or_create_protocol()

            reward_balance = pool.input_token_balances[0] + reward_amount
            base_balance = pool.input_token_balances[1] + base_amount

            base_usd = self.converter.to_usd(base_balance, self.base_token_id, block.number)
            reward_usd = self.converter.to_usd(reward_balance, self.reward_token_id, block.number)
            total_value_locked_usd = base_usd + reward_usd

            pool.input_token_balances = [reward_balance, base_balance]
            pool.total_value_locked_usd = total_value_locked_usd
            self.store.save(pool)

            protocol.total_value_locked_usd = total_value_locked_usd
            self.store.save(protocol)

        logger.debug(
            "Block %d: balances=%s tvl=%s",
            block.number,
            pool.input_token_balances,
            total_value_locked_usd,
        )

    def propagate_tvl(self, block: Block) -> None:
        """
        Copy the pool's TVL and balances into the snapshots for the block's buckets.

        Parameters
        ----------
        block : Block
            Triggering block

        """
        with localcontext(prec=DECIMAL_PRECISION), self.store.transaction():
            pool = self.registry.get_or_create_pool(block.number, block.timestamp)
            protocol = self.registry.get_or_create_protocol()

            financials = self.snapshots.get_or_create_financials_daily(block, protocol)
            daily = self.snapshots.get_or_create_pool_daily(block, pool)
            hourly = self.snapshots.get_or_create_pool_hourly(block, pool)

            for snapshot in (daily, hourly):
                snapshot.total_value_locked_usd = pool.total_value_locked_usd
                snapshot.input_token_balances = list(pool.input_token_balances)
                self.store.save(snapshot)

            financials.total_value_locked_usd = pool.total_value_locked_usd
            self.store.save(financials)

    def update_total_revenue(
        self,
        block: Block,
        period_rewards_usd: Decimal,
        reward_token_staked_amount: int,
        output_shares: int,
    ) -> None:
        """
        Accrue total revenue, output token state, and reward emissions.

        Parameters
        ----------
        block : Block
            Triggering block
        period_rewards_usd : Decimal
            Revenue earned since the previous update, in USD
        reward_token_staked_amount : int
            Raw reward token amount added to the period emissions
        output_shares : int
            Current total supply of the output token

        Raises
        ------
        MissingPriceError
            If the reward or output token has no price at the block

        """
        with localcontext(prec=DECIMAL_PRECISION), self.store.transaction():
            pool = self.registry.get_or_create_pool(block.number, block.timestamp)
            protocol = self.registry.get_or_create_protocol()

            reward_price = self.converter.price(self.reward_token_id, block.number)
            output_price = self.converter.price(self.output_token_id, block.number)

            financials = self.snapshots.get_or_create_financials_daily(block, protocol)
            daily = self.snapshots.get_or_create_pool_daily(block, pool)
            hourly = self.snapshots.get_or_create_pool_hourly(block, pool)

            # Pool
            pool.cumulative_total_revenue_usd += period_rewards_usd
            pool.output_token_supply = output_shares
            pool.output_token_price_usd = output_price
            self.store.save(pool)

            # Pool daily and hourly
            daily.daily_total_revenue_usd += period_rewards_usd
            hourly.hourly_total_revenue_usd += period_rewards_usd
            for snapshot in (daily, hourly):
                snapshot.cumulative_total_revenue_usd = pool.cumulative_total_revenue_usd
                snapshot.output_token_supply = pool.output_token_supply
                snapshot.output_token_price_usd = pool.output_token_price_usd
                snapshot.staked_output_token_amount = pool.output_token_supply
                self._accrue_emissions(snapshot, reward_token_staked_amount, reward_price)
                self.store.save(snapshot)

            # Protocol
            protocol.cumulative_total_revenue_usd += period_rewards_usd
            self.store.save(protocol)

            # Financials daily
            financials.cumulative_total_revenue_usd = protocol.cumulative_total_revenue_usd
            financials.daily_total_revenue_usd += period_rewards_usd
            self.store.save(financials)

        logger.debug(
            "Block %d: total revenue +%s (cumulative %s)",
            block.number,
            period_rewards_usd,
            pool.cumulative_total_revenue_usd,
        )

    def update_protocol_side_revenue(self, block: Block, period_protocol_revenue_usd: Decimal) -> None:
        """
        Accrue revenue retained by the protocol.

        Parameters
        ----------
        block : Block
            Triggering block
        period_protocol_revenue_usd : Decimal
            Protocol revenue earned since the previous update, in USD

        """
        with localcontext(prec=DECIMAL_PRECISION), self.store.transaction():
            pool = self.registry.get_or_create_pool(block.number, block.timestamp)
            protocol = self.registry.get_or_create_protocol()

            financials = self.snapshots.get_or_create_financials_daily(block, protocol)
            daily = self.snapshots.get_or_create_pool_daily(block, pool)
            hourly = self.snapshots.get_or_create_pool_hourly(block, pool)

            pool.cumulative_protocol_side_revenue_usd += period_protocol_revenue_usd
            self.store.save(pool)

            daily.daily_protocol_side_revenue_usd += period_protocol_revenue_usd
            hourly.hourly_protocol_side_revenue_usd += period_protocol_revenue_usd
            for snapshot in (daily, hourly):
                snapshot.cumulative_protocol_side_revenue_usd = pool.cumulative_protocol_side_revenue_usd
                self.store.save(snapshot)

            protocol.cumulative_protocol_side_revenue_usd += period_protocol_revenue_usd
            self.store.save(protocol)

            financials.cumulative_protocol_side_revenue_usd = protocol.cumulative_protocol_side_revenue_usd
            financials.daily_protocol_side_revenue_usd += period_protocol_revenue_usd
            self.store.save(financials)

    def update_supply_side_revenue(self, block: Block) -> None:
        """
        Derive supply-side revenue from total and protocol-side revenue.

        Each record uses its own figures: cumulative values for the all-time
        field and period values for the daily/hourly field. Call this after
        the total and protocol-side updates for the same event.

        Parameters
        ----------
        block : Block
            Triggering block

        """
        with localcontext(prec=DECIMAL_PRECISION), self.store.transaction():
            pool = self.registry.get_or_create_pool(block.number, block.timestamp)
            protocol = self.registry.get_or_create_protocol()

            financials = self.snapshots.get_or_create_financials_daily(block, protocol)
            daily = self.snapshots.get_or_create_pool_daily(block, pool)
            hourly = self.snapshots.get_or_create_pool_hourly(block, pool)

            pool.cumulative_supply_side_revenue_usd = supply_side_revenue(
                pool.cumulative_total_revenue_usd,
                pool.cumulative_protocol_side_revenue_usd,
            )
            self.store.save(pool)

            daily.cumulative_supply_side_revenue_usd = pool.cumulative_supply_side_revenue_usd
            daily.daily_supply_side_revenue_usd = supply_side_revenue(
                daily.daily_total_revenue_usd,
                daily.daily_protocol_side_revenue_usd,
            )
            self.store.save(daily)

            hourly.cumulative_supply_side_revenue_usd = pool.cumulative_supply_side_revenue_usd
            hourly.hourly_supply_side_revenue_usd = supply_side_revenue(
                hourly.hourly_total_revenue_usd,
                hourly.hourly_protocol_side_revenue_usd,
            )
            self.store.save(hourly)

            protocol.cumulative_supply_side_revenue_usd = supply_side_revenue(
                protocol.cumulative_total_revenue_usd,
                protocol.cumulative_protocol_side_revenue_usd,
            )
            self.store.save(protocol)

            financials.cumulative_supply_side_revenue_usd = protocol.cumulative_supply_side_revenue_usd
            financials.daily_supply_side_revenue_usd = supply_side_revenue(
                financials.daily_total_revenue_usd,
                financials.daily_protocol_side_revenue_usd,
            )
            self.store.save(financials)

    def _accrue_emissions(
        self,
        snapshot: PoolDailySnapshot | PoolHourlySnapshot,
        amount: int,
        reward_price: Decimal,
    ) -> None:
        """
        Add to the period reward emissions and reprice the running total.

        The USD figure is recomputed from the accumulated amount at the
        current price rather than summed per call.

        """
        if len(snapshot.reward_token_emissions_amount) != 1 or len(snapshot.reward_token_emissions_usd) != 1:
            msg = f"{snapshot.kind} {snapshot.id} must hold exactly one reward emission slot"
            raise MalformedAggregateError(msg)

        emitted = snapshot.reward_token_emissions_amount[0] + amount
        snapshot.reward_token_emissions_amount = [emitted]
        snapshot.reward_token_emissions_usd = [self.converter.normalize(emitted, self.reward_token_id) * reward_price]
