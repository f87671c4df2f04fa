"""Lazy creation of daily and hourly snapshot rows."""

import logging

from staking_pool_metrics.core.buckets import day_id, hour_id
from staking_pool_metrics.core.models import (
    Block,
    FinancialsDailySnapshot,
    Pool,
    PoolDailySnapshot,
    PoolHourlySnapshot,
    Protocol,
)
from staking_pool_metrics.storage.store import RecordStore

logger = logging.getLogger(__name__)


class SnapshotRepository:
    """
    Get-or-create access to the snapshot rows for a block's time buckets.

    A row missing for its bucket is seeded from the aggregate's current
    cumulative values with every period field at zero. An existing row is
    returned as persisted. Either way the row's block number and timestamp are
    overwritten with the triggering block and the row is saved before it is
    returned.

    Parameters
    ----------
    store : RecordStore
        Backing record store

    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def get_or_create_financials_daily(self, block: Block, protocol: Protocol) -> FinancialsDailySnapshot:
        """
        Return the protocol financials snapshot for the block's day.

        Parameters
        ----------
        block : Block
            Triggering block
        protocol : Protocol
            Current protocol aggregate, used to seed a new row

        Returns
        -------
        FinancialsDailySnapshot
            Persisted snapshot

        """
        snapshot_id = day_id(block.timestamp)
        snapshot = self.store.load(FinancialsDailySnapshot, snapshot_id)

        if snapshot is None:
            snapshot = FinancialsDailySnapshot(
                id=snapshot_id,
                protocol=protocol.id,
                total_value_locked_usd=protocol.total_value_locked_usd,
                cumulative_total_revenue_usd=protocol.cumulative_total_revenue_usd,
                cumulative_protocol_side_revenue_usd=protocol.cumulative_protocol_side_revenue_usd,
                cumulative_supply_side_revenue_usd=protocol.cumulative_supply_side_revenue_usd,
            )
            logger.debug("Created financials daily snapshot %s", snapshot_id)

        snapshot.block_number = block.number
        snapshot.timestamp = block.timestamp
        self.store.save(snapshot)
        return snapshot

    def get_or_create_pool_daily(self, block: Block, pool: Pool) -> PoolDailySnapshot:
        """
        Return the pool snapshot for the block's day.

        Parameters
        ----------
        block : Block
            Triggering block
        pool : Pool
            Current pool aggregate, used to seed a new row

        Returns
        -------
        PoolDailySnapshot
            Persisted snapshot

        """
        snapshot_id = day_id(block.timestamp)
        snapshot = self.store.load(PoolDailySnapshot, snapshot_id)

        if snapshot is None:
            snapshot = PoolDailySnapshot(id=snapshot_id, **_seed_from_pool(pool))
            logger.debug("Created pool daily snapshot %s", snapshot_id)

        snapshot.block_number = block.number
        snapshot.timestamp = block.timestamp
        self.store.save(snapshot)
        return snapshot

    def get_or_create_pool_hourly(self, block: Block, pool: Pool) -> PoolHourlySnapshot:
        """Return the pool snapshot for the block's hour."""
        snapshot_id = hour_id(block.timestamp)
        snapshot = self.store.load(PoolHourlySnapshot, snapshot_id)

        if snapshot is None:
            snapshot = PoolHourlySnapshot(id=snapshot_id, **_seed_from_pool(pool))
            logger.debug("Created pool hourly snapshot %s", snapshot_id)

        snapshot.block_number = block.number
        snapshot.timestamp = block.timestamp
        self.store.save(snapshot)
        return snapshot


def _seed_from_pool(pool: Pool) -> dict:
    # Period revenue and emission fields keep their zero defaults.
    return {
        "protocol": pool.protocol,
        "pool": pool.id,
        "total_value_locked_usd": pool.total_value_locked_usd,
        "cumulative_total_revenue_usd": pool.cumulative_total_revenue_usd,
        "cumulative_protocol_side_revenue_usd": pool.cumulative_protocol_side_revenue_usd,
        "cumulative_supply_side_revenue_usd": pool.cumulative_supply_side_revenue_usd,
        "input_token_balances": list(pool.input_token_balances),
        "output_token_supply": pool.output_token_supply,
        "output_token_price_usd": pool.output_token_price_usd,
    }
