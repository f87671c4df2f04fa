"""Get-or-create access to the singleton Protocol and Pool aggregates."""

import logging

from staking_pool_metrics.core.models import Pool, Protocol, ProtocolConfig
from staking_pool_metrics.storage.store import RecordStore

logger = logging.getLogger(__name__)


class AggregateRegistry:
    """
    Registry for the protocol and pool aggregates.

    Both aggregates are keyed by the protocol id from the configuration and
    are created with zeroed metrics the first time they are requested.

    Parameters
    ----------
    store : RecordStore
        Backing record store
    config : ProtocolConfig
        Protocol and token configuration

    """

    def __init__(self, store: RecordStore, config: ProtocolConfig) -> None:
        self.store = store
        self.config = config

    def get_or_create_protocol(self) -> Protocol:
        """
        Return the protocol aggregate, creating it on first access.

        Returns
        -------
        Protocol
            Mutable protocol record

        """
        protocol = self.store.load(Protocol, self.config.id)
        if protocol is not None:
            return protocol

        protocol = Protocol(
            id=self.config.id,
            name=self.config.name,
            slug=self.config.slug,
            network=self.config.network,
        )
        self.store.save(protocol)
        logger.debug("Created protocol aggregate %s", protocol.id)
        return protocol

    def get_or_create_pool(self, block_number: int, timestamp: int) -> Pool:
        """
        Return the pool aggregate, creating it on first access.

        Parameters
        ----------
        block_number : int
            Block number recorded as the pool's creation block
        timestamp : int
            Timestamp recorded as the pool's creation time

        Returns
        -------
        Pool
            Mutable pool record

        """
        pool = self.store.load(Pool, self.config.id)
        if pool is not None:
            return pool

        reward_token = self.config.reward_token.address
        pool = Pool(
            id=self.config.id,
            protocol=self.config.id,
            input_tokens=[reward_token, self.config.base_token.address],
            input_token_balances=[0, 0],
            output_token=self.config.output_token.address,
            reward_tokens=[reward_token],
            created_block_number=block_number,
            created_timestamp=timestamp,
        )
        self.store.save(pool)
        logger.debug("Created pool aggregate %s at block %d", pool.id, block_number)
        return pool
