"""Pytest configuration and shared fixtures for staking-pool-metrics tests."""

from decimal import Decimal

import pytest

from staking_pool_metrics.core.aggregator import FinancialMetricsAggregator
from staking_pool_metrics.data import load_protocol_config
from staking_pool_metrics.pricing import StaticPriceOracle
from staking_pool_metrics.storage import InMemoryRecordStore


@pytest.fixture
def config():
    """Packaged protocol configuration."""
    return load_protocol_config()


@pytest.fixture
def store():
    """Empty in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def oracle(config):
    """Oracle pricing ETH at $2000, RPL at $20 and rETH at $2200 from block 0."""
    return StaticPriceOracle(
        {
            config.base_token.address: Decimal("2000"),
            config.reward_token.address: Decimal("20"),
            config.output_token.address: Decimal("2200"),
        }
    )


@pytest.fixture
def aggregator(store, oracle, config):
    """Aggregator wired to the in-memory store and static oracle."""
    return FinancialMetricsAggregator(store, oracle, config)
