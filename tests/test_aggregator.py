"""Tests for the financial metrics aggregator."""

import logging
from decimal import Decimal

import pytest
from pydantic import ValidationError

from staking_pool_metrics.core import (
    Block,
    FinancialsDailySnapshot,
    MalformedAggregateError,
    MissingPriceError,
    Pool,
    PoolDailySnapshot,
    PoolHourlySnapshot,
    Protocol,
    StoreError,
)
from staking_pool_metrics.core.aggregator import FinancialMetricsAggregator, supply_side_revenue
from staking_pool_metrics.pricing import StaticPriceOracle
from staking_pool_metrics.storage import InMemoryRecordStore

WAD = 10**18


def _pool(store, config) -> Pool:
    return store.load(Pool, config.id)


def _protocol(store, config) -> Protocol:
    return store.load(Protocol, config.id)


class TestTvl:
    """TVL updates and propagation into snapshots."""

    def test_update_tvl_prices_both_balances(self, aggregator, store, config):
        """Deposits of 100 ETH and 10 RPL are worth 100*2000 + 10*20."""
        aggregator.update_tvl(Block(number=1, timestamp=0), 100 * WAD, 10 * WAD)

        pool = _pool(store, config)
        assert pool.input_token_balances == [10 * WAD, 100 * WAD]
        assert pool.total_value_locked_usd == Decimal("200200")
        assert _protocol(store, config).total_value_locked_usd == Decimal("200200")

    def test_update_tvl_does_not_touch_snapshots(self, aggregator, store):
        """TVL only reaches snapshots through propagate_tvl."""
        aggregator.update_tvl(Block(number=1, timestamp=0), 100 * WAD, 10 * WAD)

        assert store.load(FinancialsDailySnapshot, "0") is None
        assert store.load(PoolDailySnapshot, "0") is None
        assert store.load(PoolHourlySnapshot, "0") is None

    def test_same_day_updates_in_place_and_new_hour_is_created(self, aggregator, store, oracle, config):
        """A second update later in day 0 reuses the day row and opens hour 13."""
        first = Block(number=1, timestamp=0)
        aggregator.update_tvl(first, 100 * WAD, 10 * WAD)
        aggregator.propagate_tvl(first)

        assert store.load(FinancialsDailySnapshot, "0").total_value_locked_usd == Decimal("200200")
        assert store.load(PoolDailySnapshot, "0").total_value_locked_usd == Decimal("200200")
        assert store.load(PoolHourlySnapshot, "0").total_value_locked_usd == Decimal("200200")

        oracle.set_price(config.base_token.address, 2, Decimal("2100"))
        second = Block(number=2, timestamp=50000)
        aggregator.update_tvl(second, 50 * WAD, 0)
        aggregator.propagate_tvl(second)

        expected = Decimal("150") * Decimal("2100") + Decimal("10") * Decimal("20")
        pool = _pool(store, config)
        assert pool.input_token_balances == [10 * WAD, 150 * WAD]
        assert pool.total_value_locked_usd == expected

        daily = store.records(PoolDailySnapshot)
        assert [s.id for s in daily] == ["0"]
        assert daily[0].total_value_locked_usd == expected
        assert daily[0].input_token_balances == [10 * WAD, 150 * WAD]
        assert daily[0].block_number == 2

        hourly = store.records(PoolHourlySnapshot)
        assert [s.id for s in hourly] == ["0", "13"]
        assert hourly[0].total_value_locked_usd == Decimal("200200")
        assert hourly[1].total_value_locked_usd == expected

        assert store.load(FinancialsDailySnapshot, "0").total_value_locked_usd == expected

    def test_balances_accumulate_regardless_of_order(self, store, oracle, config):
        """Final balances are the per-token sums of all deposits."""
        deposits = [(3 * WAD, 1 * WAD), (5 * WAD, 0), (0, 7 * WAD), (2 * WAD, 2 * WAD)]

        results = []
        for ordering in (deposits, list(reversed(deposits))):
            store_ = type(store)()
            aggregator = FinancialMetricsAggregator(store_, oracle, config)
            for i, (base, reward) in enumerate(ordering):
                aggregator.update_tvl(Block(number=i + 1, timestamp=i * 60), base, reward)
            results.append(store_.load(Pool, config.id).input_token_balances)

        assert results[0] == results[1] == [10 * WAD, 10 * WAD]


class TestRevenue:
    """Total, protocol-side and supply-side revenue updates."""

    def test_total_revenue_accumulates_within_bucket(self, aggregator, store, config):
        """Two updates in the same day and hour add up."""
        aggregator.update_total_revenue(Block(number=1, timestamp=100), Decimal("1.5"), 0, 0)
        aggregator.update_total_revenue(Block(number=2, timestamp=200), Decimal("2.25"), 0, 0)

        assert store.load(PoolDailySnapshot, "0").daily_total_revenue_usd == Decimal("3.75")
        assert store.load(PoolHourlySnapshot, "0").hourly_total_revenue_usd == Decimal("3.75")
        assert store.load(FinancialsDailySnapshot, "0").daily_total_revenue_usd == Decimal("3.75")
        assert _pool(store, config).cumulative_total_revenue_usd == Decimal("3.75")
        assert _protocol(store, config).cumulative_total_revenue_usd == Decimal("3.75")

    def test_total_revenue_sets_output_token_state(self, aggregator, store, config):
        """Output supply and price are copied to the pool and its snapshots."""
        aggregator.update_total_revenue(Block(number=1, timestamp=0), Decimal("0"), 0, 42 * WAD)

        pool = _pool(store, config)
        assert pool.output_token_supply == 42 * WAD
        assert pool.output_token_price_usd == Decimal("2200")

        for model in (PoolDailySnapshot, PoolHourlySnapshot):
            snapshot = store.load(model, "0")
            assert snapshot.output_token_supply == 42 * WAD
            assert snapshot.output_token_price_usd == Decimal("2200")
            assert snapshot.staked_output_token_amount == 42 * WAD

    def test_emissions_reprice_at_latest_price(self, aggregator, store, oracle, config):
        """Emission USD is the running amount times the current price, not a sum of past values."""
        aggregator.update_total_revenue(Block(number=1, timestamp=0), Decimal("0"), 3 * WAD, 0)
        oracle.set_price(config.reward_token.address, 2, Decimal("25"))
        aggregator.update_total_revenue(Block(number=2, timestamp=60), Decimal("0"), 2 * WAD, 0)

        for model in (PoolDailySnapshot, PoolHourlySnapshot):
            snapshot = store.load(model, "0")
            assert snapshot.reward_token_emissions_amount == [5 * WAD]
            assert snapshot.reward_token_emissions_usd == [Decimal("125")]

    def test_protocol_side_revenue_accumulates(self, aggregator, store, config):
        """Protocol-side revenue adds to cumulative and period fields."""
        aggregator.update_protocol_side_revenue(Block(number=1, timestamp=0), Decimal("1"))
        aggregator.update_protocol_side_revenue(Block(number=2, timestamp=10), Decimal("0.5"))

        assert _pool(store, config).cumulative_protocol_side_revenue_usd == Decimal("1.5")
        assert _protocol(store, config).cumulative_protocol_side_revenue_usd == Decimal("1.5")
        assert store.load(PoolDailySnapshot, "0").daily_protocol_side_revenue_usd == Decimal("1.5")
        assert store.load(PoolHourlySnapshot, "0").hourly_protocol_side_revenue_usd == Decimal("1.5")
        financials = store.load(FinancialsDailySnapshot, "0")
        assert financials.daily_protocol_side_revenue_usd == Decimal("1.5")
        assert financials.cumulative_protocol_side_revenue_usd == Decimal("1.5")

    def test_protocol_side_revenue_leaves_emissions_alone(self, aggregator, store):
        """Protocol-side updates do not touch output token or emission fields."""
        aggregator.update_protocol_side_revenue(Block(number=1, timestamp=0), Decimal("1"))

        snapshot = store.load(PoolDailySnapshot, "0")
        assert snapshot.reward_token_emissions_amount == [0]
        assert snapshot.output_token_price_usd is None

    def test_supply_side_revenue_is_total_minus_protocol(self, aggregator, store, config):
        """Supply-side revenue is derived on every record from its own figures."""
        block = Block(number=1, timestamp=0)
        aggregator.update_total_revenue(block, Decimal("10"), 0, 0)
        aggregator.update_protocol_side_revenue(block, Decimal("1.5"))
        aggregator.update_supply_side_revenue(block)

        assert _pool(store, config).cumulative_supply_side_revenue_usd == Decimal("8.5")
        assert _protocol(store, config).cumulative_supply_side_revenue_usd == Decimal("8.5")
        assert store.load(PoolDailySnapshot, "0").daily_supply_side_revenue_usd == Decimal("8.5")
        assert store.load(PoolHourlySnapshot, "0").hourly_supply_side_revenue_usd == Decimal("8.5")
        financials = store.load(FinancialsDailySnapshot, "0")
        assert financials.daily_supply_side_revenue_usd == Decimal("8.5")
        assert financials.cumulative_supply_side_revenue_usd == Decimal("8.5")

    def test_supply_side_revenue_is_clamped(self, aggregator, store, config):
        """Protocol revenue above total revenue yields zero, never a negative value."""
        block = Block(number=1, timestamp=0)
        aggregator.update_total_revenue(block, Decimal("1"), 0, 0)
        aggregator.update_protocol_side_revenue(block, Decimal("3"))
        aggregator.update_supply_side_revenue(block)

        assert _pool(store, config).cumulative_supply_side_revenue_usd == Decimal("0")
        assert store.load(PoolHourlySnapshot, "0").hourly_supply_side_revenue_usd == Decimal("0")

    def test_supply_side_uses_period_figures_for_period_field(self, aggregator, store, config):
        """A new day's supply-side figure ignores revenue from earlier days."""
        day0 = Block(number=1, timestamp=0)
        aggregator.update_total_revenue(day0, Decimal("10"), 0, 0)
        aggregator.update_supply_side_revenue(day0)

        day1 = Block(number=2, timestamp=86400)
        aggregator.update_protocol_side_revenue(day1, Decimal("2"))
        aggregator.update_supply_side_revenue(day1)

        assert _pool(store, config).cumulative_supply_side_revenue_usd == Decimal("8")
        daily = store.load(PoolDailySnapshot, "1")
        assert daily.cumulative_supply_side_revenue_usd == Decimal("8")
        assert daily.daily_supply_side_revenue_usd == Decimal("0")


@pytest.mark.parametrize(
    ("total", "protocol_side", "expected"),
    [
        ("10", "4", "6"),
        ("4", "10", "0"),
        ("5", "5", "0"),
        ("0", "0", "0"),
        ("0.000000001", "0", "0.000000001"),
    ],
)
def test_supply_side_revenue_clamp(total, protocol_side, expected):
    """Supply-side revenue is max(0, total - protocol_side)."""
    result = supply_side_revenue(Decimal(total), Decimal(protocol_side))
    assert result == Decimal(expected)
    assert result >= 0


def test_cross_day_rollover_seeds_new_day(aggregator, store, config):
    """Day 1 starts from the then-current cumulative values with zeroed daily fields."""
    day0 = Block(number=1, timestamp=0)
    aggregator.update_tvl(day0, 100 * WAD, 10 * WAD)
    aggregator.update_total_revenue(day0, Decimal("7"), 0, 0)
    aggregator.update_protocol_side_revenue(day0, Decimal("2"))
    aggregator.update_supply_side_revenue(day0)
    aggregator.propagate_tvl(day0)

    day1 = Block(number=2, timestamp=86400)
    aggregator.propagate_tvl(day1)

    financials = store.load(FinancialsDailySnapshot, "1")
    assert financials.cumulative_total_revenue_usd == Decimal("7")
    assert financials.cumulative_protocol_side_revenue_usd == Decimal("2")
    assert financials.cumulative_supply_side_revenue_usd == Decimal("5")
    assert financials.daily_total_revenue_usd == Decimal("0")
    assert financials.total_value_locked_usd == Decimal("200200")

    daily = store.load(PoolDailySnapshot, "1")
    assert daily.daily_total_revenue_usd == Decimal("0")
    assert daily.daily_protocol_side_revenue_usd == Decimal("0")
    assert daily.reward_token_emissions_amount == [0]

    assert store.load(PoolDailySnapshot, "0").daily_total_revenue_usd == Decimal("7")


class TestFailures:
    """Error propagation without partial writes."""

    def test_missing_price_aborts_without_writes(self, store, config):
        """A missing reward token price leaves the store empty."""
        oracle = StaticPriceOracle({config.base_token.address: Decimal("2000")})
        aggregator = FinancialMetricsAggregator(store, oracle, config)

        with pytest.raises(MissingPriceError) as exc_info:
            aggregator.update_tvl(Block(number=1, timestamp=0), WAD, WAD)

        assert exc_info.value.token_id == config.reward_token.address
        assert store.load(Pool, config.id) is None
        assert store.load(Protocol, config.id) is None

    def test_missing_price_keeps_existing_state(self, store, oracle, config):
        """A failed revenue update does not change previously committed rows."""
        aggregator = FinancialMetricsAggregator(store, oracle, config)
        aggregator.update_total_revenue(Block(number=1, timestamp=0), Decimal("5"), WAD, 0)

        broken = FinancialMetricsAggregator(
            store, StaticPriceOracle({config.base_token.address: Decimal("2000")}), config
        )
        with pytest.raises(MissingPriceError):
            broken.update_total_revenue(Block(number=2, timestamp=90000), Decimal("5"), WAD, 0)

        assert store.load(Pool, config.id).cumulative_total_revenue_usd == Decimal("5")
        assert store.load(PoolDailySnapshot, "1") is None

    def test_malformed_pool_is_rejected(self, aggregator, store, config):
        """A stored pool without exactly two balances raises MalformedAggregateError."""
        store.save(Pool.model_construct(id=config.id, protocol=config.id, input_token_balances=[1, 2, 3]))

        with pytest.raises(MalformedAggregateError):
            aggregator.update_tvl(Block(number=1, timestamp=0), WAD, 0)

    def test_malformed_emission_slots_are_rejected(self, aggregator, store, config):
        """A snapshot without exactly one emission slot aborts the revenue update."""
        store.save(
            PoolDailySnapshot(
                id="0",
                protocol=config.id,
                pool=config.id,
                reward_token_emissions_amount=[0, 0],
                reward_token_emissions_usd=[Decimal("0"), Decimal("0")],
            )
        )

        with pytest.raises(MalformedAggregateError):
            aggregator.update_total_revenue(Block(number=1, timestamp=0), Decimal("5"), WAD, 0)

        assert store.load(Pool, config.id) is None
        assert store.load(PoolHourlySnapshot, "0") is None
        assert store.load(PoolDailySnapshot, "0").daily_total_revenue_usd == Decimal("0")

    def test_commit_failure_leaves_no_rows(self, oracle, config):
        """A store failure at commit time keeps every row of the operation out."""

        class FailingStore(InMemoryRecordStore):
            def _commit(self, rows):
                raise StoreError("disk full")

        store = FailingStore()
        aggregator = FinancialMetricsAggregator(store, oracle, config)

        with pytest.raises(StoreError):
            aggregator.update_total_revenue(Block(number=1, timestamp=0), Decimal("5"), WAD, 0)

        assert store.load(Pool, config.id) is None
        assert store.load(Protocol, config.id) is None
        assert store.load(PoolDailySnapshot, "0") is None
        assert store.load(FinancialsDailySnapshot, "0") is None

    def test_pool_balance_count_is_checked_on_assignment(self):
        """A pool cannot be given anything but two balances."""
        pool = Pool(id="pool", protocol="protocol")

        with pytest.raises(ValidationError):
            pool.input_token_balances = [1, 2, 3]


def test_financials_accumulate_across_hours_of_a_day(aggregator, store):
    """Revenue in two different hours of one day sums in the day's financials."""
    aggregator.update_total_revenue(Block(number=1, timestamp=100), Decimal("3"), 0, 0)
    aggregator.update_total_revenue(Block(number=2, timestamp=7300), Decimal("4.5"), 0, 0)

    assert store.load(FinancialsDailySnapshot, "0").daily_total_revenue_usd == Decimal("7.5")
    assert store.load(PoolDailySnapshot, "0").daily_total_revenue_usd == Decimal("7.5")
    assert store.load(PoolHourlySnapshot, "0").hourly_total_revenue_usd == Decimal("3")
    assert store.load(PoolHourlySnapshot, "2").hourly_total_revenue_usd == Decimal("4.5")


def test_tvl_keeps_34_significant_digits(store, config):
    """TVL is computed with 34 significant digits."""
    oracle = StaticPriceOracle(
        {
            config.base_token.address: Decimal("1234.567890123456789012345678901234"),
            config.reward_token.address: Decimal("20"),
        }
    )
    aggregator = FinancialMetricsAggregator(store, oracle, config)

    aggregator.update_tvl(Block(number=1, timestamp=0), 3 * WAD, 0)

    assert store.load(Pool, config.id).total_value_locked_usd == Decimal("3703.703670370370367037037036703702")


def test_aggregate_creation_is_logged_at_debug(store, oracle, config, caplog):
    """Creating aggregates logs at DEBUG only, so rolled back creations stay quiet."""
    aggregator = FinancialMetricsAggregator(store, oracle, config)

    with caplog.at_level(logging.DEBUG, logger="staking_pool_metrics"):
        aggregator.update_tvl(Block(number=1, timestamp=0), WAD, WAD)

    created = [r for r in caplog.records if r.getMessage().startswith("Created")]
    assert len(created) == 2
    assert all(r.levelno == logging.DEBUG for r in created)
