from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from eigen_indexer.app.application.services.metrics.point_in_time import (
    calculate_changes,
    total_deposits,
    total_entity_count,
    total_withdrawals,
    tvl_beacon_chain,
    tvl_restaking,
    tvl_total,
)
from eigen_indexer.app.domain import amounts
from eigen_indexer.app.domain.metrics import CountMetric, MetricKind
from eigen_indexer.app.domain.networks import BEACON_STRATEGY_ADDRESS

from tests.fakes import FakeCounts, FakePrices, FakeSnapshotReader, snapshot

NOW = datetime(2024, 6, 10, 12, tzinfo=timezone.utc)
DAY = timedelta(days=1)
STRATEGY_A = "0x" + "a1" * 20


def test_change_value_and_percent():
    metric = calculate_changes(Decimal(110), Decimal(100), Decimal(100))

    assert metric.change24h.value == 10
    assert metric.change24h.percent == Decimal("0.1")
    assert metric.to_dict() == {
        "tvl": 110,
        "change24h": {"value": 10, "percent": 0.1},
        "change7d": {"value": 10, "percent": 0.1},
    }


def test_zero_offset_gives_zero_percent():
    metric = calculate_changes(Decimal(110), Decimal(0), Decimal(0))

    assert metric.change24h.value == 110
    assert metric.change24h.percent == 0
    assert metric.change7d.percent == 0


async def test_beacon_tvl_reads_latest_row_at_each_checkpoint():
    reader = FakeSnapshotReader(
        {
            MetricKind.EIGEN_PODS: [
                snapshot(NOW - 8 * DAY, tvl_eth=50, change_tvl_eth=50),
                snapshot(NOW - DAY, tvl_eth=100, change_tvl_eth=50),
                snapshot(NOW - timedelta(hours=1), tvl_eth=110, change_tvl_eth=10),
            ]
        }
    )

    metric = await tvl_beacon_chain(reader, now=NOW)

    assert (metric.current, metric.offset_24h, metric.offset_7d) == (110, 100, 50)
    assert metric.change7d.percent == Decimal("1.2")


async def test_beacon_tvl_without_rows_is_zero():
    metric = await tvl_beacon_chain(FakeSnapshotReader(), now=NOW)
    assert metric.to_dict()["tvl"] == 0
    assert metric.change24h.percent == 0


def _strategy_reader() -> FakeSnapshotReader:
    return FakeSnapshotReader(
        {
            MetricKind.STRATEGY: [
                snapshot(NOW - 10 * DAY, entity_key=STRATEGY_A, tvl=5, change_tvl=5),
                snapshot(NOW - 2 * DAY, entity_key=BEACON_STRATEGY_ADDRESS, tvl=30, change_tvl=30),
                snapshot(NOW - timedelta(hours=2), entity_key=STRATEGY_A, tvl=8, change_tvl=3),
            ],
            MetricKind.EIGEN_PODS: [snapshot(NOW - 9 * DAY, tvl_eth=1000, change_tvl_eth=1000)],
        }
    )


PRICES = FakePrices({STRATEGY_A: "2", BEACON_STRATEGY_ADDRESS: "1"})


async def test_restaking_tvl_with_breakdown():
    result = await tvl_restaking(_strategy_reader(), PRICES, now=NOW)

    assert (result.tvl.current, result.tvl.offset_24h, result.tvl.offset_7d) == (46, 40, 10)
    assert result.strategies == {STRATEGY_A: 8, BEACON_STRATEGY_ADDRESS: 30}
    assert result.strategies_eth == {STRATEGY_A: 16, BEACON_STRATEGY_ADDRESS: 30}
    assert result.to_dict()["tvlStrategiesEth"] == {STRATEGY_A: 16, BEACON_STRATEGY_ADDRESS: 30}


async def test_restaking_tvl_excluding_beacon_keeps_breakdown():
    result = await tvl_restaking(_strategy_reader(), PRICES, now=NOW, include_beacon=False)

    assert (result.tvl.current, result.tvl.offset_24h, result.tvl.offset_7d) == (16, 10, 10)
    assert BEACON_STRATEGY_ADDRESS in result.strategies


async def test_total_tvl_percent_comes_from_the_sums():
    metric = await tvl_total(_strategy_reader(), PRICES, now=NOW)

    assert (metric.current, metric.offset_24h) == (1016, 1010)
    assert metric.change24h.value == 6
    assert metric.change24h.percent == amounts.safe_ratio(Decimal(6), Decimal(1010))


async def test_entity_count_with_growth():
    counts = FakeCounts(
        {
            "operator": [NOW - 30 * DAY] * 6
            + [NOW - 3 * DAY, NOW - 2 * DAY]
            + [NOW - timedelta(hours=5), NOW - timedelta(hours=1)]
        }
    )

    metric = await total_entity_count(counts, entity="operator", now=NOW)

    assert (metric.total, metric.change_24h, metric.change_7d) == (10, 2, 4)
    assert metric.to_dict() == {
        "total": 10,
        "change24h": {"value": 2, "percent": 0.25},
        "change7d": {"value": 4, "percent": 0.667},
    }


def test_count_percent_is_zero_without_growth():
    assert CountMetric(total=5, change_24h=0, change_7d=5).to_dict()["change24h"]["percent"] == 0
    # everything is new: no earlier total to compare against
    assert CountMetric(total=5, change_24h=0, change_7d=5).to_dict()["change7d"]["percent"] == 0


async def test_entity_count_rejects_unknown_entity():
    with pytest.raises(ValueError):
        await total_entity_count(FakeCounts(), entity="pod", now=NOW)


async def test_withdrawal_and_deposit_totals():
    counts = FakeCounts(
        {"withdrawal_queued": [NOW] * 5, "deposit": [NOW] * 7},
        completed=2,
    )

    withdrawals = await total_withdrawals(counts)

    assert withdrawals.to_dict() == {"total": 5, "pending": 3, "completed": 2}
    assert await total_deposits(counts) == 7
