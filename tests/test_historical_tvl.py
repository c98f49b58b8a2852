from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from eigen_indexer.app.application.services.metrics.historical import (
    historical_count,
    historical_tvl_restaking,
    historical_tvl_total,
    resolve_window,
)
from eigen_indexer.app.domain.metrics import MetricKind
from eigen_indexer.app.domain.networks import BEACON_STRATEGY_ADDRESS, MAINNET

from tests.fakes import FakeCounts, FakePrices, FakeSnapshotReader, snapshot

T0 = datetime(2024, 5, 1, tzinfo=timezone.utc)
H = timedelta(hours=1)
STRATEGY_A = "0x" + "a1" * 20


def _reader() -> FakeSnapshotReader:
    return FakeSnapshotReader(
        {
            MetricKind.STRATEGY: [
                snapshot(T0 - H, entity_key=BEACON_STRATEGY_ADDRESS, tvl=5, change_tvl=5),
                snapshot(T0, entity_key=STRATEGY_A, tvl=10, change_tvl=10),
                snapshot(T0 + H, entity_key=BEACON_STRATEGY_ADDRESS, tvl=7, change_tvl=2),
                snapshot(T0 + 2 * H, entity_key=STRATEGY_A, tvl=20, change_tvl=10),
            ],
            MetricKind.EIGEN_PODS: [snapshot(T0, tvl_eth=100, change_tvl_eth=100)],
        }
    )


PRICES = FakePrices({STRATEGY_A: "2", BEACON_STRATEGY_ADDRESS: "1"})
WINDOW = dict(start_at=T0, end_at=T0 + 2 * H, frequency="1h")


async def test_restaking_walks_each_strategy_priced():
    points = await historical_tvl_restaking(_reader(), PRICES, variant="cumulative", **WINDOW)
    assert [p.value for p in points] == [25, 27, 47]


async def test_restaking_without_beacon():
    points = await historical_tvl_restaking(
        _reader(), PRICES, variant="cumulative", include_beacon=False, **WINDOW
    )
    assert [p.value for p in points] == [20, 20, 40]


async def test_restaking_single_strategy_discrete():
    points = await historical_tvl_restaking(
        _reader(), PRICES, variant="discrete", strategy=STRATEGY_A, **WINDOW
    )
    assert [p.value for p in points] == [20, 0, 20]


async def test_restaking_unpriced_strategy_counts_as_zero():
    points = await historical_tvl_restaking(_reader(), FakePrices(), variant="cumulative", **WINDOW)
    assert [p.value for p in points] == [0, 0, 0]


async def test_total_is_beacon_plus_restaking_without_beacon_strategy():
    points = await historical_tvl_total(_reader(), PRICES, variant="cumulative", **WINDOW)
    assert [p.value for p in points] == [120, 120, 140]


async def test_counts_cumulative_and_discrete():
    counts = FakeCounts(
        {"staker": [T0 - H, T0 + timedelta(minutes=10), T0 + 2 * H + timedelta(minutes=30)]}
    )
    window = dict(entity="staker", start_at=T0, end_at=T0 + 3 * H, frequency="1h")

    discrete = await historical_count(counts, variant="discrete", **window)
    cumulative = await historical_count(counts, variant="cumulative", **window)

    assert [p.value for p in discrete] == [1, 0, 1, 0]
    assert [p.value for p in cumulative] == [2, 2, 3, 3]


async def test_counts_reject_unknown_entity():
    with pytest.raises(ValueError, match="Unsupported entity"):
        await historical_count(FakeCounts(), entity="validator", variant="discrete", **WINDOW)


def test_open_window_runs_from_genesis_until_now():
    now = datetime(2024, 6, 1, 12, tzinfo=timezone.utc)

    start, end = resolve_window(None, None, genesis_time=MAINNET.genesis_time, now=now)

    assert start == MAINNET.genesis_time
    assert end == now


def test_explicit_window_is_taken_as_utc():
    start, end = resolve_window(
        datetime(2024, 5, 1),
        datetime(2024, 5, 2),
        genesis_time=MAINNET.genesis_time,
    )

    assert start == T0
    assert end == T0 + 24 * H


def test_inverted_window_is_rejected():
    with pytest.raises(ValueError, match="is after end_at"):
        resolve_window(T0 + H, T0, genesis_time=MAINNET.genesis_time)
