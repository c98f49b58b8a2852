from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

import typer

from eigen_indexer.app.application.services.metrics import historical, point_in_time
from eigen_indexer.app.config import settings
from eigen_indexer.app.infrastructure.db.engine import create_app_async_engine
from eigen_indexer.app.infrastructure.factories.metrics_factory import (
    MetricsDependencies,
    metrics_factory,
)

# snapshot column -> output key
OUTPUT_NAMES = {
    "tvl_eth": "tvlEth",
    "total_stakers": "totalStakers",
    "total_operators": "totalOperators",
}

HistoricalSeries = Callable[..., Awaitable[list[dict[str, Any]]]]


async def _tvl_beacon(deps: MetricsDependencies, address: str | None, **window: Any) -> list[dict[str, Any]]:
    return [p.to_dict("tvlEth") for p in await historical.historical_tvl_beacon(deps.snapshots, **window)]


async def _tvl_restaking(deps: MetricsDependencies, address: str | None, **window: Any) -> list[dict[str, Any]]:
    points = await historical.historical_tvl_restaking(deps.snapshots, deps.prices, strategy=address, **window)
    return [p.to_dict("tvlEth") for p in points]


async def _tvl_total(deps: MetricsDependencies, address: str | None, **window: Any) -> list[dict[str, Any]]:
    points = await historical.historical_tvl_total(deps.snapshots, deps.prices, **window)
    return [p.to_dict("tvlEth") for p in points]


async def _tvl_deposits(deps: MetricsDependencies, address: str | None, **window: Any) -> list[dict[str, Any]]:
    return [p.to_dict("tvlEth") for p in await historical.historical_tvl_deposits(deps.snapshots, **window)]


async def _tvl_withdrawals(deps: MetricsDependencies, address: str | None, **window: Any) -> list[dict[str, Any]]:
    return [p.to_dict("tvlEth") for p in await historical.historical_tvl_withdrawals(deps.snapshots, **window)]


def _require(address: str | None, what: str) -> str:
    if not address:
        raise typer.BadParameter(f"--address is required for the {what} series")
    return address


async def _avs(deps: MetricsDependencies, address: str | None, **window: Any) -> list[dict[str, Any]]:
    points = await historical.historical_avs_aggregate(deps.snapshots, avs=_require(address, "avs"), **window)
    return [p.to_dict(OUTPUT_NAMES) for p in points]


async def _operator(deps: MetricsDependencies, address: str | None, **window: Any) -> list[dict[str, Any]]:
    points = await historical.historical_operator_aggregate(
        deps.snapshots, operator=_require(address, "operator"), **window
    )
    return [p.to_dict(OUTPUT_NAMES) for p in points]


def _count(entity: str) -> HistoricalSeries:
    async def _series(deps: MetricsDependencies, address: str | None, **window: Any) -> list[dict[str, Any]]:
        points = await historical.historical_count(deps.counts, entity=entity, **window)
        return [p.to_dict() for p in points]

    return _series


HISTORICAL_SERIES: dict[str, HistoricalSeries] = {
    "tvl_beacon": _tvl_beacon,
    "tvl_restaking": _tvl_restaking,
    "tvl_total": _tvl_total,
    "tvl_deposits": _tvl_deposits,
    "tvl_withdrawals": _tvl_withdrawals,
    "avs": _avs,
    "operator": _operator,
    "count_avs": _count("avs"),
    "count_operators": _count("operator"),
    "count_stakers": _count("staker"),
    "count_withdrawals": _count("withdrawal_queued"),
    "count_deposits": _count("deposit"),
}


async def historical_metrics_task(
    *,
    series: str,
    start_at: datetime | None = None,
    end_at: datetime | None = None,
    frequency: str = "1h",
    variant: str = "cumulative",
    address: str | None = None,
    backend: str = "sqlalchemy",
) -> list[dict[str, Any]]:
    """Task: print one historical series as JSON (default window: network genesis until now)."""
    try:
        build = HISTORICAL_SERIES[series]
    except KeyError:
        raise ValueError(f"Unknown series: {series!r}. Expected one of {sorted(HISTORICAL_SERIES)}")
    start_at, end_at = historical.resolve_window(start_at, end_at, genesis_time=settings.network.genesis_time)

    engine = create_app_async_engine()
    try:
        deps = metrics_factory(backend=backend, engine=engine)
        points = await build(
            deps,
            address,
            start_at=start_at,
            end_at=end_at,
            frequency=frequency,
            variant=variant,
        )
    finally:
        await engine.dispose()

    typer.echo(json.dumps(points, indent=2))
    return points


async def current_metrics_task(*, backend: str = "sqlalchemy") -> dict[str, Any]:
    """Task: print current TVL and entity totals with their 24h/7d changes as JSON."""
    engine = create_app_async_engine()
    try:
        deps = metrics_factory(backend=backend, engine=engine)
        beacon = await point_in_time.tvl_beacon_chain(deps.snapshots)
        restaking = await point_in_time.tvl_restaking(deps.snapshots, deps.prices)
        total = await point_in_time.tvl_total(deps.snapshots, deps.prices)
        out: dict[str, Any] = {
            "tvl": total.to_dict(),
            "tvlBeaconChain": beacon.to_dict(),
            "tvlRestaking": restaking.to_dict(),
            "totalAvs": (await point_in_time.total_entity_count(deps.counts, entity="avs")).to_dict(),
            "totalOperators": (await point_in_time.total_entity_count(deps.counts, entity="operator")).to_dict(),
            "totalStakers": (await point_in_time.total_entity_count(deps.counts, entity="staker")).to_dict(),
            "totalWithdrawals": (await point_in_time.total_withdrawals(deps.counts)).to_dict(),
            "totalDeposits": await point_in_time.total_deposits(deps.counts),
        }
    finally:
        await engine.dispose()

    typer.echo(json.dumps(out, indent=2))
    return out
