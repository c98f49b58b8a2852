from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from eigen_indexer.app.domain import amounts
from eigen_indexer.app.domain.metrics import (
    COUNTED_ENTITIES,
    CountedEntity,
    CountMetric,
    MetricKind,
    PointInTimeMetric,
)
from eigen_indexer.app.domain.networks import BEACON_STRATEGY_ADDRESS
from eigen_indexer.app.domain.ports.out import (
    EntityCountReader,
    EthPriceLookup,
    MetricSnapshotReader,
)

OFFSET_24H = timedelta(hours=24)
OFFSET_7D = timedelta(days=7)


def calculate_changes(current: Decimal, offset_24h: Decimal, offset_7d: Decimal) -> PointInTimeMetric:
    """Percent changes are 0 whenever the offset value is 0."""
    return PointInTimeMetric(
        current=amounts.to_amount(current),
        offset_24h=amounts.to_amount(offset_24h),
        offset_7d=amounts.to_amount(offset_7d),
    )


def _now(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    return now if now.tzinfo else now.replace(tzinfo=timezone.utc)


def _checkpoints(now: datetime) -> tuple[datetime, datetime, datetime]:
    return now, now - OFFSET_24H, now - OFFSET_7D


@dataclass(frozen=True)
class RestakingTvl:
    """Restaking TVL with its per-strategy breakdown (strategy units and ETH)."""

    tvl: PointInTimeMetric
    strategies: dict[str, Decimal] = field(default_factory=dict)
    strategies_eth: dict[str, Decimal] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tvl": self.tvl.to_dict(),
            "tvlStrategies": {k: amounts.to_number(v) for k, v in self.strategies.items()},
            "tvlStrategiesEth": {k: amounts.to_number(v) for k, v in self.strategies_eth.items()},
        }


@dataclass(frozen=True)
class WithdrawalTotals:
    total: int
    pending: int
    completed: int

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "pending": self.pending, "completed": self.completed}


async def tvl_beacon_chain(reader: MetricSnapshotReader, *, now: datetime | None = None) -> PointInTimeMetric:
    values: list[Decimal] = []
    for at in _checkpoints(_now(now)):
        row = await reader.latest_at_or_before(kind=MetricKind.EIGEN_PODS, at=at)
        values.append(row.value("tvl_eth") if row else amounts.ZERO)
    return calculate_changes(*values)


async def tvl_restaking(
    reader: MetricSnapshotReader,
    prices: EthPriceLookup,
    *,
    now: datetime | None = None,
    strategy: str | None = None,
    include_beacon: bool = True,
) -> RestakingTvl:
    """
    Restaking TVL in ETH now, 24h ago and 7d ago, from each strategy's latest row
    at or before each checkpoint.

    The breakdown always lists every matching strategy (the beacon strategy
    included); `include_beacon` only controls whether it counts toward the total.
    """
    strategy = strategy.lower() if strategy else None
    price_map = await prices.current_prices()

    totals: list[Decimal] = []
    strategies: dict[str, Decimal] = {}
    strategies_eth: dict[str, Decimal] = {}

    for position, at in enumerate(_checkpoints(_now(now))):
        latest = await reader.latest_per_entity_at_or_before(kind=MetricKind.STRATEGY, at=at)
        total = amounts.ZERO
        for address in sorted(latest):
            if strategy is not None and address != strategy:
                continue
            native = latest[address].value("tvl")
            tvl_eth = amounts.mul(native, price_map.get(address, amounts.ZERO))
            if include_beacon or address != BEACON_STRATEGY_ADDRESS:
                total = amounts.add(total, tvl_eth)
            if position == 0:
                strategies[address] = native
                strategies_eth[address] = tvl_eth
        totals.append(total)

    return RestakingTvl(
        tvl=calculate_changes(*totals),
        strategies=strategies,
        strategies_eth=strategies_eth,
    )


async def tvl_total(
    reader: MetricSnapshotReader,
    prices: EthPriceLookup,
    *,
    now: datetime | None = None,
) -> PointInTimeMetric:
    """
    Beacon chain TVL plus restaking TVL without restaked beacon ETH.

    Current and offset values are summed per component and the percent
    changes are derived from the sums.
    """
    now = _now(now)
    beacon = await tvl_beacon_chain(reader, now=now)
    restaking = await tvl_restaking(reader, prices, now=now, include_beacon=False)
    return beacon + restaking.tvl


async def total_entity_count(
    counts: EntityCountReader,
    *,
    entity: CountedEntity | str,
    now: datetime | None = None,
) -> CountMetric:
    if entity not in COUNTED_ENTITIES:
        raise ValueError(f"Unsupported entity: {entity!r}. Expected one of {list(COUNTED_ENTITIES)}")

    _, since_24h, since_7d = _checkpoints(_now(now))
    total = await counts.count(entity=entity)  # type: ignore[arg-type]
    change_24h = await counts.count(entity=entity, created_since=since_24h)  # type: ignore[arg-type]
    change_7d = await counts.count(entity=entity, created_since=since_7d)  # type: ignore[arg-type]
    return CountMetric(total=total, change_24h=change_24h, change_7d=change_7d)


async def total_withdrawals(counts: EntityCountReader) -> WithdrawalTotals:
    total = await counts.count(entity="withdrawal_queued")
    completed = await counts.count_completed_withdrawals()
    return WithdrawalTotals(total=total, pending=total - completed, completed=completed)


async def total_deposits(counts: EntityCountReader) -> int:
    return await counts.count(entity="deposit")
