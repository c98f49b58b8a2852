from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from decimal import Decimal

from eigen_indexer.app.application.services.metrics.bucket_walk import (
    bucket_starts,
    compose_series,
    seed_cumulative,
    snapshot_values,
    to_series,
    walk_buckets,
    zero_series,
)
from eigen_indexer.app.domain import amounts
from eigen_indexer.app.domain.metrics import (
    COUNTED_ENTITIES,
    CountedEntity,
    Frequency,
    HistoricalAggregatePoint,
    HistoricalSeriesPoint,
    HourlyMetricSnapshot,
    MetricKind,
    Variant,
    truncate_to_hour,
)
from eigen_indexer.app.domain.networks import BEACON_STRATEGY_ADDRESS
from eigen_indexer.app.domain.ports.out import (
    EntityCountReader,
    EthPriceLookup,
    MetricSnapshotReader,
)

logger = logging.getLogger(__name__)


def resolve_window(
    start_at: datetime | None,
    end_at: datetime | None,
    *,
    genesis_time: datetime,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """
    Fill in an open historical window.

    A missing start means "since the network's EigenLayer genesis", a missing
    end means now. Naive datetimes are taken as UTC.
    """
    start = _as_utc(start_at) if start_at is not None else genesis_time
    end = _as_utc(end_at) if end_at is not None else (now or datetime.now(timezone.utc))
    if start > end:
        raise ValueError(f"start_at ({start.isoformat()}) is after end_at ({end.isoformat()})")
    return start, end


def _as_utc(ts: datetime) -> datetime:
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


async def historical_metric(
    reader: MetricSnapshotReader,
    *,
    kind: MetricKind,
    start_at: datetime,
    end_at: datetime,
    frequency: Frequency | str,
    variant: Variant | str,
    entity_key: str | None = None,
) -> list[HistoricalAggregatePoint]:
    """
    Bucketed series of every field of one metric kind for one entity (or the global row).

    Loads the rows inside the hour-truncated window, seeds cumulative walks
    from the latest row before the window, and walks the buckets.
    """
    frequency = Frequency.parse(frequency)
    variant = Variant(variant)
    start = truncate_to_hour(start_at)
    end = truncate_to_hour(end_at)
    if entity_key is not None:
        entity_key = entity_key.lower()

    rows = await reader.list_snapshots(kind=kind, start_at=start, end_at=end, entity_key=entity_key)

    seed: dict[str, Decimal] | None = None
    if variant is Variant.CUMULATIVE:
        seed = await seed_cumulative(reader, kind=kind, start_at=start, rows=rows, entity_key=entity_key)

    logger.debug(
        "Walking %s buckets: kind=%s, entity=%s, rows=%s",
        frequency.value,
        kind.value,
        entity_key,
        len(rows),
    )
    return walk_buckets(
        rows,
        starts=bucket_starts(start, end, frequency),
        frequency=frequency,
        variant=variant,
        fields=kind.fields,
        seed=seed,
    )


async def historical_tvl_beacon(
    reader: MetricSnapshotReader,
    *,
    start_at: datetime,
    end_at: datetime,
    frequency: Frequency | str,
    variant: Variant | str,
) -> list[HistoricalSeriesPoint]:
    points = await historical_metric(
        reader,
        kind=MetricKind.EIGEN_PODS,
        start_at=start_at,
        end_at=end_at,
        frequency=frequency,
        variant=variant,
    )
    return to_series(points, "tvl_eth")


async def historical_tvl_deposits(
    reader: MetricSnapshotReader,
    *,
    start_at: datetime,
    end_at: datetime,
    frequency: Frequency | str,
    variant: Variant | str,
) -> list[HistoricalSeriesPoint]:
    points = await historical_metric(
        reader,
        kind=MetricKind.DEPOSIT,
        start_at=start_at,
        end_at=end_at,
        frequency=frequency,
        variant=variant,
    )
    return to_series(points, "tvl_eth")


async def historical_tvl_withdrawals(
    reader: MetricSnapshotReader,
    *,
    start_at: datetime,
    end_at: datetime,
    frequency: Frequency | str,
    variant: Variant | str,
) -> list[HistoricalSeriesPoint]:
    points = await historical_metric(
        reader,
        kind=MetricKind.WITHDRAWAL,
        start_at=start_at,
        end_at=end_at,
        frequency=frequency,
        variant=variant,
    )
    return to_series(points, "tvl_eth")


def price_snapshot(snapshot: HourlyMetricSnapshot, price: Decimal) -> HourlyMetricSnapshot:
    """Strategy-unit row -> ETH row (tvl and change_tvl multiplied by the strategy's price)."""
    return HourlyMetricSnapshot(
        entity_key=snapshot.entity_key,
        timestamp=snapshot.timestamp,
        values={"tvl": amounts.mul(snapshot.value("tvl"), price)},
        changes={"change_tvl": amounts.mul(snapshot.change("change_tvl"), price)},
    )


async def historical_tvl_restaking(
    reader: MetricSnapshotReader,
    prices: EthPriceLookup,
    *,
    start_at: datetime,
    end_at: datetime,
    frequency: Frequency | str,
    variant: Variant | str,
    strategy: str | None = None,
    include_beacon: bool = True,
) -> list[HistoricalSeriesPoint]:
    """
    Restaking TVL in ETH, summed over strategies.

    Every strategy is walked on its own (own seed, own carry-forward) after
    its rows are priced to ETH, then the per-strategy series are composed.
    """
    frequency = Frequency.parse(frequency)
    variant = Variant(variant)
    start = truncate_to_hour(start_at)
    end = truncate_to_hour(end_at)
    strategy = strategy.lower() if strategy else None
    excluded = () if include_beacon else (BEACON_STRATEGY_ADDRESS,)

    rows = await reader.list_snapshots(
        kind=MetricKind.STRATEGY,
        start_at=start,
        end_at=end,
        entity_key=strategy,
        exclude_entities=excluded,
    )
    price_map = await prices.current_prices()

    rows_by_strategy: dict[str, list[HourlyMetricSnapshot]] = defaultdict(list)
    for row in rows:
        rows_by_strategy[row.entity_key or ""].append(row)

    priors: Mapping[str, HourlyMetricSnapshot] = {}
    if variant is Variant.CUMULATIVE:
        priors = await reader.latest_per_entity_at_or_before(
            kind=MetricKind.STRATEGY, at=start, inclusive=False
        )

    def _wanted(address: str) -> bool:
        if strategy is not None and address != strategy:
            return False
        return address not in excluded

    strategies = sorted(a for a in set(rows_by_strategy) | set(priors) if _wanted(a))
    starts = bucket_starts(start, end, frequency)
    fields = {"tvl": "change_tvl"}

    total = zero_series(starts)
    for address in strategies:
        price = price_map.get(address, amounts.ZERO)
        priced = [price_snapshot(r, price) for r in rows_by_strategy.get(address, [])]

        seed: dict[str, Decimal] | None = None
        if variant is Variant.CUMULATIVE:
            if priced and priced[0].timestamp == start:
                seed = snapshot_values(priced[0], fields)
            else:
                prior = priors.get(address)
                seed = snapshot_values(price_snapshot(prior, price) if prior else None, fields)

        points = walk_buckets(
            priced,
            starts=starts,
            frequency=frequency,
            variant=variant,
            fields=fields,
            seed=seed,
        )
        total = compose_series(total, to_series(points, "tvl"))

    return total


async def historical_tvl_total(
    reader: MetricSnapshotReader,
    prices: EthPriceLookup,
    *,
    start_at: datetime,
    end_at: datetime,
    frequency: Frequency | str,
    variant: Variant | str,
) -> list[HistoricalSeriesPoint]:
    """Beacon chain TVL plus restaking TVL without the restaked beacon ETH."""
    beacon = await historical_tvl_beacon(
        reader, start_at=start_at, end_at=end_at, frequency=frequency, variant=variant
    )
    restaking = await historical_tvl_restaking(
        reader,
        prices,
        start_at=start_at,
        end_at=end_at,
        frequency=frequency,
        variant=variant,
        include_beacon=False,
    )
    return compose_series(beacon, restaking)


async def historical_avs_aggregate(
    reader: MetricSnapshotReader,
    *,
    avs: str,
    start_at: datetime,
    end_at: datetime,
    frequency: Frequency | str,
    variant: Variant | str,
) -> list[HistoricalAggregatePoint]:
    return await historical_metric(
        reader,
        kind=MetricKind.AVS,
        start_at=start_at,
        end_at=end_at,
        frequency=frequency,
        variant=variant,
        entity_key=avs,
    )


async def historical_operator_aggregate(
    reader: MetricSnapshotReader,
    *,
    operator: str,
    start_at: datetime,
    end_at: datetime,
    frequency: Frequency | str,
    variant: Variant | str,
) -> list[HistoricalAggregatePoint]:
    return await historical_metric(
        reader,
        kind=MetricKind.OPERATOR,
        start_at=start_at,
        end_at=end_at,
        frequency=frequency,
        variant=variant,
        entity_key=operator,
    )


def count_created(
    created_at: Sequence[datetime],
    *,
    starts: Sequence[datetime],
    frequency: Frequency,
    variant: Variant,
    initial_tally: int = 0,
) -> list[HistoricalSeriesPoint]:
    """
    Bucket entity creation times.

    discrete: creations inside each bucket. cumulative: running total,
    starting from the number of entities created before the window.
    """
    step = frequency.offset
    tally = initial_tally
    points: list[HistoricalSeriesPoint] = []
    i = 0
    for bucket_start in starts:
        bucket_end = bucket_start + step
        in_bucket = 0
        while i < len(created_at) and created_at[i] < bucket_end:
            if created_at[i] >= bucket_start:
                in_bucket += 1
            i += 1

        if variant is Variant.DISCRETE:
            value = in_bucket
        else:
            tally += in_bucket
            value = tally
        points.append(HistoricalSeriesPoint(timestamp=bucket_start, value=Decimal(value)))
    return points


async def historical_count(
    counts: EntityCountReader,
    *,
    entity: CountedEntity | str,
    start_at: datetime,
    end_at: datetime,
    frequency: Frequency | str,
    variant: Variant | str,
) -> list[HistoricalSeriesPoint]:
    if entity not in COUNTED_ENTITIES:
        raise ValueError(f"Unsupported entity: {entity!r}. Expected one of {list(COUNTED_ENTITIES)}")

    frequency = Frequency.parse(frequency)
    variant = Variant(variant)
    start = truncate_to_hour(start_at)
    end = truncate_to_hour(end_at)

    initial_tally = await counts.count(entity=entity, created_before=start)  # type: ignore[arg-type]
    created = await counts.list_created_at(entity=entity, start_at=start, end_at=end)  # type: ignore[arg-type]

    return count_created(
        created,
        starts=bucket_starts(start, end, frequency),
        frequency=frequency,
        variant=variant,
        initial_tally=initial_tally,
    )
