from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from decimal import Decimal

from eigen_indexer.app.domain import amounts
from eigen_indexer.app.domain.errors import AggregationMismatch
from eigen_indexer.app.domain.metrics import (
    Frequency,
    HistoricalAggregatePoint,
    HistoricalSeriesPoint,
    HourlyMetricSnapshot,
    MetricKind,
    Variant,
    truncate_to_hour,
)
from eigen_indexer.app.domain.ports.out import MetricSnapshotReader


def bucket_starts(start_at: datetime, end_at: datetime, frequency: Frequency) -> list[datetime]:
    """
    Bucket start times from hour-truncated start_at up to hour-truncated end_at.

    Both ends are inclusive: a bucket whose start equals end_at is emitted.
    An inverted window yields no buckets.
    """
    start = truncate_to_hour(start_at)
    end = truncate_to_hour(end_at)
    step = frequency.offset

    starts: list[datetime] = []
    current = start
    while current <= end:
        starts.append(current)
        current = current + step
    return starts


def snapshot_values(
    snapshot: HourlyMetricSnapshot | None,
    fields: Mapping[str, str],
) -> dict[str, Decimal]:
    if snapshot is None:
        return {name: amounts.ZERO for name in fields}
    return {name: snapshot.value(name) for name in fields}


async def seed_cumulative(
    reader: MetricSnapshotReader,
    *,
    kind: MetricKind,
    start_at: datetime,
    rows: Sequence[HourlyMetricSnapshot],
    entity_key: str | None = None,
) -> dict[str, Decimal]:
    """
    Starting value of a cumulative walk.

    The first loaded row when it sits exactly on start_at; otherwise the latest
    row strictly before start_at; otherwise zeros.
    """
    start = truncate_to_hour(start_at)
    if rows and rows[0].timestamp == start:
        return snapshot_values(rows[0], kind.fields)

    prior = await reader.latest_before(kind=kind, before=start, entity_key=entity_key)
    return snapshot_values(prior, kind.fields)


def walk_buckets(
    snapshots: Sequence[HourlyMetricSnapshot],
    *,
    starts: Sequence[datetime],
    frequency: Frequency,
    variant: Variant,
    fields: Mapping[str, str],
    seed: Mapping[str, Decimal] | None = None,
) -> list[HistoricalAggregatePoint]:
    """
    Fold sparse hourly rows into one point per bucket.

    `snapshots` must be ascending by timestamp. A bucket covers
    [bucket_start, bucket_start + offset).

    cumulative: the absolute fields of the last row in the bucket, or the
    previous bucket's value carried forward when the bucket is empty.
    discrete: the sum of the delta fields of the rows in the bucket.
    """
    step = frequency.offset
    running: dict[str, Decimal] = {
        name: amounts.to_amount((seed or {}).get(name)) for name in fields
    }

    points: list[HistoricalAggregatePoint] = []
    i = 0
    for bucket_start in starts:
        bucket_end = bucket_start + step
        bucket: list[HourlyMetricSnapshot] = []
        while i < len(snapshots) and snapshots[i].timestamp < bucket_end:
            if snapshots[i].timestamp >= bucket_start:
                bucket.append(snapshots[i])
            i += 1

        if variant is Variant.CUMULATIVE:
            if bucket:
                running = snapshot_values(bucket[-1], fields)
            values = dict(running)
        else:
            values = {
                name: amounts.add(*(row.change(delta) for row in bucket))
                for name, delta in fields.items()
            }

        points.append(HistoricalAggregatePoint(timestamp=bucket_start, values=values))

    return points


def to_series(points: Sequence[HistoricalAggregatePoint], field_name: str) -> list[HistoricalSeriesPoint]:
    return [HistoricalSeriesPoint(timestamp=p.timestamp, value=p.values[field_name]) for p in points]


def zero_series(starts: Sequence[datetime]) -> list[HistoricalSeriesPoint]:
    return [HistoricalSeriesPoint(timestamp=ts, value=amounts.ZERO) for ts in starts]


def compose_series(
    a: Sequence[HistoricalSeriesPoint],
    b: Sequence[HistoricalSeriesPoint],
) -> list[HistoricalSeriesPoint]:
    """
    Point-wise sum of two bucket-aligned series.

    Raises AggregationMismatch when the lengths or any bucket timestamps differ.
    """
    if len(a) != len(b):
        raise AggregationMismatch(f"Cannot compose series of length {len(a)} and {len(b)}")

    out: list[HistoricalSeriesPoint] = []
    for index, (left, right) in enumerate(zip(a, b)):
        if left.timestamp != right.timestamp:
            raise AggregationMismatch(
                f"Mismatch in historical data at index {index}: "
                f"{left.timestamp.isoformat()} != {right.timestamp.isoformat()}"
            )
        out.append(
            HistoricalSeriesPoint(
                timestamp=left.timestamp,
                value=amounts.add(left.value, right.value),
            )
        )
    return out
