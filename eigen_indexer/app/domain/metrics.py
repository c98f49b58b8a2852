from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Literal, Mapping

from eigen_indexer.app.domain import amounts


class MetricKind(str, Enum):
    """
    Hourly snapshot tables the aggregator can read.

    Each kind declares its absolute fields and the delta field paired with
    each one; `entity_scoped` kinds are keyed per strategy/AVS/operator,
    the others hold a single global row per hour.
    """

    EIGEN_PODS = "eigen_pods"
    STRATEGY = "strategy"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    AVS = "avs"
    OPERATOR = "operator"

    @property
    def fields(self) -> Mapping[str, str]:
        return _METRIC_FIELDS[self]

    @property
    def entity_scoped(self) -> bool:
        return self in (MetricKind.STRATEGY, MetricKind.AVS, MetricKind.OPERATOR)


_METRIC_FIELDS: dict[MetricKind, dict[str, str]] = {
    MetricKind.EIGEN_PODS: {"tvl_eth": "change_tvl_eth"},
    MetricKind.STRATEGY: {"tvl": "change_tvl"},
    MetricKind.DEPOSIT: {"tvl_eth": "change_tvl_eth"},
    MetricKind.WITHDRAWAL: {"tvl_eth": "change_tvl_eth"},
    MetricKind.AVS: {
        "tvl_eth": "change_tvl_eth",
        "total_stakers": "change_stakers",
        "total_operators": "change_operators",
    },
    MetricKind.OPERATOR: {
        "tvl_eth": "change_tvl_eth",
        "total_stakers": "change_stakers",
    },
}


class Frequency(str, Enum):
    HOURLY = "1h"
    DAILY = "1d"
    WEEKLY = "7d"

    @property
    def offset_ms(self) -> int:
        return _FREQUENCY_OFFSETS_MS[self]

    @property
    def offset(self) -> timedelta:
        return timedelta(milliseconds=self.offset_ms)

    @classmethod
    def parse(cls, value: "str | Frequency") -> "Frequency":
        """Unknown frequencies fall back to hourly buckets."""
        if isinstance(value, Frequency):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.HOURLY


_FREQUENCY_OFFSETS_MS: dict[Frequency, int] = {
    Frequency.HOURLY: 3_600_000,
    Frequency.DAILY: 86_400_000,
    Frequency.WEEKLY: 604_800_000,
}


class Variant(str, Enum):
    CUMULATIVE = "cumulative"
    DISCRETE = "discrete"


CountedEntity = Literal["avs", "operator", "staker", "withdrawal_queued", "deposit"]
COUNTED_ENTITIES: tuple[CountedEntity, ...] = (
    "avs",
    "operator",
    "staker",
    "withdrawal_queued",
    "deposit",
)


@dataclass(frozen=True)
class HourlyMetricSnapshot:
    """
    One sparse hourly row: absolute values plus the delta since the previous row.

    Rows only exist for hours with activity.
    """

    entity_key: str | None
    timestamp: datetime
    values: Mapping[str, Decimal] = field(default_factory=dict)
    changes: Mapping[str, Decimal] = field(default_factory=dict)

    def value(self, name: str) -> Decimal:
        return amounts.to_amount(self.values.get(name))

    def change(self, name: str) -> Decimal:
        return amounts.to_amount(self.changes.get(name))


@dataclass(frozen=True)
class HistoricalSeriesPoint:
    timestamp: datetime
    value: Decimal

    def to_dict(self, value_name: str = "value") -> dict[str, Any]:
        return {
            "timestamp": isoformat_ms(self.timestamp),
            value_name: amounts.to_number(self.value),
        }


@dataclass(frozen=True)
class HistoricalAggregatePoint:
    timestamp: datetime
    values: Mapping[str, Decimal]

    def to_dict(self, names: Mapping[str, str] | None = None) -> dict[str, Any]:
        names = names or {}
        out: dict[str, Any] = {"timestamp": isoformat_ms(self.timestamp)}
        for key, val in self.values.items():
            out[names.get(key, key)] = amounts.to_number(val)
        return out


@dataclass(frozen=True)
class MetricChange:
    value: Decimal
    percent: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": amounts.to_number(self.value),
            "percent": amounts.to_number(self.percent),
        }


@dataclass(frozen=True)
class PointInTimeMetric:
    """
    Current value plus the values 24h and 7d ago.

    Changes are derived, so summing two metrics component-wise and then
    reading `change24h` gives the percent of the combined series.
    """

    current: Decimal
    offset_24h: Decimal
    offset_7d: Decimal

    @property
    def change24h(self) -> MetricChange:
        return _change(self.current, self.offset_24h)

    @property
    def change7d(self) -> MetricChange:
        return _change(self.current, self.offset_7d)

    def __add__(self, other: "PointInTimeMetric") -> "PointInTimeMetric":
        return PointInTimeMetric(
            current=amounts.add(self.current, other.current),
            offset_24h=amounts.add(self.offset_24h, other.offset_24h),
            offset_7d=amounts.add(self.offset_7d, other.offset_7d),
        )

    def to_dict(self, value_name: str = "tvl") -> dict[str, Any]:
        return {
            value_name: amounts.to_number(self.current),
            "change24h": self.change24h.to_dict(),
            "change7d": self.change7d.to_dict(),
        }


@dataclass(frozen=True)
class CountMetric:
    """Entity count with 24h/7d growth, percent relative to the earlier total."""

    total: int
    change_24h: int
    change_7d: int

    @staticmethod
    def _percent(change: int, total: int) -> Decimal:
        if change == 0:
            return amounts.ZERO
        return amounts.round_to(
            amounts.safe_ratio(Decimal(change), Decimal(total - change)), 3
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "change24h": {
                "value": self.change_24h,
                "percent": amounts.to_number(self._percent(self.change_24h, self.total)),
            },
            "change7d": {
                "value": self.change_7d,
                "percent": amounts.to_number(self._percent(self.change_7d, self.total)),
            },
        }


def _change(current: Decimal, offset: Decimal) -> MetricChange:
    delta = amounts.sub(current, offset)
    return MetricChange(value=delta, percent=amounts.safe_ratio(delta, offset))


def truncate_to_hour(ts: datetime) -> datetime:
    """Start of the UTC hour containing `ts`; naive datetimes are taken as UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


def isoformat_ms(ts: datetime) -> str:
    """ISO-8601 with millisecond precision and a Z suffix (2024-01-01T00:00:00.000Z)."""
    ts = ts.astimezone(timezone.utc) if ts.tzinfo else ts.replace(tzinfo=timezone.utc)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"
