from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncEngine

from eigen_indexer.app.config import settings
from eigen_indexer.app.domain.ports.out import (
    EntityCountReader,
    EthPriceLookup,
    MetricSnapshotReader,
)
from eigen_indexer.app.infrastructure.adapters.entity_counts import SqlAlchemyEntityCountReader
from eigen_indexer.app.infrastructure.adapters.metric_snapshot_reader import (
    SqlAlchemyMetricSnapshotReader,
)
from eigen_indexer.app.infrastructure.prices.static_eth_prices import StaticEthPriceLookup


@dataclass(frozen=True)
class MetricsDependencies:
    snapshots: MetricSnapshotReader
    counts: EntityCountReader
    prices: EthPriceLookup


MetricsFactory = Callable[[AsyncEngine], MetricsDependencies]

_METRICS_REGISTRY: Dict[str, MetricsFactory] = {
    "sqlalchemy": lambda engine: MetricsDependencies(
        snapshots=SqlAlchemyMetricSnapshotReader(engine),
        counts=SqlAlchemyEntityCountReader(engine),
        prices=StaticEthPriceLookup(settings.strategy_eth_prices),
    ),
}


def metrics_factory(*, backend: str, engine: AsyncEngine) -> MetricsDependencies:
    try:
        factory = _METRICS_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported metrics backend: {backend!r}")
    return factory(engine)
