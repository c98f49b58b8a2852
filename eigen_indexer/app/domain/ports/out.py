from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Mapping, Protocol, Sequence

from eigen_indexer.app.domain.metrics import CountedEntity, HourlyMetricSnapshot, MetricKind
from eigen_indexer.app.domain.models import DomainEventRecord, LogEntry, WriteOp, WriteReport


class ChainReader(Protocol):
    """
    Port for reading logs and block metadata from a chain RPC node.

    Implementations must raise RpcError for timeouts, connection failures and
    node-side rejections (including "range too large"). No retries here:
    retry policy belongs to whoever schedules the batches.
    """

    async def get_logs(
        self,
        *,
        addresses: Sequence[str],
        topic0s: Sequence[bytes],
        from_block: int,
        to_block: int,
    ) -> list[LogEntry]:
        """Logs in [from_block, to_block] inclusive, ordered by (block_number, log_index)."""
        ...

    async def get_block_timestamp(self, block_number: int) -> datetime:
        ...

    async def get_block_number(self) -> int:
        ...

    async def close(self) -> None:
        """Release the transport (HTTP sessions). The reader is unusable afterwards."""
        ...


class EventDecoder(Protocol):
    """
    Turns one raw log into exactly one typed record.

    Raises DecodeError when the log does not match the event's shape; never
    returns None for a log it was asked to decode.
    """

    @property
    def topic0(self) -> bytes: ...

    @property
    def event_signature(self) -> str: ...

    def decode(self, log: LogEntry, *, block_time: datetime) -> DomainEventRecord:
        ...


class EventDecoderRegistry(Protocol):
    """Dispatches a log to the decoder registered for its topic0."""

    @property
    def topic0s(self) -> tuple[bytes, ...]: ...

    def decode(self, log: LogEntry, *, block_time: datetime) -> DomainEventRecord:
        """Raises DecodeError for a topic0 with no registered decoder."""
        ...


class SyncCursorStore(Protocol):
    """
    Last processed block per sync stream.

    `get` returns the configured genesis block when the stream has never run.
    """

    async def get(self, stream_key: str) -> int:
        ...

    async def set(self, stream_key: str, block_number: int) -> None:
        ...


class BlockTimestampIndex(Protocol):
    """Block number -> timestamp cache persisted next to the event tables."""

    async def get_range(self, from_block: int, to_block: int) -> dict[int, datetime]:
        ...

    async def save(self, timestamps: Mapping[int, datetime]) -> None:
        ...


class BulkWriter(Protocol):
    """
    Applies one batch's write operations in bounded atomic chunks.

    A failed chunk raises (WriteConflict or the underlying database error);
    chunks committed before it stay committed.
    """

    async def apply(self, ops: Sequence[WriteOp], *, label: str = "") -> WriteReport:
        ...


class MetricSnapshotReader(Protocol):
    """
    Read-only access to the sparse hourly metric tables.

    `entity_key=None` on an entity-scoped kind means "all entities".
    """

    async def list_snapshots(
        self,
        *,
        kind: MetricKind,
        start_at: datetime,
        end_at: datetime,
        entity_key: str | None = None,
        exclude_entities: Sequence[str] = (),
    ) -> list[HourlyMetricSnapshot]:
        """Rows with start_at <= timestamp <= end_at, ascending by timestamp."""
        ...

    async def latest_before(
        self,
        *,
        kind: MetricKind,
        before: datetime,
        entity_key: str | None = None,
    ) -> HourlyMetricSnapshot | None:
        """Latest row with timestamp strictly before `before`."""
        ...

    async def latest_at_or_before(
        self,
        *,
        kind: MetricKind,
        at: datetime,
        entity_key: str | None = None,
    ) -> HourlyMetricSnapshot | None:
        ...

    async def latest_per_entity_at_or_before(
        self,
        *,
        kind: MetricKind,
        at: datetime,
        inclusive: bool = True,
    ) -> dict[str, HourlyMetricSnapshot]:
        """For entity-scoped kinds: newest row per entity at (or strictly before) `at`."""
        ...


class EntityCountReader(Protocol):
    """Creation-time counts over entity tables (avs, operators, stakers, ...)."""

    async def count(
        self,
        *,
        entity: CountedEntity,
        created_before: datetime | None = None,
        created_since: datetime | None = None,
    ) -> int:
        ...

    async def list_created_at(
        self,
        *,
        entity: CountedEntity,
        start_at: datetime,
        end_at: datetime,
    ) -> list[datetime]:
        """created_at values in [start_at, end_at], ascending."""
        ...

    async def count_completed_withdrawals(self) -> int:
        ...


class EthPriceLookup(Protocol):
    """
    Injected strategy -> ETH price source.

    Prices are point-in-time "current" prices; the aggregator applies them to
    historical share amounts the same way the API always has.
    """

    async def current_prices(self) -> Mapping[str, Decimal]:
        """Strategy address (lowercase) -> ETH per strategy unit."""
        ...
