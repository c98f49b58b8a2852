from __future__ import annotations

from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from eigen_indexer.app.domain.models import SyncReport


RpcErrorKind = Literal["timeout", "connection", "range_too_large", "rpc"]


class IndexerError(Exception):
    """Base class for all indexer failures."""


class RpcError(IndexerError):
    """
    Chain RPC call failed.

    Transient from the indexer's point of view: the batch is aborted, the
    cursor stays where it was and the same range can be retried later.
    """

    def __init__(self, kind: RpcErrorKind, message: str) -> None:
        super().__init__(f"[{kind}] {message}")
        self.kind: RpcErrorKind = kind
        self.message = message


class DecodeError(IndexerError):
    """A log did not have the shape its event ABI expects."""

    def __init__(
        self,
        message: str,
        *,
        transaction_hash: str | None = None,
        log_index: int | None = None,
    ) -> None:
        where = ""
        if transaction_hash is not None:
            where = f" (tx={transaction_hash}, log_index={log_index})"
        super().__init__(f"{message}{where}")
        self.message = message
        self.transaction_hash = transaction_hash
        self.log_index = log_index


class WriteConflict(IndexerError):
    """A write chunk hit a constraint that upsert semantics could not absorb."""


class AggregationMismatch(IndexerError):
    """Two series that were meant to be composed are not bucket-aligned."""


class SyncAborted(IndexerError):
    """
    A sync run stopped before reaching its last block.

    `report` holds the batches that did commit; the cursor reflects exactly
    those. The original failure is chained as `__cause__`.
    """

    def __init__(self, stream_key: str, report: "SyncReport", reason: str) -> None:
        super().__init__(f"Sync of {stream_key!r} aborted: {reason}")
        self.stream_key = stream_key
        self.report = report
