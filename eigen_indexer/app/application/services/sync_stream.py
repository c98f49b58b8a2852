from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from sqlalchemy.exc import SQLAlchemyError

from eigen_indexer.app.application.services.block_batches import (
    DEFAULT_BATCH_SIZE,
    loop_through_blocks,
)
from eigen_indexer.app.application.services.block_timestamps import BlockTimestampResolver
from eigen_indexer.app.domain.errors import DecodeError, IndexerError, SyncAborted
from eigen_indexer.app.domain.models import (
    BatchOutcome,
    ClearTable,
    DecodeFailure,
    DestinationTable,
    DomainEventRecord,
    InsertRecordSkipDuplicates,
    SyncReport,
    UpsertRecord,
    WriteOp,
)
from eigen_indexer.app.domain.networks import EigenContracts
from eigen_indexer.app.domain.ports.out import (
    BulkWriter,
    ChainReader,
    EventDecoderRegistry,
    SyncCursorStore,
)

logger = logging.getLogger(__name__)

DecodeErrorPolicy = Literal["abort", "skip"]


class StreamKey(str, Enum):
    PODS = "pods"
    OPERATOR_SHARES = "operator_shares"
    DEPOSITS = "deposits"
    WITHDRAWALS = "withdrawals"


@dataclass(frozen=True)
class SyncStreamSpec:
    """
    Static description of one sync stream.

    `contract` names the EigenContracts field holding the emitting contract;
    `events` are decoder names (see DECODERS_BY_EVENT); `bootstrap_clear` lists
    the tables wiped (in order) by the first batch of a bootstrap run.
    """

    key: StreamKey
    cursor_key: str
    contract: str
    events: tuple[str, ...]
    bootstrap_clear: tuple[DestinationTable, ...]

    def contract_address(self, contracts: EigenContracts) -> str:
        return getattr(contracts, self.contract)


STREAMS: dict[StreamKey, SyncStreamSpec] = {
    StreamKey.PODS: SyncStreamSpec(
        key=StreamKey.PODS,
        cursor_key="lastSyncedBlock_pods",
        contract="eigen_pod_manager",
        events=("PodDeployed",),
        bootstrap_clear=(DestinationTable.VALIDATOR_RESTAKES, DestinationTable.PODS),
    ),
    StreamKey.OPERATOR_SHARES: SyncStreamSpec(
        key=StreamKey.OPERATOR_SHARES,
        cursor_key="lastSyncedBlock_logs_operatorShares",
        contract="delegation_manager",
        events=("OperatorSharesIncreased", "OperatorSharesDecreased"),
        bootstrap_clear=(
            DestinationTable.OPERATOR_SHARES_INCREASED,
            DestinationTable.OPERATOR_SHARES_DECREASED,
        ),
    ),
    StreamKey.DEPOSITS: SyncStreamSpec(
        key=StreamKey.DEPOSITS,
        cursor_key="lastSyncedBlock_deposits",
        contract="strategy_manager",
        events=("Deposit",),
        bootstrap_clear=(DestinationTable.DEPOSITS,),
    ),
    StreamKey.WITHDRAWALS: SyncStreamSpec(
        key=StreamKey.WITHDRAWALS,
        cursor_key="lastSyncedBlock_withdrawals",
        contract="delegation_manager",
        events=("WithdrawalQueued", "WithdrawalCompleted"),
        bootstrap_clear=(
            DestinationTable.WITHDRAWALS_QUEUED,
            DestinationTable.WITHDRAWALS_COMPLETED,
        ),
    ),
}


def get_stream(key: str | StreamKey) -> SyncStreamSpec:
    try:
        return STREAMS[StreamKey(key)]
    except ValueError:
        raise ValueError(f"Unknown sync stream: {key!r}. Expected one of {[k.value for k in StreamKey]}")


def plan_write_ops(
    records: Sequence[DomainEventRecord],
    *,
    bootstrap: bool,
    clear_tables: Sequence[DestinationTable] = (),
) -> list[WriteOp]:
    """
    Turn one batch's records into write operations.

    Bootstrap: the requested tables are cleared first, then every record is
    inserted with skip-duplicates. Otherwise every record is upserted on its
    natural key. `clear_tables` is ignored outside bootstrap.
    """
    if not bootstrap:
        return [UpsertRecord(r) for r in records]

    ops: list[WriteOp] = [ClearTable(t) for t in clear_tables]
    ops.extend(InsertRecordSkipDuplicates(r) for r in records)
    return ops


async def sync_stream(
    *,
    stream: SyncStreamSpec,
    addresses: Sequence[str],
    reader: ChainReader,
    decoders: EventDecoderRegistry,
    writer: BulkWriter,
    cursors: SyncCursorStore,
    timestamps: BlockTimestampResolver,
    genesis_block: int,
    first_block: int | None = None,
    last_block: int | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_decode_error: DecodeErrorPolicy = "abort",
) -> SyncReport:
    """
    Sync one stream from its cursor (or `first_block`) up to `last_block`.

    Per batch: fetch logs, resolve block times, decode, write, then advance
    the cursor to the batch end. The cursor never moves past a batch whose
    writes did not all commit, and never below its stored value. Any failure,
    including the cursor or head lookup, stops the run with SyncAborted
    carrying the report of the batches that did commit.
    """
    if on_decode_error not in ("abort", "skip"):
        raise ValueError(f"Unsupported decode error policy: {on_decode_error!r}")

    report = SyncReport(stream_key=stream.key.value, first_block=first_block, last_block=last_block)

    try:
        stored_block = await cursors.get(stream.cursor_key)
        if first_block is None:
            first_block = stored_block
        if last_block is None:
            last_block = await reader.get_block_number()
    except (IndexerError, SQLAlchemyError) as exc:
        logger.error(
            "Sync aborted before the first batch: stream=%s, error=%s",
            stream.key.value,
            exc,
            extra={"stream": stream.key.value},
        )
        raise SyncAborted(stream.key.value, report, str(exc)) from exc

    if first_block < 0 or last_block < 0:
        raise ValueError("Block numbers must be non-negative")

    bootstrap = first_block == genesis_block
    report.first_block = first_block
    report.last_block = last_block
    report.bootstrap = bootstrap

    logger.info(
        "Starting sync: stream=%s, blocks=[%s, %s], bootstrap=%s",
        stream.key.value,
        first_block,
        last_block,
        bootstrap,
        extra={"stream": stream.key.value, "first_block": first_block, "last_block": last_block},
    )

    # batch currently in flight and the decode failures it collected
    in_flight: dict[str, Any] = {}

    async def _sync_batch(batch_from: int, batch_to: int) -> None:
        nonlocal stored_block
        in_flight["range"] = (batch_from, batch_to)
        in_flight["failures"] = ()

        logs = await reader.get_logs(
            addresses=addresses,
            topic0s=decoders.topic0s,
            from_block=batch_from,
            to_block=batch_to,
        )
        block_times = await timestamps.resolve(
            (log.block_number for log in logs),
            from_block=batch_from,
            to_block=batch_to,
        )

        records: list[DomainEventRecord] = []
        failures: list[DecodeFailure] = []
        first_error: DecodeError | None = None
        for log in logs:
            try:
                records.append(decoders.decode(log, block_time=block_times[log.block_number]))
            except DecodeError as exc:
                failures.append(
                    DecodeFailure(
                        transaction_hash=log.transaction_hash,
                        log_index=log.log_index,
                        block_number=log.block_number,
                        reason=exc.message,
                    )
                )
                first_error = first_error or exc
        in_flight["failures"] = tuple(failures)

        if first_error is not None:
            if on_decode_error == "abort":
                raise first_error
            logger.warning(
                "Skipping %s undecodable logs: stream=%s, blocks=[%s, %s]",
                len(failures),
                stream.key.value,
                batch_from,
                batch_to,
            )

        is_first_batch = not report.batches
        ops = plan_write_ops(
            records,
            bootstrap=bootstrap,
            clear_tables=stream.bootstrap_clear if is_first_batch else (),
        )
        if ops:
            await writer.apply(ops, label=f"{stream.key.value} [{batch_from}, {batch_to}]")
        # a re-run of an older range never moves the cursor back
        if batch_to > stored_block:
            await cursors.set(stream.cursor_key, batch_to)
            stored_block = batch_to

        report.batches.append(
            BatchOutcome(
                from_block=batch_from,
                to_block=batch_to,
                status="done",
                logs=len(logs),
                records=len(records),
                decode_failures=tuple(failures),
            )
        )
        in_flight.clear()

        logger.info(
            "Synced %s: blocks=[%s, %s], logs=%s, records=%s",
            stream.key.value,
            batch_from,
            batch_to,
            len(logs),
            len(records),
        )

    try:
        await loop_through_blocks(first_block, last_block, _sync_batch, batch_size)
    except (IndexerError, SQLAlchemyError) as exc:
        batch_from, batch_to = in_flight.get("range", (first_block, first_block))
        report.batches.append(
            BatchOutcome(
                from_block=batch_from,
                to_block=batch_to,
                status="failed",
                decode_failures=in_flight.get("failures", ()),
                error=str(exc),
            )
        )
        logger.error(
            "Sync aborted: stream=%s, blocks=[%s, %s], last_committed=%s, error=%s",
            stream.key.value,
            batch_from,
            batch_to,
            report.last_committed_block,
            exc,
            extra={"stream": stream.key.value},
        )
        raise SyncAborted(stream.key.value, report, str(exc)) from exc

    logger.info(
        "Finished sync: stream=%s, blocks=[%s, %s], records=%s, decode_failures=%s",
        stream.key.value,
        first_block,
        last_block,
        report.records_written,
        len(report.decode_failures),
        extra={"stream": stream.key.value, "records": report.records_written},
    )
    return report
