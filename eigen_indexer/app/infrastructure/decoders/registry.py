from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from eigen_indexer.app.domain.errors import DecodeError
from eigen_indexer.app.domain.models import DomainEventRecord, LogEntry
from eigen_indexer.app.domain.ports.out import EventDecoder
from eigen_indexer.app.infrastructure.decoders.abi_event_decoder import AbiEventDecoder
from eigen_indexer.app.infrastructure.decoders.eigenlayer.deposit_decoder import DepositDecoder
from eigen_indexer.app.infrastructure.decoders.eigenlayer.operator_shares_decoder import (
    OperatorSharesDecreasedDecoder,
    OperatorSharesIncreasedDecoder,
)
from eigen_indexer.app.infrastructure.decoders.eigenlayer.pod_deployed_decoder import (
    PodDeployedDecoder,
)
from eigen_indexer.app.infrastructure.decoders.eigenlayer.withdrawal_decoders import (
    WithdrawalCompletedDecoder,
    WithdrawalQueuedDecoder,
)

DECODERS_BY_EVENT: dict[str, type[AbiEventDecoder]] = {
    "PodDeployed": PodDeployedDecoder,
    "OperatorSharesIncreased": OperatorSharesIncreasedDecoder,
    "OperatorSharesDecreased": OperatorSharesDecreasedDecoder,
    "Deposit": DepositDecoder,
    "WithdrawalQueued": WithdrawalQueuedDecoder,
    "WithdrawalCompleted": WithdrawalCompletedDecoder,
}


class LogDecoderRegistry:
    """Routes each log to the decoder whose topic0 it carries."""

    def __init__(self, decoders: Iterable[EventDecoder]) -> None:
        self._by_topic0: dict[bytes, EventDecoder] = {}
        for decoder in decoders:
            if decoder.topic0 in self._by_topic0:
                raise ValueError(f"Duplicate decoder for {decoder.event_signature}")
            self._by_topic0[decoder.topic0] = decoder

    @classmethod
    def for_events(cls, event_names: Iterable[str]) -> "LogDecoderRegistry":
        decoders: list[EventDecoder] = []
        for name in event_names:
            try:
                decoders.append(DECODERS_BY_EVENT[name]())
            except KeyError:
                raise ValueError(f"No decoder for event {name!r}. Expected one of {sorted(DECODERS_BY_EVENT)}")
        return cls(decoders)

    @property
    def topic0s(self) -> tuple[bytes, ...]:
        return tuple(self._by_topic0)

    def decode(self, log: LogEntry, *, block_time: datetime) -> DomainEventRecord:
        decoder = self._by_topic0.get(log.topic0) if log.topic0 is not None else None
        if decoder is None:
            topic = "0x" + log.topic0.hex() if log.topic0 is not None else None
            raise DecodeError(
                f"No decoder registered for topic0={topic}",
                transaction_hash=log.transaction_hash,
                log_index=log.log_index,
            )
        return decoder.decode(log, block_time=block_time)
