from __future__ import annotations

from typing import Any, Mapping

from eigen_indexer.app.domain.models import (
    OperatorSharesDecreasedRecord,
    OperatorSharesIncreasedRecord,
)
from eigen_indexer.app.infrastructure.decoders.abi_event_decoder import AbiEventDecoder


class OperatorSharesIncreasedDecoder(AbiEventDecoder):
    """
    DelegationManager.OperatorSharesIncreased(
        address indexed operator, address staker, address strategy, uint256 shares
    )
    """

    EVENT_NAME = "OperatorSharesIncreased"
    ABI_FILE = "DelegationManager.json"

    def _build(self, args: Mapping[str, Any], base: dict[str, Any]) -> OperatorSharesIncreasedRecord:
        return OperatorSharesIncreasedRecord(
            **base,
            operator=args["operator"],
            staker=args["staker"],
            strategy=args["strategy"],
            shares=args["shares"],
        )


class OperatorSharesDecreasedDecoder(AbiEventDecoder):
    """Same layout as OperatorSharesIncreased, distinct topic0."""

    EVENT_NAME = "OperatorSharesDecreased"
    ABI_FILE = "DelegationManager.json"

    def _build(self, args: Mapping[str, Any], base: dict[str, Any]) -> OperatorSharesDecreasedRecord:
        return OperatorSharesDecreasedRecord(
            **base,
            operator=args["operator"],
            staker=args["staker"],
            strategy=args["strategy"],
            shares=args["shares"],
        )
