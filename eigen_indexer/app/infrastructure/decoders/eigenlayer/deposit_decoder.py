from __future__ import annotations

from typing import Any, Mapping

from eigen_indexer.app.domain.models import DepositRecord
from eigen_indexer.app.infrastructure.decoders.abi_event_decoder import AbiEventDecoder


class DepositDecoder(AbiEventDecoder):
    """StrategyManager.Deposit(address staker, address token, address strategy, uint256 shares)"""

    EVENT_NAME = "Deposit"
    ABI_FILE = "StrategyManager.json"

    def _build(self, args: Mapping[str, Any], base: dict[str, Any]) -> DepositRecord:
        return DepositRecord(
            **base,
            staker=args["staker"],
            token=args["token"],
            strategy=args["strategy"],
            shares=args["shares"],
        )
