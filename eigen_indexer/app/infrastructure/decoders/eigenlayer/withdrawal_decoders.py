from __future__ import annotations

from typing import Any, Mapping

from eigen_indexer.app.domain.models import (
    WithdrawalCompletedRecord,
    WithdrawalQueuedRecord,
)
from eigen_indexer.app.infrastructure.decoders.abi_event_decoder import AbiEventDecoder


class WithdrawalQueuedDecoder(AbiEventDecoder):
    """
    DelegationManager.WithdrawalQueued(bytes32 withdrawalRoot, Withdrawal withdrawal)

    `withdrawal` is a struct:
      (address staker, address delegatedTo, address withdrawer, uint256 nonce,
       uint32 startBlock, address[] strategies, uint256[] shares)
    so topic0 is computed over the expanded tuple signature.
    """

    EVENT_NAME = "WithdrawalQueued"
    ABI_FILE = "DelegationManager.json"

    def _build(self, args: Mapping[str, Any], base: dict[str, Any]) -> WithdrawalQueuedRecord:
        withdrawal = args["withdrawal"]
        strategies = tuple(withdrawal["strategies"])
        shares = tuple(withdrawal["shares"])
        if len(strategies) != len(shares):
            raise ValueError(f"strategies/shares length mismatch ({len(strategies)} != {len(shares)})")

        return WithdrawalQueuedRecord(
            **base,
            withdrawal_root=args["withdrawalRoot"],
            staker=withdrawal["staker"],
            delegated_to=withdrawal["delegatedTo"],
            withdrawer=withdrawal["withdrawer"],
            nonce=withdrawal["nonce"],
            start_block=int(withdrawal["startBlock"]),
            strategies=strategies,
            shares=shares,
        )


class WithdrawalCompletedDecoder(AbiEventDecoder):
    EVENT_NAME = "WithdrawalCompleted"
    ABI_FILE = "DelegationManager.json"

    def _build(self, args: Mapping[str, Any], base: dict[str, Any]) -> WithdrawalCompletedRecord:
        return WithdrawalCompletedRecord(**base, withdrawal_root=args["withdrawalRoot"])
