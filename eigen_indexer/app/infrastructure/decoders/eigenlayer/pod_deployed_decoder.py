from __future__ import annotations

from typing import Any, Mapping

from eigen_indexer.app.domain.models import PodDeployedRecord
from eigen_indexer.app.infrastructure.decoders.abi_event_decoder import AbiEventDecoder


class PodDeployedDecoder(AbiEventDecoder):
    """
    EigenPodManager.PodDeployed(address indexed eigenPod, address indexed podOwner)

    Both arguments live in topics; data is empty.
    """

    EVENT_NAME = "PodDeployed"
    ABI_FILE = "EigenPodManager.json"

    def _build(self, args: Mapping[str, Any], base: dict[str, Any]) -> PodDeployedRecord:
        return PodDeployedRecord(
            **base,
            pod_address=args["eigenPod"],
            pod_owner=args["podOwner"],
        )
