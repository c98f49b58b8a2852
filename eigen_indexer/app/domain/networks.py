from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

NetworkName = Literal["mainnet", "holesky"]

# Beacon chain ETH is tracked as a pseudo strategy under this address.
BEACON_STRATEGY_ADDRESS = "0xbeac0eeeeeeeeeeeeeeeeeeeeeeeeeeeeeebeac0"


@dataclass(frozen=True)
class EigenContracts:
    eigen_pod_manager: str
    delegation_manager: str
    strategy_manager: str


@dataclass(frozen=True)
class Network:
    """
    Static per-network constants.

    genesis_block / genesis_time mark where EigenLayer indexing starts; a sync
    that begins exactly at genesis_block runs in bootstrap mode.
    """

    name: NetworkName
    chain_id: int
    genesis_block: int
    genesis_time_ms: int
    default_rpc_url: str
    contracts: EigenContracts

    @property
    def genesis_time(self) -> datetime:
        return datetime.fromtimestamp(self.genesis_time_ms / 1000, tz=timezone.utc)


MAINNET = Network(
    name="mainnet",
    chain_id=1,
    genesis_block=17_000_000,
    genesis_time_ms=1_680_911_891_000,
    default_rpc_url="https://cloudflare-eth.com",
    contracts=EigenContracts(
        eigen_pod_manager="0x91e677b07f7af907ec9a428aafa9fc14a0d3a338",
        delegation_manager="0x39053d51b77dc0d36036fc1fcc8cb819df8ef37a",
        strategy_manager="0x858646372cc42e1a627fce94aa7a7033e7cf075a",
    ),
)

HOLESKY = Network(
    name="holesky",
    chain_id=17000,
    genesis_block=1_159_609,
    genesis_time_ms=1_710_684_720_000,
    default_rpc_url="https://ethereum-holesky-rpc.publicnode.com",
    contracts=EigenContracts(
        eigen_pod_manager="0x30770d7e3e71112d7a6b7259542d1f680a70e315",
        delegation_manager="0xa44151489861fe9e3055d95adc98fbd462b948e7",
        strategy_manager="0xdfb5f6ce42aaa7830e94ecfccad411bef4d4d5b6",
    ),
)

_NETWORKS: dict[str, Network] = {
    MAINNET.name: MAINNET,
    HOLESKY.name: HOLESKY,
}


def get_network(name: str) -> Network:
    try:
        return _NETWORKS[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Unsupported network: {name!r}. Expected one of {sorted(_NETWORKS)}")
