"""Builders for ABI-encoded EigenLayer logs."""
from __future__ import annotations

from eth_abi import encode
from eth_utils import keccak

from eigen_indexer.app.domain.models import LogEntry

WITHDRAWAL_TUPLE = "(address,address,address,uint256,uint32,address[],uint256[])"

POD_DEPLOYED_TOPIC = keccak(text="PodDeployed(address,address)")
OPERATOR_SHARES_INCREASED_TOPIC = keccak(text="OperatorSharesIncreased(address,address,address,uint256)")
OPERATOR_SHARES_DECREASED_TOPIC = keccak(text="OperatorSharesDecreased(address,address,address,uint256)")
DEPOSIT_TOPIC = keccak(text="Deposit(address,address,address,uint256)")
WITHDRAWAL_QUEUED_TOPIC = keccak(text=f"WithdrawalQueued(bytes32,{WITHDRAWAL_TUPLE})")
WITHDRAWAL_COMPLETED_TOPIC = keccak(text="WithdrawalCompleted(bytes32)")

CONTRACT = "0x" + "aa" * 20
STAKER = "0x" + "11" * 20
OPERATOR = "0x" + "22" * 20
STRATEGY = "0x" + "33" * 20
TOKEN = "0x" + "44" * 20
POD = "0x" + "55" * 20
POD_OWNER = "0x" + "66" * 20


def address_topic(address: str) -> bytes:
    return b"\x00" * 12 + bytes.fromhex(address[2:])


def make_log(
    topics: list[bytes],
    data: bytes = b"",
    *,
    block_number: int = 100,
    log_index: int = 0,
    address: str = CONTRACT,
) -> LogEntry:
    return LogEntry(
        address=address,
        topics=tuple(topics),
        data=data,
        transaction_hash=f"0x{block_number:032x}{log_index:032x}",
        transaction_index=0,
        block_number=block_number,
        block_hash=f"0x{block_number:064x}",
        log_index=log_index,
    )


def pod_deployed_log(*, pod: str = POD, owner: str = POD_OWNER, **kw) -> LogEntry:
    return make_log([POD_DEPLOYED_TOPIC, address_topic(pod), address_topic(owner)], **kw)


def operator_shares_log(
    *,
    increased: bool = True,
    operator: str = OPERATOR,
    staker: str = STAKER,
    strategy: str = STRATEGY,
    shares: int = 10**18,
    **kw,
) -> LogEntry:
    topic0 = OPERATOR_SHARES_INCREASED_TOPIC if increased else OPERATOR_SHARES_DECREASED_TOPIC
    data = encode(["address", "address", "uint256"], [staker, strategy, shares])
    return make_log([topic0, address_topic(operator)], data, **kw)


def deposit_log(
    *,
    staker: str = STAKER,
    token: str = TOKEN,
    strategy: str = STRATEGY,
    shares: int = 10**18,
    **kw,
) -> LogEntry:
    data = encode(["address", "address", "address", "uint256"], [staker, token, strategy, shares])
    return make_log([DEPOSIT_TOPIC], data, **kw)


def withdrawal_queued_log(
    *,
    root: bytes = b"\x01" * 32,
    staker: str = STAKER,
    delegated_to: str = OPERATOR,
    withdrawer: str = STAKER,
    nonce: int = 7,
    start_block: int = 99,
    strategies: tuple[str, ...] = (STRATEGY,),
    shares: tuple[int, ...] = (5 * 10**17,),
    **kw,
) -> LogEntry:
    data = encode(
        ["bytes32", WITHDRAWAL_TUPLE],
        [root, (staker, delegated_to, withdrawer, nonce, start_block, list(strategies), list(shares))],
    )
    return make_log([WITHDRAWAL_QUEUED_TOPIC], data, **kw)


def withdrawal_completed_log(*, root: bytes = b"\x01" * 32, **kw) -> LogEntry:
    return make_log([WITHDRAWAL_COMPLETED_TOPIC], encode(["bytes32"], [root]), **kw)
