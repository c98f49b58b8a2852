from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Sequence, TypeVar

from aiohttp import ClientError, ClientTimeout
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import Web3Exception

from eigen_indexer.app.domain.errors import RpcError, RpcErrorKind
from eigen_indexer.app.domain.models import BlockRange, LogEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RANGE_TOO_LARGE_HINTS = (
    "range too large",
    "block range",
    "exceeds max results",
    "exceed maximum block range",
    "limit exceeded",
    "query returned more than",
    "too many results",
    "response size exceeded",
)
_LIMIT_CODES = (-32005, -32602)


def create_async_web3(rpc_url: str, *, timeout_s: float = 30) -> AsyncWeb3:
    return AsyncWeb3(
        AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": ClientTimeout(total=timeout_s)},
        )
    )


def _hex(value: Any) -> str:
    """HexBytes/bytes/str -> 0x-prefixed lowercase hex."""
    if isinstance(value, str):
        value = value.lower()
        return value if value.startswith("0x") else "0x" + value
    return "0x" + bytes(value).hex()


def _error_payload(exc: Exception) -> tuple[int | None, str]:
    """Pull (code, message) out of the shapes web3 uses for JSON-RPC errors."""
    payload: Any = None
    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, dict):
        payload = rpc_response.get("error")
    elif exc.args and isinstance(exc.args[0], dict):
        payload = exc.args[0]

    if isinstance(payload, dict):
        code = payload.get("code")
        return (code if isinstance(code, int) else None), str(payload.get("message", exc))
    return None, str(exc)


def classify_rpc_error(exc: Exception) -> RpcError:
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return RpcError("timeout", str(exc) or "request timed out")
    if isinstance(exc, ClientError):
        return RpcError("connection", str(exc) or type(exc).__name__)

    code, message = _error_payload(exc)
    lowered = message.lower()
    kind: RpcErrorKind = "rpc"
    if any(hint in lowered for hint in _RANGE_TOO_LARGE_HINTS):
        kind = "range_too_large"
    elif code in _LIMIT_CODES and "range" in lowered:
        kind = "range_too_large"
    return RpcError(kind, message)


class Web3ChainReader:
    """
    ChainReader over AsyncWeb3.

    Every transport or node failure is re-raised as RpcError; nothing is
    retried here. Cancellation is not intercepted.
    """

    def __init__(self, *, w3: AsyncWeb3) -> None:
        self._w3 = w3

    async def _call(self, what: str, aw: Awaitable[T]) -> T:
        try:
            return await aw
        except (asyncio.TimeoutError, ClientError, Web3Exception, ValueError) as exc:
            error = classify_rpc_error(exc)
            logger.debug("RPC %s failed: kind=%s, message=%s", what, error.kind, error.message)
            raise error from exc

    async def get_logs(
        self,
        *,
        addresses: Sequence[str],
        topic0s: Sequence[bytes],
        from_block: int,
        to_block: int,
    ) -> list[LogEntry]:
        BlockRange(from_block=from_block, to_block=to_block).validate()

        filter_params: dict[str, Any] = {
            "address": [self._w3.to_checksum_address(a) for a in addresses],
            "topics": [[_hex(t) for t in topic0s]],
            "fromBlock": from_block,
            "toBlock": to_block,
        }
        raw_logs = await self._call("eth_getLogs", self._w3.eth.get_logs(filter_params))

        entries = [
            LogEntry(
                address=_hex(log["address"]),
                topics=tuple(bytes(t) for t in log["topics"]),
                data=bytes(log["data"]),
                transaction_hash=_hex(log["transactionHash"]),
                transaction_index=int(log["transactionIndex"]),
                block_number=int(log["blockNumber"]),
                block_hash=_hex(log["blockHash"]),
                log_index=int(log["logIndex"]),
            )
            for log in raw_logs
        ]
        entries.sort(key=lambda e: (e.block_number, e.log_index))

        logger.debug(
            "eth_getLogs: blocks=[%s, %s], addresses=%s, logs=%s",
            from_block,
            to_block,
            len(addresses),
            len(entries),
        )
        return entries

    async def get_block_timestamp(self, block_number: int) -> datetime:
        block = await self._call("eth_getBlockByNumber", self._w3.eth.get_block(block_number))
        return datetime.fromtimestamp(int(block["timestamp"]), tz=timezone.utc)

    async def get_block_number(self) -> int:
        return int(await self._call("eth_blockNumber", self._w3.eth.block_number))

    async def close(self) -> None:
        await self._w3.provider.disconnect()
        logger.debug("Disconnected RPC provider")
