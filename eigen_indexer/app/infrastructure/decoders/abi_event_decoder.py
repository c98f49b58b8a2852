from __future__ import annotations

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, ClassVar, Mapping

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

from eigen_indexer.app.domain import amounts
from eigen_indexer.app.domain.errors import DecodeError
from eigen_indexer.app.domain.models import DomainEventRecord, LogEntry

ABI_DIR = Path(__file__).resolve().parents[2] / "registry" / "abi"

_ARRAY_SUFFIX = re.compile(r"^(.*)\[(\d*)\]$")


class AbiEventDecoder:
    """
    Generic ABI-driven decoder for one event of one contract.

    Loads the event fragment from a JSON ABI, derives its canonical signature
    (tuple components expanded) and topic0, then decodes indexed arguments from
    topics and the rest from `data` with eth_abi.

    Subclasses set EVENT_NAME / ABI_FILE and turn the normalized arguments into
    a typed record in `_build`.
    """

    EVENT_NAME: ClassVar[str] = ""
    ABI_FILE: ClassVar[str] = ""

    def __init__(self, *, abi_path: Path | None = None, event_name: str | None = None) -> None:
        event_name = event_name or self.EVENT_NAME
        abi_path = abi_path or ABI_DIR / self.ABI_FILE

        self._abi = self._load_abi(abi_path)
        self._event_abi = self._find_event(self._abi, event_name)
        self._signature = self._event_signature(self._event_abi)
        self._topic0 = keccak(text=self._signature)

        self._inputs: list[dict[str, Any]] = list(self._event_abi.get("inputs", []))
        self._indexed_inputs = [i for i in self._inputs if i.get("indexed") is True]
        self._non_indexed_inputs = [i for i in self._inputs if not i.get("indexed")]
        self._non_indexed_types = [self._canonical_type(i) for i in self._non_indexed_inputs]

    @property
    def topic0(self) -> bytes:
        return self._topic0

    @property
    def event_signature(self) -> str:
        return self._signature

    def decode(self, log: LogEntry, *, block_time: datetime) -> DomainEventRecord:
        args = self.decode_args(log)
        try:
            return self._build(args, self._base_fields(log, block_time))
        except KeyError as exc:
            raise DecodeError(
                f"{self._event_abi.get('name')}: missing argument {exc}",
                transaction_hash=log.transaction_hash,
                log_index=log.log_index,
            ) from exc
        except ValueError as exc:
            raise DecodeError(
                f"{self._event_abi.get('name')}: {exc}",
                transaction_hash=log.transaction_hash,
                log_index=log.log_index,
            ) from exc

    def decode_args(self, log: LogEntry) -> dict[str, Any]:
        """Normalized event arguments keyed by their ABI names."""
        name = self._event_abi.get("name")

        if log.topic0 is None or log.topic0 != self._topic0:
            raise DecodeError(
                f"{name}: topic0 mismatch",
                transaction_hash=log.transaction_hash,
                log_index=log.log_index,
            )

        topics = log.topics[1:]
        if len(topics) != len(self._indexed_inputs):
            raise DecodeError(
                f"{name}: expected {len(self._indexed_inputs)} indexed topics, got {len(topics)}",
                transaction_hash=log.transaction_hash,
                log_index=log.log_index,
            )

        out: dict[str, Any] = {}
        try:
            for inp, topic in zip(self._indexed_inputs, topics, strict=True):
                out[inp["name"]] = self._decode_topic(inp, topic)
            out.update(self._decode_non_indexed_data(log.data))
        except (DecodingError, ValueError, TypeError) as exc:
            raise DecodeError(
                f"{name}: undecodable payload ({exc})",
                transaction_hash=log.transaction_hash,
                log_index=log.log_index,
            ) from exc
        return out

    def _build(self, args: Mapping[str, Any], base: dict[str, Any]) -> DomainEventRecord:
        raise NotImplementedError

    # ---------------------------------------------------------------------
    # ABI helpers
    # ---------------------------------------------------------------------

    def _load_abi(self, abi_path: Path) -> list[dict[str, Any]]:
        if not abi_path.exists():
            raise FileNotFoundError(f"ABI file not found: {abi_path}")
        data = json.loads(abi_path.read_text(encoding="utf-8"))

        if isinstance(data, list):
            abi = data
        elif isinstance(data, dict) and isinstance(data.get("abi"), list):
            abi = data["abi"]
        else:
            raise ValueError(
                f"Unsupported ABI JSON format in {abi_path}. Expected list or dict with 'abi' list."
            )
        return [x for x in abi if isinstance(x, dict)]

    def _find_event(self, abi: list[dict[str, Any]], event_name: str) -> dict[str, Any]:
        events = [x for x in abi if x.get("type") == "event" and x.get("name") == event_name]
        if not events:
            names = sorted({x.get("name") for x in abi if x.get("type") == "event"})
            raise ValueError(f"Event {event_name!r} not found in ABI. Available events: {names}")
        if len(events) > 1:
            raise ValueError(f"Multiple events named {event_name!r} found in ABI")
        return events[0]

    def _event_signature(self, event_abi: Mapping[str, Any]) -> str:
        name = event_abi.get("name")
        inputs = event_abi.get("inputs", [])
        if not isinstance(name, str) or not isinstance(inputs, list):
            raise ValueError("Invalid event ABI: missing name/inputs")
        return f"{name}({','.join(self._canonical_type(i) for i in inputs)})"

    def _canonical_type(self, inp: Mapping[str, Any]) -> str:
        typ = inp.get("type")
        if not isinstance(typ, str):
            raise ValueError("Invalid event ABI inputs")
        if typ.startswith("tuple"):
            components = ",".join(self._canonical_type(c) for c in inp.get("components", []))
            return f"({components}){typ[len('tuple'):]}"
        return typ

    def _decode_topic(self, inp: Mapping[str, Any], topic: bytes) -> Any:
        typ = self._canonical_type(inp)
        if len(topic) != 32:
            raise ValueError(f"Expected 32-byte topic, got len={len(topic)}")
        # dynamic indexed values are stored as their keccak hash
        if typ in ("string", "bytes") or typ.endswith("]") or typ.startswith("("):
            return "0x" + topic.hex()
        (value,) = abi_decode([typ], topic)
        return self._normalize(inp, value)

    def _decode_non_indexed_data(self, data: bytes) -> dict[str, Any]:
        if not self._non_indexed_inputs:
            return {}
        values = abi_decode(self._non_indexed_types, data)
        return {
            inp["name"]: self._normalize(inp, val)
            for inp, val in zip(self._non_indexed_inputs, values, strict=True)
        }

    # ---------------------------------------------------------------------
    # Value normalization
    # ---------------------------------------------------------------------

    def _normalize(self, inp: Mapping[str, Any], val: Any) -> Any:
        typ: str = inp["type"]

        array = _ARRAY_SUFFIX.match(typ)
        if array:
            element = {**inp, "type": array.group(1)}
            return tuple(self._normalize(element, v) for v in val)

        if typ == "tuple":
            components = inp.get("components", [])
            return {
                c["name"]: self._normalize(c, v)
                for c, v in zip(components, val, strict=True)
            }

        if typ == "address":
            return str(val).lower()

        if typ.startswith("uint") or typ.startswith("int"):
            return amounts.to_decimal_string(int(val))

        if typ.startswith("bytes"):
            return "0x" + bytes(val).hex()

        return val

    def _base_fields(self, log: LogEntry, block_time: datetime) -> dict[str, Any]:
        return {
            "address": log.address.lower(),
            "transaction_hash": log.transaction_hash,
            "transaction_index": log.transaction_index,
            "log_index": log.log_index,
            "block_number": log.block_number,
            "block_hash": log.block_hash,
            "block_time": block_time,
        }
