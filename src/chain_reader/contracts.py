from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol


class TransientFetchError(RuntimeError):
    """Raised when a chain read or log fetch fails or times out."""

    error_kind = "transient_fetch"


@dataclass(frozen=True)
class BlockRange:
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError("start must be >= 0")
        if self.end < self.start:
            raise ValueError("end must be >= start")

    @property
    def span(self) -> int:
        return self.end - self.start + 1


@dataclass(frozen=True)
class RawLog:
    address: str
    topics: tuple[str, ...]
    data: str
    block_number: int
    tx_hash: str
    block_hash: str | None = None
    log_index: int | None = None
    removed: bool = False


class ChainReader(Protocol):
    def block_number(self) -> int: ...

    def read_value(self, address: str, function: str, args: Sequence[object] = ()) -> int: ...

    def read_tuple(
        self, address: str, function: str, args: Sequence[object] = ()
    ) -> tuple[object, ...]: ...

    def get_logs(
        self, address: str, topics: Sequence[str], block_range: BlockRange
    ) -> list[RawLog]: ...

    def block_timestamp(self, block_hash: str) -> int: ...


def to_hex(value: object) -> str:
    if isinstance(value, str):
        lowered = value.lower()
        return lowered if lowered.startswith("0x") else f"0x{lowered}"
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    raise ValueError(f"cannot convert {type(value).__name__} to hex")


def raw_log_from_rpc(payload: Mapping[str, object]) -> RawLog:
    """Normalize a JSON-RPC or web3 log mapping into a RawLog."""
    address = payload.get("address")
    topics = payload.get("topics")
    data = payload.get("data", "0x")
    tx_hash = payload.get("transactionHash")
    block_number = payload.get("blockNumber")
    if not isinstance(address, str) or not address:
        raise ValueError("log address must be set")
    if not isinstance(topics, Sequence) or isinstance(topics, (str, bytes)):
        raise ValueError("log topics must be a list")
    if tx_hash is None:
        raise ValueError("log transactionHash must be set")
    if block_number is None:
        raise ValueError("log blockNumber must be set")
    block_hash = payload.get("blockHash")
    log_index = payload.get("logIndex")
    return RawLog(
        address=address.lower(),
        topics=tuple(to_hex(topic) for topic in topics),
        data=to_hex(data if data is not None else "0x"),
        block_number=_parse_quantity(block_number, "blockNumber"),
        tx_hash=to_hex(tx_hash),
        block_hash=to_hex(block_hash) if block_hash is not None else None,
        log_index=_parse_quantity(log_index, "logIndex") if log_index is not None else None,
        removed=bool(payload.get("removed", False)),
    )


def _parse_quantity(value: object, field: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"invalid {field}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.startswith("0x") else int(value)
        except ValueError as exc:
            raise ValueError(f"invalid {field}") from exc
    raise ValueError(f"invalid {field}")
