from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from web3 import Web3

from chain_reader.contracts import BlockRange, RawLog, TransientFetchError, raw_log_from_rpc
from chain_reader.observability import NullLogger, Observability

_UINT = {"name": "", "type": "uint256"}


def _view(name: str, inputs: Sequence[Mapping[str, str]], outputs: Sequence[Mapping[str, str]]) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": list(inputs),
        "outputs": list(outputs),
    }


# Read-only surface of the token, pool and vault contracts.
READ_ABI: tuple[dict[str, Any], ...] = (
    _view("balanceOf", [{"name": "account", "type": "address"}], [_UINT]),
    _view(
        "getReserves",
        [],
        [
            {"name": "reserveDft", "type": "uint256"},
            {"name": "reserveStable", "type": "uint256"},
            {"name": "blockTimestampLast", "type": "uint32"},
        ],
    ),
    _view(
        "getPrices",
        [],
        [
            {"name": "priceDftInStable", "type": "uint256"},
            {"name": "priceStableInDft", "type": "uint256"},
        ],
    ),
    _view("emaShort", [], [_UINT]),
    _view("emaLong", [], [_UINT]),
    _view("spentTodayStableEq", [], [_UINT]),
    _view("nextAllowedAt", [], [_UINT]),
    _view("stressRatioBps", [], [_UINT]),
    _view("stressMaxBps", [], [_UINT]),
    _view("dailyBudgetBps", [], [_UINT]),
)


class Web3ChainReader:
    """ChainReader backed by a web3.py HTTP provider; every failure is transient."""

    def __init__(
        self,
        *,
        rpc_url: str,
        request_timeout_ms: int,
        web3: Web3 | None = None,
        observability: Observability | None = None,
    ) -> None:
        self._web3 = web3 or Web3(
            Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout_ms / 1000})
        )
        self._contracts: dict[str, Any] = {}
        self._observability = observability or Observability(logger=NullLogger())

    def block_number(self) -> int:
        try:
            return int(self._web3.eth.block_number)
        except Exception as exc:
            raise TransientFetchError(f"block_number failed: {exc}") from exc

    def read_value(self, address: str, function: str, args: Sequence[object] = ()) -> int:
        result = self._call(address, function, args)
        if isinstance(result, bool) or not isinstance(result, int):
            raise TransientFetchError(f"{function} returned non-integer value")
        return result

    def read_tuple(
        self, address: str, function: str, args: Sequence[object] = ()
    ) -> tuple[object, ...]:
        result = self._call(address, function, args)
        if not isinstance(result, (list, tuple)):
            raise TransientFetchError(f"{function} returned non-tuple value")
        return tuple(result)

    def get_logs(
        self, address: str, topics: Sequence[str], block_range: BlockRange
    ) -> list[RawLog]:
        filter_params: dict[str, Any] = {
            "address": Web3.to_checksum_address(address),
            "fromBlock": block_range.start,
            "toBlock": block_range.end,
        }
        if topics:
            filter_params["topics"] = [list(topics)]
        try:
            entries = self._web3.eth.get_logs(filter_params)
        except Exception as exc:
            raise TransientFetchError(
                f"get_logs failed for {block_range.start}-{block_range.end}: {exc}"
            ) from exc
        logs: list[RawLog] = []
        for entry in entries:
            try:
                logs.append(raw_log_from_rpc(entry))
            except ValueError as exc:
                self._observability.log_malformed_log(
                    address=address,
                    block_start=block_range.start,
                    block_end=block_range.end,
                    error_detail=str(exc),
                )
        return logs

    def block_timestamp(self, block_hash: str) -> int:
        try:
            block = self._web3.eth.get_block(block_hash)
            return int(block["timestamp"])
        except Exception as exc:
            raise TransientFetchError(f"get_block failed for {block_hash}: {exc}") from exc

    def _call(self, address: str, function: str, args: Sequence[object]) -> Any:
        contract = self._contract(address)
        try:
            bound = getattr(contract.functions, function)(*_normalize_args(args))
            return bound.call()
        except Exception as exc:
            raise TransientFetchError(f"{function} call failed: {exc}") from exc

    def _contract(self, address: str) -> Any:
        key = address.lower()
        contract = self._contracts.get(key)
        if contract is None:
            contract = self._web3.eth.contract(
                address=Web3.to_checksum_address(address), abi=list(READ_ABI)
            )
            self._contracts[key] = contract
        return contract


def _normalize_args(args: Sequence[object]) -> list[object]:
    normalized: list[object] = []
    for arg in args:
        if isinstance(arg, str) and len(arg) == 42 and arg.startswith("0x"):
            normalized.append(Web3.to_checksum_address(arg))
        else:
            normalized.append(arg)
    return normalized
