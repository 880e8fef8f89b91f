from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor, wait

from chain_reader.config import ContractAddresses
from chain_reader.contracts import ChainReader, TransientFetchError
from metric_series.contracts import PoolSnapshot, VaultSnapshot
from metric_series.observability import NullLogger, Observability

_VAULT_CALLS: tuple[tuple[str, str], ...] = (
    ("ema_short", "emaShort"),
    ("ema_long", "emaLong"),
    ("spent_today_abs", "spentTodayStableEq"),
    ("next_allowed_at", "nextAllowedAt"),
    ("stress_ratio_bps", "stressRatioBps"),
    ("stress_max_bps", "stressMaxBps"),
    ("daily_budget_bps", "dailyBudgetBps"),
)


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class SnapshotReader:
    """Reads pool and vault state with one bounded timeout per read.

    A read that fails or times out leaves its field ``None`` and lists it in
    ``stale_fields``; the rest of the snapshot is still returned.
    """

    def __init__(
        self,
        *,
        reader: ChainReader,
        contracts: ContractAddresses,
        read_timeout_ms: int,
        max_workers: int = 8,
        observability: Observability | None = None,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        if read_timeout_ms <= 0:
            raise ValueError("read_timeout_ms must be > 0")
        self._reader = reader
        self._contracts = contracts
        self._timeout_s = read_timeout_ms / 1000
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="snapshot-read"
        )
        self._observability = observability or Observability(logger=NullLogger())
        self._clock_ms = clock_ms or _wall_clock_ms

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def read_vault(self) -> VaultSnapshot:
        vault = self._contracts.vault
        futures: dict[str, Future] = {
            "dft_balance": self._executor.submit(
                self._reader.read_value, self._contracts.dft_token, "balanceOf", (vault,)
            ),
            "stable_balance": self._executor.submit(
                self._reader.read_value, self._contracts.stable_token, "balanceOf", (vault,)
            ),
        }
        for field_name, function in _VAULT_CALLS:
            futures[field_name] = self._executor.submit(self._reader.read_value, vault, function)
        values = self._collect(futures)
        fields = {name: _as_int(value) for name, value in values.items()}
        stale = tuple(name for name, value in fields.items() if value is None)
        return VaultSnapshot(taken_at_ms=self._clock_ms(), stale_fields=stale, **fields)

    def read_pool(self) -> PoolSnapshot:
        pool = self._contracts.pool
        futures: dict[str, Future] = {
            "reserves": self._executor.submit(self._reader.read_tuple, pool, "getReserves"),
            "prices": self._executor.submit(self._reader.read_tuple, pool, "getPrices"),
        }
        values = self._collect(futures)
        reserves = _pair(values.get("reserves"))
        prices = _pair(values.get("prices"))
        fields: dict[str, int | None] = {
            "dft_reserve": reserves[0],
            "stable_reserve": reserves[1],
            "price_dft_in_stable": prices[0],
            "price_stable_in_dft": prices[1],
        }
        stale = tuple(name for name, value in fields.items() if value is None)
        return PoolSnapshot(taken_at_ms=self._clock_ms(), stale_fields=stale, **fields)

    def _collect(self, futures: Mapping[str, Future]) -> dict[str, object | None]:
        values: dict[str, object | None] = {}
        # one deadline shared by every read of the snapshot
        _, not_done = wait(futures.values(), timeout=self._timeout_s)
        for field_name, future in futures.items():
            values[field_name] = None
            if future in not_done:
                future.cancel()
                self._observability.log_read_failed(
                    field_name=field_name,
                    error_kind="timeout",
                    error_detail=f"no result within {self._timeout_s}s",
                )
                continue
            try:
                values[field_name] = future.result()
            except TransientFetchError as exc:
                self._observability.log_read_failed(
                    field_name=field_name,
                    error_kind=TransientFetchError.error_kind,
                    error_detail=str(exc),
                )
        return values


def _as_int(value: object | None) -> int | None:
    if value is None or isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _pair(value: object | None) -> tuple[int | None, int | None]:
    if not isinstance(value, tuple) or len(value) < 2:
        return (None, None)
    return (_as_int(value[0]), _as_int(value[1]))
