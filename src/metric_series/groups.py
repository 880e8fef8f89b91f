from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from chain_reader.fixed_point import SCALE
from metric_series.contracts import Number, PoolSnapshot, VaultSnapshot

Derive = Callable[[object], Mapping[str, Number | None]]


@dataclass(frozen=True)
class MetricGroup:
    """A tracked set of metrics derived from one snapshot type."""

    key: str
    store_key: str
    metric_names: tuple[str, ...]
    required_inputs: tuple[str, ...]
    derive: Derive

    def compute(self, snapshot: object) -> tuple[dict[str, Number] | None, tuple[str, ...]]:
        """Return the derived metrics, or ``None`` with the unresolved names."""
        missing = tuple(
            name for name in self.required_inputs if getattr(snapshot, name, None) is None
        )
        if missing:
            return None, missing
        derived = self.derive(snapshot)
        undefined = tuple(
            name for name in self.metric_names if not _is_defined(derived.get(name))
        )
        if undefined:
            return None, undefined
        return {name: derived[name] for name in self.metric_names}, ()


def _is_defined(value: Number | None) -> bool:
    if value is None:
        return False
    return not (isinstance(value, float) and not math.isfinite(value))


def _derive_vault(snapshot: object) -> dict[str, Number | None]:
    if not isinstance(snapshot, VaultSnapshot):
        raise TypeError("vault group expects a VaultSnapshot")
    dft_balance = snapshot.require("dft_balance")
    stable_balance = snapshot.require("stable_balance")
    spot = stable_balance / dft_balance if dft_balance > 0 else None
    return {
        "ema30": snapshot.require("ema_short") / SCALE,
        "ema120": snapshot.require("ema_long") / SCALE,
        "spot": spot,
    }


def _derive_pool(snapshot: object) -> dict[str, Number | None]:
    if not isinstance(snapshot, PoolSnapshot):
        raise TypeError("pool group expects a PoolSnapshot")
    return {
        "dft_reserve": snapshot.require("dft_reserve"),
        "stable_reserve": snapshot.require("stable_reserve"),
    }


VAULT_GROUP = MetricGroup(
    key="vault",
    store_key="vault_series",
    metric_names=("ema30", "ema120", "spot"),
    required_inputs=("dft_balance", "stable_balance", "ema_short", "ema_long"),
    derive=_derive_vault,
)

POOL_GROUP = MetricGroup(
    key="pool",
    store_key="pool_series",
    metric_names=("dft_reserve", "stable_reserve"),
    required_inputs=("dft_reserve", "stable_reserve"),
    derive=_derive_pool,
)
