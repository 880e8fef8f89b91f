from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields

Number = int | float

VAULT_FIELDS: tuple[str, ...] = (
    "dft_balance",
    "stable_balance",
    "ema_short",
    "ema_long",
    "spent_today_abs",
    "next_allowed_at",
    "stress_ratio_bps",
    "stress_max_bps",
    "daily_budget_bps",
)

POOL_FIELDS: tuple[str, ...] = (
    "dft_reserve",
    "stable_reserve",
    "price_dft_in_stable",
    "price_stable_in_dft",
)


class StaleDataError(RuntimeError):
    """Raised when a required snapshot field is unresolved or stale."""

    error_kind = "stale_data"

    def __init__(self, field_name: str) -> None:
        super().__init__(f"{field_name} is unresolved")
        self.field_name = field_name


@dataclass(frozen=True)
class SeriesPoint:
    ts_ms: int
    metrics: Mapping[str, Number]


class _Snapshot:
    taken_at_ms: int
    stale_fields: tuple[str, ...]

    def require(self, field_name: str) -> int:
        value = getattr(self, field_name)
        if value is None:
            raise StaleDataError(field_name)
        return value

    def missing(self, field_names: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(name for name in field_names if getattr(self, name) is None)

    def as_dict(self) -> dict[str, object]:
        return {item.name: getattr(self, item.name) for item in fields(self)}  # type: ignore[arg-type]


@dataclass(frozen=True)
class VaultSnapshot(_Snapshot):
    """Vault state at one tick; ``None`` means unresolved, never zero."""

    taken_at_ms: int
    dft_balance: int | None = None
    stable_balance: int | None = None
    ema_short: int | None = None
    ema_long: int | None = None
    spent_today_abs: int | None = None
    next_allowed_at: int | None = None
    stress_ratio_bps: int | None = None
    stress_max_bps: int | None = None
    daily_budget_bps: int | None = None
    stale_fields: tuple[str, ...] = field(default=())


@dataclass(frozen=True)
class PoolSnapshot(_Snapshot):
    taken_at_ms: int
    dft_reserve: int | None = None
    stable_reserve: int | None = None
    price_dft_in_stable: int | None = None
    price_stable_in_dft: int | None = None
    stale_fields: tuple[str, ...] = field(default=())
