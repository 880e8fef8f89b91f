from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    min_delay_ms: int
    max_delay_ms: int
    max_attempts: int
    max_elapsed_ms: int | None = None


@dataclass(frozen=True)
class ContractAddresses:
    pool: str
    vault: str
    dft_token: str
    stable_token: str


@dataclass(frozen=True)
class SubscriptionConfig:
    ws_url: str
    connect_timeout_ms: int
    read_timeout_ms: int
    retry: RetryPolicy


@dataclass(frozen=True)
class ChainReaderConfig:
    rpc_url: str
    request_timeout_ms: int
    contracts: ContractAddresses
    subscription: SubscriptionConfig | None = None


def validate_config(config: ChainReaderConfig) -> None:
    if not config.rpc_url:
        raise ValueError("chain.rpc_url must be set")
    _require_positive(config.request_timeout_ms, "chain.request_timeout_ms")
    _validate_contracts(config.contracts)
    if config.subscription is None:
        return
    subscription = config.subscription
    if not subscription.ws_url:
        raise ValueError("chain.subscription.ws_url must be set")
    _require_positive(subscription.connect_timeout_ms, "chain.subscription.connect_timeout_ms")
    _require_positive(subscription.read_timeout_ms, "chain.subscription.read_timeout_ms")
    _validate_retry(subscription.retry)


def _validate_contracts(contracts: ContractAddresses) -> None:
    for field_name in ("pool", "vault", "dft_token", "stable_token"):
        value = getattr(contracts, field_name)
        if not _is_address(value):
            raise ValueError(f"contracts.{field_name} must be a 20-byte hex address")


def _is_address(value: str) -> bool:
    if not isinstance(value, str) or len(value) != 42 or not value.startswith("0x"):
        return False
    try:
        int(value[2:], 16)
    except ValueError:
        return False
    return True


def _validate_retry(retry: RetryPolicy) -> None:
    _require_positive(retry.min_delay_ms, "retry.min_delay_ms")
    _require_positive(retry.max_delay_ms, "retry.max_delay_ms")
    if retry.max_delay_ms < retry.min_delay_ms:
        raise ValueError("retry.max_delay_ms must be >= retry.min_delay_ms")
    if retry.max_attempts <= 0:
        raise ValueError("retry.max_attempts must be > 0")
    if retry.max_elapsed_ms is not None:
        _require_positive(retry.max_elapsed_ms, "retry.max_elapsed_ms")


def _require_positive(value: int, field_name: str) -> None:
    if value <= 0:
        raise ValueError(f"{field_name} must be > 0")
