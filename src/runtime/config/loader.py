from __future__ import annotations

import importlib
from collections.abc import Mapping
from importlib import resources

from chain_reader.config import (
    ChainReaderConfig,
    ContractAddresses,
    RetryPolicy,
    SubscriptionConfig,
)
from event_log.config import IndexerConfig
from metric_series.config import SeriesConfig
from runtime.config.schema import RuntimeSettings, TelemetryConfig, validate_config
from vault_policy.config import PolicyConfig

_ROOT_KEYS = {"chain", "event_log", "metric_series", "vault_policy", "runtime"}
_CHAIN_KEYS = {"rpc_url", "request_timeout_ms", "contracts", "subscription"}
_CONTRACT_KEYS = {"pool", "vault", "dft_token", "stable_token"}
_SUBSCRIPTION_KEYS = {"ws_url", "connect_timeout_ms", "read_timeout_ms", "retry"}
_RETRY_KEYS = {"min_delay_ms", "max_delay_ms", "max_attempts", "max_elapsed_ms"}
_EVENT_LOG_INT_KEYS = (
    "retention_ms",
    "capacity",
    "interval_ms",
    "lookback_blocks",
    "max_block_span",
    "max_concurrent_ranges",
    "max_catchup_blocks",
    "amount_places",
)
_EVENT_LOG_KEYS = {*_EVENT_LOG_INT_KEYS, "retention_clock", "store_key", "symbols"}
_SERIES_KEYS = {"retention_ms", "interval_ms", "read_timeout_ms"}
_POLICY_KEYS = {"fallback_daily_budget"}
_RUNTIME_KEYS = {"state_dir", "log_dir", "shutdown_timeout_ms"}


def load_default_config() -> TelemetryConfig:
    config = _parse_config(_load_default_payload())
    validate_config(config)
    return config


def load_config(path: str) -> TelemetryConfig:
    """Load ``path`` layered over the packaged defaults."""
    with open(path, encoding="utf-8") as handle:
        override = _parse_yaml(handle.read(), label=path)
    payload = _merge(_load_default_payload(), override)
    config = _parse_config(payload)
    validate_config(config)
    return config


def _load_default_payload() -> Mapping[str, object]:
    text = (
        resources.files("runtime.config")
        .joinpath("default.yaml")
        .read_text(encoding="utf-8")
    )
    return _parse_yaml(text, label="runtime default config")


def _parse_yaml(text: str, *, label: str) -> Mapping[str, object]:
    yaml = importlib.import_module("yaml")
    data = yaml.safe_load(text)
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"{label} must be a mapping")
    return data


def _merge(base: Mapping[str, object], override: Mapping[str, object]) -> dict[str, object]:
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = _merge(current, value)
        else:
            merged[key] = value
    return merged


def _parse_config(payload: Mapping[str, object]) -> TelemetryConfig:
    _reject_unknown(payload, _ROOT_KEYS, "telemetry config")
    return TelemetryConfig(
        chain=_parse_chain(payload.get("chain")),
        event_log=_parse_event_log(payload.get("event_log")),
        metric_series=_parse_series(payload.get("metric_series")),
        vault_policy=_parse_policy(payload.get("vault_policy")),
        runtime=_parse_runtime(payload.get("runtime")),
    )


def _parse_chain(data: object) -> ChainReaderConfig:
    data = _require_mapping(data, "chain")
    _reject_unknown(data, _CHAIN_KEYS, "chain")
    contracts = _require_mapping(data.get("contracts"), "chain.contracts")
    _reject_unknown(contracts, _CONTRACT_KEYS, "chain.contracts")
    subscription = data.get("subscription")
    return ChainReaderConfig(
        rpc_url=_require_str(data, "rpc_url", "chain"),
        request_timeout_ms=_require_int(data, "request_timeout_ms", "chain"),
        contracts=ContractAddresses(
            pool=_require_str(contracts, "pool", "chain.contracts"),
            vault=_require_str(contracts, "vault", "chain.contracts"),
            dft_token=_require_str(contracts, "dft_token", "chain.contracts"),
            stable_token=_require_str(contracts, "stable_token", "chain.contracts"),
        ),
        subscription=_parse_subscription(subscription) if subscription is not None else None,
    )


def _parse_subscription(data: object) -> SubscriptionConfig:
    data = _require_mapping(data, "chain.subscription")
    _reject_unknown(data, _SUBSCRIPTION_KEYS, "chain.subscription")
    return SubscriptionConfig(
        ws_url=_require_str(data, "ws_url", "chain.subscription"),
        connect_timeout_ms=_require_int(data, "connect_timeout_ms", "chain.subscription"),
        read_timeout_ms=_require_int(data, "read_timeout_ms", "chain.subscription"),
        retry=_parse_retry(data.get("retry"), "chain.subscription.retry"),
    )


def _parse_retry(data: object, label: str) -> RetryPolicy:
    data = _require_mapping(data, label)
    _reject_unknown(data, _RETRY_KEYS, label)
    max_elapsed_ms = data.get("max_elapsed_ms")
    if max_elapsed_ms is not None and not _is_int(max_elapsed_ms):
        raise ValueError(f"{label}.max_elapsed_ms must be an int")
    return RetryPolicy(
        min_delay_ms=_require_int(data, "min_delay_ms", label),
        max_delay_ms=_require_int(data, "max_delay_ms", label),
        max_attempts=_require_int(data, "max_attempts", label),
        max_elapsed_ms=max_elapsed_ms,
    )


def _parse_event_log(data: object) -> IndexerConfig:
    data = _require_mapping(data, "event_log")
    _reject_unknown(data, _EVENT_LOG_KEYS, "event_log")
    symbols = _require_mapping(data.get("symbols"), "event_log.symbols")
    _reject_unknown(symbols, {"dft", "stable"}, "event_log.symbols")
    return IndexerConfig(
        **{key: _require_int(data, key, "event_log") for key in _EVENT_LOG_INT_KEYS},
        retention_clock=_require_str(data, "retention_clock", "event_log"),
        store_key=_require_str(data, "store_key", "event_log"),
        symbols={
            "dft": _require_str(symbols, "dft", "event_log.symbols"),
            "stable": _require_str(symbols, "stable", "event_log.symbols"),
        },
    )


def _parse_series(data: object) -> SeriesConfig:
    data = _require_mapping(data, "metric_series")
    _reject_unknown(data, _SERIES_KEYS, "metric_series")
    return SeriesConfig(
        retention_ms=_require_int(data, "retention_ms", "metric_series"),
        interval_ms=_require_int(data, "interval_ms", "metric_series"),
        read_timeout_ms=_require_int(data, "read_timeout_ms", "metric_series"),
    )


def _parse_policy(data: object) -> PolicyConfig:
    data = _require_mapping(data, "vault_policy")
    _reject_unknown(data, _POLICY_KEYS, "vault_policy")
    fallback = data.get("fallback_daily_budget")
    if fallback is not None and not _is_int(fallback):
        raise ValueError("vault_policy.fallback_daily_budget must be an int")
    return PolicyConfig(fallback_daily_budget=fallback)


def _parse_runtime(data: object) -> RuntimeSettings:
    data = _require_mapping(data, "runtime")
    _reject_unknown(data, _RUNTIME_KEYS, "runtime")
    return RuntimeSettings(
        state_dir=_require_str(data, "state_dir", "runtime"),
        log_dir=_require_str(data, "log_dir", "runtime"),
        shutdown_timeout_ms=_require_int(data, "shutdown_timeout_ms", "runtime"),
    )


def _require_mapping(data: object, label: str) -> Mapping[str, object]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{label} must be a mapping")
    return data


def _require_str(data: Mapping[str, object], key: str, label: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"{label}.{key} must be set")
    return value


def _require_int(data: Mapping[str, object], key: str, label: str) -> int:
    value = data.get(key)
    if not _is_int(value):
        raise ValueError(f"{label}.{key} must be an int")
    return value  # type: ignore[return-value]


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _reject_unknown(payload: Mapping[str, object], allowed: set[str], label: str) -> None:
    unknown = set(payload.keys()) - allowed
    if unknown:
        unknown_list = ", ".join(sorted(str(item) for item in unknown))
        raise ValueError(f"unknown {label} keys: {unknown_list}")
