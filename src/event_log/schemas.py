from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from web3 import Web3

from event_log.contracts import ARG_KINDS

POOL_SOURCE = "pool"
VAULT_SOURCE = "vault"


@dataclass(frozen=True)
class ArgSpec:
    """One typed event argument.

    ``symbol`` names a token role (``dft`` or ``stable``) resolved to a display
    symbol at format time; it only applies to ``amount18`` arguments.
    """

    name: str
    abi_type: str
    kind: str
    indexed: bool = False
    symbol: str | None = None

    def __post_init__(self) -> None:
        if self.kind not in ARG_KINDS:
            raise ValueError(f"unknown argument kind: {self.kind}")
        if self.symbol is not None and self.kind != "amount18":
            raise ValueError("symbol only applies to amount18 arguments")


@dataclass(frozen=True)
class EventSchema:
    source: str
    name: str
    args: tuple[ArgSpec, ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(arg.abi_type for arg in self.args)})"

    @property
    def topic0(self) -> str:
        return "0x" + bytes(Web3.keccak(text=self.signature)).hex()

    @property
    def indexed_args(self) -> tuple[ArgSpec, ...]:
        return tuple(arg for arg in self.args if arg.indexed)

    @property
    def data_args(self) -> tuple[ArgSpec, ...]:
        return tuple(arg for arg in self.args if not arg.indexed)


def _amount(name: str, symbol: str | None = None) -> ArgSpec:
    return ArgSpec(name=name, abi_type="uint256", kind="amount18", symbol=symbol)


def _address(name: str, *, indexed: bool = False) -> ArgSpec:
    return ArgSpec(name=name, abi_type="address", kind="address", indexed=indexed)


def _number(name: str) -> ArgSpec:
    return ArgSpec(name=name, abi_type="uint256", kind="number")


def _flag(name: str) -> ArgSpec:
    return ArgSpec(name=name, abi_type="bool", kind="bool")


POOL_SCHEMAS: tuple[EventSchema, ...] = (
    EventSchema(
        source=POOL_SOURCE,
        name="Swap",
        args=(
            _address("sender", indexed=True),
            _flag("dftToStable"),
            _amount("amountIn"),
            _amount("amountOut"),
            _address("to", indexed=True),
        ),
    ),
    EventSchema(
        source=POOL_SOURCE,
        name="FeesApplied",
        args=(_number("feeBps"), _amount("feeAmount")),
    ),
    EventSchema(
        source=POOL_SOURCE,
        name="Sync",
        args=(_amount("reserveDft", "dft"), _amount("reserveStable", "stable")),
    ),
    EventSchema(
        source=POOL_SOURCE,
        name="Mint",
        args=(
            _address("sender", indexed=True),
            _amount("amountDft", "dft"),
            _amount("amountStable", "stable"),
        ),
    ),
    EventSchema(
        source=POOL_SOURCE,
        name="Burn",
        args=(
            _address("sender", indexed=True),
            _amount("amountDft", "dft"),
            _amount("amountStable", "stable"),
            _address("to", indexed=True),
        ),
    ),
)

VAULT_SCHEMAS: tuple[EventSchema, ...] = (
    EventSchema(
        source=VAULT_SOURCE,
        name="Rebalanced",
        args=(
            _flag("buyDft"),
            _amount("amountIn"),
            _amount("amountOut"),
            _number("stressBps"),
            _amount("spentTodayStableEq", "stable"),
        ),
    ),
    EventSchema(
        source=VAULT_SOURCE,
        name="SeededLiquidity",
        args=(_amount("amountDft", "dft"), _amount("amountStable", "stable")),
    ),
    EventSchema(
        source=VAULT_SOURCE,
        name="EmaUpdated",
        args=(_amount("spot"), _amount("emaShort"), _amount("emaLong")),
    ),
)


@dataclass
class SchemaRegistry:
    """Schemas keyed by ``(contract address, topic0)``."""

    _by_key: dict[tuple[str, str], EventSchema] = field(default_factory=dict)
    _sources: dict[str, str] = field(default_factory=dict)

    def register(self, address: str, schema: EventSchema) -> None:
        address = address.lower()
        known_source = self._sources.get(address)
        if known_source is not None and known_source != schema.source:
            raise ValueError(f"address {address} already bound to source {known_source}")
        key = (address, schema.topic0)
        if key in self._by_key:
            raise ValueError(f"duplicate schema for {schema.source}.{schema.name}")
        self._sources[address] = schema.source
        self._by_key[key] = schema

    def register_all(self, address: str, schemas: Iterable[EventSchema]) -> None:
        for schema in schemas:
            self.register(address, schema)

    def lookup(self, address: str, topic0: str) -> EventSchema | None:
        return self._by_key.get((address.lower(), topic0.lower()))

    def topics_for(self, address: str) -> tuple[str, ...]:
        address = address.lower()
        return tuple(topic for (addr, topic) in self._by_key if addr == address)

    def sources(self) -> Mapping[str, str]:
        """Source label by contract address."""
        return dict(self._sources)


def default_registry(*, pool_address: str, vault_address: str) -> SchemaRegistry:
    registry = SchemaRegistry()
    registry.register_all(pool_address, POOL_SCHEMAS)
    registry.register_all(vault_address, VAULT_SCHEMAS)
    return registry
