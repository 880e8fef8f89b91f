from __future__ import annotations

from collections.abc import Mapping

from chain_reader.fixed_point import round_units
from event_log.contracts import FormattedArg
from event_log.decoder import DecodedLog
from event_log.schemas import ArgSpec

DEFAULT_AMOUNT_PLACES = 4


def format_amount(amount: int, *, symbol: str | None = None, places: int = DEFAULT_AMOUNT_PLACES) -> str:
    text = f"{round_units(amount, places):f}"
    return f"{text} {symbol}" if symbol else text


def format_address(address: str) -> str:
    lowered = address.lower()
    if len(lowered) < 10:
        return lowered
    return f"{lowered[:6]}…{lowered[-4:]}"


def format_value(
    spec: ArgSpec,
    value: object,
    *,
    symbols: Mapping[str, str],
    places: int = DEFAULT_AMOUNT_PLACES,
) -> str:
    if spec.kind == "amount18":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{spec.name} must be an integer amount")
        symbol = symbols.get(spec.symbol) if spec.symbol else None
        return format_amount(value, symbol=symbol, places=places)
    if spec.kind == "address":
        return format_address(str(value))
    if spec.kind == "bool":
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


def format_args(
    decoded: DecodedLog,
    *,
    symbols: Mapping[str, str],
    places: int = DEFAULT_AMOUNT_PLACES,
) -> tuple[FormattedArg, ...]:
    return tuple(
        FormattedArg(
            name=spec.name,
            kind=spec.kind,  # type: ignore[arg-type]
            value=format_value(spec, value, symbols=symbols, places=places),
        )
        for spec, value in decoded.values
    )
