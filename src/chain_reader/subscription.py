from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable, Mapping, Sequence

import websockets

from chain_reader.config import SubscriptionConfig
from chain_reader.contracts import RawLog, raw_log_from_rpc
from chain_reader.observability import NullLogger, Observability
from chain_reader.retry import ConnectionSupervisor

LogsCallback = Callable[[Sequence[RawLog]], None]


class SubscriptionError(RuntimeError):
    """Raised when the node rejects or malforms the subscription handshake."""


class LogSubscription:
    """Push variant of log retrieval over ``eth_subscribe("logs")``.

    Delivered logs are handed to ``on_logs``; the polling indexer stays the
    source of truth and fills any gap left by a dropped connection.
    """

    def __init__(
        self,
        *,
        config: SubscriptionConfig,
        addresses: Sequence[str],
        on_logs: LogsCallback,
        observability: Observability | None = None,
    ) -> None:
        if not addresses:
            raise ValueError("addresses must not be empty")
        self._config = config
        self._addresses = [address.lower() for address in addresses]
        self._on_logs = on_logs
        self._observability = observability or Observability(logger=NullLogger())
        self._supervisor = ConnectionSupervisor(config.retry)
        self._running = False

    @property
    def supervisor(self) -> ConnectionSupervisor:
        return self._supervisor

    def start(self) -> None:
        self._running = True

    def run(self) -> None:
        while self._running:
            try:
                asyncio.run(self._consume_stream())
            except Exception as exc:
                self._supervisor.record_failure(exc)
                self._observability.log_connection_state(
                    ws_url=self._config.ws_url,
                    state="failed",
                    failure_count=self._supervisor.status.failure_count,
                    error=str(exc),
                )
                delay_ms = self._supervisor.next_retry_delay_ms()
                if delay_ms is None:
                    self.stop()
                    break
                time.sleep(delay_ms / 1000)
        self._supervisor.record_stop()

    def stop(self) -> None:
        self._running = False

    def subscribe_request(self) -> str:
        return json.dumps(
            {
                "jsonrpc": "2.0",
                "id": 1,
                "method": "eth_subscribe",
                "params": ["logs", {"address": self._addresses}],
            }
        )

    async def _consume_stream(self) -> None:
        self._supervisor.record_connecting()
        self._observability.log_connection_state(
            ws_url=self._config.ws_url,
            state="connecting",
            failure_count=self._supervisor.status.failure_count,
        )
        async with websockets.connect(
            self._config.ws_url,
            open_timeout=self._config.connect_timeout_ms / 1000,
            close_timeout=1,
        ) as websocket:
            await websocket.send(self.subscribe_request())
            ack = await asyncio.wait_for(
                websocket.recv(), timeout=self._config.connect_timeout_ms / 1000
            )
            subscription_id = parse_subscription_ack(ack)
            self._supervisor.record_connected()
            self._observability.log_connection_state(
                ws_url=self._config.ws_url, state="connected"
            )
            while self._running:
                try:
                    message = await asyncio.wait_for(
                        websocket.recv(), timeout=self._config.read_timeout_ms / 1000
                    )
                except asyncio.TimeoutError:
                    # quiet chains are normal; keep waiting
                    continue
                self.handle_message(message, subscription_id=subscription_id)

    def handle_message(self, message: str | bytes, *, subscription_id: str) -> RawLog | None:
        try:
            text = message if isinstance(message, str) else message.decode("utf-8")
            data = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            self._observability.log_message_dropped(
                error_kind="decode_error", error_detail=str(exc)
            )
            return None
        if not isinstance(data, Mapping) or data.get("method") != "eth_subscription":
            self._observability.log_message_dropped(
                error_kind="schema_mismatch", error_detail="not a subscription notification"
            )
            return None
        params = data.get("params")
        if not isinstance(params, Mapping) or params.get("subscription") != subscription_id:
            self._observability.log_message_dropped(
                error_kind="schema_mismatch", error_detail="unknown subscription"
            )
            return None
        result = params.get("result")
        if not isinstance(result, Mapping):
            self._observability.log_message_dropped(
                error_kind="schema_mismatch", error_detail="result must be a mapping"
            )
            return None
        try:
            raw_log = raw_log_from_rpc(result)
        except ValueError as exc:
            self._observability.log_message_dropped(
                error_kind="schema_mismatch", error_detail=str(exc)
            )
            return None
        if raw_log.removed:
            return None
        self._on_logs([raw_log])
        return raw_log


def parse_subscription_ack(message: str | bytes) -> str:
    try:
        text = message if isinstance(message, str) else message.decode("utf-8")
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SubscriptionError(f"invalid subscription ack: {exc}") from exc
    if not isinstance(data, Mapping):
        raise SubscriptionError("subscription ack must be a mapping")
    if "error" in data:
        raise SubscriptionError(f"subscription rejected: {data['error']}")
    result = data.get("result")
    if not isinstance(result, str) or not result:
        raise SubscriptionError("subscription ack missing id")
    return result
