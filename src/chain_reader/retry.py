from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from chain_reader.config import RetryPolicy


@dataclass(frozen=True)
class RetrySchedule:
    min_delay_ms: int
    max_delay_ms: int
    max_attempts: int
    max_elapsed_ms: int | None = None

    @classmethod
    def from_policy(cls, policy: RetryPolicy) -> RetrySchedule:
        return cls(
            min_delay_ms=policy.min_delay_ms,
            max_delay_ms=policy.max_delay_ms,
            max_attempts=policy.max_attempts,
            max_elapsed_ms=policy.max_elapsed_ms,
        )

    def delays(self) -> tuple[int, ...]:
        delays: list[int] = []
        delay = self.min_delay_ms
        elapsed = 0
        for _ in range(self.max_attempts):
            if self.max_elapsed_ms is not None and (elapsed + delay) > self.max_elapsed_ms:
                break
            delays.append(delay)
            elapsed += delay
            delay = min(delay * 2, self.max_delay_ms)
        return tuple(delays)


class ConnectionState(str, Enum):
    CREATED = "created"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"
    STOPPED = "stopped"


@dataclass
class ConnectionStatus:
    state: ConnectionState = ConnectionState.CREATED
    failure_count: int = 0
    last_error: Exception | None = None


class ConnectionSupervisor:
    """Tracks reconnect attempts; a successful connection resets the failure count."""

    def __init__(self, retry_policy: RetryPolicy) -> None:
        self.retry_schedule = RetrySchedule.from_policy(retry_policy)
        self.status = ConnectionStatus()

    def record_connecting(self) -> None:
        self.status.state = ConnectionState.CONNECTING

    def record_connected(self) -> None:
        self.status.state = ConnectionState.CONNECTED
        self.status.failure_count = 0
        self.status.last_error = None

    def record_stop(self) -> None:
        self.status.state = ConnectionState.STOPPED

    def record_failure(self, error: Exception) -> None:
        self.status.state = ConnectionState.FAILED
        self.status.failure_count += 1
        self.status.last_error = error

    def next_retry_delay_ms(self) -> int | None:
        if self.status.failure_count <= 0:
            return None
        delays = self.retry_schedule.delays()
        index = self.status.failure_count - 1
        if index >= len(delays):
            return None
        return delays[index]
