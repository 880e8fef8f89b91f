from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol


class StructuredLogger(Protocol):
    def log(self, level: int, message: str, fields: Mapping[str, object]) -> None: ...


@dataclass(frozen=True)
class StdlibLogger:
    logger: logging.Logger

    def log(self, level: int, message: str, fields: Mapping[str, object]) -> None:
        self.logger.log(level, message, extra={"fields": dict(fields)})


@dataclass(frozen=True)
class NullLogger:
    def log(self, level: int, message: str, fields: Mapping[str, object]) -> None:
        return None


@dataclass(frozen=True)
class Observability:
    logger: StructuredLogger

    def log_connection_state(
        self,
        *,
        ws_url: str,
        state: str,
        failure_count: int | None = None,
        error: str | None = None,
    ) -> None:
        fields: dict[str, object] = {"ws_url": ws_url, "state": state}
        if failure_count is not None:
            fields["failure_count"] = failure_count
        if error is not None:
            fields["error_detail"] = error
        level = logging.WARNING if state == "failed" else logging.INFO
        self.logger.log(level, "chain_reader.subscription_state", fields)

    def log_message_dropped(self, *, error_kind: str, error_detail: str) -> None:
        self.logger.log(
            logging.DEBUG,
            "chain_reader.subscription_message_dropped",
            {"error_kind": error_kind, "error_detail": error_detail},
        )

    def log_malformed_log(
        self, *, address: str, block_start: int, block_end: int, error_detail: str
    ) -> None:
        self.logger.log(
            logging.WARNING,
            "chain_reader.malformed_log_dropped",
            {
                "address": address,
                "block_start": block_start,
                "block_end": block_end,
                "error_kind": "format_error",
                "error_detail": error_detail,
            },
        )
