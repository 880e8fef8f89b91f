from __future__ import annotations

import argparse
import dataclasses
import json
import signal
import threading
from collections.abc import Sequence
from enum import Enum

from runtime.config import TelemetryConfig, load_config, load_default_config
from runtime.observability import bootstrap_observability
from runtime.telemetry import TelemetryModel
from runtime.wiring import build_runtime


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="deflat-telemetry",
        description="Mirror pool and vault state into a local telemetry model.",
    )
    parser.add_argument("--config", help="YAML file layered over the packaged defaults")
    parser.add_argument("--state-dir", help="directory for persisted window and series")
    parser.add_argument("--log-dir", help="directory for the log file")
    parser.add_argument("--rpc-url", help="override chain.rpc_url")
    parser.add_argument(
        "--once",
        action="store_true",
        help="run one indexer and one snapshot tick, print the model and exit",
    )
    return parser.parse_args(argv)


def resolve_config(args: argparse.Namespace) -> TelemetryConfig:
    config = load_config(args.config) if args.config else load_default_config()
    runtime = dataclasses.replace(
        config.runtime,
        state_dir=args.state_dir or config.runtime.state_dir,
        log_dir=args.log_dir or config.runtime.log_dir,
    )
    chain = config.chain
    if args.rpc_url:
        chain = dataclasses.replace(chain, rpc_url=args.rpc_url)
    return dataclasses.replace(config, runtime=runtime, chain=chain)


def model_to_json(model: TelemetryModel) -> str:
    return json.dumps(dataclasses.asdict(model), default=_json_default, indent=2)


def _json_default(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"not serializable: {type(value).__name__}")


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    config = resolve_config(args)
    observability = bootstrap_observability(log_dir=config.runtime.log_dir)
    runtime = build_runtime(config, observability)
    if args.once:
        runtime.run_once()
        print(model_to_json(runtime.service.model()))
        runtime.service.close()
        return

    stop_requested = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop_requested.set())
    runtime.start()
    observability.runtime.log_runtime_started(
        state_dir=config.runtime.state_dir,
        subscription_enabled=runtime.subscription is not None,
    )
    observability.runtime.log_tasks_started(task_names=[task.name for task in runtime.tasks])
    try:
        while not stop_requested.wait(1):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        clean = runtime.stop()
        observability.runtime.log_runtime_stopped(clean=clean)


if __name__ == "__main__":
    main()
