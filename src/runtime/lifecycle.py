from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TaskState(str, Enum):
    INIT = "init"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class Lifecycle:
    state: TaskState = TaskState.INIT

    def start(self) -> None:
        if self.state != TaskState.INIT:
            raise RuntimeError(f"cannot start from {self.state}")
        self.state = TaskState.RUNNING

    def stop(self) -> None:
        if self.state == TaskState.STOPPED:
            return
        self.state = TaskState.STOPPED

    @property
    def running(self) -> bool:
        return self.state == TaskState.RUNNING
