"""Deferred-task names and a queue-backed runner."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

TASK_UPDATE_TEAM_POINTS = "update_team_points"
TASK_UPDATE_DIVISION_STANDINGS = "update_division_standings"

TaskHandler = Callable[[str, dict[str, Any]], Any]


@dataclass(frozen=True)
class ScheduledTask:
    delay_seconds: float
    task_name: str
    args: dict[str, Any]


class QueuedTaskRunner:
    """Collects scheduled tasks; ``drain`` runs them in delay order.

    Stands in for an external scheduler in scripts and tests. Tasks carry no
    ordering guarantee beyond their delay, and handlers must be idempotent.
    """

    def __init__(self) -> None:
        self.scheduled: list[ScheduledTask] = []

    def schedule(self, delay_seconds: float, task_name: str, args: dict[str, Any]) -> None:
        self.scheduled.append(ScheduledTask(float(delay_seconds), task_name, dict(args)))

    def pending(self) -> list[ScheduledTask]:
        return list(self.scheduled)

    def drain(self, handler: TaskHandler) -> list[Any]:
        tasks = sorted(self.scheduled, key=lambda task: task.delay_seconds)
        self.scheduled.clear()
        return [handler(task.task_name, task.args) for task in tasks]


__all__ = [
    "QueuedTaskRunner",
    "ScheduledTask",
    "TASK_UPDATE_DIVISION_STANDINGS",
    "TASK_UPDATE_TEAM_POINTS",
    "TaskHandler",
]
