"""
Batch State - durable record of one batch run over a contiguous episode range.

Only the batch orchestrator mutates it; it is persisted after every transition
so a restart resumes from the last durable position.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class BatchStatus(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    DONE = "DONE"
    FAILED = "FAILED"


class BatchHealth(str, Enum):
    HEALTHY = "HEALTHY"
    WARNING = "WARNING"
    RISKY = "RISKY"


@dataclass
class BatchState:
    project_id: str
    start_episode: int
    end_episode: int
    current_episode: int
    status: BatchStatus = BatchStatus.IDLE
    completed: List[int] = field(default_factory=list)
    degraded: List[int] = field(default_factory=list)
    hard_failed: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    consecutive_hard_failures: int = 0
    last_error: Optional[str] = None
    health: BatchHealth = BatchHealth.HEALTHY
    updated_at: float = field(default_factory=time.time)

    @property
    def is_exhausted(self) -> bool:
        return self.current_episode > self.end_episode

    def last_completed(self) -> int:
        return max(self.completed) if self.completed else self.start_episode - 1

    def record(self, bucket: str, episode_index: int) -> None:
        """Put an episode in exactly one outcome list (latest outcome wins)."""
        for name in ("completed", "degraded", "hard_failed", "skipped"):
            items = getattr(self, name)
            if episode_index in items:
                items.remove(episode_index)
        getattr(self, bucket).append(episode_index)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["health"] = self.health.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BatchState":
        return cls(
            project_id=data["project_id"],
            start_episode=int(data["start_episode"]),
            end_episode=int(data["end_episode"]),
            current_episode=int(data["current_episode"]),
            status=BatchStatus(data.get("status", BatchStatus.IDLE.value)),
            completed=[int(i) for i in data.get("completed", [])],
            degraded=[int(i) for i in data.get("degraded", [])],
            hard_failed=[int(i) for i in data.get("hard_failed", [])],
            skipped=[int(i) for i in data.get("skipped", [])],
            consecutive_hard_failures=int(data.get("consecutive_hard_failures", 0)),
            last_error=data.get("last_error"),
            health=BatchHealth(data.get("health", BatchHealth.HEALTHY.value)),
            updated_at=float(data.get("updated_at", time.time())),
        )


def calculate_health(state: BatchState) -> BatchHealth:
    if state.consecutive_hard_failures >= 1:
        return BatchHealth.RISKY
    if len(state.hard_failed) >= 3:
        return BatchHealth.WARNING
    return BatchHealth.HEALTHY
