"""
Episode Outcome Types

Terminal result of one episode run, as seen by the batch:
- COMPLETED: contract satisfied, content assembled (draft; review happens downstream)
- DEGRADED: contract never satisfied even after relaxation; accepted, flagged for follow-up
- HARD_FAIL: non-structural failure (transport, assembly); no content

The batch orchestrator consumes only these values, never escalator internals.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class OutcomeKind(str, Enum):
    COMPLETED = "completed"
    DEGRADED = "degraded"
    HARD_FAIL = "hard_fail"


@dataclass(frozen=True)
class EpisodeOutcome:
    episode_index: int
    attempt_count: int = 0
    produced_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc), compare=False)

    kind = None  # set by subclasses

    @property
    def is_completed(self) -> bool:
        return self.kind == OutcomeKind.COMPLETED

    @property
    def is_degraded(self) -> bool:
        return self.kind == OutcomeKind.DEGRADED

    @property
    def is_hard_fail(self) -> bool:
        return self.kind == OutcomeKind.HARD_FAIL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "episode_index": self.episode_index,
            "attempt_count": self.attempt_count,
            "produced_at": self.produced_at.isoformat(),
        }


@dataclass(frozen=True)
class Completed(EpisodeOutcome):
    content: str = ""
    relaxed: bool = False

    kind = OutcomeKind.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"content": self.content, "relaxed": self.relaxed})
        return data


@dataclass(frozen=True)
class Degraded(EpisodeOutcome):
    reason: str = ""
    last_attempt_summary: str = ""
    remediation_note: str = ""
    content: Optional[str] = None  # best available, never invented

    kind = OutcomeKind.DEGRADED

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "reason": self.reason,
            "last_attempt_summary": self.last_attempt_summary,
            "remediation_note": self.remediation_note,
            "content": self.content,
        })
        return data


@dataclass(frozen=True)
class HardFail(EpisodeOutcome):
    reason: str = ""
    error_type: str = ""

    kind = OutcomeKind.HARD_FAIL

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"reason": self.reason, "error_type": self.error_type})
        return data


# ============================================================================
# Human-readable summaries
# ============================================================================

def build_remediation_note(episode_index: int, reason: str) -> str:
    return (
        f"Episode {episode_index} hit a structural failure; it was degraded automatically "
        f"and the batch kept going.\n\n"
        f"Reason: {reason}\n\n"
        f"Suggested actions:\n"
        f"[Regenerate EP{episode_index}] -> rerun with the reinforced reveal contract\n"
        f"[Accept and continue] -> edit manually in the episode list, then mark complete"
    )


def build_hard_fail_summary(reason: str) -> str:
    return f"System error: {reason}. Check the logs and retry."


def build_first_episode_pause_summary(reason: str) -> str:
    return (
        f"Episode 1 failed (system error): {reason}. Episode 1 is a hard dependency; "
        f"check the generator connection and retry before continuing."
    )
