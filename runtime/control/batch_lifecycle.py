# runtime/control/batch_lifecycle.py

from enum import Enum
from typing import Dict, FrozenSet

from models.batch_state import BatchStatus
from models.episode_outcome import OutcomeKind
from runtime.errors import BatchStateError


ALLOWED_TRANSITIONS: Dict[BatchStatus, FrozenSet[BatchStatus]] = {
    BatchStatus.IDLE: frozenset({BatchStatus.RUNNING}),
    BatchStatus.RUNNING: frozenset({BatchStatus.PAUSED, BatchStatus.DONE, BatchStatus.FAILED}),
    BatchStatus.PAUSED: frozenset({BatchStatus.RUNNING, BatchStatus.FAILED}),
    BatchStatus.DONE: frozenset(),
    BatchStatus.FAILED: frozenset(),
}


class BatchDecision(str, Enum):
    CONTINUE = "CONTINUE"
    PAUSE = "PAUSE"


class BatchLifecycle:
    """
    Pure state machine.
    No IO. No side effects.
    """

    @staticmethod
    def can_transition(current: BatchStatus, target: BatchStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[current]

    @staticmethod
    def transition(current: BatchStatus, target: BatchStatus) -> BatchStatus:
        if not BatchLifecycle.can_transition(current, target):
            raise BatchStateError(f"Illegal batch transition {current.value} -> {target.value}")
        return target

    @staticmethod
    def decide(
        outcome: OutcomeKind,
        episode_index: int,
        consecutive_hard_failures: int,
        threshold: int,
    ) -> BatchDecision:
        """
        What the batch does after one episode outcome.

        consecutive_hard_failures is the count after this outcome was applied.
        Episode 1 is a hard dependency for everything after it.
        """
        if outcome != OutcomeKind.HARD_FAIL:
            return BatchDecision.CONTINUE

        if episode_index == 1:
            return BatchDecision.PAUSE

        if consecutive_hard_failures >= threshold:
            return BatchDecision.PAUSE

        return BatchDecision.CONTINUE
