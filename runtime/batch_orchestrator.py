"""
Batch Orchestrator - runs a contiguous episode range through the pipeline.

Episodes are attempted one at a time in ascending order. The orchestrator
consumes only EpisodeOutcome values and is the only writer of the batch
record, which is persisted after every transition:

- completed  -> completed list, failure counter reset, advance
- degraded   -> degraded list, advance (a structural shortfall never stalls the batch)
- hard fail  -> hard_failed list, counter + 1; PAUSED on episode 1 or at the threshold

Pause requests are honoured at the next episode boundary. Resume restarts at
max(last completed + 1, stored position), so a crash never re-runs finished work.
"""

from __future__ import annotations

import logging
from typing import Optional, Set

from models.batch_state import BatchState, BatchStatus, calculate_health
from models.episode_outcome import EpisodeOutcome, OutcomeKind
from runtime.control.batch_lifecycle import BatchDecision, BatchLifecycle
from runtime.episode_state import VALIDATED_STATUSES, EpisodeStatus
from runtime.errors import BatchIntegrityViolation, BatchStateError

logger = logging.getLogger(__name__)

_BUCKETS = {
    OutcomeKind.COMPLETED: "completed",
    OutcomeKind.DEGRADED: "degraded",
    OutcomeKind.HARD_FAIL: "hard_failed",
}


class BatchOrchestrator:
    def __init__(self, pipeline, batch_repo, episode_repo, hard_fail_threshold: int = 2):
        if hard_fail_threshold < 1:
            raise ValueError("hard_fail_threshold must be >= 1")
        self.pipeline = pipeline
        self.batches = batch_repo
        self.episodes = episode_repo
        self.hard_fail_threshold = hard_fail_threshold

        self._active: Set[str] = set()
        self._pause_requested: Set[str] = set()

    # =========================================================
    # Queries
    # =========================================================

    def get(self, project_id: str) -> Optional[BatchState]:
        return self.batches.get(project_id)

    def is_running(self, project_id: str) -> bool:
        return project_id in self._active

    # =========================================================
    # Control surface
    # =========================================================

    def start(self, project_id: str, start_episode: int, end_episode: int) -> BatchState:
        """Create a fresh batch record for the range and mark it RUNNING."""
        if start_episode < 1 or end_episode < start_episode:
            raise ValueError(f"Invalid episode range [{start_episode}, {end_episode}]")
        if self.is_running(project_id):
            raise BatchStateError(f"Batch for {project_id} is already running")

        state = BatchState(
            project_id=project_id,
            start_episode=start_episode,
            end_episode=end_episode,
            current_episode=start_episode,
        )
        state.status = BatchLifecycle.transition(state.status, BatchStatus.RUNNING)
        self._pause_requested.discard(project_id)
        self._save(state)
        logger.info(f"[BatchOrchestrator] {project_id} started [{start_episode}, {end_episode}]")
        return state

    def pause(self, project_id: str) -> BatchState:
        """
        Request a pause. A live run stops at the next episode boundary;
        a RUNNING record with no live run is paused immediately.
        """
        state = self._require(project_id)
        if state.status != BatchStatus.RUNNING:
            raise BatchStateError(f"Cannot pause batch in state {state.status.value}")

        if self.is_running(project_id):
            self._pause_requested.add(project_id)
            logger.info(f"[BatchOrchestrator] {project_id} pause requested")
            return state

        state.status = BatchLifecycle.transition(state.status, BatchStatus.PAUSED)
        self._save(state)
        logger.info(f"[BatchOrchestrator] {project_id} paused (no live run)")
        return state

    def resume(self, project_id: str) -> BatchState:
        """
        Prepare a paused (or crash-interrupted) batch to run again.

        DONE and FAILED batches are returned unchanged.
        """
        state = self._require(project_id)

        if state.status in (BatchStatus.DONE, BatchStatus.FAILED):
            logger.info(f"[BatchOrchestrator] {project_id} already {state.status.value}, nothing to resume")
            return state
        if state.status == BatchStatus.IDLE:
            raise BatchStateError(f"Batch for {project_id} was never started")
        if self.is_running(project_id):
            raise BatchStateError(f"Batch for {project_id} is already running")

        position = max(state.last_completed() + 1, state.current_episode)
        if position != state.current_episode:
            logger.info(
                f"[BatchOrchestrator] {project_id} resume position moved "
                f"EP{state.current_episode} -> EP{position}"
            )
        state.current_episode = position

        if state.status == BatchStatus.PAUSED:
            state.status = BatchLifecycle.transition(state.status, BatchStatus.RUNNING)
        self._pause_requested.discard(project_id)
        self._save(state)
        logger.info(f"[BatchOrchestrator] {project_id} resuming at EP{position}")
        return state

    # =========================================================
    # Loop
    # =========================================================

    async def run(self, project_id: str) -> BatchState:
        """Drive a RUNNING batch until it is DONE, PAUSED or FAILED."""
        state = self._require(project_id)
        if state.status != BatchStatus.RUNNING:
            raise BatchStateError(f"Cannot run batch in state {state.status.value}")
        if self.is_running(project_id):
            raise BatchStateError(f"Batch for {project_id} is already running")

        self._active.add(project_id)
        try:
            while not state.is_exhausted:
                if project_id in self._pause_requested:
                    self._pause_requested.discard(project_id)
                    state.status = BatchLifecycle.transition(state.status, BatchStatus.PAUSED)
                    self._save(state)
                    logger.info(f"[BatchOrchestrator] {project_id} paused at EP{state.current_episode}")
                    return state

                index = state.current_episode

                if self.episodes.status(project_id, index) == EpisodeStatus.MANUAL_OVERRIDE:
                    logger.info(f"[BatchOrchestrator] Skipping EP{index} (MANUAL_OVERRIDE)")
                    state.record("skipped", index)
                    state.current_episode = index + 1
                    self._save(state)
                    continue

                outcome = await self.pipeline.run_episode(project_id, index)
                decision = self._apply(state, outcome)

                if decision == BatchDecision.PAUSE:
                    state.status = BatchLifecycle.transition(state.status, BatchStatus.PAUSED)
                    self._save(state)
                    logger.warning(
                        f"[BatchOrchestrator] {project_id} paused after EP{index} hard fail "
                        f"({state.consecutive_hard_failures} consecutive): {state.last_error}"
                    )
                    return state

                state.current_episode = index + 1
                self._save(state)

            state.status = BatchLifecycle.transition(state.status, BatchStatus.DONE)
            self._save(state)
            logger.info(
                f"[BatchOrchestrator] {project_id} done: completed={state.completed} "
                f"degraded={state.degraded} hard_failed={state.hard_failed} skipped={state.skipped}"
            )
            return state
        finally:
            self._active.discard(project_id)

    def _apply(self, state: BatchState, outcome: EpisodeOutcome) -> BatchDecision:
        index = outcome.episode_index

        if outcome.kind == OutcomeKind.COMPLETED:
            self._verify_completed(state, index)
            state.consecutive_hard_failures = 0
            state.last_error = None
        elif outcome.kind == OutcomeKind.HARD_FAIL:
            state.consecutive_hard_failures += 1
            state.last_error = f"EP{index}: {outcome.reason}"

        state.record(_BUCKETS[outcome.kind], index)

        return BatchLifecycle.decide(
            outcome.kind,
            index,
            state.consecutive_hard_failures,
            self.hard_fail_threshold,
        )

    def _verify_completed(self, state: BatchState, index: int) -> None:
        record = self.episodes.get(state.project_id, index) or {}
        status = record.get("status")
        passed = (record.get("validation") or {}).get("passed") is True

        if status in {s.value for s in VALIDATED_STATUSES} and passed:
            return

        message = (
            f"EP{index} reported complete but its record is status={status}, "
            f"validation.passed={passed}"
        )
        logger.critical(f"[BatchOrchestrator] {state.project_id} integrity violation: {message}")
        state.status = BatchLifecycle.transition(state.status, BatchStatus.FAILED)
        state.last_error = message
        self._save(state)
        raise BatchIntegrityViolation(message)

    # =========================================================
    # Helpers
    # =========================================================

    def _require(self, project_id: str) -> BatchState:
        state = self.batches.get(project_id)
        if state is None:
            raise KeyError(f"No batch for project {project_id}")
        return state

    def _save(self, state: BatchState) -> BatchState:
        state.health = calculate_health(state)
        return self.batches.save(state)
