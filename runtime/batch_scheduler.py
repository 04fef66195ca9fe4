"""
Batch Scheduler - runs independent batches as asyncio tasks.

At most `max_concurrent` batches generate at once (generator rate limits);
one project never has two live runs.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from models.batch_state import BatchState, BatchStatus
from runtime.errors import BatchStateError

logger = logging.getLogger(__name__)


class BatchScheduler:
    def __init__(self, orchestrator, max_concurrent: int = 2):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self.orchestrator = orchestrator
        self.max_concurrent = max_concurrent
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def semaphore(self) -> asyncio.Semaphore:
        # Created on first use so it binds to the running loop
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrent)
        return self._semaphore

    def is_scheduled(self, project_id: str) -> bool:
        task = self._tasks.get(project_id)
        return task is not None and not task.done()

    def submit_start(self, project_id: str, start_episode: int, end_episode: int) -> BatchState:
        """Record the batch as RUNNING now and run it in the background."""
        self._ensure_free(project_id)
        state = self.orchestrator.start(project_id, start_episode, end_episode)
        self._spawn(project_id)
        return state

    def submit_resume(self, project_id: str) -> BatchState:
        self._ensure_free(project_id)
        state = self.orchestrator.resume(project_id)
        if state.status == BatchStatus.RUNNING:
            self._spawn(project_id)
        return state

    async def wait(self, project_id: str) -> Optional[BatchState]:
        task = self._tasks.get(project_id)
        if task is None:
            return self.orchestrator.get(project_id)
        return await task

    async def shutdown(self) -> None:
        """
        Pause every scheduled batch and wait for the tasks to finish.

        Live runs stop at the next episode boundary; batches still queued for a
        slot are paused immediately and return without running.
        """
        for project_id in list(self._tasks):
            if not self.is_scheduled(project_id):
                continue
            state = self.orchestrator.get(project_id)
            if state is not None and state.status == BatchStatus.RUNNING:
                self.orchestrator.pause(project_id)
        pending = [t for t in self._tasks.values() if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # -----------------------------
    # Internal
    # -----------------------------

    def _ensure_free(self, project_id: str) -> None:
        if self.is_scheduled(project_id):
            raise BatchStateError(f"Batch for {project_id} is already scheduled")

    def _spawn(self, project_id: str) -> None:
        task = asyncio.create_task(self._run(project_id), name=f"batch:{project_id}")
        self._tasks[project_id] = task

    async def _run(self, project_id: str) -> BatchState:
        async with self.semaphore:
            logger.info(f"[BatchScheduler] {project_id} acquired a slot")
            state = self.orchestrator.get(project_id)
            if state is not None and state.status != BatchStatus.RUNNING:
                # Paused while queued
                logger.info(f"[BatchScheduler] {project_id} is {state.status.value}, not running")
                return state
            try:
                return await self.orchestrator.run(project_id)
            except Exception as e:
                logger.exception(f"[BatchScheduler] {project_id} batch crashed: {e}")
                raise
