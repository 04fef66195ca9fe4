"""
Typed repositories over a key-value store (MemoryStore, RedisStore, SQLStore).

Key layout:
    project:{project_id}
    episode:{project_id}:{episode_index}
    batch:{project_id}
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from models.batch_state import BatchState
from runtime.episode_state import EpisodeStatus

logger = logging.getLogger(__name__)


def project_key(project_id: str) -> str:
    return f"project:{project_id}"


def episode_key(project_id: str, episode_index: int) -> str:
    return f"episode:{project_id}:{episode_index}"


def batch_key(project_id: str) -> str:
    return f"batch:{project_id}"


class ProjectRepo:
    def __init__(self, store):
        self.store = store

    def get(self, project_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(project_key(project_id))

    def save(self, project_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        payload = dict(data)
        payload["id"] = project_id
        return self.store.save(project_key(project_id), payload)


class EpisodeRepo:
    def __init__(self, store):
        self.store = store

    def get(self, project_id: str, episode_index: int) -> Optional[Dict[str, Any]]:
        return self.store.get(episode_key(project_id, episode_index))

    def save(self, project_id: str, episode_index: int, partial: Dict[str, Any]) -> Dict[str, Any]:
        payload = dict(partial)
        if isinstance(payload.get("status"), EpisodeStatus):
            payload["status"] = payload["status"].value
        payload["project_id"] = project_id
        payload["episode_index"] = episode_index
        return self.store.save(episode_key(project_id, episode_index), payload)

    def status(self, project_id: str, episode_index: int) -> Optional[EpisodeStatus]:
        record = self.get(project_id, episode_index)
        if not record or not record.get("status"):
            return None
        return EpisodeStatus(record["status"])

    def list(self, project_id: str) -> List[Dict[str, Any]]:
        prefix = f"episode:{project_id}:"
        records = [self.store.get(k) for k in self.store.keys(prefix)]
        return sorted((r for r in records if r), key=lambda r: r["episode_index"])


class BatchRepo:
    def __init__(self, store):
        self.store = store

    def get(self, project_id: str) -> Optional[BatchState]:
        data = self.store.get(batch_key(project_id))
        if data is None:
            return None
        return BatchState.from_dict(data)

    def save(self, state: BatchState) -> BatchState:
        record = self.store.save(batch_key(state.project_id), state.to_dict())
        state.updated_at = record["updated_at"]
        logger.debug(
            f"[BatchRepo] {state.project_id} saved: {state.status.value} at EP{state.current_episode}"
        )
        return state
