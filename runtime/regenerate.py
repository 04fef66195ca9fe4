"""
Regenerate a DEGRADED episode through the full pipeline.

Runs outside any batch: the batch record is left untouched.
"""

import logging

from models.episode_outcome import EpisodeOutcome
from runtime.episode_state import EpisodeStatus
from runtime.errors import EpisodeStateError

logger = logging.getLogger(__name__)


async def regenerate_degraded_episode(pipeline, episode_repo, project_id: str, episode_index: int) -> EpisodeOutcome:
    record = episode_repo.get(project_id, episode_index)
    if record is None:
        raise KeyError(f"Episode {episode_index} not found in project {project_id}")

    status = record.get("status")
    if status != EpisodeStatus.DEGRADED.value:
        raise EpisodeStateError(
            f"Cannot regenerate episode with status {status}. Only DEGRADED episodes can be regenerated."
        )

    logger.info(f"[RegenerateDegraded] {project_id} EP{episode_index}: {record.get('degradation_reason')}")
    outcome = await pipeline.run_episode(project_id, episode_index)
    logger.info(f"[RegenerateDegraded] {project_id} EP{episode_index} regenerated as {outcome.kind.value}")
    return outcome
