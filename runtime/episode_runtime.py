"""
Episode Pipeline - one episode from narrative context to persisted outcome.

context -> contract -> retry escalation -> outcome -> episode record.
Structural failures never leave the escalator; anything that does leave it
is recorded as a hard fail on the episode.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from agents.assembly.episode_assembler import DEFAULT_SEPARATOR, assembly_summary
from models.contract import build_contract
from models.episode_outcome import (
    Completed,
    Degraded,
    EpisodeOutcome,
    HardFail,
    build_first_episode_pause_summary,
    build_hard_fail_summary,
)
from runtime.episode_state import EpisodeStatus
from runtime.outcome_classifier import classify_outcome
from runtime.policies.retry_policy import EscalationResult

logger = logging.getLogger(__name__)


class EpisodePipeline:
    def __init__(
        self,
        escalator,
        context_provider,
        episode_repo,
        min_reveal_length: int = 80,
        separator: str = DEFAULT_SEPARATOR,
    ):
        self.escalator = escalator
        self.context_provider = context_provider
        self.episodes = episode_repo
        self.min_reveal_length = min_reveal_length
        self.separator = separator

    async def run_episode(self, project_id: str, episode_index: int) -> EpisodeOutcome:
        logger.info(f"[EpisodePipeline] {project_id} EP{episode_index} starting")
        self.episodes.save(project_id, episode_index, {
            "status": EpisodeStatus.GENERATING,
            "error": None,
        })

        result: Optional[EscalationResult] = None
        try:
            context = self.context_provider.get(project_id, episode_index)
            contract = build_contract(episode_index, context, self.min_reveal_length)
            result = await self.escalator.run(contract, context)
        except Exception as e:
            outcome = classify_outcome(episode_index, error=e)
        else:
            outcome = classify_outcome(episode_index, result=result, separator=self.separator)

        self.persist(project_id, outcome, result)
        return outcome

    # =========================================================
    # Persistence
    # =========================================================

    def persist(
        self,
        project_id: str,
        outcome: EpisodeOutcome,
        result: Optional[EscalationResult] = None,
    ) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "attempt_count": outcome.attempt_count,
            "outcome": outcome.kind.value,
            "attempts": [a.to_dict() for a in result.attempts] if result is not None else [],
            "contract": result.contract.to_dict() if result is not None else None,
            "slot_lengths": None,
        }

        if isinstance(outcome, Completed):
            record.update({
                "status": EpisodeStatus.DRAFT,
                "content": outcome.content,
                "relaxed": outcome.relaxed,
                "human_summary": (
                    f"Draft ready after {outcome.attempt_count} attempt(s)"
                    + (" (relaxed contract)" if outcome.relaxed else "")
                ),
                "validation": {"passed": True, "violations": []},
                "degradation_reason": None,
                "error": None,
            })
            if result is not None:
                record["slot_lengths"] = assembly_summary(result.contract, result.output or {})

        elif isinstance(outcome, Degraded):
            violations = []
            last = result.last_attempt if result is not None else None
            if last is not None and last.verdict is not None:
                violations = [str(v) for v in last.verdict.violations]
            record.update({
                "status": EpisodeStatus.DEGRADED,
                "content": outcome.content,
                "relaxed": True,
                "human_summary": outcome.remediation_note,
                "validation": {"passed": False, "violations": violations},
                "degradation_reason": outcome.reason,
                "last_attempt_summary": outcome.last_attempt_summary,
                "error": None,
            })

        elif isinstance(outcome, HardFail):
            if outcome.episode_index == 1:
                summary = build_first_episode_pause_summary(outcome.reason)
            else:
                summary = build_hard_fail_summary(outcome.reason)
            record.update({
                "status": EpisodeStatus.FAILED,
                "content": None,
                "human_summary": summary,
                "validation": {"passed": False, "violations": []},
                "error": outcome.reason,
                "error_type": outcome.error_type,
            })

        saved = self.episodes.save(project_id, outcome.episode_index, record)
        logger.info(
            f"[EpisodePipeline] {project_id} EP{outcome.episode_index} persisted as {record['status'].value}"
        )
        return saved
