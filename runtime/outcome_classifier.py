"""
Episode Outcome Classifier - maps an escalation result (or a propagated
error) onto the three outcomes the batch understands.
"""

from __future__ import annotations

import logging
from typing import Optional

from agents.assembly.episode_assembler import DEFAULT_SEPARATOR, assemble
from models.episode_outcome import (
    Completed,
    Degraded,
    EpisodeOutcome,
    HardFail,
    build_remediation_note,
)
from runtime.errors import AssemblyFailure, SlotValidationError
from runtime.failure_classifier import classify_failure
from runtime.policies.retry_policy import EscalationResult, EscalationState
from runtime.structural_validator import raise_for_verdict

logger = logging.getLogger(__name__)


def classify_outcome(
    episode_index: int,
    result: Optional[EscalationResult] = None,
    error: Optional[BaseException] = None,
    separator: str = DEFAULT_SEPARATOR,
) -> EpisodeOutcome:
    """
    TERMINAL_SUCCESS -> Completed with assembled content.
    TERMINAL_DEGRADED -> Degraded with best-available content and a remediation note.
    Propagated error, a success carrying a failed verdict, or assembly of a
    passing output failing -> HardFail.
    """
    if error is not None:
        classification = classify_failure(error=error)
        attempts = result.attempt_count if result is not None else 0
        logger.error(
            f"[OutcomeClassifier] EP{episode_index} hard fail ({classification.failure_type}): {error}"
        )
        return HardFail(
            episode_index=episode_index,
            attempt_count=attempts,
            reason=str(error) or type(error).__name__,
            error_type=type(error).__name__,
        )

    if result is None:
        raise ValueError("classify_outcome needs an escalation result or an error")

    if result.state == EscalationState.TERMINAL_SUCCESS:
        try:
            # Only a passing verdict may reach the draft
            if result.verdict is not None:
                raise_for_verdict(result.verdict)
            content = assemble(result.contract, result.output or {}, separator)
        except (SlotValidationError, AssemblyFailure) as e:
            return classify_outcome(episode_index, result=result, error=e, separator=separator)
        logger.info(
            f"[OutcomeClassifier] EP{episode_index} completed "
            f"({result.attempt_count} attempt(s), relaxed={result.relaxed})"
        )
        return Completed(
            episode_index=episode_index,
            attempt_count=result.attempt_count,
            content=content,
            relaxed=result.relaxed,
        )

    if result.state == EscalationState.TERMINAL_DEGRADED:
        reason = result.failure_reason()
        content = None
        if result.best_output and result.best_contract is not None:
            try:
                content = assemble(result.best_contract, result.best_output, separator)
            except AssemblyFailure:
                logger.warning(f"[OutcomeClassifier] EP{episode_index} degraded with no usable content")
        logger.warning(f"[OutcomeClassifier] EP{episode_index} degraded: {reason}")
        return Degraded(
            episode_index=episode_index,
            attempt_count=result.attempt_count,
            reason=reason,
            last_attempt_summary=result.last_attempt.summary() if result.last_attempt else "",
            remediation_note=build_remediation_note(episode_index, reason),
            content=content,
        )

    raise ValueError(f"Escalation result is not terminal: {result.state}")
