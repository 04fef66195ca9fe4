"""
Retry Escalation Policy - strict -> tightened -> relaxed -> degraded.

Structural failures (invalid verdict, undecodable answer) advance the
escalation. Anything else is classified terminal and propagates untouched:
a transport failure must never be retried as if it were bad content.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from models.attempt import AttemptRecord
from models.contract import Contract
from models.narrative_context import NarrativeContext
from models.verdict import ValidationVerdict
from runtime.failure_classifier import classify_failure
from runtime.structural_validator import validate_slots

logger = logging.getLogger(__name__)


class EscalationState(str, Enum):
    STRICT = "STRICT"
    RELAXED = "RELAXED"
    TERMINAL_SUCCESS = "TERMINAL_SUCCESS"
    TERMINAL_DEGRADED = "TERMINAL_DEGRADED"


TERMINAL_STATES = frozenset({EscalationState.TERMINAL_SUCCESS, EscalationState.TERMINAL_DEGRADED})


class EscalationLifecycle:
    """
    Pure state machine.
    No IO. No side effects.
    """

    @staticmethod
    def transition(
        current_state: EscalationState,
        attempt: int,
        max_strict: int,
        passed: bool,
    ) -> EscalationState:

        if current_state in TERMINAL_STATES:
            return current_state

        if passed:
            return EscalationState.TERMINAL_SUCCESS

        if current_state == EscalationState.STRICT:
            if attempt < max_strict:
                return EscalationState.STRICT
            return EscalationState.RELAXED

        return EscalationState.TERMINAL_DEGRADED


@dataclass(frozen=True)
class EscalationPolicy:
    max_strict_attempts: int = 3
    relaxed_min_length_factor: float = 1.0

    def __post_init__(self):
        if self.max_strict_attempts < 1:
            raise ValueError("max_strict_attempts must be >= 1")
        if not 0 < self.relaxed_min_length_factor <= 1.0:
            raise ValueError("relaxed_min_length_factor must be in (0, 1]")

    @classmethod
    def from_config(cls, cfg: Optional[Dict[str, Any]] = None) -> "EscalationPolicy":
        cfg = cfg or {}
        return cls(
            max_strict_attempts=int(cfg.get("max_strict_attempts", 3)),
            relaxed_min_length_factor=float(cfg.get("relaxed_min_length_factor", 1.0)),
        )

    @property
    def max_total_attempts(self) -> int:
        return self.max_strict_attempts + 1


@dataclass(frozen=True)
class EscalationResult:
    state: EscalationState
    attempts: Tuple[AttemptRecord, ...]
    contract: Contract                             # variant used by the last attempt
    output: Optional[Dict[str, Any]] = None        # passing output (TERMINAL_SUCCESS only)
    verdict: Optional[ValidationVerdict] = None    # last verdict produced
    best_output: Optional[Dict[str, Any]] = None   # last decodable output, for degraded content
    best_contract: Optional[Contract] = None

    @property
    def succeeded(self) -> bool:
        return self.state == EscalationState.TERMINAL_SUCCESS

    @property
    def relaxed(self) -> bool:
        return bool(self.attempts) and self.attempts[-1].variant.value == "relaxed"

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def last_attempt(self) -> Optional[AttemptRecord]:
        return self.attempts[-1] if self.attempts else None

    def failure_reason(self) -> str:
        last = self.last_attempt
        if last is None:
            return "no attempt made"
        if last.error:
            return last.error
        if last.verdict is not None:
            return last.verdict.summary()
        return last.outcome


class RetryEscalator:
    """
    Drives one episode's slot generation through the escalation states.

    The slot generator is called once per attempt; total attempts never
    exceed max_strict_attempts + 1.
    """

    def __init__(
        self,
        slot_generator,
        policy: Optional[EscalationPolicy] = None,
        validator: Callable[[Contract, Dict[str, Any]], ValidationVerdict] = validate_slots,
    ):
        self.slot_generator = slot_generator
        self.policy = policy or EscalationPolicy()
        self.validator = validator

    def contract_for(self, base: Contract, state: EscalationState, attempt: int) -> Contract:
        if state == EscalationState.RELAXED:
            return base.relaxed(self.policy.relaxed_min_length_factor)
        return base.tightened(attempt)

    async def run(self, contract: Contract, context: NarrativeContext) -> EscalationResult:
        max_strict = self.policy.max_strict_attempts
        state = EscalationState.STRICT
        attempts: List[AttemptRecord] = []
        attempt = 0

        variant = contract
        verdict: Optional[ValidationVerdict] = None
        passing_output: Optional[Dict[str, Any]] = None
        best_output: Optional[Dict[str, Any]] = None
        best_contract: Optional[Contract] = None

        while state not in TERMINAL_STATES:
            attempt += 1
            variant = self.contract_for(contract, state, attempt)
            logger.info(
                f"[RetryEscalator] EP{contract.episode_index} attempt {attempt}/{self.policy.max_total_attempts} "
                f"({state.value}, {variant.variant.value})"
            )

            passed = False
            try:
                output = await self.slot_generator.write_slots(variant, context)
            except Exception as e:
                classification = classify_failure(error=e)
                if not classification.is_structural:
                    logger.error(
                        f"[RetryEscalator] EP{contract.episode_index} attempt {attempt} "
                        f"{classification.failure_type} failure, not retrying: {classification.reason}"
                    )
                    raise
                logger.warning(
                    f"[RetryEscalator] EP{contract.episode_index} attempt {attempt} "
                    f"undecodable: {classification.reason}"
                )
                attempts.append(AttemptRecord(
                    attempt_number=attempt,
                    variant=variant.variant,
                    outcome="decode_error",
                    error=classification.reason,
                ))
            else:
                verdict = self.validator(variant, output)
                best_output, best_contract = output, variant
                passed = verdict.valid
                attempts.append(AttemptRecord(
                    attempt_number=attempt,
                    variant=variant.variant,
                    outcome="passed" if passed else "invalid",
                    verdict=verdict,
                ))
                if passed:
                    passing_output = output
                else:
                    classification = classify_failure(verdict=verdict)
                    logger.warning(
                        f"[RetryEscalator] EP{contract.episode_index} attempt {attempt} "
                        f"rejected on {', '.join(verdict.violated_slots())}: {classification.reason}"
                    )

            state = EscalationLifecycle.transition(state, attempt, max_strict, passed)

        if state == EscalationState.TERMINAL_SUCCESS:
            logger.info(
                f"[RetryEscalator] EP{contract.episode_index} succeeded after {attempt} attempt(s)"
            )
        else:
            logger.error(
                f"[RetryEscalator] EP{contract.episode_index} degraded after {attempt} attempt(s): "
                f"{attempts[-1].summary()}"
            )

        return EscalationResult(
            state=state,
            attempts=tuple(attempts),
            contract=variant,
            output=passing_output,
            verdict=verdict,
            best_output=best_output,
            best_contract=best_contract,
        )
