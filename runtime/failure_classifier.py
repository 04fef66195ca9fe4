"""
Failure Classifier - Categorizes slot-generation failures for the retry escalator.

Structural failures (bad slot content, undecodable answer) are recoverable by
escalation. Everything else is transport or infrastructure and must propagate.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from models.verdict import ValidationVerdict
from runtime.errors import (
    AssemblyFailure,
    SlotDecodeError,
    StructuralViolation,
    TransportFailure,
)


@dataclass(frozen=True)
class FailureClassification:
    failure_type: str      # structural | decode | transport | assembly | unknown
    severity: str          # recoverable | terminal
    suggested_action: str  # escalate | propagate
    reason: str

    @property
    def is_structural(self) -> bool:
        return self.severity == "recoverable"


# Exceptions that mean "the generator could not be reached"
TRANSPORT_ERRORS = (TransportFailure, ConnectionError, TimeoutError, asyncio.TimeoutError)


def classify_failure(
    verdict: Optional[ValidationVerdict] = None,
    error: Optional[BaseException] = None,
) -> FailureClassification:
    """
    Classify one failed attempt.
    """
    if error is None:
        if verdict is not None and not verdict.valid:
            return FailureClassification(
                failure_type="structural",
                severity="recoverable",
                suggested_action="escalate",
                reason=verdict.summary(),
            )
        return FailureClassification(
            failure_type="unknown",
            severity="terminal",
            suggested_action="propagate",
            reason="classify_failure called without a failure",
        )

    if isinstance(error, SlotDecodeError):
        return FailureClassification(
            failure_type="decode",
            severity="recoverable",
            suggested_action="escalate",
            reason=str(error)[:300],
        )

    if isinstance(error, StructuralViolation):
        return FailureClassification(
            failure_type="structural",
            severity="recoverable",
            suggested_action="escalate",
            reason=str(error)[:300],
        )

    if isinstance(error, TRANSPORT_ERRORS):
        return FailureClassification(
            failure_type="transport",
            severity="terminal",
            suggested_action="propagate",
            reason=f"Transport: {type(error).__name__}: {str(error)[:200]}",
        )

    if isinstance(error, AssemblyFailure):
        return FailureClassification(
            failure_type="assembly",
            severity="terminal",
            suggested_action="propagate",
            reason=str(error)[:300],
        )

    return FailureClassification(
        failure_type="unknown",
        severity="terminal",
        suggested_action="propagate",
        reason=f"{type(error).__name__}: {str(error)[:200]}",
    )
