# models/attempt.py

from dataclasses import dataclass
from typing import Any, Dict, Optional

from models.contract import ContractVariant
from models.verdict import ValidationVerdict


@dataclass(frozen=True)
class AttemptRecord:
    attempt_number: int
    variant: ContractVariant
    outcome: str  # passed | invalid | decode_error
    verdict: Optional[ValidationVerdict] = None
    error: Optional[str] = None

    def summary(self) -> str:
        detail = self.error or (self.verdict.summary() if self.verdict else "")
        return f"attempt {self.attempt_number} ({self.variant.value}): {self.outcome}" + (
            f" - {detail}" if detail else ""
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_number": self.attempt_number,
            "variant": self.variant.value,
            "outcome": self.outcome,
            "verdict": self.verdict.to_dict() if self.verdict else None,
            "error": self.error,
        }
