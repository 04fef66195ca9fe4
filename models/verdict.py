from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class Violation:
    slot_name: str
    reason: str

    def __str__(self) -> str:
        return f"{self.slot_name}: {self.reason}"


@dataclass(frozen=True)
class ValidationVerdict:
    """Result of one structural validation. valid is derived from violations."""
    violations: Tuple[Violation, ...] = ()
    notes: Tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        return len(self.violations) == 0

    def violated_slots(self) -> Tuple[str, ...]:
        return tuple(v.slot_name for v in self.violations)

    def summary(self) -> str:
        if self.valid:
            return "all slots valid"
        return "; ".join(str(v) for v in self.violations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "violations": [{"slot": v.slot_name, "reason": v.reason} for v in self.violations],
            "notes": list(self.notes),
        }
