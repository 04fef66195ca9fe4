"""
Structural Validator - zero-tolerance slot checks.

Single source of truth for acceptability:
- a missing mandatory slot fails
- a mandatory slot that is not text, or shorter than its minimum once trimmed, fails
- a missing optional slot is logged, never a violation
- a present optional slot must still be text (empty is fine)
- undeclared or unknown slots are noted, never violations

No partial credit, no content repair. Same (contract, output) -> same verdict.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping

from models.contract import Contract, SlotName, SlotSpec
from models.verdict import ValidationVerdict, Violation
from runtime.errors import SlotValidationError

logger = logging.getLogger(__name__)

SlotOutput = Mapping[str, Any]

# (name, spec, value, mandatory) -> violation reasons
SlotRule = Callable[[SlotName, SlotSpec, Any, bool], List[str]]


def _text_rule(name: SlotName, spec: SlotSpec, value: Any, mandatory: bool) -> List[str]:
    if not isinstance(value, str):
        return [f"not text (got {type(value).__name__})"]
    if not mandatory:
        return []
    trimmed = value.strip()
    if not trimmed:
        return ["empty or whitespace only"]
    if len(trimmed) < spec.minimum_length:
        return [f"trimmed length {len(trimmed)} < {spec.minimum_length} (required minimum)"]
    return []


# Every SlotName needs a rule; checked at import so a new slot cannot slip through unvalidated.
SLOT_RULES: Dict[SlotName, SlotRule] = {
    SlotName.NEW_REVEAL: _text_rule,
    SlotName.CONFLICT_PROGRESS: _text_rule,
    SlotName.COST_PAID: _text_rule,
}

_missing_rules = set(SlotName) - set(SLOT_RULES)
if _missing_rules:
    raise RuntimeError(f"No validation rule for slots: {sorted(n.value for n in _missing_rules)}")


def validate_slots(contract: Contract, output: SlotOutput) -> ValidationVerdict:
    """
    Validate one slot output against a contract variant.

    Checks run in contract declaration order; notes for undeclared keys
    follow in the output's key order.
    """
    logger.info(f"[SlotValidator] Validating slots for EP{contract.episode_index} ({contract.variant.value})")
    violations: List[Violation] = []
    notes: List[str] = []

    for name in contract.declared_order():
        spec = contract.spec_for(name)
        mandatory = contract.is_mandatory(name)
        rule = SLOT_RULES[name]

        if name.value not in output or output[name.value] is None:
            if mandatory:
                violations.append(Violation(name.value, "missing (required by contract)"))
                logger.error(f"[SlotValidator] {name.value} missing")
            else:
                notes.append(f"{name.value} missing (optional)")
                logger.warning(f"[SlotValidator] {name.value} slot is missing (optional, not an error)")
            continue

        reasons = rule(name, spec, output[name.value], mandatory)
        for reason in reasons:
            violations.append(Violation(name.value, reason))
            logger.error(f"[SlotValidator] {name.value} {reason}")

        if not reasons:
            value = output[name.value]
            if not mandatory and not value.strip():
                notes.append(f"{name.value} empty (optional)")
                logger.warning(f"[SlotValidator] {name.value} is empty (optional, not an error)")
            else:
                logger.debug(f"[SlotValidator] {name.value} passed ({len(value)} chars)")

    for key in output:
        try:
            slot = SlotName(key)
        except ValueError:
            notes.append(f"unknown slot '{key}'")
            logger.warning(f"[SlotValidator] Unknown slot '{key}' found (not a known slot name)")
            continue
        if not contract.is_declared(slot):
            notes.append(f"undeclared slot '{key}'")
            logger.warning(f"[SlotValidator] Slot '{key}' not declared by the contract")

    verdict = ValidationVerdict(violations=tuple(violations), notes=tuple(notes))
    if verdict.valid:
        logger.info("[SlotValidator] All slots validated successfully")
    else:
        logger.error(f"[SlotValidator] Validation failed: {verdict.summary()}")
    return verdict


def raise_for_verdict(verdict: ValidationVerdict) -> None:
    """Raise SlotValidationError for an invalid verdict; no-op when valid."""
    if verdict.valid:
        return
    raise SlotValidationError(
        f"Slot validation failed. {verdict.summary()}",
        violations=[str(v) for v in verdict.violations],
    )
