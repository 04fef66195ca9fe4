"""
Structure Contract - what every episode must contain before any writer call.

A contract declares mandatory and optional slots with their instruction and
minimum acceptance length. Contracts are immutable: tightened and relaxed
variants are new values built from the base contract.

Principles:
- Structure before content: no contract, no generation
- Slots before paragraphs: the writer only fills assigned slots
- Failure over filler: a missing slot fails, it is never invented
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from models.narrative_context import NarrativeContext
from runtime.errors import ContractError


class SlotName(str, Enum):
    NEW_REVEAL = "NEW_REVEAL"
    CONFLICT_PROGRESS = "CONFLICT_PROGRESS"
    COST_PAID = "COST_PAID"


class ContractVariant(str, Enum):
    STRICT = "strict"
    TIGHTENED = "tightened"
    RELAXED = "relaxed"


@dataclass(frozen=True)
class SlotSpec:
    generation_instruction: str
    minimum_length: int
    semantic_tag: Optional[str] = None


# Tone markers rewritten by the relaxed variant
_RELAX_REPLACEMENTS: Tuple[Tuple[str, str], ...] = (
    (r"\bMUST\b", "SHOULD"),
    (r"\bmust\b", "should"),
    (r"\bMust\b", "Should"),
    (r"\[MANDATORY\]", "[SUGGESTED]"),
    (r"\[ZERO TOLERANCE\]\s*", ""),
)

RELAXED_MODE_NOTE = (
    " [RELAXED MODE] Structural checks for this episode have been relaxed; "
    "do your best to cover the beat."
)


@dataclass(frozen=True)
class Contract:
    """
    Slot contract for one episode.

    Slot order is declaration order: mandatory slots first, then optional
    slots, each in insertion order. The assembler relies on it.
    """
    episode_index: int
    mandatory_slots: Mapping[SlotName, SlotSpec]
    optional_slots: Mapping[SlotName, SlotSpec] = field(default_factory=dict)
    variant: ContractVariant = ContractVariant.STRICT
    required_vocabulary: Tuple[str, ...] = ()
    forbidden_vocabulary: Tuple[str, ...] = ()

    def __post_init__(self):
        mandatory = dict(self.mandatory_slots)
        optional = dict(self.optional_slots)

        if not mandatory:
            raise ContractError(f"EP{self.episode_index}: contract declares no mandatory slot")
        for name, spec in mandatory.items():
            if spec.minimum_length <= 0:
                raise ContractError(
                    f"EP{self.episode_index}: mandatory slot {name.value} needs a positive "
                    f"minimum length (got {spec.minimum_length})"
                )
        for name, spec in optional.items():
            if spec.minimum_length < 0:
                raise ContractError(
                    f"EP{self.episode_index}: optional slot {name.value} has negative minimum length"
                )
        overlap = set(mandatory) & set(optional)
        if overlap:
            names = ", ".join(sorted(n.value for n in overlap))
            raise ContractError(f"EP{self.episode_index}: slots declared twice: {names}")

        object.__setattr__(self, "mandatory_slots", MappingProxyType(mandatory))
        object.__setattr__(self, "optional_slots", MappingProxyType(optional))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def declared_order(self) -> List[SlotName]:
        return list(self.mandatory_slots) + list(self.optional_slots)

    def spec_for(self, name: SlotName) -> Optional[SlotSpec]:
        return self.mandatory_slots.get(name) or self.optional_slots.get(name)

    def is_mandatory(self, name: SlotName) -> bool:
        return name in self.mandatory_slots

    def is_declared(self, name: SlotName) -> bool:
        return name in self.mandatory_slots or name in self.optional_slots

    # ------------------------------------------------------------------
    # Variants
    # ------------------------------------------------------------------

    def tightened(self, attempt_number: int) -> "Contract":
        """
        Same mandatory set, instructions augmented with vocabulary hints.

        Attempt 2 asks for explicit reveal wording; attempt 3 and later
        also lists the words that must appear and those that must not.
        """
        if attempt_number < 2:
            return self

        hint = " [RETRY HINT] The reveal MUST be stated explicitly; no vague implication."
        if attempt_number >= 3:
            if self.required_vocabulary:
                hint += " [FINAL RETRY] Use these words: " + ", ".join(self.required_vocabulary) + "."
            if self.forbidden_vocabulary:
                hint += " Do NOT use: " + ", ".join(self.forbidden_vocabulary) + "."

        mandatory = {
            name: replace(spec, generation_instruction=spec.generation_instruction + hint)
            for name, spec in self.mandatory_slots.items()
        }
        return replace(self, mandatory_slots=mandatory, optional_slots=dict(self.optional_slots),
                       variant=ContractVariant.TIGHTENED)

    def relaxed(self, min_length_factor: float = 1.0) -> "Contract":
        """
        Mandatory set downgraded in tone ("should" for "must").

        min_length_factor < 1 also lowers mandatory minimum lengths; the
        result is clamped to 1 so the contract stays constructible.
        """
        mandatory: Dict[SlotName, SlotSpec] = {}
        for name, spec in self.mandatory_slots.items():
            instruction = spec.generation_instruction
            for pattern, repl in _RELAX_REPLACEMENTS:
                instruction = re.sub(pattern, repl, instruction)
            minimum = spec.minimum_length
            if min_length_factor < 1.0:
                minimum = max(1, int(minimum * min_length_factor))
            mandatory[name] = replace(
                spec,
                generation_instruction=instruction + RELAXED_MODE_NOTE,
                minimum_length=minimum,
            )
        return replace(self, mandatory_slots=mandatory, optional_slots=dict(self.optional_slots),
                       variant=ContractVariant.RELAXED)

    def to_dict(self) -> Dict:
        def _slots(slots: Mapping[SlotName, SlotSpec]) -> Dict:
            return {
                name.value: {
                    "instruction": spec.generation_instruction,
                    "min_length": spec.minimum_length,
                    "semantic_tag": spec.semantic_tag,
                }
                for name, spec in slots.items()
            }

        return {
            "episode_index": self.episode_index,
            "variant": self.variant.value,
            "mandatory": _slots(self.mandatory_slots),
            "optional": _slots(self.optional_slots),
        }


# ============================================================================
# Construction
# ============================================================================

_SCOPE_LABELS = {
    "PROTAGONIST": "the protagonist",
    "ANTAGONIST": "the antagonist",
    "WORLD": "the world",
}

_REVEAL_TYPE_LABELS = {
    "FACT": "factual",
    "INFO": "informational",
    "RELATION": "relationship",
    "IDENTITY": "identity",
}


def build_contract(
    episode_index: int,
    context: NarrativeContext,
    min_reveal_length: int = 80,
) -> Contract:
    """Contract for one episode: a mandatory reveal plus the optional beats the outline asks for."""
    outline = context.outline
    scope = _SCOPE_LABELS.get(outline.reveal_scope, outline.reveal_scope.lower())
    reveal_type = _REVEAL_TYPE_LABELS.get(outline.reveal_type, outline.reveal_type.lower())
    summary = outline.reveal_summary or outline.summary

    instruction = (
        f"[MANDATORY] You must clearly present a new {reveal_type} reveal about {scope}: "
        f"{summary}. The reveal must be explicit, irreversible new information that "
        f"directly shapes what follows."
    )
    if outline.pressure_hint:
        instruction += f" Pressure: {outline.pressure_hint}."

    mandatory = {
        SlotName.NEW_REVEAL: SlotSpec(
            generation_instruction=instruction,
            minimum_length=min_reveal_length,
            semantic_tag=f"{outline.reveal_type}:{outline.reveal_scope}",
        ),
    }

    optional: Dict[SlotName, SlotSpec] = {}
    if outline.conflict_progressed:
        optional[SlotName.CONFLICT_PROGRESS] = SlotSpec(
            generation_instruction=(
                f'Advance one external conflict around this episode\'s outline "{outline.summary}", '
                f"showing escalation or a change of phase."
            ),
            minimum_length=0,
        )
    if outline.cost_paid:
        optional[SlotName.COST_PAID] = SlotSpec(
            generation_instruction=(
                "The protagonist pays a tangible price for the goal (injury, loss, humiliation) "
                "so the decision carries weight."
            ),
            minimum_length=0,
        )

    return Contract(
        episode_index=episode_index,
        mandatory_slots=mandatory,
        optional_slots=optional,
        required_vocabulary=tuple(context.required_vocabulary),
        forbidden_vocabulary=tuple(context.forbidden_vocabulary),
    )
