"""
Slot Generator - writes only the assigned slots, never a whole episode.

One delegated generator call per attempt. The writer does not decide whether a
slot exists, only how to write it. Undecodable answers surface as
SlotDecodeError; nothing is ever substituted with placeholder text.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from models.contract import Contract, SlotName
from models.narrative_context import NarrativeContext
from runtime.errors import SlotDecodeError
from runtime.prompt_cache import PromptCache

logger = logging.getLogger(__name__)

TextGenerator = Callable[[str], Awaitable[str]]

SLOT_WRITER_PROMPT = ("execution", "slot_writer")

DEFAULT_SLOT_WRITER_PROMPT = """[ROLE]

You are a professional screenwriter for commercial short drama, writing to system-assigned structure slots.

[SOLE GOAL]

Follow each assigned slot instruction exactly and write content that satisfies it.

A slot is a content unit the system has already decided must appear.
You cannot decide whether a slot exists; you only decide how to write it.

[HARD REQUIREMENTS]

1. Write content for every assigned slot
2. Slot content must not be empty
3. Slot content must meet its minimum length
4. Follow each slot instruction exactly
5. Do not add slots that were not assigned

[OUTPUT FORMAT]

Strict JSON, keys are the assigned slot names:
{
  "NEW_REVEAL": "text...",
  "CONFLICT_PROGRESS": "text...",
  "COST_PAID": "text..."
}

Missing slot = failure. Slot shorter than its minimum = failure.
No explanations, no self-checks, JSON only."""


def extract_json_text(raw: str) -> str:
    """Strip markdown fences and headings, keep everything from the first brace on."""
    text = raw
    if "```json" in text:
        text = text.split("```json", 1)[1]
        text = text.split("```", 1)[0]
    elif "```" in text:
        parts = text.split("```")
        if len(parts) >= 3:
            text = parts[1]
    lines = [line for line in text.splitlines() if not line.lstrip().startswith("#")]
    text = "\n".join(lines)
    start = text.find("{")
    if start != -1:
        text = text[start:]
    return text.strip()


def decode_slot_response(raw: Any) -> Dict[str, Any]:
    """Decode the generator's answer into a raw slot mapping or raise SlotDecodeError."""
    if not isinstance(raw, str):
        raise SlotDecodeError(f"[SlotGenerator] Generator returned non-text response ({type(raw).__name__})")
    if not raw.strip():
        raise SlotDecodeError("[SlotGenerator] Generator returned an empty response")

    text = extract_json_text(raw)
    try:
        # Trailing prose after the first object is ignored
        data, _ = json.JSONDecoder().raw_decode(text)
    except json.JSONDecodeError as e:
        raise SlotDecodeError(
            f"[SlotGenerator] JSON parsing failed: {e}. Context: {text[:200]}..."
        ) from e

    if not isinstance(data, dict):
        raise SlotDecodeError(
            f"[SlotGenerator] Invalid response structure: expected object, got {type(data).__name__}"
        )
    return data


class SlotGenerator:
    """
    Builds the slot-writer prompt for a contract variant, makes one generator
    call, and decodes the answer into a SlotOutput covering the requested slots.
    """

    def __init__(self, generator: TextGenerator, prompt_cache: Optional[PromptCache] = None):
        self.generator = generator
        self.prompt_cache = prompt_cache

    async def write_slots(self, contract: Contract, context: NarrativeContext) -> Dict[str, Any]:
        requested = contract.declared_order()
        logger.info(
            f"[SlotGenerator] Writing slots for EP{contract.episode_index} "
            f"({contract.variant.value}): {[s.value for s in requested]}"
        )

        prompt = self.build_prompt(contract, context)
        raw = await self.generator(prompt)
        data = decode_slot_response(raw)

        output: Dict[str, Any] = {}
        for name in requested:
            if name.value not in data:
                logger.warning(f"[SlotGenerator] {name.value} absent from response")
                continue
            value = data[name.value]
            output[name.value] = value.strip() if isinstance(value, str) else value

        extra = [k for k in data if k not in output and k not in {n.value for n in requested}]
        if extra:
            logger.warning(f"[SlotGenerator] Dropping unassigned slots from response: {extra}")

        logger.info(f"[SlotGenerator] Decoded {len(output)}/{len(requested)} slots")
        return output

    # --------------------------------------------------
    # Prompt building
    # --------------------------------------------------

    def system_prompt(self) -> str:
        if self.prompt_cache is None:
            return DEFAULT_SLOT_WRITER_PROMPT
        return self.prompt_cache.get(*SLOT_WRITER_PROMPT, default=DEFAULT_SLOT_WRITER_PROMPT)

    def build_prompt(self, contract: Contract, context: NarrativeContext) -> str:
        return self.system_prompt() + "\n\n" + self.build_user_prompt(contract, context)

    def build_user_prompt(self, contract: Contract, context: NarrativeContext) -> str:
        outline = context.outline

        slot_blocks = []
        for i, name in enumerate(contract.declared_order(), start=1):
            spec = contract.spec_for(name)
            kind = "mandatory" if contract.is_mandatory(name) else "optional"
            slot_blocks.append(
                f"[Slot {i}: {name.value}] ({kind})\n"
                f"Minimum length: {spec.minimum_length} characters\n"
                f"Instruction: {spec.generation_instruction}"
            )

        characters = "\n".join(
            f"- {c.name} ({c.role_type}): {c.description}" for c in context.characters
        ) or "- (none provided)"

        prior = "\n".join(context.prior_summaries) or "(first episode)"

        return f"""[PROJECT]
- Genre: {context.genre}
- Total episodes: {context.total_episodes}
- Logline: {context.logline}

[THIS EPISODE]
- Episode: EP{outline.episode_index}
- Act: {outline.act}
- Pacing phase: {context.pacing_phase or "n/a"}
- Summary: {outline.summary}
- Conflict: {outline.conflict}
- Highlight: {outline.highlight}

[CHARACTERS]
{characters}

[RECENT EPISODES (must stay consistent)]
{prior}

[SLOT TASKS]

{chr(10).join(slot_blocks)}

[WRITING RULES]
1. Follow the slot instructions above exactly
2. Each slot must be complete and visual: action, dialogue, scene changes
3. No empty content, no placeholders, no "to be filled"
4. Output JSON only

Write the slots now."""


def assigned_slot_names(prompt: str) -> list:
    """Slot names assigned in a prompt built by SlotGenerator (used by local backends)."""
    names = []
    for name in SlotName:
        if f": {name.value}] (" in prompt:
            names.append(name.value)
    return names
