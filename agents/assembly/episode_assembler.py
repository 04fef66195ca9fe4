"""
Episode Assembler

Turns validated slot output into linear episode text:
- Slots are emitted in the contract's declaration order
- Text is emitted verbatim, joined by a fixed separator
- No padding, no paraphrasing, no fallback prose

Scene markers inside the text are inspected for ordering problems.
Problems are logged as warnings; the text itself is never rewritten.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from models.contract import Contract
from runtime.errors import AssemblyFailure

logger = logging.getLogger(__name__)

DEFAULT_SEPARATOR = "\n\n"

# [Scene 3] / 【场景 3】 / 【场 3】
SCENE_MARKER = re.compile(r"\[Scene\s*(\d+)\]|【场景\s*(\d+)】|【场\s*(\d+)】", re.IGNORECASE)


# ============================================
# SCENE STRUCTURE
# ============================================

@dataclass
class Scene:
    """A scene delimited by a scene marker."""
    scene_index: int
    header: str
    body: str = ""

    @property
    def full_text(self) -> str:
        return f"{self.header}\n{self.body}" if self.body else self.header


@dataclass
class SceneOrderReport:
    """Ordering problems found among scene markers."""
    indices: List[int] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ordered(self) -> bool:
        return not self.warnings


def parse_scenes(content: str) -> List[Scene]:
    """
    Split content at scene markers.

    Content without markers is a single scene 1 with an empty header.
    """
    markers = list(SCENE_MARKER.finditer(content))
    if not markers:
        return [Scene(scene_index=1, header="", body=content.strip())]

    scenes = []
    for i, match in enumerate(markers):
        end = markers[i + 1].start() if i + 1 < len(markers) else len(content)
        chunk = content[match.start():end].strip()
        header, _, body = chunk.partition("\n")
        index = int(next(g for g in match.groups() if g is not None))
        scenes.append(Scene(scene_index=index, header=header.strip(), body=body.strip()))
    return scenes


def check_scene_order(scenes: List[Scene]) -> SceneOrderReport:
    """Report missing, duplicate, non-contiguous, or out-of-order scene indices."""
    indices = [s.scene_index for s in scenes]
    report = SceneOrderReport(indices=indices)

    unique = sorted(set(indices))
    missing = [i for i in range(1, len(unique) + 1) if i not in unique]
    duplicates = sorted({i for i in indices if indices.count(i) > 1})
    gaps = any(b - a != 1 for a, b in zip(unique, unique[1:]))
    out_of_order = any(b < a for a, b in zip(indices, indices[1:]))

    if missing:
        report.warnings.append(f"missing scene indices: {', '.join(map(str, missing))}")
    if duplicates:
        report.warnings.append(f"duplicate scene indices: {', '.join(map(str, duplicates))}")
    if gaps:
        report.warnings.append(f"non-contiguous scene indices: {', '.join(map(str, unique))}")
    if out_of_order:
        report.warnings.append(f"scenes out of order: {', '.join(map(str, indices))}")
    return report


# ============================================
# ASSEMBLY
# ============================================

def assemble(
    contract: Contract,
    output: Mapping[str, Any],
    separator: str = DEFAULT_SEPARATOR,
) -> str:
    """
    Join slot text in contract declaration order.

    Slots that are absent, not text, or blank are left out. Raises
    AssemblyFailure when nothing usable remains.
    """
    if not output:
        logger.error(f"[Assembler] EP{contract.episode_index}: no slots to assemble")
        raise AssemblyFailure(f"EP{contract.episode_index}: no slots provided for assembly")

    parts: List[str] = []
    for name in contract.declared_order():
        value = output.get(name.value)
        if not isinstance(value, str) or not value.strip():
            continue
        parts.append(value)
        logger.debug(f"[Assembler] Added {name.value} slot ({len(value)} chars)")

    if not parts:
        logger.error(f"[Assembler] EP{contract.episode_index}: no usable slot text")
        raise AssemblyFailure(f"EP{contract.episode_index}: slot output has no usable text")

    content = separator.join(parts)

    report = check_scene_order(parse_scenes(content))
    if not report.ordered:
        logger.warning(
            f"[Assembler] EP{contract.episode_index} scene order issues: {'; '.join(report.warnings)}"
        )

    logger.info(
        f"[Assembler] EP{contract.episode_index}: assembled {len(parts)} slot(s), {len(content)} chars"
    )
    return content


def format_as_episode(content: str, episode_index: int) -> str:
    """Prefix an EPnn header for export."""
    return f"EP{episode_index:02d}\n\n{content}"


def assembly_summary(contract: Contract, output: Mapping[str, Any]) -> Dict[str, Any]:
    """Per-slot character counts in declaration order; absent slots report None."""
    counts: Dict[str, Any] = {}
    for name in contract.declared_order():
        value = output.get(name.value)
        counts[name.value] = len(value) if isinstance(value, str) else None
    return counts
