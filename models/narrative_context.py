"""
Narrative Context - read-only input to contract construction and slot writing.

Produced by the narrative-state collaborator; the pipeline never mutates it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


DEFAULT_REQUIRED_VOCABULARY = ("discover", "evidence", "confirm", "verify", "on the spot")
DEFAULT_FORBIDDEN_VOCABULARY = ("perhaps", "maybe", "it seems", "somehow")


@dataclass(frozen=True)
class CharacterBrief:
    name: str
    role_type: str  # PROTAGONIST | ANTAGONIST | SUPPORT
    description: str = ""


@dataclass(frozen=True)
class EpisodeOutline:
    episode_index: int
    summary: str
    act: int = 1
    title: str = ""
    conflict: str = ""
    highlight: str = ""
    hook: str = ""

    # Reveal this episode must land
    reveal_summary: str = ""
    reveal_type: str = "FACT"          # FACT | INFO | RELATION | IDENTITY
    reveal_scope: str = "PROTAGONIST"  # PROTAGONIST | ANTAGONIST | WORLD
    pressure_hint: str = ""

    # Optional beats
    conflict_progressed: bool = False
    cost_paid: bool = False


@dataclass(frozen=True)
class NarrativeContext:
    project_id: str
    genre: str
    logline: str
    total_episodes: int
    outline: EpisodeOutline
    characters: Tuple[CharacterBrief, ...] = ()
    prior_summaries: Tuple[str, ...] = ()
    pacing_phase: str = ""
    required_vocabulary: Tuple[str, ...] = DEFAULT_REQUIRED_VOCABULARY
    forbidden_vocabulary: Tuple[str, ...] = DEFAULT_FORBIDDEN_VOCABULARY

    @property
    def episode_index(self) -> int:
        return self.outline.episode_index

    @classmethod
    def from_project(cls, project: Dict[str, Any], episode_index: int) -> "NarrativeContext":
        """Build the context for one episode from a stored project record."""
        outlines = project.get("outlines") or []
        raw_outline: Optional[Dict[str, Any]] = None
        for item in outlines:
            if int(item.get("episode_index", 0)) == episode_index:
                raw_outline = item
                break
        if raw_outline is None:
            raise KeyError(f"No outline for episode {episode_index} in project {project.get('id')}")

        outline = EpisodeOutline(
            episode_index=episode_index,
            summary=raw_outline.get("summary", ""),
            act=int(raw_outline.get("act", 1)),
            title=raw_outline.get("title", ""),
            conflict=raw_outline.get("conflict", ""),
            highlight=raw_outline.get("highlight", ""),
            hook=raw_outline.get("hook", ""),
            reveal_summary=raw_outline.get("reveal_summary", ""),
            reveal_type=raw_outline.get("reveal_type", "FACT"),
            reveal_scope=raw_outline.get("reveal_scope", "PROTAGONIST"),
            pressure_hint=raw_outline.get("pressure_hint", ""),
            conflict_progressed=bool(raw_outline.get("conflict_progressed", False)),
            cost_paid=bool(raw_outline.get("cost_paid", False)),
        )

        characters = tuple(
            CharacterBrief(
                name=c.get("name", ""),
                role_type=c.get("role_type", "SUPPORT"),
                description=c.get("description", ""),
            )
            for c in project.get("characters") or []
        )

        # Last two episodes only; older history is summarized upstream
        history = project.get("episode_summaries") or {}
        prior = tuple(
            f"EP{i}: {history[str(i)]}"
            for i in range(max(1, episode_index - 2), episode_index)
            if str(i) in history
        )

        kwargs: Dict[str, Any] = {}
        if project.get("required_vocabulary"):
            kwargs["required_vocabulary"] = tuple(project["required_vocabulary"])
        if project.get("forbidden_vocabulary"):
            kwargs["forbidden_vocabulary"] = tuple(project["forbidden_vocabulary"])

        return cls(
            project_id=str(project.get("id", "")),
            genre=project.get("genre", ""),
            logline=project.get("logline", ""),
            total_episodes=int(project.get("total_episodes", 0)),
            outline=outline,
            characters=characters,
            prior_summaries=prior,
            pacing_phase=raw_outline.get("pacing_phase", ""),
            **kwargs,
        )


@dataclass
class StoredNarrativeContextProvider:
    """Reads the project record through a ProjectRepo and builds per-episode contexts."""
    project_repo: Any

    def get(self, project_id: str, episode_index: int) -> NarrativeContext:
        project = self.project_repo.get(project_id)
        if project is None:
            raise KeyError(f"Project {project_id} not found")
        return NarrativeContext.from_project(project, episode_index)
