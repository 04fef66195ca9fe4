"""
Shared fixtures: project records, scripted generators, and a pipeline wired
over an in-memory store.
"""
import json
import re
from types import SimpleNamespace

import pytest


REVEAL_TEXT = (
    "[Scene 1] Archive room | Night\n"
    "Lin opens the sealed file and finds the evidence on the spot: the signature on the "
    "transfer belongs to her brother, not to her. The frame-up is confirmed."
)

SHORT_REVEAL = "She suspects something."


def slot_json(**slots) -> str:
    return json.dumps(slots)


VALID_RESPONSE = slot_json(NEW_REVEAL=REVEAL_TEXT)
INVALID_RESPONSE = slot_json(NEW_REVEAL=SHORT_REVEAL)

_EPISODE_IN_PROMPT = re.compile(r"- Episode: EP(\d+)")


def make_project(total=5, project_id="proj-1", **overrides):
    project = {
        "id": project_id,
        "genre": "revenge",
        "logline": "A framed accountant takes back her family company.",
        "total_episodes": total,
        "characters": [
            {"name": "Lin", "role_type": "PROTAGONIST", "description": "Framed accountant"},
            {"name": "Zhou", "role_type": "ANTAGONIST", "description": "Her ambitious brother"},
        ],
        "outlines": [
            {
                "episode_index": i,
                "summary": f"Episode {i}: Lin digs deeper",
                "act": 1 if i <= total // 2 else 2,
                "reveal_summary": f"secret number {i} comes out",
                "reveal_type": "FACT",
                "reveal_scope": "ANTAGONIST",
            }
            for i in range(1, total + 1)
        ],
        "episode_summaries": {},
    }
    project.update(overrides)
    return project


def episode_in_prompt(prompt: str) -> int:
    match = _EPISODE_IN_PROMPT.search(prompt)
    return int(match.group(1)) if match else 0


class ScriptedGenerator:
    """
    Returns the scripted responses in order (the last one repeats).
    Exception instances are raised instead of returned.
    """

    def __init__(self, *responses):
        self.responses = list(responses) or [VALID_RESPONSE]
        self.prompts = []

    @property
    def calls(self):
        return len(self.prompts)

    async def __call__(self, prompt):
        self.prompts.append(prompt)
        item = self.responses[min(self.calls, len(self.responses)) - 1]
        if isinstance(item, BaseException):
            raise item
        return item


class EpisodeRoutedGenerator:
    """
    Answers per episode index (read from the prompt). Unlisted episodes get
    VALID_RESPONSE. A value may be a response, an exception, or a callable
    taking the prompt.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.prompts = []

    @property
    def episodes_seen(self):
        seen = []
        for prompt in self.prompts:
            index = episode_in_prompt(prompt)
            if not seen or seen[-1] != index:
                seen.append(index)
        return seen

    async def __call__(self, prompt):
        self.prompts.append(prompt)
        item = self.routes.get(episode_in_prompt(prompt), VALID_RESPONSE)
        if callable(item) and not isinstance(item, BaseException):
            item = item(prompt)
        if isinstance(item, BaseException):
            raise item
        return item


def wire(generator, store=None, threshold=2, max_strict=3, prompts_dir=None, project=None):
    """Pipeline, orchestrator, and repos over one store."""
    from models.narrative_context import StoredNarrativeContextProvider
    from runtime.batch_orchestrator import BatchOrchestrator
    from runtime.episode_runtime import EpisodePipeline
    from runtime.persistence.memory_store import MemoryStore
    from runtime.persistence.repositories import BatchRepo, EpisodeRepo, ProjectRepo
    from runtime.policies.retry_policy import EscalationPolicy, RetryEscalator
    from runtime.prompt_cache import PromptCache
    from runtime.slot_generator import SlotGenerator

    store = store if store is not None else MemoryStore()
    projects = ProjectRepo(store)
    episodes = EpisodeRepo(store)
    batches = BatchRepo(store)

    escalator = RetryEscalator(
        SlotGenerator(generator, PromptCache(prompts_dir) if prompts_dir else None),
        EscalationPolicy(max_strict_attempts=max_strict),
    )
    pipeline = EpisodePipeline(escalator, StoredNarrativeContextProvider(projects), episodes)
    orchestrator = BatchOrchestrator(pipeline, batches, episodes, hard_fail_threshold=threshold)

    project = project if project is not None else make_project()
    projects.save(project["id"], project)

    return SimpleNamespace(
        store=store,
        projects=projects,
        episodes=episodes,
        batches=batches,
        escalator=escalator,
        pipeline=pipeline,
        orchestrator=orchestrator,
        generator=generator,
        project_id=project["id"],
    )


async def run_range(orchestrator, project_id, start, end):
    orchestrator.start(project_id, start, end)
    return await orchestrator.run(project_id)


async def resume_run(orchestrator, project_id):
    from models.batch_state import BatchStatus

    state = orchestrator.resume(project_id)
    if state.status != BatchStatus.RUNNING:
        return state
    return await orchestrator.run(project_id)


@pytest.fixture
def project():
    return make_project()


@pytest.fixture
def context(project):
    from models.narrative_context import NarrativeContext
    return NarrativeContext.from_project(project, 3)


@pytest.fixture
def contract(context):
    from models.contract import build_contract
    return build_contract(3, context)
