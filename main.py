import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import Body, FastAPI, HTTPException

# Load .env from project root (works regardless of cwd when uvicorn --reload runs)
env_path = Path(__file__).resolve().parent / ".env"
load_dotenv(env_path)

from agents.assembly import format_as_episode
from config import (
    ASSEMBLY_SEPARATOR,
    DATABASE_URL,
    GENERATOR_MODEL,
    GENERATOR_TEMPERATURE,
    GENERATOR_TIMEOUT_SEC,
    LOG_LEVEL,
    NEW_REVEAL_MIN_LENGTH,
    PROMPTS_DIR,
    REDIS_URL,
    USE_MOCK_GENERATOR,
    get_batch_policies,
    get_escalation_policy,
)
from models.narrative_context import StoredNarrativeContextProvider
from runtime.batch_orchestrator import BatchOrchestrator
from runtime.batch_scheduler import BatchScheduler
from runtime.episode_runtime import EpisodePipeline
from runtime.errors import BatchIntegrityViolation, BatchStateError, EpisodeStateError
from runtime.persistence.repositories import BatchRepo, EpisodeRepo, ProjectRepo
from runtime.policies.retry_policy import EscalationPolicy, RetryEscalator
from runtime.prompt_cache import PromptCache
from runtime.regenerate import regenerate_degraded_episode
from runtime.slot_generator import SLOT_WRITER_PROMPT, SlotGenerator

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: Any
    projects: ProjectRepo
    episodes: EpisodeRepo
    batches: BatchRepo
    pipeline: EpisodePipeline
    orchestrator: BatchOrchestrator
    scheduler: BatchScheduler
    prompt_cache: PromptCache


def _default_store():
    if REDIS_URL:
        from runtime.persistence.redis_store import RedisStore
        return RedisStore(url=REDIS_URL, lazy=True)
    if DATABASE_URL:
        from runtime.persistence.sql_store import SQLStore
        return SQLStore(DATABASE_URL, lazy=True)
    from runtime.persistence.memory_store import MemoryStore
    logger.warning("[main] Neither REDIS_URL nor DATABASE_URL set; records are kept in memory")
    return MemoryStore()


def _default_generator():
    if USE_MOCK_GENERATOR:
        from agents.backends.stub_backend import StubTextGenerator
        return StubTextGenerator()
    from agents.backends.gemini_generator import GeminiTextGenerator
    return GeminiTextGenerator(
        model=GENERATOR_MODEL,
        temperature=GENERATOR_TEMPERATURE,
        timeout_sec=GENERATOR_TIMEOUT_SEC,
    )


def build_services(store=None, generator=None, prompt_cache: Optional[PromptCache] = None) -> Services:
    """Wire the pipeline. Every argument left as None comes from config."""
    store = store if store is not None else _default_store()
    generator = generator if generator is not None else _default_generator()
    if prompt_cache is None:
        prompt_cache = PromptCache(PROMPTS_DIR)

    projects = ProjectRepo(store)
    episodes = EpisodeRepo(store)
    batches = BatchRepo(store)

    escalator = RetryEscalator(
        SlotGenerator(generator, prompt_cache),
        EscalationPolicy.from_config(get_escalation_policy()),
    )
    pipeline = EpisodePipeline(
        escalator,
        StoredNarrativeContextProvider(projects),
        episodes,
        min_reveal_length=NEW_REVEAL_MIN_LENGTH,
        separator=ASSEMBLY_SEPARATOR,
    )

    batch_policies = get_batch_policies()
    orchestrator = BatchOrchestrator(
        pipeline,
        batches,
        episodes,
        hard_fail_threshold=batch_policies["hard_fail_threshold"],
    )
    scheduler = BatchScheduler(orchestrator, max_concurrent=batch_policies["max_concurrent_batches"])

    return Services(
        store=store,
        projects=projects,
        episodes=episodes,
        batches=batches,
        pipeline=pipeline,
        orchestrator=orchestrator,
        scheduler=scheduler,
        prompt_cache=prompt_cache,
    )


# DO NOT initialize heavy objects at import time
services: Optional[Services] = None

app = FastAPI(title="ScriptFlow Runtime")


def _services() -> Services:
    global services
    if services is None:
        services = build_services()
    return services


@app.on_event("startup")
async def startup_event():
    svc = _services()
    found = svc.prompt_cache.preload(SLOT_WRITER_PROMPT)
    if not found:
        logger.warning(f"[main] {SLOT_WRITER_PROMPT[0]}/{SLOT_WRITER_PROMPT[1]} prompt missing, using built-in default")
    logger.info(">>> startup: pipeline wired")


@app.on_event("shutdown")
async def shutdown_event():
    if services is not None:
        await services.scheduler.shutdown()


@app.get("/health")
async def health():
    """Minimal health check - no deps."""
    return {"status": "ok", "service": "scriptflow"}


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

@app.post("/projects/{project_id}")
def save_project(project_id: str, payload: Dict[str, Any] = Body(...)):
    """Store (or merge into) the project record: outlines, characters, episode summaries."""
    return _services().projects.save(project_id, payload)


@app.get("/projects/{project_id}")
def get_project(project_id: str):
    project = _services().projects.get(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@app.get("/projects/{project_id}/export")
def export_project(project_id: str):
    """Every episode that has content, EPnn-headed, in index order."""
    svc = _services()
    if svc.projects.get(project_id) is None:
        raise HTTPException(status_code=404, detail="Project not found")

    episodes = [r for r in svc.episodes.list(project_id) if r.get("content")]
    return {
        "project_id": project_id,
        "episodes": [r["episode_index"] for r in episodes],
        "degraded": [r["episode_index"] for r in episodes if r.get("status") == "DEGRADED"],
        "text": "\n\n".join(format_as_episode(r["content"], r["episode_index"]) for r in episodes),
    }


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------

@app.post("/batches/{project_id}/start")
async def start_batch(project_id: str, start: int, end: int, wait: bool = False):
    svc = _services()
    if svc.projects.get(project_id) is None:
        raise HTTPException(status_code=404, detail="Project not found")
    try:
        state = svc.scheduler.submit_start(project_id, start, end)
    except BatchStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if wait:
        state = await _wait_for(svc, project_id)
    return state.to_dict()


@app.post("/batches/{project_id}/pause")
def pause_batch(project_id: str):
    try:
        state = _services().orchestrator.pause(project_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Batch not found")
    except BatchStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {**state.to_dict(), "pause_requested": True}


@app.post("/batches/{project_id}/resume")
async def resume_batch(project_id: str, wait: bool = False):
    svc = _services()
    try:
        state = svc.scheduler.submit_resume(project_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Batch not found")
    except BatchStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if wait:
        state = await _wait_for(svc, project_id)
    return state.to_dict()


@app.get("/batches/{project_id}")
def get_batch(project_id: str):
    state = _services().orchestrator.get(project_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Batch not found")
    return {**state.to_dict(), "live": _services().scheduler.is_scheduled(project_id)}


async def _wait_for(svc: Services, project_id: str):
    try:
        return await svc.scheduler.wait(project_id)
    except BatchIntegrityViolation as e:
        raise HTTPException(status_code=500, detail=f"Batch integrity violation: {e}")


# ---------------------------------------------------------------------------
# Episodes
# ---------------------------------------------------------------------------

@app.get("/episodes/{project_id}")
def list_episodes(project_id: str):
    return {"project_id": project_id, "episodes": _services().episodes.list(project_id)}


@app.get("/episodes/{project_id}/{episode_index}")
def get_episode(project_id: str, episode_index: int):
    record = _services().episodes.get(project_id, episode_index)
    if record is None:
        raise HTTPException(status_code=404, detail="Episode not found")
    return record


@app.post("/episodes/{project_id}/{episode_index}/regenerate")
async def regenerate_episode(project_id: str, episode_index: int):
    svc = _services()
    try:
        outcome = await regenerate_degraded_episode(svc.pipeline, svc.episodes, project_id, episode_index)
    except KeyError:
        raise HTTPException(status_code=404, detail="Episode not found")
    except EpisodeStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {
        "outcome": outcome.to_dict(),
        "episode": svc.episodes.get(project_id, episode_index),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
