"""
Central configuration for ScriptFlow.
All production values come from environment variables with sensible defaults.
"""

import os


def _env_bool(key: str, default: bool = False) -> bool:
    val = os.getenv(key, "").lower()
    if val in ("true", "1", "yes"):
        return True
    if val in ("false", "0", "no"):
        return False
    return default


def _env_float(key: str, default: float) -> float:
    try:
        return float(os.getenv(key, str(default)))
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


def _env_separator(key: str, default: str) -> str:
    # Env values arrive with literal "\n" and "\t"; everything else is kept as-is
    return os.getenv(key, default).replace("\\n", "\n").replace("\\t", "\t")


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------
USE_MOCK_GENERATOR = _env_bool("USE_MOCK_GENERATOR", False)
GENERATOR_MODEL = os.getenv("GENERATOR_MODEL", "gemini-2.0-flash")
GENERATOR_TIMEOUT_SEC = _env_float("GENERATOR_TIMEOUT_SEC", 120.0)
GENERATOR_TEMPERATURE = _env_float("GENERATOR_TEMPERATURE", 0.7)

# ---------------------------------------------------------------------------
# Contract & Assembly
# ---------------------------------------------------------------------------
NEW_REVEAL_MIN_LENGTH = _env_int("NEW_REVEAL_MIN_LENGTH", 80)
ASSEMBLY_SEPARATOR = _env_separator("ASSEMBLY_SEPARATOR", "\n\n")
PROMPTS_DIR = os.getenv("PROMPTS_DIR")  # None -> <repo>/prompts


# ---------------------------------------------------------------------------
# Escalation & Batch Policies
# ---------------------------------------------------------------------------
def get_escalation_policy() -> dict:
    """Retry escalation: N strict attempts, then one relaxed attempt."""
    return {
        "max_strict_attempts": _env_int("SLOT_MAX_STRICT_ATTEMPTS", 3),
        # 1.0 keeps minimum lengths unchanged on the relaxed attempt
        "relaxed_min_length_factor": _env_float("RELAXED_MIN_LENGTH_FACTOR", 1.0),
    }


def get_batch_policies() -> dict:
    """Batch orchestration and scheduling."""
    return {
        "hard_fail_threshold": _env_int("BATCH_HARD_FAIL_THRESHOLD", 2),
        "max_concurrent_batches": _env_int("MAX_CONCURRENT_BATCHES", 2),
    }


# ---------------------------------------------------------------------------
# Storage & Logging
# ---------------------------------------------------------------------------
REDIS_URL = os.getenv("REDIS_URL")
DATABASE_URL = os.getenv("DATABASE_URL")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
