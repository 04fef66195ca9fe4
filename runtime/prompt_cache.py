"""
Prompt Cache - markdown prompt templates loaded from the prompts/ directory.

Constructed once at process startup and injected into the slot generator.
Files are read lazily on first use and kept for the life of the instance.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

logger = logging.getLogger(__name__)

DEFAULT_PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"


class PromptCache:
    def __init__(self, prompts_dir: Union[str, Path, None] = None):
        self.prompts_dir = Path(prompts_dir) if prompts_dir else DEFAULT_PROMPTS_DIR
        self._entries: Dict[Tuple[str, str], str] = {}
        self._lock = threading.Lock()

    def path_for(self, category: str, name: str) -> Path:
        return self.prompts_dir / category / f"{name}.md"

    def get(self, category: str, name: str, default: Optional[str] = None) -> str:
        """
        Return the prompt text for (category, name).

        When the file is missing and a default is given, the default is
        cached in its place; otherwise FileNotFoundError propagates.
        """
        key = (category, name)
        cached = self._entries.get(key)
        if cached is not None:
            return cached

        with self._lock:
            if key in self._entries:
                return self._entries[key]
            path = self.path_for(category, name)
            try:
                text = path.read_text(encoding="utf-8").strip()
                logger.info(f"[PromptCache] Loaded {category}/{name} from {path}")
            except FileNotFoundError:
                if default is None:
                    logger.error(f"[PromptCache] Prompt not found: {path}")
                    raise
                logger.warning(f"[PromptCache] {path} not found, using built-in default")
                text = default
            self._entries[key] = text
            return text

    def preload(self, *names: Tuple[str, str]) -> int:
        """Load the given (category, name) pairs now; returns how many were found on disk."""
        found = 0
        for category, name in names:
            try:
                self.get(category, name)
                found += 1
            except FileNotFoundError:
                continue
        return found

    def __len__(self) -> int:
        return len(self._entries)
