# runtime/persistence/memory_store.py

import copy
import logging
import threading
import time
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class MemoryStore:
    """
    In-process key-value store with the same save/get contract as RedisStore
    and SQLStore. Used by tests and by local runs without REDIS_URL or
    DATABASE_URL.
    """

    def __init__(self):
        self._records: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def save(self, key: str, partial: dict) -> dict:
        """Merge partial into the stored record; returns the merged copy."""
        with self._lock:
            record = dict(self._records.get(key, {}))
            record.update(copy.deepcopy(partial))
            record["updated_at"] = time.time()
            self._records[key] = record
            logger.debug(f"[MemoryStore] saved {key}")
            return copy.deepcopy(record)

    def get(self, key: str) -> Optional[dict]:
        with self._lock:
            record = self._records.get(key)
            return copy.deepcopy(record) if record is not None else None

    def delete(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._records if k.startswith(prefix))
