import json
import logging
import os
import time
from typing import List, Optional

import redis

logger = logging.getLogger(__name__)


def _namespace():
    return os.getenv("REDIS_NAMESPACE", "scriptflow")


class RedisStore:
    """
    Key-value records stored as JSON strings under "<namespace>:<key>".
    save() merges the partial record into whatever is stored.
    """

    def __init__(self, redis_client=None, url=None, lazy=False, namespace=None):
        self._redis = redis_client
        self.url = url
        self.lazy = lazy
        self.namespace = namespace or _namespace()

        if not lazy and self._redis is None:
            self._connect()

    # -----------------------------
    # Internal
    # -----------------------------

    def _connect(self):
        if self._redis is None:
            if not self.url:
                raise RuntimeError("Redis URL not provided")

            try:
                self._redis = redis.from_url(
                    self.url,
                    decode_responses=True,
                    socket_timeout=5,
                    socket_connect_timeout=5,
                )
                self._redis.ping()
                logger.info(f"[RedisStore] Connected to Redis (namespace: {self.namespace})")
            except Exception as e:
                logger.error(f"[RedisStore] Failed to connect to Redis: {e}")
                raise

    @property
    def redis(self):
        if self._redis is None:
            self._connect()
        return self._redis

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    # -----------------------------
    # Records
    # -----------------------------

    def save(self, key: str, partial: dict) -> dict:
        record = self.get(key) or {}
        record.update(partial)
        record["updated_at"] = time.time()
        self.redis.set(self._key(key), json.dumps(record))
        return record

    def get(self, key: str) -> Optional[dict]:
        data = self.redis.get(self._key(key))
        if data is None:
            return None
        return json.loads(data)

    def delete(self, key: str) -> None:
        self.redis.delete(self._key(key))

    def keys(self, prefix: str = "") -> List[str]:
        strip = len(self.namespace) + 1
        found = self.redis.scan_iter(match=self._key(prefix) + "*")
        return sorted(k[strip:] for k in found)
