import json
import logging
import os
import sqlite3
import time
from typing import List, Optional

import psycopg2

logger = logging.getLogger(__name__)


class SQLStore:
    """
    Key-value records in a single `records` table (sqlite or postgres).
    Payloads are JSON; save() merges the partial record into the stored one.
    """

    def __init__(self, database_url=None, lazy=False):
        self._conn = None
        self.lazy = lazy
        self.backend = None

        self.database_url = database_url or os.getenv("DATABASE_URL")
        if not self.database_url:
            raise RuntimeError("DATABASE_URL not set")

        if not lazy:
            self._connect()

    # -------------------------------------------------

    def _cursor(self):
        return self.conn.cursor()

    def _ph(self):
        return "?" if self.backend == "sqlite" else "%s"

    def _init_schema(self):
        cur = self.conn.cursor()
        try:
            cur.execute("""
            CREATE TABLE IF NOT EXISTS records (
                key TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at REAL
            )
            """)
            self.conn.commit()
        finally:
            cur.close()

    def _connect(self):
        if self._conn is not None:
            return

        if self.database_url.startswith("sqlite"):
            path = self.database_url.replace("sqlite:///", "")
            self._conn = sqlite3.connect(
                path,
                check_same_thread=False
            )
            self.backend = "sqlite"
            logger.info(f"[sql] using sqlite ({path})")

        elif self.database_url.startswith("postgres"):
            self._conn = psycopg2.connect(self.database_url)
            self.backend = "postgres"
            logger.info("[sql] using postgres")

        else:
            raise RuntimeError(
                f"Unsupported DATABASE_URL: {self.database_url}"
            )

        self._init_schema()

    @property
    def conn(self):
        if self._conn is None:
            self._connect()
        return self._conn

    # -------------------------------------------------
    # Records
    # -------------------------------------------------

    def get(self, key: str) -> Optional[dict]:
        cur = self._cursor()
        try:
            cur.execute(
                f"SELECT payload FROM records WHERE key = {self._ph()}",
                (key,),
            )
            row = cur.fetchone()
            if not row:
                return None
            return json.loads(row[0])
        finally:
            cur.close()

    def save(self, key: str, partial: dict) -> dict:
        record = self.get(key) or {}
        record.update(partial)
        now = time.time()
        record["updated_at"] = now

        cur = self._cursor()
        try:
            cur.execute(
                f"""
                INSERT INTO records (key, payload, updated_at)
                VALUES ({self._ph()}, {self._ph()}, {self._ph()})
                ON CONFLICT (key) DO UPDATE
                SET payload = EXCLUDED.payload, updated_at = EXCLUDED.updated_at
                """,
                (key, json.dumps(record), now),
            )
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise
        finally:
            cur.close()
        return record

    def delete(self, key: str) -> None:
        cur = self._cursor()
        try:
            cur.execute(f"DELETE FROM records WHERE key = {self._ph()}", (key,))
            self.conn.commit()
        finally:
            cur.close()

    def keys(self, prefix: str = "") -> List[str]:
        cur = self._cursor()
        try:
            cur.execute(
                f"SELECT key FROM records WHERE key LIKE {self._ph()} ORDER BY key",
                (prefix + "%",),
            )
            return [row[0] for row in cur.fetchall()]
        finally:
            cur.close()

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None
