"""Durable per-user, per-topic progress records."""
import sqlite3
import threading
import weakref
from collections.abc import Callable
from datetime import datetime
from typing import Any, Optional

from loguru import logger

from quiz_tracker.db import DEFAULT_TIMEOUT, get_connection
from quiz_tracker.errors import ConcurrentUpdateConflict, StoreUnavailable
from quiz_tracker.models import TopicProgress

BUCKETS = ("mistake", "mastered", "favorite")


def _bucket_sets(progress: TopicProgress) -> dict[str, set[str]]:
    return {
        "mistake": progress.mistake_ids,
        "mastered": progress.mastered_ids,
        "favorite": progress.favorite_ids,
    }


class ProgressStore:
    """SQLite-backed progress store.

    Writes are optimistic: `upsert` only succeeds when the stored version
    still matches the version the record was read at. `update` wraps the
    read-modify-write cycle in a per-key lock and retries on conflicts.
    """

    def __init__(self, db_path: str, timeout: float = DEFAULT_TIMEOUT, retries: int = 3):
        self.db_path = db_path
        self.timeout = timeout
        self.retries = retries
        # Entries vanish once no update holds the lock.
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _connect(self) -> sqlite3.Connection:
        try:
            return get_connection(self.db_path, timeout=self.timeout)
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot open progress store at {self.db_path}: {e}") from e

    def _lock_for(self, user_id: str, topic_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get((user_id, topic_id))
            if lock is None:
                lock = threading.Lock()
                self._locks[(user_id, topic_id)] = lock
            return lock

    def _read(self, conn: sqlite3.Connection, user_id: str, topic_id: str) -> TopicProgress:
        row = conn.execute(
            "SELECT version FROM topic_progress WHERE user_id = ? AND topic_id = ?",
            (user_id, topic_id),
        ).fetchone()
        if not row:
            return TopicProgress.empty()
        progress = TopicProgress(version=row["version"])
        sets = _bucket_sets(progress)
        entries = conn.execute(
            "SELECT question_id, bucket FROM progress_entries WHERE user_id = ? AND topic_id = ?",
            (user_id, topic_id),
        ).fetchall()
        for entry in entries:
            sets[entry["bucket"]].add(entry["question_id"])
        return progress

    def get(self, user_id: str, topic_id: str) -> TopicProgress:
        """Return the stored record, or an empty one at version 0."""
        conn = self._connect()
        try:
            return self._read(conn, user_id, topic_id)
        except sqlite3.Error as e:
            raise StoreUnavailable(str(e)) from e
        finally:
            conn.close()

    def list_for_user(self, user_id: str) -> dict[str, TopicProgress]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT topic_id FROM topic_progress WHERE user_id = ? ORDER BY topic_id", (user_id,)
            ).fetchall()
            return {row["topic_id"]: self._read(conn, user_id, row["topic_id"]) for row in rows}
        except sqlite3.Error as e:
            raise StoreUnavailable(str(e)) from e
        finally:
            conn.close()

    def upsert(self, user_id: str, topic_id: str, progress: TopicProgress) -> TopicProgress:
        """Replace the stored record in one transaction.

        Raises ConcurrentUpdateConflict, writing nothing, when the stored
        version is not `progress.version`. Returns the record at its new
        version.
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT version FROM topic_progress WHERE user_id = ? AND topic_id = ?",
                (user_id, topic_id),
            ).fetchone()
            current = row["version"] if row else 0
            if current != progress.version:
                conn.rollback()
                raise ConcurrentUpdateConflict(user_id, topic_id, progress.version, current)
            new_version = current + 1
            now = datetime.now().isoformat()
            conn.execute(
                """INSERT INTO topic_progress (user_id, topic_id, version, updated_at) VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id, topic_id) DO UPDATE SET version = excluded.version, updated_at = excluded.updated_at""",
                (user_id, topic_id, new_version, now),
            )
            conn.execute(
                "DELETE FROM progress_entries WHERE user_id = ? AND topic_id = ?", (user_id, topic_id)
            )
            conn.executemany(
                "INSERT INTO progress_entries (user_id, topic_id, question_id, bucket) VALUES (?, ?, ?, ?)",
                [
                    (user_id, topic_id, qid, bucket)
                    for bucket, ids in _bucket_sets(progress).items()
                    for qid in sorted(ids)
                ],
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreUnavailable(f"Failed to write progress for {user_id}/{topic_id}: {e}") from e
        finally:
            conn.close()
        saved = progress.copy()
        saved.version = new_version
        return saved

    def update(
        self,
        user_id: str,
        topic_id: str,
        fn: Callable[[TopicProgress], tuple[TopicProgress, Any]],
        retries: Optional[int] = None,
    ) -> tuple[TopicProgress, Any]:
        """Read, transform with `fn`, and write back a record atomically.

        `fn` receives the current record and returns `(new_record, result)`.
        Only one update per (user, topic) runs at a time in this process;
        writers in other processes are caught by the version check and the
        whole cycle is retried up to `retries` times.
        """
        remaining = self.retries if retries is None else retries
        with self._lock_for(user_id, topic_id):
            while True:
                current = self.get(user_id, topic_id)
                updated, result = fn(current)
                updated.version = current.version
                try:
                    return self.upsert(user_id, topic_id, updated), result
                except ConcurrentUpdateConflict:
                    if remaining <= 0:
                        raise
                    remaining -= 1
                    logger.warning(f"Concurrent update on {user_id}/{topic_id}, retrying ({remaining} left)")

    def _execute(self, description: str, statements: list[tuple[str, tuple]]) -> None:
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            for sql, params in statements:
                conn.execute(sql, params)
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreUnavailable(f"Failed to {description}: {e}") from e
        finally:
            conn.close()

    def reset(self, user_id: str, topic_id: Optional[str] = None) -> None:
        """Clear mistake and mastered entries, keeping favorites."""
        where = "user_id = ?"
        params: tuple = (user_id,)
        if topic_id is not None:
            where += " AND topic_id = ?"
            params = (user_id, topic_id)
        self._execute("reset progress", [
            (f"DELETE FROM progress_entries WHERE {where} AND bucket IN ('mistake', 'mastered')", params),
            (f"UPDATE topic_progress SET version = version + 1, updated_at = ? WHERE {where}",
             (datetime.now().isoformat(), *params)),
        ])
        logger.info(f"Reset progress for {user_id}" + (f" on topic {topic_id}" if topic_id else ""))

    def clear_favorites(self, user_id: str, topic_id: str) -> None:
        self._execute("clear favorites", [
            ("DELETE FROM progress_entries WHERE user_id = ? AND topic_id = ? AND bucket = 'favorite'",
             (user_id, topic_id)),
            ("UPDATE topic_progress SET version = version + 1 WHERE user_id = ? AND topic_id = ?",
             (user_id, topic_id)),
        ])

    def delete_user_progress(self, user_id: str) -> None:
        self._execute("delete progress", [
            ("DELETE FROM progress_entries WHERE user_id = ?", (user_id,)),
            ("DELETE FROM topic_progress WHERE user_id = ?", (user_id,)),
        ])
