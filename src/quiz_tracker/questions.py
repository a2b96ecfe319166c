"""Read-only lookup of topics and their questions."""
import json
import sqlite3
from collections.abc import Iterable

from quiz_tracker.db import DEFAULT_TIMEOUT, get_connection
from quiz_tracker.errors import StoreUnavailable, TopicNotFound
from quiz_tracker.models import Question, Topic

TOPIC_QUERY = """SELECT t.id, t.name, COUNT(q.id) as question_count
FROM topics t LEFT JOIN questions q ON q.topic_id = t.id"""


def _row_to_question(row) -> Question:
    return Question(
        id=row["id"],
        topic_id=row["topic_id"],
        text=row["text"],
        answer=row["answer"],
        options=json.loads(row["options"]),
        explanation=row["explanation"],
    )


def _row_to_topic(row) -> Topic:
    return Topic(id=row["id"], name=row["name"], question_count=row["question_count"])


class QuestionIndex:
    """Question bank backed by the `topics` and `questions` tables."""

    def __init__(self, db_path: str, timeout: float = DEFAULT_TIMEOUT):
        self.db_path = db_path
        self.timeout = timeout

    def _fetch(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            conn = get_connection(self.db_path, timeout=self.timeout)
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot open question bank at {self.db_path}: {e}") from e
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Failed to read question bank: {e}") from e
        finally:
            conn.close()

    def _insert(self, sql: str, params: tuple) -> bool:
        try:
            conn = get_connection(self.db_path, timeout=self.timeout)
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Cannot open question bank at {self.db_path}: {e}") from e
        try:
            cursor = conn.execute(sql, params)
            conn.commit()
            return cursor.rowcount == 1
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreUnavailable(f"Failed to write question bank: {e}") from e
        finally:
            conn.close()

    def list_topics(self) -> list[Topic]:
        rows = self._fetch(f"{TOPIC_QUERY} GROUP BY t.id ORDER BY t.name")
        return [_row_to_topic(r) for r in rows]

    def get_topic(self, topic_id: str) -> Topic:
        rows = self._fetch(f"{TOPIC_QUERY} WHERE t.id = ? GROUP BY t.id", (topic_id,))
        if not rows:
            raise TopicNotFound(topic_id)
        return _row_to_topic(rows[0])

    def get_question_ids(self, topic_id: str) -> set[str]:
        rows = self._fetch("SELECT id FROM questions WHERE topic_id = ?", (topic_id,))
        return {r["id"] for r in rows}

    def get_questions(self, topic_id: str, question_ids: Iterable[str]) -> list[Question]:
        """Fetch questions in the order of `question_ids`, skipping unknown ids."""
        wanted = list(question_ids)
        if not wanted:
            return []
        placeholders = ", ".join("?" for _ in wanted)
        rows = self._fetch(
            f"SELECT * FROM questions WHERE topic_id = ? AND id IN ({placeholders})",
            (topic_id, *wanted),
        )
        by_id = {r["id"]: _row_to_question(r) for r in rows}
        return [by_id[qid] for qid in wanted if qid in by_id]

    def add_topic(self, topic_id: str, name: str) -> bool:
        """Insert a topic unless it exists. Returns True if it was inserted."""
        return self._insert("INSERT OR IGNORE INTO topics (id, name) VALUES (?, ?)", (topic_id, name))

    def add_question(self, question: Question, position: int = 0) -> bool:
        """Insert a question unless its id already exists in the topic."""
        return self._insert(
            """INSERT OR IGNORE INTO questions (id, topic_id, text, options, answer, explanation, position)
            VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (question.id, question.topic_id, question.text, json.dumps(question.options),
             question.answer, question.explanation, position),
        )
