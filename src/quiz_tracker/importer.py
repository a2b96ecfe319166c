"""Import question banks from JSON or YAML files."""
import json
from pathlib import Path

import yaml
from loguru import logger

from quiz_tracker.models import Question
from quiz_tracker.questions import QuestionIndex


def load_question_bank(file_path: str) -> dict:
    """Parse a question bank file into a dict with a `topics` list."""
    path = Path(file_path)
    suffix = path.suffix.lower()
    if suffix == ".json":
        data = json.loads(path.read_text())
    elif suffix in (".yaml", ".yml"):
        data = yaml.safe_load(path.read_text())
    else:
        raise ValueError(f"Unsupported question bank format: {suffix or path.name}")
    if not isinstance(data, dict) or not isinstance(data.get("topics"), list):
        raise ValueError(f"{path.name}: expected a mapping with a 'topics' list")
    return data


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _question_from_entry(topic_id: str, entry: dict) -> Question:
    if not isinstance(entry, dict):
        raise ValueError(f"Question in topic {topic_id} must be a mapping")
    # YAML reads `no` as False and `0` as an int; both are real answers.
    missing = [key for key in ("id", "question", "answer") if _is_blank(entry.get(key))]
    if missing:
        raise ValueError(f"Question in topic {topic_id} is missing {', '.join(missing)}")
    return Question(
        id=str(entry["id"]),
        topic_id=topic_id,
        text=str(entry["question"]),
        answer=str(entry["answer"]),
        options=[str(o) for o in entry.get("options") or []],
        explanation=str(entry.get("explanation") or ""),
    )


def _parse_bank(data: dict) -> list[tuple[str, str, list[Question]]]:
    parsed = []
    for topic in data["topics"]:
        if not isinstance(topic, dict) or _is_blank(topic.get("id")):
            raise ValueError("Every topic needs an id")
        topic_id = str(topic["id"])
        entries = topic.get("questions") or []
        questions = [_question_from_entry(topic_id, entry) for entry in entries]
        parsed.append((topic_id, str(topic.get("name") or topic_id), questions))
    return parsed


def import_bank(db_path: str, data: dict) -> dict:
    """Insert topics and questions, skipping ids that already exist.

    The whole bank is validated first, so a bad entry imports nothing.
    """
    parsed = _parse_bank(data)
    index = QuestionIndex(db_path)
    topics = questions = skipped = 0
    for topic_id, name, topic_questions in parsed:
        if index.add_topic(topic_id, name):
            topics += 1
        for position, question in enumerate(topic_questions):
            if index.add_question(question, position=position):
                questions += 1
            else:
                skipped += 1
    return {"topics": topics, "questions": questions, "skipped": skipped}


def import_file(db_path: str, file_path: str) -> dict:
    """Import a question bank file. Returns counts of what was added."""
    result = import_bank(db_path, load_question_bank(file_path))
    result["filename"] = Path(file_path).name
    logger.info(
        f"Imported {result['filename']}: {result['topics']} topics, "
        f"{result['questions']} questions ({result['skipped']} already present)"
    )
    return result
