"""Data classes for the quiz tracker domain model."""
from dataclasses import dataclass, field
from typing import Optional

from quiz_tracker.errors import InvalidMode

MODE_REMAINING = "remaining"
MODE_MISTAKES = "mistakes"
MODE_MASTERED = "mastered"
MODES = (MODE_REMAINING, MODE_MISTAKES, MODE_MASTERED)


def validate_mode(mode: str) -> str:
    if mode not in MODES:
        raise InvalidMode(mode)
    return mode


@dataclass
class User:
    id: str
    email: str = ""
    display_name: str = ""
    created_at: Optional[str] = None


@dataclass
class Topic:
    id: str
    name: str
    question_count: int = 0


@dataclass
class Question:
    id: str
    topic_id: str
    text: str
    answer: str
    options: list[str] = field(default_factory=list)
    explanation: str = ""

    def to_view(self) -> dict:
        """Client-facing view; empty options and explanation are omitted."""
        view = {"id": self.id, "text": self.text, "answer": self.answer}
        if self.options:
            view["options"] = list(self.options)
        if self.explanation:
            view["explanation"] = self.explanation
        return view


@dataclass
class TopicProgress:
    """Per (user, topic) classification state.

    `mistake_ids` and `mastered_ids` never share an id. `favorite_ids` is
    independent of both. `version` is the stored revision the record was
    read at, used for optimistic concurrency.
    """
    mistake_ids: set[str] = field(default_factory=set)
    mastered_ids: set[str] = field(default_factory=set)
    favorite_ids: set[str] = field(default_factory=set)
    version: int = 0

    @classmethod
    def empty(cls) -> "TopicProgress":
        return cls()

    def copy(self) -> "TopicProgress":
        return TopicProgress(
            mistake_ids=set(self.mistake_ids),
            mastered_ids=set(self.mastered_ids),
            favorite_ids=set(self.favorite_ids),
            version=self.version,
        )

    def is_empty(self) -> bool:
        return not (self.mistake_ids or self.mastered_ids or self.favorite_ids)


@dataclass
class Classification:
    remaining: set[str] = field(default_factory=set)
    mistake: set[str] = field(default_factory=set)
    mastered: set[str] = field(default_factory=set)

    def for_mode(self, mode: str) -> set[str]:
        validate_mode(mode)
        if mode == MODE_MISTAKES:
            return self.mistake
        if mode == MODE_MASTERED:
            return self.mastered
        return self.remaining

    def counts(self) -> dict:
        return {
            "remaining": len(self.remaining),
            "mistakes": len(self.mistake),
            "mastered": len(self.mastered),
        }


@dataclass(frozen=True)
class Outcome:
    question_id: str
    is_correct: bool


@dataclass
class QuizSession:
    topic_id: str
    mode: str
    question_ids: list[str]
    available_count: int = 0
