import pytest

from quiz_tracker.db import init_db
from quiz_tracker.models import Question
from quiz_tracker.questions import QuestionIndex
from quiz_tracker.service import QuizService
from quiz_tracker.store import ProgressStore
from quiz_tracker.users import Identity, login


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_quiz.db")
    return db_path


@pytest.fixture
def bank_db(tmp_db):
    """Initialized database with topic T (q1..q3) and topic U (u1, u2)."""
    init_db(tmp_db)
    index = QuestionIndex(tmp_db)
    index.add_topic("T", "Topic T")
    for n in (1, 2, 3):
        index.add_question(Question(id=f"q{n}", topic_id="T", text=f"Question {n}?", answer=f"a{n}"))
    index.add_topic("U", "Topic U")
    index.add_question(Question(id="u1", topic_id="U", text="U one?", answer="yes", options=["yes", "no"]))
    index.add_question(Question(id="u2", topic_id="U", text="U two?", answer="no", options=["yes", "no"],
                                explanation="Because."))
    login(tmp_db, Identity(uid="alice", email="alice@example.com", display_name="Alice"))
    return tmp_db


@pytest.fixture
def service(bank_db):
    return QuizService(ProgressStore(bank_db), QuestionIndex(bank_db), bank_db)
