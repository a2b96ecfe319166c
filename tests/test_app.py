import pytest
from unittest.mock import patch

from quiz_tracker.app import (
    SessionExitRequested, ask_question, cmd_reset, run_quiz_session, session_prompt,
)
from quiz_tracker.models import Question


def test_session_prompt_raises_on_q():
    with patch("quiz_tracker.app.Prompt.ask", return_value="q"):
        with pytest.raises(SessionExitRequested):
            session_prompt("test prompt")


def test_session_prompt_raises_on_menu():
    with patch("quiz_tracker.app.Prompt.ask", return_value="menu"):
        with pytest.raises(SessionExitRequested):
            session_prompt("test prompt")


def test_session_prompt_returns_normal_input():
    with patch("quiz_tracker.app.Prompt.ask", return_value="hello"):
        assert session_prompt("test prompt") == "hello"


def test_ask_question_multiple_choice():
    q = Question(id="x", topic_id="t", text="Pick b", answer="b", options=["a", "b", "c"])
    with patch("quiz_tracker.app.Prompt.ask", return_value="2"):
        assert ask_question(q, 1, 1) is True
    with patch("quiz_tracker.app.Prompt.ask", return_value="3"):
        assert ask_question(q, 1, 1) is False


def test_ask_question_self_assessment():
    q = Question(id="x", topic_id="t", text="Explain", answer="Because")
    with patch("quiz_tracker.app.Prompt.ask", side_effect=["", "y"]):
        assert ask_question(q, 1, 1) is True
    with patch("quiz_tracker.app.Prompt.ask", side_effect=["", "n"]):
        assert ask_question(q, 1, 1) is False


def test_run_quiz_session_records_results(service):
    """Self-assessed topic: reveal then 'y' for every question."""
    with patch("quiz_tracker.app.Prompt.ask", side_effect=["", "y"] * 3), \
            patch("quiz_tracker.app.Confirm.ask", return_value=False):
        correct, total = run_quiz_session(service, "alice", "T", "remaining")
    assert (correct, total) == (3, 3)
    assert service.classification("alice", "T").mastered == {"q1", "q2", "q3"}


def test_run_quiz_session_multiple_choice(service):
    with patch("quiz_tracker.app.Prompt.ask", side_effect=["1", "1"]), \
            patch("quiz_tracker.app.Confirm.ask", return_value=False):
        correct, total = run_quiz_session(service, "alice", "U", "remaining")
    assert (correct, total) == (1, 2)
    c = service.classification("alice", "U")
    assert c.mastered == {"u1"}
    assert c.mistake == {"u2"}


def test_run_quiz_session_exit_records_nothing(service):
    """Typing 'q' on the second question abandons the whole quiz."""
    with patch("quiz_tracker.app.Prompt.ask", side_effect=["", "y", "q"]), \
            patch("quiz_tracker.app.Confirm.ask", return_value=False):
        assert run_quiz_session(service, "alice", "T", "remaining") == (0, 0)
    assert service.classification("alice", "T").remaining == {"q1", "q2", "q3"}


def test_run_quiz_session_exit_keeps_favorites(service):
    with patch("quiz_tracker.app.Prompt.ask", side_effect=["", "y", "q"]), \
            patch("quiz_tracker.app.Confirm.ask", return_value=True), \
            patch("quiz_tracker.app.console.print") as printed:
        assert run_quiz_session(service, "alice", "T", "remaining") == (0, 0)
    assert service.classification("alice", "T").remaining == {"q1", "q2", "q3"}
    assert len(service.get_favorites("alice", "T")) == 1
    messages = " ".join(str(c.args[0]) for c in printed.call_args_list if c.args)
    assert "no results were recorded" in messages


def test_run_quiz_session_empty_mode(service):
    with patch("quiz_tracker.app.Prompt.ask") as ask:
        assert run_quiz_session(service, "alice", "T", "mistakes") == (0, 0)
    ask.assert_not_called()


def test_run_quiz_session_can_favorite(service):
    with patch("quiz_tracker.app.Prompt.ask", side_effect=["1", "1"]), \
            patch("quiz_tracker.app.Confirm.ask", side_effect=[True, False]):
        run_quiz_session(service, "alice", "U", "remaining")
    assert len(service.get_favorites("alice", "U")) == 1


def test_cmd_reset_topic(service):
    service.submit_results("alice", "T", "remaining", [("q1", False)])
    with patch("quiz_tracker.app.Prompt.ask", side_effect=["topic", "1"]), \
            patch("quiz_tracker.app.Confirm.ask", return_value=True):
        cmd_reset(service, "alice")
    assert service.classification("alice", "T").mistake == set()


def test_cmd_reset_cancelled(service):
    service.submit_results("alice", "T", "remaining", [("q1", False)])
    with patch("quiz_tracker.app.Prompt.ask", side_effect=["all"]), \
            patch("quiz_tracker.app.Confirm.ask", return_value=False):
        cmd_reset(service, "alice")
    assert service.classification("alice", "T").mistake == {"q1"}
