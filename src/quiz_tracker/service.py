"""Quiz operations for authenticated users.

`QuizService` ties the pure progress rules (classification, selection,
transitions) to the question bank and the progress store. It is built once
at startup and handed to the HTTP and terminal front ends.
"""
import random
from collections.abc import Iterable
from typing import Optional

from loguru import logger

from quiz_tracker import users
from quiz_tracker.classifier import classify
from quiz_tracker.errors import QuestionNotFound
from quiz_tracker.models import Classification, QuizSession, TopicProgress, User, validate_mode
from quiz_tracker.questions import QuestionIndex
from quiz_tracker.selector import DEFAULT_QUIZ_SIZE, select_questions
from quiz_tracker.store import ProgressStore
from quiz_tracker.transitions import OutcomeLike, apply_results, toggle_favorite


class QuizService:
    def __init__(
        self,
        store: ProgressStore,
        questions: QuestionIndex,
        users_db: str,
        quiz_size: int = DEFAULT_QUIZ_SIZE,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.questions = questions
        self.users_db = users_db
        self.quiz_size = quiz_size
        self.rng = rng

    # Accounts

    def login(self, identity: users.Identity) -> User:
        user = users.login(self.users_db, identity)
        logger.info(f"User {user.id} logged in")
        return user

    def get_user(self, user_id: str) -> User:
        return users.get_user(self.users_db, user_id)

    def delete_account(self, user_id: str) -> None:
        users.delete_user(self.users_db, user_id)
        self.store.delete_user_progress(user_id)
        logger.info(f"Deleted account {user_id}")

    # Classification

    def classification(self, user_id: str, topic_id: str) -> Classification:
        topic_ids = self.questions.get_question_ids(topic_id)
        return classify(topic_ids, self.store.get(user_id, topic_id))

    # Quiz flow

    def start_quiz(self, user_id: str, topic_id: str, mode: str) -> QuizSession:
        validate_mode(mode)
        self.questions.get_topic(topic_id)
        classification = self.classification(user_id, topic_id)
        selected = select_questions(mode, classification, self.quiz_size, self.rng)
        available = len(classification.for_mode(mode))
        logger.debug(f"Quiz for {user_id} on {topic_id} ({mode}): {len(selected)} of {available}")
        return QuizSession(topic_id=topic_id, mode=mode, question_ids=selected, available_count=available)

    def get_quiz(self, user_id: str, topic_id: str, mode: str) -> dict:
        session = self.start_quiz(user_id, topic_id, mode)
        topic = self.questions.get_topic(topic_id)
        questions = self.questions.get_questions(topic_id, session.question_ids)
        return {
            "topic_id": topic.id,
            "topic_name": topic.name,
            "mode": mode,
            "questions": [q.to_view() for q in questions],
            "available_count": session.available_count,
        }

    def submit_results(
        self, user_id: str, topic_id: str, mode: str, outcomes: Iterable[OutcomeLike]
    ) -> TopicProgress:
        """Apply a finished quiz to the user's progress in one atomic update."""
        validate_mode(mode)
        outcomes = list(outcomes)
        self.questions.get_topic(topic_id)
        self.get_user(user_id)
        progress, _ = self.store.update(
            user_id, topic_id, lambda current: (apply_results(mode, current, outcomes), None)
        )
        logger.debug(f"Applied {len(outcomes)} {mode} results for {user_id} on {topic_id}")
        return progress

    # Favorites

    def toggle_favorite(self, user_id: str, topic_id: str, question_id: str) -> bool:
        self.questions.get_topic(topic_id)
        if question_id not in self.questions.get_question_ids(topic_id):
            raise QuestionNotFound(topic_id, question_id)
        self.get_user(user_id)
        _, is_favorite = self.store.update(
            user_id, topic_id, lambda current: toggle_favorite(current, question_id)
        )
        return is_favorite

    def get_favorites(self, user_id: str, topic_id: str) -> list[dict]:
        self.questions.get_topic(topic_id)
        favorite_ids = sorted(self.store.get(user_id, topic_id).favorite_ids)
        return [q.to_view() for q in self.questions.get_questions(topic_id, favorite_ids)]

    def clear_favorites(self, user_id: str, topic_id: str) -> None:
        self.questions.get_topic(topic_id)
        self.store.clear_favorites(user_id, topic_id)

    # Reset and summaries

    def reset_progress(self, user_id: str, topic_id: Optional[str] = None) -> None:
        """Clear mistakes and mastered questions for one topic or all topics."""
        if topic_id is not None:
            self.questions.get_topic(topic_id)
        self.store.reset(user_id, topic_id)

    def topic_progress(self, user_id: str, topic_id: str) -> dict:
        self.questions.get_topic(topic_id)
        classification = self.classification(user_id, topic_id)
        return {
            "topic_id": topic_id,
            "mistake_ids": sorted(classification.mistake),
            "mastered_ids": sorted(classification.mastered),
            "total_questions": len(classification.remaining | classification.mistake | classification.mastered),
            **classification.counts(),
        }

    def topic_summaries(self, user_id: str) -> list[dict]:
        """Per-topic question counts for the user, as shown on the topic list."""
        records = self.store.list_for_user(user_id)
        summaries = []
        for topic in self.questions.list_topics():
            progress = records.get(topic.id, TopicProgress.empty())
            classification = classify(self.questions.get_question_ids(topic.id), progress)
            summaries.append({
                "topic_id": topic.id,
                "name": topic.name,
                "total_questions": topic.question_count,
                "favorite_count": len(progress.favorite_ids),
                **classification.counts(),
            })
        return summaries

    def user_stats(self, user_id: str) -> dict:
        records = self.store.list_for_user(user_id)
        total_mastered = total_mistakes = 0
        for topic_id, progress in records.items():
            classification = classify(self.questions.get_question_ids(topic_id), progress)
            total_mastered += len(classification.mastered)
            total_mistakes += len(classification.mistake)
        return {
            "user_id": user_id,
            "total_mastered": total_mastered,
            "total_mistakes": total_mistakes,
            "topics_started": sum(1 for p in records.values() if not p.is_empty()),
        }
