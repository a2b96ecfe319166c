"""Errors raised by the quiz tracker core."""


class QuizTrackerError(Exception):
    """Base class for all quiz tracker errors."""


class InvalidMode(QuizTrackerError):
    def __init__(self, mode):
        super().__init__(f"Invalid mode: {mode!r}")
        self.mode = mode


class TopicNotFound(QuizTrackerError):
    def __init__(self, topic_id: str):
        super().__init__(f"Topic not found: {topic_id}")
        self.topic_id = topic_id


class UserNotFound(QuizTrackerError):
    def __init__(self, user_id: str):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class QuestionNotFound(QuizTrackerError):
    def __init__(self, topic_id: str, question_id: str):
        super().__init__(f"Question {question_id} not found in topic {topic_id}")
        self.topic_id = topic_id
        self.question_id = question_id


class StoreUnavailable(QuizTrackerError):
    """The progress store could not be reached or timed out. Safe to retry."""


class ConcurrentUpdateConflict(QuizTrackerError):
    """Another writer changed the progress record between read and write."""

    def __init__(self, user_id: str, topic_id: str, expected: int, found: int):
        super().__init__(
            f"Progress for {user_id}/{topic_id} changed (expected version {expected}, found {found})"
        )
        self.user_id = user_id
        self.topic_id = topic_id
        self.expected = expected
        self.found = found


class AuthenticationError(QuizTrackerError):
    """Missing or invalid identity token."""
