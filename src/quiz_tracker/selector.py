"""Question sampling for a quiz session."""
import random
from typing import Optional

from quiz_tracker.models import Classification, validate_mode

DEFAULT_QUIZ_SIZE = 5


def select_questions(
    mode: str,
    classification: Classification,
    max_size: int = DEFAULT_QUIZ_SIZE,
    rng: Optional[random.Random] = None,
) -> list[str]:
    """Draw up to `max_size` distinct question ids from the mode's bucket.

    An empty bucket yields an empty list. The order of the returned ids is
    random on every call.
    """
    validate_mode(mode)
    if max_size <= 0:
        raise ValueError(f"max_size must be positive, got {max_size}")
    source = sorted(classification.for_mode(mode))
    if not source:
        return []
    rng = rng or random
    return rng.sample(source, min(len(source), max_size))
