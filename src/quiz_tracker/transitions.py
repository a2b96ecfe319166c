"""Progress transitions for quiz results and favorites."""
from collections.abc import Iterable
from typing import Union

from quiz_tracker.models import (
    MODE_MASTERED, MODE_MISTAKES, MODE_REMAINING, Outcome, TopicProgress, validate_mode,
)

OutcomeLike = Union[Outcome, tuple[str, bool]]


def _normalize(outcomes: Iterable[OutcomeLike]) -> list[Outcome]:
    """Collapse a batch to one outcome per question id.

    The last outcome for an id wins; ids keep the position of their first
    appearance.
    """
    latest: dict[str, bool] = {}
    for outcome in outcomes:
        if isinstance(outcome, Outcome):
            question_id, is_correct = outcome.question_id, outcome.is_correct
        else:
            question_id, is_correct = outcome
        latest[question_id] = bool(is_correct)
    return [Outcome(qid, correct) for qid, correct in latest.items()]


def apply_outcome(mode: str, progress: TopicProgress, outcome: Outcome) -> None:
    """Apply a single outcome to `progress` in place.

    remaining: correct -> mastered, incorrect -> mistake.
    mistakes: correct -> leaves mistakes (back to remaining).
    mastered: incorrect -> leaves mastered (back to remaining).
    Every other combination is a no-op.
    """
    qid = outcome.question_id
    if mode == MODE_REMAINING:
        if outcome.is_correct:
            progress.mistake_ids.discard(qid)
            progress.mastered_ids.add(qid)
        else:
            progress.mastered_ids.discard(qid)
            progress.mistake_ids.add(qid)
    elif mode == MODE_MISTAKES:
        if outcome.is_correct:
            progress.mistake_ids.discard(qid)
    elif mode == MODE_MASTERED:
        if not outcome.is_correct:
            progress.mastered_ids.discard(qid)


def apply_results(mode: str, progress: TopicProgress, outcomes: Iterable[OutcomeLike]) -> TopicProgress:
    """Return a new progress record with a whole quiz batch applied.

    Args:
        mode: The mode the quiz was taken in.
        progress: Current record; left untouched.
        outcomes: `Outcome` objects or `(question_id, is_correct)` pairs.

    Returns:
        The updated record, carrying the same version as `progress`.
    """
    validate_mode(mode)
    updated = progress.copy()
    for outcome in _normalize(outcomes):
        apply_outcome(mode, updated, outcome)
    return updated


def toggle_favorite(progress: TopicProgress, question_id: str) -> tuple[TopicProgress, bool]:
    """Flip a question's favorite flag. Returns the new record and new state."""
    updated = progress.copy()
    if question_id in updated.favorite_ids:
        updated.favorite_ids.discard(question_id)
        return updated, False
    updated.favorite_ids.add(question_id)
    return updated, True
