"""Three-way classification of a topic's questions for one user."""
from collections.abc import Iterable

from quiz_tracker.models import Classification, TopicProgress


def classify(topic_question_ids: Iterable[str], progress: TopicProgress) -> Classification:
    """Partition a topic's question ids into remaining, mistake and mastered.

    Args:
        topic_question_ids: Every question id the topic currently owns.
        progress: The user's progress record for the topic.

    Returns:
        A Classification whose three sets are pairwise disjoint and together
        cover exactly `topic_question_ids`. Ids in `progress` that no longer
        belong to the topic are dropped.
    """
    topic_ids = set(topic_question_ids)
    mistake = progress.mistake_ids & topic_ids
    mastered = (progress.mastered_ids & topic_ids) - mistake
    remaining = topic_ids - mistake - mastered
    return Classification(remaining=remaining, mistake=mistake, mastered=mastered)
