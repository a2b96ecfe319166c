# tests/test_store.py
import gc
import sqlite3
import threading
from unittest.mock import patch

import pytest

from quiz_tracker.db import init_db
from quiz_tracker.errors import ConcurrentUpdateConflict, StoreUnavailable
from quiz_tracker.models import TopicProgress
from quiz_tracker.store import ProgressStore
from quiz_tracker.transitions import apply_results


def make_store(tmp_db, **kwargs):
    init_db(tmp_db)
    return ProgressStore(tmp_db, **kwargs)


def test_get_missing_record_returns_empty(tmp_db):
    store = make_store(tmp_db)
    progress = store.get("alice", "T")
    assert progress == TopicProgress()
    assert progress.version == 0


def test_upsert_then_get_round_trip(tmp_db):
    store = make_store(tmp_db)
    saved = store.upsert("alice", "T", TopicProgress(mistake_ids={"q1"}, mastered_ids={"q2"}, favorite_ids={"q1"}))
    assert saved.version == 1
    loaded = store.get("alice", "T")
    assert loaded.mistake_ids == {"q1"}
    assert loaded.mastered_ids == {"q2"}
    assert loaded.favorite_ids == {"q1"}
    assert loaded.version == 1


def test_upsert_replaces_previous_entries(tmp_db):
    store = make_store(tmp_db)
    saved = store.upsert("alice", "T", TopicProgress(mistake_ids={"q1", "q2"}))
    saved.mistake_ids = {"q2"}
    store.upsert("alice", "T", saved)
    assert store.get("alice", "T").mistake_ids == {"q2"}


def test_upsert_with_stale_version_conflicts_and_writes_nothing(tmp_db):
    store = make_store(tmp_db)
    store.upsert("alice", "T", TopicProgress(mistake_ids={"q1"}))
    with pytest.raises(ConcurrentUpdateConflict) as excinfo:
        store.upsert("alice", "T", TopicProgress(mastered_ids={"q9"}, version=0))
    assert excinfo.value.expected == 0
    assert excinfo.value.found == 1
    loaded = store.get("alice", "T")
    assert loaded.mistake_ids == {"q1"}
    assert loaded.mastered_ids == set()


def test_records_are_keyed_by_user_and_topic(tmp_db):
    store = make_store(tmp_db)
    store.upsert("alice", "T", TopicProgress(mistake_ids={"q1"}))
    store.upsert("bob", "T", TopicProgress(mastered_ids={"q1"}))
    store.upsert("alice", "U", TopicProgress(favorite_ids={"u1"}))
    assert store.get("alice", "T").mistake_ids == {"q1"}
    assert store.get("bob", "T").mastered_ids == {"q1"}
    assert store.get("alice", "U").favorite_ids == {"u1"}
    assert set(store.list_for_user("alice")) == {"T", "U"}


def test_update_applies_function_and_returns_result(tmp_db):
    store = make_store(tmp_db)
    progress, result = store.update(
        "alice", "T", lambda p: (apply_results("remaining", p, [("q1", True)]), "done")
    )
    assert result == "done"
    assert progress.mastered_ids == {"q1"}
    assert progress.version == 1


def test_update_retries_after_conflict(tmp_db):
    store = make_store(tmp_db)
    calls = []

    def add_q2(p):
        calls.append(p.version)
        if len(calls) == 1:
            # Another writer sneaks in between read and write.
            store.upsert("alice", "T", TopicProgress(mistake_ids={"q1"}))
        return apply_results("remaining", p, [("q2", True)]), None

    progress, _ = store.update("alice", "T", add_q2)
    assert calls == [0, 1]
    assert progress.mistake_ids == {"q1"}
    assert progress.mastered_ids == {"q2"}


def test_update_gives_up_after_retries(tmp_db):
    store = make_store(tmp_db, retries=2)
    attempts = []

    def always_conflict(p):
        attempts.append(p.version)
        store.upsert("alice", "T", store.get("alice", "T"))
        return p, None

    with pytest.raises(ConcurrentUpdateConflict):
        store.update("alice", "T", always_conflict)
    assert len(attempts) == 3


def test_concurrent_updates_lose_nothing(tmp_db):
    """Many threads adding different ids to one record all land."""
    store = make_store(tmp_db, timeout=30)
    ids = [f"q{i}" for i in range(20)]

    def submit(qid):
        store.update("alice", "T", lambda p: (apply_results("remaining", p, [(qid, True)]), None))

    threads = [threading.Thread(target=submit, args=(qid,)) for qid in ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    progress = store.get("alice", "T")
    assert progress.mastered_ids == set(ids)
    assert progress.version == len(ids)


def test_update_locks_are_released(tmp_db):
    store = make_store(tmp_db)
    held = store._lock_for("alice", "T")
    assert store._lock_for("alice", "T") is held
    del held
    for topic in ("T", "U", "V"):
        store.update("alice", topic, lambda p: (apply_results("remaining", p, [("q1", True)]), None))
    gc.collect()
    assert len(store._locks) == 0


def test_reset_clears_classification_but_keeps_favorites(tmp_db):
    store = make_store(tmp_db)
    store.upsert("alice", "T", TopicProgress(mistake_ids={"q1"}, mastered_ids={"q2"}, favorite_ids={"q1", "q3"}))
    store.reset("alice", "T")
    progress = store.get("alice", "T")
    assert progress.mistake_ids == set()
    assert progress.mastered_ids == set()
    assert progress.favorite_ids == {"q1", "q3"}
    assert progress.version == 2


def test_reset_one_topic_leaves_others(tmp_db):
    store = make_store(tmp_db)
    store.upsert("alice", "T", TopicProgress(mistake_ids={"q1"}))
    store.upsert("alice", "U", TopicProgress(mistake_ids={"u1"}))
    store.reset("alice", "T")
    assert store.get("alice", "T").mistake_ids == set()
    assert store.get("alice", "U").mistake_ids == {"u1"}


def test_reset_all_topics(tmp_db):
    store = make_store(tmp_db)
    store.upsert("alice", "T", TopicProgress(mistake_ids={"q1"}))
    store.upsert("alice", "U", TopicProgress(mastered_ids={"u1"}))
    store.upsert("bob", "T", TopicProgress(mastered_ids={"q1"}))
    store.reset("alice")
    assert store.get("alice", "T").mistake_ids == set()
    assert store.get("alice", "U").mastered_ids == set()
    assert store.get("bob", "T").mastered_ids == {"q1"}


def test_reset_invalidates_in_flight_readers(tmp_db):
    store = make_store(tmp_db)
    stale = store.upsert("alice", "T", TopicProgress(mistake_ids={"q1"}))
    store.reset("alice", "T")
    with pytest.raises(ConcurrentUpdateConflict):
        store.upsert("alice", "T", stale)


def test_reset_without_record_is_noop(tmp_db):
    store = make_store(tmp_db)
    store.reset("alice", "T")
    assert store.get("alice", "T") == TopicProgress()


def test_clear_favorites(tmp_db):
    store = make_store(tmp_db)
    store.upsert("alice", "T", TopicProgress(mastered_ids={"q1"}, favorite_ids={"q1", "q2"}))
    store.clear_favorites("alice", "T")
    progress = store.get("alice", "T")
    assert progress.favorite_ids == set()
    assert progress.mastered_ids == {"q1"}


def test_delete_user_progress(tmp_db):
    store = make_store(tmp_db)
    store.upsert("alice", "T", TopicProgress(mistake_ids={"q1"}))
    store.upsert("bob", "T", TopicProgress(mistake_ids={"q1"}))
    store.delete_user_progress("alice")
    assert store.list_for_user("alice") == {}
    assert store.get("bob", "T").mistake_ids == {"q1"}


def test_missing_schema_surfaces_store_unavailable(tmp_db):
    store = ProgressStore(tmp_db)  # init_db never ran
    with pytest.raises(StoreUnavailable):
        store.get("alice", "T")
    with pytest.raises(StoreUnavailable):
        store.upsert("alice", "T", TopicProgress())


def test_connection_failure_surfaces_store_unavailable(tmp_db):
    store = make_store(tmp_db)
    with patch("quiz_tracker.store.get_connection", side_effect=sqlite3.OperationalError("unable to open")):
        with pytest.raises(StoreUnavailable):
            store.get("alice", "T")


def test_locked_database_times_out(tmp_db):
    store = make_store(tmp_db, timeout=0.1)
    blocker = sqlite3.connect(tmp_db)
    blocker.execute("BEGIN IMMEDIATE")
    try:
        with pytest.raises(StoreUnavailable):
            store.upsert("alice", "T", TopicProgress(mistake_ids={"q1"}))
    finally:
        blocker.rollback()
        blocker.close()
    assert store.get("alice", "T") == TopicProgress()
