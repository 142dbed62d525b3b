"""Test session storage and the offline queue."""
import pytest
from playback.models import ProgressCheckpoint, SessionStats
from storage.database import SessionStore
from storage.offline_queue import OfflineQueue
from storage.progress import ProgressWriter, is_offline_id


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path / "sessions.db")


@pytest.fixture
def queue(tmp_path):
    return OfflineQueue(tmp_path / "queue.json", max_items=5)


def new_session(store, user_id="reader", title="Book"):
    return store.create_session(
        user_id=user_id,
        content_text="one two three four five",
        word_count=5,
        title=title,
        source_type="txt"
    )


def checkpoint(position):
    return ProgressCheckpoint(position=position, elapsed_seconds=30, avg_wpm=240)


def test_create_and_get(store):
    """Test creating a session."""
    session = new_session(store)

    assert session['user_id'] == "reader"
    assert session['current_position'] == 0
    assert session['completed'] is False
    assert session['average_wpm'] is None
    assert store.get_session(session['id']) == session
    assert store.get_session("missing") is None


def test_update_and_complete(store):
    """Test progress updates and completion."""
    session = new_session(store)

    assert store.update_progress(session['id'], current_position=3, time_spent_seconds=10, average_wpm=180)
    row = store.get_session(session['id'])
    assert (row['current_position'], row['time_spent_seconds'], row['average_wpm']) == (3, 10, 180)

    assert store.complete_session(session['id'], time_spent_seconds=12, average_wpm=200, words_read=5)
    row = store.get_session(session['id'])
    assert row['completed'] is True
    assert row['current_position'] == 5

    assert not store.update_progress("missing", current_position=1, time_spent_seconds=1, average_wpm=None)


def test_incomplete_sessions_limited(store):
    """Test that only five unfinished sessions are offered for resuming."""
    ids = [new_session(store, title=f"Book {i}")['id'] for i in range(7)]
    store.complete_session(ids[0], time_spent_seconds=1, average_wpm=100, words_read=5)
    new_session(store, user_id="someone else")

    incomplete = store.get_incomplete_sessions("reader")

    assert len(incomplete) == 5
    assert ids[0] not in [row['id'] for row in incomplete]
    assert 'content_text' in incomplete[0]
    assert len(store.get_all_sessions("reader")) == 7


def test_delete_session(store):
    """Test session deletion."""
    session = new_session(store)
    assert store.delete_session(session['id'])
    assert not store.delete_session(session['id'])
    assert store.get_session(session['id']) is None


def test_queue_add_and_flush(queue):
    """Test that flush keeps only failing items."""
    queue.add("update", {'n': 1})
    queue.add("update", {'n': 2})
    applied = []

    def handler(item):
        if item['data']['n'] == 2:
            raise RuntimeError("still offline")
        applied.append(item['data']['n'])

    assert queue.flush(handler) == 1
    assert applied == [1]
    assert len(queue) == 1
    assert queue.load()[0]['data'] == {'n': 2}


def test_queue_drops_oldest(queue):
    """Test the queue size cap."""
    for n in range(8):
        queue.add("update", {'n': n})

    assert [item['data']['n'] for item in queue.load()] == [3, 4, 5, 6, 7]


def test_queue_rejects_unknown_action(queue):
    """Test action validation."""
    with pytest.raises(ValueError):
        queue.add("delete", {})


def test_queue_corrupt_file(queue):
    """Test that a corrupt queue file reads as empty."""
    queue.path.write_text("{not json", encoding="utf-8")
    assert queue.load() == []
    queue.clear()
    assert not queue.path.exists()


def test_writer_saves_progress(store, queue):
    """Test direct progress writes."""
    writer = ProgressWriter(store, queue)
    session = writer.create(user_id="reader", content_text="a b c d e", word_count=5, title="Book")

    writer.persist_progress(session['id'], checkpoint(4))
    writer.complete(session['id'], SessionStats(words_read=5, elapsed_seconds=31, avg_wpm=250))

    row = store.get_session(session['id'])
    assert row['completed'] is True
    assert row['time_spent_seconds'] == 31
    assert len(queue) == 0


def test_writer_queues_unknown_session(store, queue):
    """Test that a failed write is queued instead of raised."""
    writer = ProgressWriter(store, queue)

    writer.persist_progress("gone", checkpoint(4))

    assert queue.load()[0]['action'] == "update"


def test_offline_session_syncs(store, queue):
    """Test a session created without storage and synced later."""
    offline = ProgressWriter(None, queue)
    session = offline.create(user_id="reader", content_text="a b c d e f", word_count=6, title="Offline")
    assert is_offline_id(session['id'])

    offline.persist_progress(session['id'], checkpoint(3))
    offline.complete(session['id'], SessionStats(words_read=6, elapsed_seconds=40, avg_wpm=200))
    assert [item['action'] for item in queue.load()] == ["create", "update", "complete"]

    synced = ProgressWriter(store, queue).sync()

    assert synced == 3
    assert len(queue) == 0
    rows = store.get_all_sessions("reader")
    assert len(rows) == 1
    assert not is_offline_id(rows[0]['id'])
    assert rows[0]['completed'] is True
    assert rows[0]['current_position'] == 6


def test_failed_update_keeps_stored_id(store, queue):
    """Test that an update failing after its session was stored syncs later."""
    offline = ProgressWriter(None, queue)
    session = offline.create(user_id="reader", content_text="a b c d e f g h", word_count=8)
    offline.persist_progress(session['id'], checkpoint(7))

    update_progress = store.update_progress
    failures = []

    def flaky_update(*args, **kwargs):
        if not failures:
            failures.append(args)
            raise RuntimeError("database is locked")
        return update_progress(*args, **kwargs)

    store.update_progress = flaky_update
    writer = ProgressWriter(store, queue)

    assert writer.sync() == 1
    stored_id = store.get_all_sessions("reader")[0]['id']
    assert queue.load()[0]['data']['session_id'] == stored_id

    assert writer.sync() == 1
    assert len(queue) == 0
    assert store.get_session(stored_id)['current_position'] == 7
    assert len(store.get_all_sessions("reader")) == 1


def test_sync_without_store(queue):
    """Test that sync is a no-op when storage is unavailable."""
    queue.add("update", {'session_id': "s1"})
    assert ProgressWriter(None, queue).sync() == 0
    assert len(queue) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
