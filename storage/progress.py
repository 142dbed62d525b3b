"""Fire-and-forget session persistence with an offline fallback."""
import time
from typing import Any, Dict, Optional

from utils.logger import setup_logger
from playback.models import ProgressCheckpoint, SessionStats
from storage.database import SessionStore
from storage.offline_queue import OfflineQueue

logger = setup_logger(__name__)

OFFLINE_PREFIX = "offline-"


def is_offline_id(session_id: str) -> bool:
    return str(session_id).startswith(OFFLINE_PREFIX)


class ProgressWriter:
    """Writes session progress without ever raising to the reader.

    Failed writes, and writes for sessions created while offline, are
    queued and replayed by sync().
    """

    def __init__(self, store: Optional[SessionStore], queue: OfflineQueue):
        """
        Args:
            store: Session store, or None when storage is unavailable
            queue: Offline retry queue
        """
        self.store = store
        self.queue = queue

    def create(
        self,
        user_id: str,
        content_text: str,
        word_count: int,
        title: Optional[str] = None,
        source_type: str = "paste",
        source_url: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a session, falling back to an offline id."""
        try:
            if self.store is None:
                raise RuntimeError("session store unavailable")
            return self.store.create_session(
                user_id=user_id,
                content_text=content_text,
                word_count=word_count,
                title=title,
                source_type=source_type,
                source_url=source_url
            )
        except Exception as e:
            logger.warning(f"Failed to create session, queuing offline: {e}")

        row = {
            'id': f"{OFFLINE_PREFIX}{int(time.time() * 1000)}",
            'user_id': user_id,
            'title': title or "Untitled",
            'source_type': source_type,
            'source_url': source_url,
            'content_text': content_text,
            'word_count': word_count,
            'current_position': 0,
            'completed': False,
            'time_spent_seconds': 0,
            'average_wpm': None,
        }
        self.queue.add("create", row)
        return row

    def persist_progress(self, session_id: str, checkpoint: ProgressCheckpoint) -> None:
        """Autosave collaborator for RSVPEngine."""
        data = {
            'session_id': session_id,
            'current_position': checkpoint.position,
            'time_spent_seconds': checkpoint.elapsed_seconds,
            'average_wpm': checkpoint.avg_wpm,
        }
        if is_offline_id(session_id):
            self.queue.add("update", data)
            return

        try:
            self._apply_update(data)
            logger.debug(f"Saved progress for {session_id} at {checkpoint.position}")
        except Exception as e:
            logger.warning(f"Failed to save progress, queuing offline: {e}")
            self.queue.add("update", data)

    def complete(self, session_id: str, stats: SessionStats) -> None:
        data = {
            'session_id': session_id,
            'time_spent_seconds': stats.elapsed_seconds,
            'average_wpm': stats.avg_wpm,
            'words_read': stats.words_read,
        }
        if is_offline_id(session_id):
            self.queue.add("complete", data)
            return

        try:
            self._apply_complete(data)
            logger.info(f"Session {session_id} complete")
        except Exception as e:
            logger.warning(f"Failed to complete session, queuing offline: {e}")
            self.queue.add("complete", data)

    def sync(self) -> int:
        """Replay the offline queue into the store.

        Sessions created offline get a stored id; queued updates for them
        are applied to that id.

        Returns:
            Number of items synced
        """
        if self.store is None:
            logger.warning("Session store unavailable, nothing synced")
            return 0

        id_map: Dict[str, str] = {}

        def apply(item: Dict[str, Any]) -> None:
            action, data = item['action'], dict(item['data'])
            if action == "create":
                row = {k: v for k, v in data.items() if k in (
                    'user_id', 'title', 'source_type', 'source_url', 'content_text', 'word_count'
                )}
                stored = self.store.create_session(**row)
                id_map[data['id']] = stored['id']
                return

            session_id = id_map.get(data['session_id'], data['session_id'])
            if is_offline_id(session_id):
                raise LookupError(f"session {session_id} has not been created yet")
            data['session_id'] = session_id
            # Items that fail stay queued under the stored id
            item['data']['session_id'] = session_id
            if action == "update":
                self._apply_update(data)
            elif action == "complete":
                self._apply_complete(data)

        return self.queue.flush(apply)

    def _apply_update(self, data: Dict[str, Any]) -> None:
        if self.store is None:
            raise RuntimeError("session store unavailable")
        if not self.store.update_progress(
            data['session_id'],
            current_position=data['current_position'],
            time_spent_seconds=data['time_spent_seconds'],
            average_wpm=data['average_wpm']
        ):
            raise LookupError(f"unknown session {data['session_id']}")

    def _apply_complete(self, data: Dict[str, Any]) -> None:
        if self.store is None:
            raise RuntimeError("session store unavailable")
        if not self.store.complete_session(
            data['session_id'],
            time_spent_seconds=data['time_spent_seconds'],
            average_wpm=data['average_wpm'],
            words_read=data['words_read']
        ):
            raise LookupError(f"unknown session {data['session_id']}")
