"""Offline retry queue for session writes."""
import json
import time
from pathlib import Path
from typing import Any, Callable, Dict, List

from utils.logger import setup_logger
import config

logger = setup_logger(__name__)

ACTIONS = ("create", "update", "complete")


class OfflineQueue:
    """Bounded JSON-file queue of session writes that could not be stored."""

    def __init__(self, path: Path = config.OFFLINE_QUEUE_PATH, max_items: int = config.OFFLINE_QUEUE_MAX):
        """
        Args:
            path: JSON file holding the queue
            max_items: Oldest items are dropped beyond this size
        """
        self.path = Path(path)
        self.max_items = max_items
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                items = json.load(f)
            return items if isinstance(items, list) else []
        except Exception as e:
            logger.warning(f"Failed to load offline queue: {e}")
            return []

    def save(self, items: List[Dict[str, Any]]) -> None:
        try:
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump(items, f, indent=2, ensure_ascii=False)
        except Exception as e:
            logger.warning(f"Failed to save offline queue: {e}")

    def add(self, action: str, data: Dict[str, Any]) -> None:
        """Queue a write for later.

        Args:
            action: create, update or complete
            data: Payload for the action
        """
        if action not in ACTIONS:
            raise ValueError(f"Unknown offline action: {action}")

        items = self.load()
        items.append({'action': action, 'data': data, 'timestamp': int(time.time() * 1000)})
        if len(items) > self.max_items:
            dropped = len(items) - self.max_items
            items = items[dropped:]
            logger.warning(f"Offline queue full, dropped {dropped} oldest item(s)")
        self.save(items)
        logger.debug(f"Queued offline {action} ({len(items)} pending)")

    def flush(self, handler: Callable[[Dict[str, Any]], None]) -> int:
        """Replay queued items in order; keep only the ones that fail.

        Args:
            handler: Applies one item, raising on failure

        Returns:
            Number of items applied
        """
        items = self.load()
        if not items:
            return 0

        remaining = []
        for item in items:
            try:
                handler(item)
            except Exception as e:
                logger.warning(f"Offline {item.get('action')} still failing: {e}")
                remaining.append(item)

        self.save(remaining)
        synced = len(items) - len(remaining)
        logger.info(f"Synced {synced} offline item(s), {len(remaining)} pending")
        return synced

    def __len__(self) -> int:
        return len(self.load())

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
