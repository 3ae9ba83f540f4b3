"""
Removal Queue
Persistent delay store for items waiting to be deleted. One queue per
backend/media type, each written to its own JSON file.
"""
import os
import json
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Optional

from retirarr_utils import DATA_DIR

logger = logging.getLogger(__name__)

QUEUE_FILES = {
    'series': 'cleanup_queue_series.json',
    'movie': 'cleanup_queue_movie.json',
    'emby_series': 'cleanup_queue_emby_series.json',
    'emby_movie': 'cleanup_queue_emby_movie.json',
}


def utcnow():
    return datetime.now(timezone.utc)


@dataclass
class QueueItem:
    id: int
    external_id: int
    title: str
    marked_at: datetime
    reason: str = ''
    size_on_disk: int = 0
    unmonitored: bool = False
    year: Optional[int] = None
    # Catalog library the item was listed in, None for backend items
    library_id: Optional[str] = None

    def days_in_queue(self, now=None):
        now = now or utcnow()
        return (now - self.marked_at).total_seconds() / 86400

    def to_dict(self):
        data = asdict(self)
        data['marked_at'] = self.marked_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data):
        marked_at = datetime.fromisoformat(data['marked_at'].replace('Z', '+00:00'))
        if marked_at.tzinfo is None:
            marked_at = marked_at.replace(tzinfo=timezone.utc)
        return cls(
            id=data['id'],
            external_id=data.get('external_id', 0),
            title=data.get('title', ''),
            marked_at=marked_at,
            reason=data.get('reason', ''),
            size_on_disk=data.get('size_on_disk', 0),
            unmonitored=data.get('unmonitored', False),
            year=data.get('year'),
            library_id=data.get('library_id'),
        )


class RemovalQueue:
    """
    Keyed by backend id. An item's marked_at is set once when it is first added
    and never touched again while it stays queued.
    """

    def __init__(self, path):
        self.path = path
        self._lock = Lock()
        self._items = {}
        self._load()

    @classmethod
    def for_media_type(cls, media_type, data_dir=None):
        data_dir = data_dir or DATA_DIR
        os.makedirs(data_dir, exist_ok=True)
        return cls(os.path.join(data_dir, QUEUE_FILES[str(media_type)]))

    def _load(self):
        try:
            if not os.path.exists(self.path):
                return
            with open(self.path, 'r') as f:
                raw = json.load(f)
            for entry in raw:
                item = QueueItem.from_dict(entry)
                self._items[item.id] = item
            if self._items:
                logger.info(f"Loaded {len(self._items)} queued items from {os.path.basename(self.path)}")
        except Exception as e:
            logger.error(f"Error loading removal queue {self.path}: {e}")
            self._items = {}

    def _save(self):
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, 'w') as f:
                json.dump([item.to_dict() for item in self._items.values()], f, indent=2)
        except Exception as e:
            logger.error(f"Error saving removal queue {self.path}: {e}")

    def add(self, item):
        """Queue an item. Returns False if it was already queued."""
        with self._lock:
            if item.id in self._items:
                return False
            self._items[item.id] = item
            self._save()
            return True

    def remove(self, item_id):
        with self._lock:
            if self._items.pop(item_id, None) is None:
                return False
            self._save()
            return True

    def get(self, item_id):
        with self._lock:
            return self._items.get(item_id)

    def is_queued(self, item_id):
        with self._lock:
            return item_id in self._items

    def get_all(self):
        with self._lock:
            return list(self._items.values())

    def get_ready_for_removal(self, delay_days, now=None):
        now = now or utcnow()
        threshold = timedelta(days=delay_days)
        with self._lock:
            return [item for item in self._items.values() if now - item.marked_at >= threshold]

    def is_ready_for_removal(self, item_id, delay_days, now=None):
        now = now or utcnow()
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return False
            return now - item.marked_at >= timedelta(days=delay_days)

    def mark_unmonitored(self, item_id):
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return False
            item.unmonitored = True
            self._save()
            return True

    def clear(self):
        with self._lock:
            self._items = {}
            self._save()

    def __len__(self):
        with self._lock:
            return len(self._items)
