"""
Cycle results: per-item decisions and the per-type counters built from them.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class MediaType(str, Enum):
    SERIES = 'series'
    MOVIE = 'movie'
    EMBY_SERIES = 'emby_series'
    EMBY_MOVIE = 'emby_movie'

    def __str__(self):
        return self.value


class Action(str, Enum):
    SKIPPED = 'skipped'
    QUEUED = 'queued'
    REMOVED = 'removed'
    DRY_RUN_REMOVE = 'dry_run_remove'
    ERROR = 'error'

    def __str__(self):
        return self.value


@dataclass
class MediaResult:
    type: MediaType
    title: str
    id: int
    action: Action
    reason: str = ''
    year: Optional[int] = None
    days_until: Optional[int] = None
    size_on_disk: int = 0

    def __post_init__(self):
        if self.action == Action.QUEUED:
            if self.days_until is None:
                raise ValueError("queued results need days_until")
        elif self.days_until is not None:
            raise ValueError(f"days_until is only valid for queued results, not {self.action}")

    @classmethod
    def skipped(cls, media_type, title, item_id, reason, year=None, size_on_disk=0):
        return cls(media_type, title, item_id, Action.SKIPPED, reason, year=year, size_on_disk=size_on_disk)

    @classmethod
    def queued(cls, media_type, title, item_id, reason, days_until, year=None, size_on_disk=0):
        return cls(media_type, title, item_id, Action.QUEUED, reason, year=year,
                   days_until=days_until, size_on_disk=size_on_disk)

    @classmethod
    def removed(cls, media_type, title, item_id, reason='deleted', year=None, size_on_disk=0):
        return cls(media_type, title, item_id, Action.REMOVED, reason, year=year, size_on_disk=size_on_disk)

    @classmethod
    def dry_run_remove(cls, media_type, title, item_id, reason='would be deleted', year=None, size_on_disk=0):
        return cls(media_type, title, item_id, Action.DRY_RUN_REMOVE, reason, year=year, size_on_disk=size_on_disk)

    @classmethod
    def error(cls, media_type, title, item_id, reason, year=None, size_on_disk=0):
        return cls(media_type, title, item_id, Action.ERROR, reason, year=year, size_on_disk=size_on_disk)

    def to_dict(self):
        data = {
            'type': self.type.value,
            'title': self.title,
            'id': self.id,
            'action': self.action.value,
            'reason': self.reason,
            'size_on_disk': self.size_on_disk,
        }
        if self.year:
            data['year'] = self.year
        if self.days_until is not None:
            data['days_until'] = self.days_until
        return data


@dataclass
class MediaStats:
    scanned: int = 0
    marked_for_queue: int = 0
    removed: int = 0
    skipped: int = 0

    def to_dict(self):
        return {
            'scanned': self.scanned,
            'marked_for_queue': self.marked_for_queue,
            'removed': self.removed,
            'skipped': self.skipped,
        }


@dataclass
class ProcessorOutcome:
    """What a single processor reports back to the orchestrator."""
    media_type: MediaType
    scanned: int = 0
    results: List[MediaResult] = field(default_factory=list)
    cancelled: bool = False


@dataclass
class ProcessingResult:
    stats: Dict[MediaType, MediaStats] = field(default_factory=dict)
    results: List[MediaResult] = field(default_factory=list)
    errors: int = 0
    dry_run: bool = False

    @classmethod
    def from_outcomes(cls, outcomes, dry_run=False):
        stats = {media_type: MediaStats() for media_type in MediaType}
        merged = []
        errors = 0
        for outcome in outcomes:
            counters = stats[outcome.media_type]
            counters.scanned += outcome.scanned
            for result in outcome.results:
                if result.action == Action.QUEUED:
                    counters.marked_for_queue += 1
                elif result.action in (Action.REMOVED, Action.DRY_RUN_REMOVE):
                    counters.removed += 1
                elif result.action == Action.SKIPPED:
                    counters.skipped += 1
                elif result.action == Action.ERROR:
                    errors += 1
                merged.append(result)
        return cls(stats=stats, results=merged, errors=errors, dry_run=dry_run)

    def by_action(self, action, media_types=None):
        return [r for r in self.results
                if r.action == action and (media_types is None or r.type in media_types)]

    def has_removals(self):
        return any(r.action == Action.REMOVED for r in self.results)

    def to_dict(self):
        return {
            'dry_run': self.dry_run,
            'errors': self.errors,
            'stats': {media_type.value: s.to_dict() for media_type, s in self.stats.items()},
            'results': [r.to_dict() for r in self.results],
        }
