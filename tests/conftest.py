"""Pytest fixtures for Retirarr tests."""

import os
import tempfile

# Keep log and data files out of the working tree
_TMP = tempfile.mkdtemp(prefix='retirarr-tests-')
os.environ.setdefault('LOG_DIR', os.path.join(_TMP, 'logs'))
os.environ.setdefault('DATA_DIR', os.path.join(_TMP, 'data'))

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402

from integrations.base import CleanupSource, Candidate  # noqa: E402
from media_results import MediaType  # noqa: E402
from removal_queue import RemovalQueue  # noqa: E402
from watch_history import ShowProgress, SeasonProgress  # noqa: E402

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeSource(CleanupSource):
    """In-memory library that records every write call."""

    def __init__(self, media_type=MediaType.SERIES, candidates=None, can_unmonitor=True):
        self._media_type = media_type
        self.candidates = list(candidates or [])
        self.existing = {c.id for c in self.candidates}
        self.can_unmonitor = can_unmonitor
        self.provider = 'Tvdb'
        self.deleted = []
        self.unmonitored = []
        self.monitored = []
        self.exists_error = None
        self.delete_error = None
        self.unmonitor_error = None

    @property
    def media_type(self):
        return self._media_type

    @property
    def display_name(self):
        return 'Fake'

    def list_candidates(self):
        return list(self.candidates)

    def exists(self, item_id):
        if self.exists_error:
            raise self.exists_error
        return item_id in self.existing

    def delete(self, item_id):
        if self.delete_error:
            raise self.delete_error
        self.deleted.append(item_id)
        self.existing.discard(item_id)

    def unmonitor(self, item_id):
        if self.unmonitor_error:
            raise self.unmonitor_error
        if not self.can_unmonitor:
            return False
        self.unmonitored.append(item_id)
        return True

    def monitor(self, item_id):
        if not self.can_unmonitor:
            return False
        self.monitored.append(item_id)
        return True


class FakeShowHistory:
    def __init__(self, progress=None, errors=None):
        self.progress_by_tvdb = dict(progress or {})
        self.errors = dict(errors or {})
        self.calls = []

    def has(self, tvdb_id):
        return tvdb_id in self.progress_by_tvdb or tvdb_id in self.errors

    def progress(self, tvdb_id):
        self.calls.append(tvdb_id)
        if tvdb_id in self.errors:
            raise self.errors[tvdb_id]
        return self.progress_by_tvdb[tvdb_id]


class FakeMovieHistory:
    def __init__(self, watched=None):
        self.watched = dict(watched or {})

    def has(self, tmdb_id):
        return tmdb_id in self.watched

    def watched_at(self, tmdb_id):
        return self.watched.get(tmdb_id)


class Clock:
    """Settable now() for delay tests."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_series(item_id=1, title='Severance', tvdb_id=100, season_files=None, **kwargs):
    return Candidate(
        id=item_id,
        title=title,
        external_id=tvdb_id,
        season_files={1: 9, 2: 10} if season_files is None else season_files,
        size_on_disk=kwargs.pop('size_on_disk', 50 * 1024 ** 3),
        **kwargs,
    )


def make_movie(item_id=1, title='Arrival', tmdb_id=329865, year=2016, **kwargs):
    return Candidate(id=item_id, title=title, external_id=tmdb_id, year=year,
                     size_on_disk=kwargs.pop('size_on_disk', 8 * 1024 ** 3), **kwargs)


def make_progress(seasons, next_episode_season=None):
    """seasons: {number: (aired, completed, total)}"""
    return ShowProgress(
        seasons={n: SeasonProgress(n, aired, completed, total) for n, (aired, completed, total) in seasons.items()},
        next_episode_season=next_episode_season,
    )


def finished_progress():
    return make_progress({1: (9, 9, 9), 2: (10, 10, 10)})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def queue_path(tmp_path):
    return str(tmp_path / 'cleanup_queue_series.json')


@pytest.fixture
def queue(queue_path):
    return RemovalQueue(queue_path)


@pytest.fixture
def queues(tmp_path):
    return {media_type: RemovalQueue.for_media_type(media_type, str(tmp_path)) for media_type in MediaType}
