"""
Watch history views over Trakt, fetched once per cycle and keyed by the ids
the backends use (TVDB for shows, TMDB for movies).
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class SeasonProgress:
    number: int
    aired: int = 0
    completed: int = 0
    # Announced episode count, 0 when unknown
    total: int = 0


@dataclass
class ShowProgress:
    seasons: Dict[int, SeasonProgress] = field(default_factory=dict)
    next_episode_season: Optional[int] = None

    @classmethod
    def from_trakt(cls, progress, season_summaries=None):
        seasons = {}
        for season in progress.get('seasons') or []:
            number = season.get('number')
            seasons[number] = SeasonProgress(
                number=number,
                aired=season.get('aired', 0),
                completed=season.get('completed', 0),
            )
        for summary in season_summaries or []:
            sp = seasons.get(summary.get('number'))
            if sp is not None:
                sp.total = summary.get('episode_count') or 0
            else:
                seasons[summary.get('number')] = SeasonProgress(
                    number=summary.get('number'), total=summary.get('episode_count') or 0)

        next_episode = progress.get('next_episode') or {}
        return cls(seasons=seasons, next_episode_season=next_episode.get('season'))

    def unwatched_seasons(self, season_files):
        """Seasons with files on disk where fewer episodes were watched than are on disk."""
        unwatched = []
        for number in sorted(season_files):
            if number == 0 or season_files[number] <= 0:
                continue
            sp = self.seasons.get(number)
            if sp is None or sp.completed < season_files[number]:
                unwatched.append(number)
        return unwatched

    def watching_reason(self, unwatched, season_files):
        if not unwatched:
            return "still watching"
        number = unwatched[0]
        sp = self.seasons.get(number)
        if sp is None or (sp.aired == 0 and sp.completed == 0):
            return f"S{number:02d} unwatched"
        return f"watching S{number:02d} ({sp.completed}/{season_files[number]} on disk)"

    def forthcoming_reason(self, season_files):
        """Reason string if more episodes are still to come, else None."""
        for number in sorted(season_files):
            if number == 0 or season_files[number] <= 0:
                continue
            sp = self.seasons.get(number)
            if sp is not None and sp.total > 0 and sp.aired < sp.total:
                return f"S{number:02d} ongoing ({sp.aired}/{sp.total} aired)"
        if self.next_episode_season is not None:
            return f"S{self.next_episode_season:02d} ongoing"
        return None


class ShowHistory:
    def __init__(self, trakt, watched_shows):
        self.trakt = trakt
        self._trakt_ids = {}
        for entry in watched_shows:
            ids = (entry.get('show') or {}).get('ids') or {}
            if ids.get('tvdb'):
                self._trakt_ids[ids['tvdb']] = ids.get('trakt')

    @classmethod
    def fetch(cls, trakt):
        logger.info("👁️ Fetching TV watch history from Trakt...")
        return cls(trakt, trakt.get_watched_shows())

    def __len__(self):
        return len(self._trakt_ids)

    def has(self, tvdb_id):
        return bool(tvdb_id) and tvdb_id in self._trakt_ids

    def progress(self, tvdb_id):
        trakt_id = self._trakt_ids[tvdb_id]
        progress = self.trakt.get_show_progress(trakt_id)
        try:
            summaries = self.trakt.get_show_seasons(trakt_id)
        except Exception as e:
            # Without totals only the next-episode pointer can flag new content
            logger.warning(f"Could not fetch season totals for trakt show {trakt_id}: {e}")
            summaries = []
        return ShowProgress.from_trakt(progress, summaries)


class MovieHistory:
    def __init__(self, watched_movies):
        self._watched_at = {}
        for entry in watched_movies:
            ids = (entry.get('movie') or {}).get('ids') or {}
            if ids.get('tmdb'):
                self._watched_at[ids['tmdb']] = _parse_timestamp(entry.get('last_watched_at'))

    @classmethod
    def fetch(cls, trakt):
        logger.info("👁️ Fetching movie watch history from Trakt...")
        return cls(trakt.get_watched_movies())

    def __len__(self):
        return len(self._watched_at)

    def has(self, tmdb_id):
        return bool(tmdb_id) and tmdb_id in self._watched_at

    def watched_at(self, tmdb_id):
        return self._watched_at.get(tmdb_id) if tmdb_id else None


def _parse_timestamp(value):
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
