"""
Radarr cleanup source
"""

import logging
from typing import List

from integrations.base import CleanupSource, Candidate
from media_results import MediaType

logger = logging.getLogger(__name__)

UNRELEASED_STATUSES = ('announced', 'inCinemas')


class RadarrSource(CleanupSource):

    def __init__(self, radarr):
        self.radarr = radarr

    @property
    def media_type(self) -> MediaType:
        return MediaType.MOVIE

    @property
    def display_name(self) -> str:
        return 'Radarr'

    def list_candidates(self) -> List[Candidate]:
        logger.info("🎬 Fetching movies from Radarr...")
        movies = self.radarr.get_all_movies()
        logger.info(f"🎬 Found {len(movies)} movies in Radarr")
        return [self.to_candidate(movie) for movie in movies]

    @staticmethod
    def to_candidate(movie) -> Candidate:
        return Candidate(
            id=movie['id'],
            title=movie.get('title', ''),
            external_id=movie.get('tmdbId') or None,
            monitored=movie.get('monitored', False),
            has_file=movie.get('hasFile', False),
            unreleased=movie.get('status') in UNRELEASED_STATUSES,
            size_on_disk=movie.get('sizeOnDisk', 0),
            year=movie.get('year') or None,
        )

    def exists(self, item_id: int) -> bool:
        return self.radarr.get_movie(item_id) is not None

    def delete(self, item_id: int):
        self.radarr.delete_movie(item_id, delete_files=True)

    def unmonitor(self, item_id: int) -> bool:
        self.radarr.unmonitor_movie(item_id)
        return True

    def monitor(self, item_id: int) -> bool:
        self.radarr.monitor_movie(item_id)
        return True
