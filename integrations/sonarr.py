"""
Sonarr cleanup source
"""

import logging
from typing import List

from integrations.base import CleanupSource, Candidate
from media_results import MediaType

logger = logging.getLogger(__name__)

STATUS_UPCOMING = 'upcoming'


class SonarrSource(CleanupSource):

    def __init__(self, sonarr):
        self.sonarr = sonarr

    @property
    def media_type(self) -> MediaType:
        return MediaType.SERIES

    @property
    def display_name(self) -> str:
        return 'Sonarr'

    def list_candidates(self) -> List[Candidate]:
        logger.info("📺 Fetching series from Sonarr...")
        series_list = self.sonarr.get_all_series()
        logger.info(f"📺 Found {len(series_list)} series in Sonarr")
        return [self.to_candidate(series) for series in series_list]

    @staticmethod
    def to_candidate(series) -> Candidate:
        stats = series.get('statistics') or {}
        season_files = {}
        for season in series.get('seasons') or []:
            number = season.get('seasonNumber', 0)
            files = (season.get('statistics') or {}).get('episodeFileCount', 0)
            if number != 0 and files > 0:
                season_files[number] = files

        return Candidate(
            id=series['id'],
            title=series.get('title', ''),
            external_id=series.get('tvdbId') or None,
            monitored=series.get('monitored', False),
            has_file=stats.get('episodeFileCount', 0) > 0,
            unreleased=series.get('status') == STATUS_UPCOMING or stats.get('episodeCount', 0) == 0,
            size_on_disk=stats.get('sizeOnDisk', 0),
            season_files=season_files,
        )

    def exists(self, item_id: int) -> bool:
        return self.sonarr.get_series(item_id) is not None

    def delete(self, item_id: int):
        self.sonarr.delete_series(item_id, delete_files=True)

    def unmonitor(self, item_id: int) -> bool:
        self.sonarr.unmonitor_series(item_id)
        return True

    def monitor(self, item_id: int) -> bool:
        self.sonarr.monitor_series(item_id)
        return True
