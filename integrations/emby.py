"""
Emby catalog sources
Emby has no monitoring concept, so unmonitor/monitor keep the base no-ops.
"""

import logging
from typing import Dict, List, Optional

from integrations.base import CleanupSource, Candidate
from emby_utils import parse_provider_id
from library_filter import resolve_excluded_library_ids, filter_by_library
from media_results import MediaType

logger = logging.getLogger(__name__)


class EmbySource(CleanupSource):
    """Shared listing logic; subclasses pick the item type and provider id."""

    item_type = None
    collection_type = None
    provider = None

    def __init__(self, emby, excluded_libraries: Optional[List[str]] = None):
        self.emby = emby
        self.excluded_libraries = excluded_libraries or []
        # Resolved by list_candidates
        self.excluded_library_ids = set()

    @property
    def display_name(self) -> str:
        return 'Emby'

    def list_candidates(self) -> List[Candidate]:
        logger.info(f"📚 Fetching {self.item_type.lower()} items from Emby...")
        libraries = self.emby.get_libraries()
        excluded = resolve_excluded_library_ids(self.excluded_libraries, libraries)
        self.excluded_library_ids = excluded or set()

        candidates = []
        seen = set()
        for library in libraries:
            if library['collection_type'] != self.collection_type:
                logger.debug(f"Skipping Emby library '{library['name']}' "
                             f"(type '{library['collection_type'] or 'mixed'}')")
                continue
            for item in self.emby.get_items(self.item_type, library['id']):
                candidate = self.to_candidate(item, library['id'])
                if candidate is None or candidate.id in seen:
                    continue
                seen.add(candidate.id)
                candidates.append(candidate)

        candidates = filter_by_library(candidates, excluded)
        logger.info(f"📚 Found {len(candidates)} {self.item_type.lower()} items in Emby")
        return candidates

    def to_candidate(self, item, library_id) -> Optional[Candidate]:
        try:
            item_id = int(item.get('Id'))
        except (TypeError, ValueError):
            logger.warning(f"Skipping Emby item '{item.get('Name')}' (invalid ID: {item.get('Id')})")
            return None
        return Candidate(
            id=item_id,
            title=item.get('Name', ''),
            external_id=parse_provider_id(item, self.provider),
            has_file=item.get('LocationType') != 'Virtual',
            year=item.get('ProductionYear') if self.item_type == 'Movie' else None,
            library_id=library_id,
        )

    def exists(self, item_id: int) -> bool:
        return self.emby.get_item(item_id) is not None

    def delete(self, item_id: int):
        self.emby.delete_item(item_id)


class EmbySeriesSource(EmbySource):
    item_type = 'Series'
    collection_type = 'tvshows'
    provider = 'Tvdb'

    @property
    def media_type(self) -> MediaType:
        return MediaType.EMBY_SERIES

    def season_file_counts(self, candidate: Candidate) -> Dict[int, int]:
        if candidate.season_files is None:
            candidate.season_files = self.emby.get_season_file_counts(candidate.id)
        return candidate.season_files


class EmbyMovieSource(EmbySource):
    item_type = 'Movie'
    collection_type = 'movies'
    provider = 'Tmdb'

    @property
    def media_type(self) -> MediaType:
        return MediaType.EMBY_MOVIE
