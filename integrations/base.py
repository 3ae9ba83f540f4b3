"""
Base class for Retirarr cleanup sources
Every backend or catalog the cleanup engine retires items from inherits from this class
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional
import logging

from media_results import MediaType

logger = logging.getLogger(__name__)


@dataclass
class Candidate:
    """One library entry as the retention policy sees it."""
    id: int
    title: str
    external_id: Optional[int] = None
    monitored: bool = True
    has_file: bool = True
    unreleased: bool = False
    size_on_disk: int = 0
    year: Optional[int] = None
    # Episode files on disk per season number; None means ask the source
    season_files: Optional[Dict[int, int]] = None
    library_id: Optional[str] = None


class CleanupSource(ABC):
    """
    Capabilities the retention engine needs from a library.

    To add a new source:
    1. Create a new .py file in integrations/ (e.g., jellyfin.py)
    2. Create a class that inherits from CleanupSource
    3. Implement all @abstractmethod methods
    4. Wire it up in CleanupService
    """

    # ============================================================
    # REQUIRED: Each source must define these
    # ============================================================

    @property
    @abstractmethod
    def media_type(self) -> MediaType:
        """Result/queue type for items from this source, e.g. MediaType.SERIES"""
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """
        Human-readable name for logs
        Example: 'Sonarr', 'Emby'
        """
        pass

    @abstractmethod
    def list_candidates(self) -> List[Candidate]:
        """
        Every item this source currently tracks.
        Raises on upstream failure so the caller can tell "empty" from "unknown".
        """
        pass

    @abstractmethod
    def exists(self, item_id: int) -> bool:
        """
        Re-check an item before deleting it.

        Returns:
            False when the item is gone upstream; raises on any other failure
        """
        pass

    @abstractmethod
    def delete(self, item_id: int):
        """Delete the item and its files. An item that is already gone counts as deleted."""
        pass

    # ============================================================
    # OPTIONAL: Override if the source supports it
    # ============================================================

    def unmonitor(self, item_id: int) -> bool:
        """
        Stop the backend from grabbing new files for a queued item.

        Returns:
            True if the item was unmonitored, False if the source has no such concept
        """
        return False

    def monitor(self, item_id: int) -> bool:
        """Undo unmonitor() when an item leaves the queue without being deleted."""
        return False

    def season_file_counts(self, candidate: Candidate) -> Dict[int, int]:
        """Episode files on disk per season (specials excluded)."""
        return candidate.season_files or {}

    @staticmethod
    def authoritative_ids(candidates: List[Candidate]) -> set:
        """Cross-reference ids of everything this source manages."""
        return {c.external_id for c in candidates if c.external_id}
