"""
Cleanup sources: the libraries Retirarr can retire items from
"""

from integrations.base import CleanupSource, Candidate
from integrations.sonarr import SonarrSource
from integrations.radarr import RadarrSource
from integrations.emby import EmbySeriesSource, EmbyMovieSource

__all__ = [
    'CleanupSource',
    'Candidate',
    'SonarrSource',
    'RadarrSource',
    'EmbySeriesSource',
    'EmbyMovieSource',
]
