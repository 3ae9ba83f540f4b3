# radarr_utils.py - Radarr v3 client used by the cleanup engine

import os
import logging

import requests
from dotenv import load_dotenv

from retirarr_utils import normalize_url, build_session, DEFAULT_TIMEOUT

load_dotenv()

logger = logging.getLogger(__name__)


class RadarrAPI:
    def __init__(self, url=None, api_key=None, timeout=DEFAULT_TIMEOUT):
        self.url = normalize_url(url or os.getenv('RADARR_URL', 'http://radarr:7878'))
        self.api_key = api_key or os.getenv('RADARR_API_KEY', '')
        self.base_url = f"{self.url}/api/v3"
        self.timeout = timeout
        self.session = build_session({'X-Api-Key': self.api_key, 'Accept': 'application/json'})

    def test_connection(self):
        try:
            response = self.session.get(f"{self.base_url}/system/status", timeout=self.timeout)
            response.raise_for_status()
            version = response.json().get('version', 'unknown')
            return True, f"Connected to Radarr v{version}"
        except requests.exceptions.RequestException as e:
            return False, f"Radarr connection failed: {e}"

    def get_all_movies(self):
        response = self.session.get(f"{self.base_url}/movie", timeout=self.timeout)
        response.raise_for_status()
        movies = response.json()
        logger.debug(f"Retrieved {len(movies)} movies from Radarr")
        return movies

    def get_movie(self, movie_id):
        """Returns None when Radarr no longer knows the movie."""
        response = self.session.get(f"{self.base_url}/movie/{movie_id}", timeout=self.timeout)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    def delete_movie(self, movie_id, delete_files=True):
        params = {
            'deleteFiles': str(delete_files).lower(),
            'addImportExclusion': 'false',
        }
        response = self.session.delete(f"{self.base_url}/movie/{movie_id}", params=params, timeout=self.timeout)
        if response.status_code == 404:
            logger.info(f"Movie {movie_id} already gone from Radarr")
            return
        response.raise_for_status()

    def _set_monitored(self, movie_id, monitored):
        movie = self.get_movie(movie_id)
        if movie is None:
            raise ValueError(f"movie {movie_id} not found")
        movie['monitored'] = monitored
        response = self.session.put(f"{self.base_url}/movie/{movie_id}", json=movie, timeout=self.timeout)
        response.raise_for_status()

    def unmonitor_movie(self, movie_id):
        self._set_monitored(movie_id, False)

    def monitor_movie(self, movie_id):
        self._set_monitored(movie_id, True)
