# sonarr_utils.py - Sonarr v3 client used by the cleanup engine

import os
import logging

import requests
from dotenv import load_dotenv

from retirarr_utils import normalize_url, build_session, DEFAULT_TIMEOUT

load_dotenv()

logger = logging.getLogger(__name__)


class SonarrAPI:
    def __init__(self, url=None, api_key=None, timeout=DEFAULT_TIMEOUT):
        self.url = normalize_url(url or os.getenv('SONARR_URL', 'http://sonarr:8989'))
        self.api_key = api_key or os.getenv('SONARR_API_KEY', '')
        self.base_url = f"{self.url}/api/v3"
        self.timeout = timeout
        self.session = build_session({'X-Api-Key': self.api_key, 'Accept': 'application/json'})

    def test_connection(self):
        try:
            response = self.session.get(f"{self.base_url}/system/status", timeout=self.timeout)
            response.raise_for_status()
            version = response.json().get('version', 'unknown')
            return True, f"Connected to Sonarr v{version}"
        except requests.exceptions.RequestException as e:
            return False, f"Sonarr connection failed: {e}"

    def get_all_series(self):
        response = self.session.get(f"{self.base_url}/series", timeout=self.timeout)
        response.raise_for_status()
        series_list = response.json()
        logger.debug(f"Retrieved {len(series_list)} series from Sonarr")
        return series_list

    def get_series(self, series_id):
        """Returns None when Sonarr no longer knows the series."""
        response = self.session.get(f"{self.base_url}/series/{series_id}", timeout=self.timeout)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    def delete_series(self, series_id, delete_files=True):
        params = {
            'deleteFiles': str(delete_files).lower(),
            'addImportListExclusion': 'false',
        }
        response = self.session.delete(f"{self.base_url}/series/{series_id}", params=params, timeout=self.timeout)
        if response.status_code == 404:
            logger.info(f"Series {series_id} already gone from Sonarr")
            return
        response.raise_for_status()

    def _set_monitored(self, series_id, monitored):
        series = self.get_series(series_id)
        if series is None:
            raise ValueError(f"series {series_id} not found")
        series['monitored'] = monitored
        response = self.session.put(f"{self.base_url}/series/{series_id}", json=series, timeout=self.timeout)
        response.raise_for_status()

    def unmonitor_series(self, series_id):
        self._set_monitored(series_id, False)

    def monitor_series(self, series_id):
        self._set_monitored(series_id, True)
