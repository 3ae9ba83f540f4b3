# emby_utils.py
import os
import logging

import requests
from dotenv import load_dotenv

from retirarr_utils import normalize_url, build_session, DEFAULT_TIMEOUT

load_dotenv()

logger = logging.getLogger(__name__)


def parse_provider_id(item, provider):
    """Provider ids come back as strings, e.g. {"Tvdb": "81189"}. Returns an int or None."""
    value = (item.get('ProviderIds') or {}).get(provider)
    if not value:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class EmbyAPI:
    def __init__(self, url=None, api_key=None, timeout=DEFAULT_TIMEOUT):
        self.url = normalize_url(url or os.getenv('EMBY_URL', 'http://emby:8096'))
        self.api_key = api_key or os.getenv('EMBY_API_KEY', '')
        self.base_url = f"{self.url}/emby"
        self.timeout = timeout
        self.session = build_session({'Accept': 'application/json'})

    def _get(self, path, params=None):
        params = dict(params or {})
        params['api_key'] = self.api_key
        response = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def test_connection(self):
        try:
            info = self._get('/System/Info')
            return True, f"Connected to {info.get('ServerName', 'Emby')} v{info.get('Version', 'unknown')}"
        except requests.exceptions.RequestException as e:
            return False, f"Emby connection failed: {e}"

    def get_libraries(self):
        """Virtual folders as [{'name', 'id', 'collection_type'}]."""
        folders = self._get('/Library/VirtualFolders')
        return [
            {
                'name': folder.get('Name', ''),
                'id': folder.get('ItemId', ''),
                'collection_type': (folder.get('CollectionType') or '').lower(),
            }
            for folder in folders
        ]

    def get_items(self, item_type, parent_id=None):
        params = {
            'IncludeItemTypes': item_type,
            'Recursive': 'true',
            'Fields': 'ProviderIds,Path,ParentId',
        }
        if parent_id:
            params['ParentId'] = parent_id
        return self._get('/Items', params).get('Items', [])

    def get_item(self, item_id):
        """Returns None when the item no longer exists."""
        data = self._get('/Items', {'Ids': item_id, 'Fields': 'ProviderIds,Path'})
        items = data.get('Items', [])
        return items[0] if items else None

    def get_seasons(self, series_id):
        return self._get(f'/Shows/{series_id}/Seasons').get('Items', [])

    def get_episodes(self, series_id, season_id):
        params = {'SeasonId': season_id, 'Fields': 'LocationType'}
        return self._get(f'/Shows/{series_id}/Episodes', params).get('Items', [])

    def get_season_file_counts(self, series_id):
        """Episodes on disk per season number. Virtual placeholders and specials don't count."""
        counts = {}
        for season in self.get_seasons(series_id):
            season_number = season.get('IndexNumber')
            if not season_number:
                continue
            episodes = self.get_episodes(series_id, season.get('Id'))
            on_disk = sum(1 for ep in episodes if ep.get('LocationType') != 'Virtual')
            if on_disk:
                counts[season_number] = on_disk
        return counts

    def delete_item(self, item_id):
        response = self.session.delete(f"{self.base_url}/Items/{item_id}",
                                       params={'api_key': self.api_key}, timeout=self.timeout)
        if response.status_code == 404:
            logger.info(f"Emby item {item_id} already deleted")
            return
        response.raise_for_status()
