"""
Trakt API client
Device-code OAuth with a persisted token file, plus the watch-history reads
the cleanup engine needs.
"""
import os
import json
import time
import logging
from datetime import datetime, timedelta, timezone
from threading import Lock

import requests
from dotenv import load_dotenv

from retirarr_utils import build_session, normalize_url, DATA_DIR, DEFAULT_TIMEOUT

load_dotenv()

logger = logging.getLogger(__name__)

TRAKT_API_URL = 'https://api.trakt.tv'
TOKEN_FILE = os.path.join(DATA_DIR, 'trakt_tokens.json')

# Refresh a day before the token actually expires
TOKEN_EXPIRY_MARGIN = timedelta(hours=24)
# GET limit is 1000 per 5 minutes; stay under it
MIN_REQUEST_DELAY = 0.35


class TraktAuthError(Exception):
    pass


class TraktAPI:
    def __init__(self, client_id=None, client_secret=None, base_url=TRAKT_API_URL,
                 token_file=TOKEN_FILE, timeout=DEFAULT_TIMEOUT):
        self.client_id = client_id or os.getenv('TRAKT_CLIENT_ID', '')
        self.client_secret = client_secret or os.getenv('TRAKT_CLIENT_SECRET', '')
        self.base_url = normalize_url(base_url)
        self.token_file = token_file
        self.timeout = timeout
        self.session = build_session({
            'Content-Type': 'application/json',
            'trakt-api-version': '2',
            'trakt-api-key': self.client_id,
        })
        self.tokens = None
        self._lock = Lock()
        self._last_request = 0.0
        self._retry_after = 0.0

    # ------------------------------------------------------------------
    # Token handling
    # ------------------------------------------------------------------

    def load_tokens(self):
        try:
            if not os.path.exists(self.token_file):
                return False
            with open(self.token_file, 'r') as f:
                self.tokens = json.load(f)
            return bool(self.tokens.get('access_token'))
        except Exception as e:
            logger.error(f"Error loading Trakt tokens: {e}")
            self.tokens = None
            return False

    def save_tokens(self):
        try:
            os.makedirs(os.path.dirname(self.token_file), exist_ok=True)
            with open(self.token_file, 'w') as f:
                json.dump(self.tokens, f, indent=2)
            os.chmod(self.token_file, 0o600)
        except Exception as e:
            logger.error(f"Error saving Trakt tokens: {e}")

    def _store_token_response(self, token):
        created_at = datetime.fromtimestamp(token.get('created_at') or time.time(), tz=timezone.utc)
        expires_at = created_at + timedelta(seconds=token.get('expires_in', 0))
        self.tokens = {
            'access_token': token['access_token'],
            'refresh_token': token.get('refresh_token', ''),
            'expires_at': expires_at.isoformat(),
            'created_at': created_at.isoformat(),
        }
        self.save_tokens()

    def is_authenticated(self):
        return bool(self.tokens and self.tokens.get('access_token'))

    def needs_refresh(self):
        if not self.is_authenticated():
            return True
        expires_at = datetime.fromisoformat(self.tokens['expires_at'])
        return datetime.now(timezone.utc) + TOKEN_EXPIRY_MARGIN > expires_at

    def initialize(self):
        """Load saved tokens, refreshing them if close to expiry, else run device auth."""
        if self.load_tokens():
            if self.needs_refresh():
                logger.debug("Refreshing Trakt token...")
                try:
                    self.refresh_tokens()
                except (requests.exceptions.RequestException, TraktAuthError) as e:
                    logger.warning(f"Token refresh failed, need re-auth: {e}")
                    self.device_auth()
            return
        self.device_auth()

    def refresh_tokens(self):
        if not self.tokens or not self.tokens.get('refresh_token'):
            raise TraktAuthError("no refresh token available")
        response = requests.post(f"{self.base_url}/oauth/token", json={
            'refresh_token': self.tokens['refresh_token'],
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'redirect_uri': 'urn:ietf:wg:oauth:2.0:oob',
            'grant_type': 'refresh_token',
        }, timeout=self.timeout)
        if not response.ok:
            raise TraktAuthError(f"refresh error: {response.status_code} {response.text}")
        self._store_token_response(response.json())
        logger.info("🔑 Trakt token refreshed")

    def device_auth(self, sleep=time.sleep):
        response = requests.post(f"{self.base_url}/oauth/device/code",
                                 json={'client_id': self.client_id}, timeout=self.timeout)
        response.raise_for_status()
        device = response.json()

        logger.info("=" * 60)
        logger.info("TRAKT AUTHORIZATION REQUIRED")
        logger.info(f"  1. Go to: {device.get('verification_url')}")
        logger.info(f"  2. Enter code: {device.get('user_code')}")
        logger.info("  3. Click 'Authorize' on the Trakt website")
        logger.info("=" * 60)
        logger.info("⏳ Waiting for authorization...")

        interval = device.get('interval') or 5
        deadline = time.time() + device.get('expires_in', 600)
        while time.time() < deadline:
            sleep(interval)
            token = self._poll_device_token(device['device_code'])
            if token is not None:
                self._store_token_response(token)
                logger.info("✅ Trakt authorized")
                return
        raise TraktAuthError("authorization timed out - please restart and try again")

    def _poll_device_token(self, device_code):
        """Returns the token once granted, None while still pending."""
        response = requests.post(f"{self.base_url}/oauth/device/token", json={
            'code': device_code,
            'client_id': self.client_id,
            'client_secret': self.client_secret,
        }, timeout=self.timeout)
        status = response.status_code
        if status == 200:
            return response.json()
        if status in (400, 429):
            return None
        errors = {
            404: "invalid device code",
            409: "code already used",
            410: "code expired",
            418: "user denied authorization",
        }
        raise TraktAuthError(errors.get(status, f"unexpected status: {status}"))

    def _ensure_auth(self):
        if not self.is_authenticated():
            raise TraktAuthError("Trakt is not authorized")
        if self.needs_refresh():
            self.refresh_tokens()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _wait_for_rate(self):
        with self._lock:
            now = time.time()
            if now < self._retry_after:
                wait = self._retry_after - now
                logger.debug(f"Waiting {wait:.0f}s for Trakt rate limit reset")
                time.sleep(wait)
            elapsed = time.time() - self._last_request
            if elapsed < MIN_REQUEST_DELAY:
                time.sleep(MIN_REQUEST_DELAY - elapsed)
            self._last_request = time.time()

    def _get(self, path, params=None):
        self._ensure_auth()
        self._wait_for_rate()
        response = self.session.get(
            f"{self.base_url}{path}",
            params=params,
            headers={'Authorization': f"Bearer {self.tokens['access_token']}"},
            timeout=self.timeout,
        )
        retry_after = response.headers.get('Retry-After')
        if retry_after and retry_after.isdigit():
            logger.warning(f"Trakt rate limit: retry after {retry_after} seconds")
            with self._lock:
                self._retry_after = time.time() + int(retry_after)
        response.raise_for_status()
        return response.json()

    def get_watched_shows(self):
        shows = self._get('/users/me/watched/shows')
        logger.debug(f"Fetched {len(shows)} watched shows from Trakt")
        return shows

    def get_show_progress(self, trakt_id):
        return self._get(f'/shows/{trakt_id}/progress/watched')

    def get_show_seasons(self, trakt_id):
        return self._get(f'/shows/{trakt_id}/seasons', {'extended': 'full'})

    def get_watched_movies(self):
        movies = self._get('/users/me/watched/movies')
        logger.debug(f"Fetched {len(movies)} watched movies from Trakt")
        return movies
