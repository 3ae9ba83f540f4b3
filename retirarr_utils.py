# retirarr_utils.py - shared helpers for the API clients

import os
import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

DATA_DIR = os.getenv('DATA_DIR', os.path.join(os.getcwd(), 'data'))

DEFAULT_TIMEOUT = 30
MAX_RETRIES = 3


def normalize_url(url):
    if url is None:
        return None
    normalized_url = url.strip().rstrip('/')
    return normalized_url


def build_session(headers=None, retries=MAX_RETRIES):
    """
    Create a requests session that retries 5xx responses and connection errors
    with exponential backoff. Non-retryable responses are returned to the caller
    so raise_for_status() still decides what counts as a failure.
    """
    session = requests.Session()
    retry = Retry(
        total=retries,
        backoff_factor=1,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=None,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount('http://', adapter)
    session.mount('https://', adapter)
    if headers:
        session.headers.update(headers)
    return session


def format_size(size_bytes):
    """Human readable size using 1024 based units, e.g. 1.5 GB."""
    if not size_bytes or size_bytes < 0:
        return "0 B"
    unit = 1024
    if size_bytes < unit:
        return f"{size_bytes} B"
    div, exp = unit, 0
    n = size_bytes // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size_bytes / div:.1f} {'KMGTPE'[exp]}B"


def ensure_data_dir():
    os.makedirs(DATA_DIR, exist_ok=True)
    return DATA_DIR
