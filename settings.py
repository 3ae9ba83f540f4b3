"""
Settings
config.json is read fresh at the start of every cycle so edits take effect on
the next run. Credentials and *.enabled toggles are only read at startup.
"""
import os
import json
import copy
import logging
from dataclasses import dataclass, field, fields
from typing import Dict, List, Union

from dotenv import load_dotenv

from retirarr_utils import normalize_url

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DELAY_DAYS = 7

DEFAULT_SETTINGS = {
    'cleanup': {
        'enabled': True,
        'dry_run': True,
        'delay_days': DEFAULT_DELAY_DAYS,
        'exclusions': [],
        'excluded_libraries': [],
        'interval_hours': 6,
        'run_on_start': False,
    },
    'sonarr': {'url': '', 'api_key': ''},
    'radarr': {'url': '', 'api_key': ''},
    'emby': {'url': '', 'api_key': ''},
    'trakt': {'client_id': '', 'client_secret': ''},
    'apprise': {'enabled': False, 'url': '', 'key': 'apprise', 'tag': 'all'},
    'server': {'port': 5003},
}

# config key -> environment variable used when the key is empty
ENV_FALLBACKS = {
    ('sonarr', 'url'): 'SONARR_URL',
    ('sonarr', 'api_key'): 'SONARR_API_KEY',
    ('radarr', 'url'): 'RADARR_URL',
    ('radarr', 'api_key'): 'RADARR_API_KEY',
    ('emby', 'url'): 'EMBY_URL',
    ('emby', 'api_key'): 'EMBY_API_KEY',
    ('trakt', 'client_id'): 'TRAKT_CLIENT_ID',
    ('trakt', 'client_secret'): 'TRAKT_CLIENT_SECRET',
    ('apprise', 'url'): 'APPRISE_URL',
}

# Catalog queues use their backend's delay unless configured separately
DELAY_FALLBACKS = {
    'emby_series': 'series',
    'emby_movie': 'movie',
}


def parse_days(value):
    """Whole days from an int or numeric string. Raises ValueError for anything else."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not a number of days: {value!r}")
    days = int(value)
    if days < 0:
        raise ValueError(f"negative delay: {days}")
    return days


def _days_or_default(value, name):
    try:
        return parse_days(value)
    except (TypeError, ValueError):
        logger.warning(f"⚠️ Invalid {name} {value!r}, using {DEFAULT_DELAY_DAYS}")
        return DEFAULT_DELAY_DAYS


def get_config_path():
    return os.getenv('CONFIG_PATH', os.path.join(os.getcwd(), 'config', 'config.json'))


@dataclass
class CleanupSettings:
    enabled: bool = True
    dry_run: bool = True
    delay_days: Union[int, Dict[str, int]] = DEFAULT_DELAY_DAYS
    exclusions: List[str] = field(default_factory=list)
    excluded_libraries: List[str] = field(default_factory=list)
    interval_hours: float = 6
    run_on_start: bool = False

    def delay_days_for(self, media_type):
        """Delay for a queue type. delay_days may be a single number or a per-type mapping."""
        if not isinstance(self.delay_days, dict):
            return _days_or_default(self.delay_days, 'delay_days')
        key = str(media_type)
        fallback = DELAY_FALLBACKS.get(key)
        for name in (key, fallback, 'default'):
            if name and name in self.delay_days:
                return _days_or_default(self.delay_days[name], f"delay_days.{name}")
        return DEFAULT_DELAY_DAYS

    def to_dict(self):
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class Settings:
    cleanup: CleanupSettings
    sonarr: dict
    radarr: dict
    emby: dict
    trakt: dict
    apprise: dict
    server: dict

    def is_configured(self, section):
        """True when a service section has both a URL (or client id) and a key."""
        values = getattr(self, section)
        if section == 'trakt':
            return bool(values.get('client_id') and values.get('client_secret'))
        return bool(values.get('url') and values.get('api_key'))


def _merge(defaults, overrides):
    merged = copy.deepcopy(defaults)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path=None):
    """Raw config merged over defaults. A missing or unreadable file means defaults."""
    config_path = config_path or get_config_path()
    try:
        if os.path.exists(config_path):
            with open(config_path, 'r') as f:
                return _merge(DEFAULT_SETTINGS, json.load(f))
        logger.debug(f"No config at {config_path}, using defaults")
    except Exception as e:
        logger.error(f"Error loading config from {config_path}: {str(e)}")
    return copy.deepcopy(DEFAULT_SETTINGS)


def _apply_env(config):
    for (section, key), env_name in ENV_FALLBACKS.items():
        if not config[section].get(key) and os.getenv(env_name):
            config[section][key] = os.getenv(env_name)
    for section in ('sonarr', 'radarr', 'emby', 'apprise'):
        config[section]['url'] = normalize_url(config[section].get('url')) or ''
    if os.getenv('CLEANUP_DRY_RUN', '').lower() == 'true':
        config['cleanup']['dry_run'] = True
    return config


def _build_cleanup(values):
    known = {f.name for f in fields(CleanupSettings)}
    unknown = set(values) - known
    if unknown:
        logger.warning(f"Ignoring unknown cleanup settings: {', '.join(sorted(unknown))}")
    values = {k: v for k, v in values.items() if k in known}
    if 'delay_days' in values:
        values['delay_days'] = _validate_delay_days(values['delay_days'])
    return CleanupSettings(**values)


def _validate_delay_days(value):
    if isinstance(value, dict):
        return {key: _days_or_default(days, f"delay_days.{key}") for key, days in value.items()}
    return _days_or_default(value, 'delay_days')


_last_cleanup = None


def load_settings(config_path=None):
    """Load settings for one cycle and log any cleanup setting that changed since the last load."""
    global _last_cleanup
    config = load_config(config_path)
    config = _apply_env(config)
    cleanup = _build_cleanup(config['cleanup'])

    if _last_cleanup is not None:
        log_changes(_last_cleanup, cleanup)
    _last_cleanup = cleanup

    return Settings(
        cleanup=cleanup,
        sonarr=config['sonarr'],
        radarr=config['radarr'],
        emby=config['emby'],
        trakt=config['trakt'],
        apprise=config['apprise'],
        server=config['server'],
    )


def log_changes(old, new):
    changed = False
    for f in fields(CleanupSettings):
        old_value, new_value = getattr(old, f.name), getattr(new, f.name)
        if old_value != new_value:
            if not changed:
                logger.info("🔄 Config changed, new values apply to this run")
                changed = True
            logger.info(f"  📝 cleanup.{f.name}: {old_value} → {new_value}")
    return changed
