"""
Settings Manager - Persistent JSON-based discovery settings
Stores settings in ~/.discovery_cache/settings.json; environment variables win.
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from threading import Lock

logger = logging.getLogger(__name__)

CACHE_DIR = Path.home() / '.discovery_cache'
SETTINGS_FILE = CACHE_DIR / 'settings.json'

DEFAULT_SETTINGS = {
    'timeout': 20,                  # Per-request timeout in seconds
    'relays': [''],                 # Ordered routes; '' is a direct request
    'retries_per_route': 1,         # Extra attempts per route
    'retry_backoff': 2.0,           # Seconds between attempts
    'concurrency': 1,               # Parallel page fetches during a sync
    'bucket_caps': {},              # Per-bucket overrides of the site caps
    'noise_tokens': ['Chapter'],    # Whole words stripped from titles
    'reserved_words': [],           # Extra navigation words that reject a title
    'sync_threshold': 300,          # Seconds before a resume triggers a new sync
    'mobile_user_agent': False,
    'cache_dir': str(CACHE_DIR),
    'debug': False,
}

_TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _env_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def _env_overrides() -> Dict[str, Any]:
    """Settings taken from DISCOVERY_* / SCRAPER_DEBUG environment variables."""
    overrides: Dict[str, Any] = {}
    proxy = os.getenv('DISCOVERY_PROXY_URL')
    if proxy:
        overrides['relays'] = [proxy, '']
    timeout = os.getenv('DISCOVERY_TIMEOUT')
    if timeout:
        try:
            overrides['timeout'] = float(timeout)
        except ValueError:
            logger.warning(f"Ignoring invalid DISCOVERY_TIMEOUT={timeout!r}")
    concurrency = os.getenv('DISCOVERY_CONCURRENCY')
    if concurrency:
        try:
            overrides['concurrency'] = max(1, int(concurrency))
        except ValueError:
            logger.warning(f"Ignoring invalid DISCOVERY_CONCURRENCY={concurrency!r}")
    cache_dir = os.getenv('DISCOVERY_CACHE_DIR')
    if cache_dir:
        overrides['cache_dir'] = cache_dir
    mobile = os.getenv('DISCOVERY_MOBILE_UA')
    if mobile:
        overrides['mobile_user_agent'] = _env_bool(mobile)
    debug = os.getenv('SCRAPER_DEBUG')
    if debug:
        overrides['debug'] = _env_bool(debug)
    return overrides


class SettingsManager:
    """Manages discovery settings with persistent JSON storage"""

    def __init__(self, settings_file: Optional[Path] = None):
        self.settings_file = Path(settings_file) if settings_file else SETTINGS_FILE
        self._settings: Dict[str, Any] = {}
        self._file_lock = Lock()
        self._load_settings()

    def _load_settings(self):
        """Load settings from JSON file"""
        with self._file_lock:
            try:
                if self.settings_file.exists():
                    with open(self.settings_file, 'r', encoding='utf-8') as f:
                        self._settings = json.load(f)
                    logger.info(f"Loaded settings from {self.settings_file}")
                else:
                    self._settings = {}
            except json.JSONDecodeError as e:
                logger.error(f"Corrupted settings file, resetting: {e}")
                self._settings = {}
            except OSError as e:
                logger.error(f"Failed to load settings: {e}")
                self._settings = {}

    def _save_settings(self):
        """Save settings to JSON file"""
        with self._file_lock:
            try:
                self.settings_file.parent.mkdir(parents=True, exist_ok=True)
                with open(self.settings_file, 'w', encoding='utf-8') as f:
                    json.dump(self._settings, f, indent=2, ensure_ascii=False)
                logger.debug(f"Saved settings to {self.settings_file}")
            except OSError as e:
                logger.error(f"Failed to save settings: {e}")

    def all(self) -> Dict[str, Any]:
        """Defaults, then the settings file, then environment overrides"""
        result = DEFAULT_SETTINGS.copy()
        result.update(self._settings)
        result.update(_env_overrides())
        return result

    def get(self, key: str) -> Any:
        return self.all().get(key)

    def set(self, key: str, value: Any) -> bool:
        if key not in DEFAULT_SETTINGS:
            logger.warning(f"Unknown setting key: {key}")
            return False
        self._settings[key] = value
        self._save_settings()
        logger.info(f"Setting {key} updated")
        return True

    def reset(self):
        self._settings = {}
        self._save_settings()

    # === Typed accessors ===

    @property
    def timeout(self) -> float:
        return float(self.get('timeout'))

    @property
    def relays(self) -> List[str]:
        return list(self.get('relays') or [''])

    @property
    def concurrency(self) -> int:
        return max(1, int(self.get('concurrency')))

    @property
    def bucket_caps(self) -> Dict[str, int]:
        return dict(self.get('bucket_caps') or {})

    @property
    def noise_tokens(self) -> List[str]:
        return list(self.get('noise_tokens') or [])

    @property
    def reserved_words(self) -> List[str]:
        return list(self.get('reserved_words') or [])

    @property
    def sync_threshold(self) -> float:
        return float(self.get('sync_threshold'))


_settings_manager = None


def get_settings() -> SettingsManager:
    """Get or create the global settings manager."""
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager
