"""
Discovery Cache

Key-value store the aggregator writes finished payloads into.
- Discovery payloads ("homeData", "manhwaDiscoveryData") never expire; each
  sync replaces them wholesale
- Search results are cached for 1 hour per (site, query, page)
- Series details are cached for 24 hours
"""

import os
import json
import time
import shutil
import hashlib
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = os.path.join(os.path.expanduser("~"), ".discovery_cache")


class MemoryCache:
    """In-process store with the same get/set/delete surface as DiscoveryCache."""

    def __init__(self):
        self._data: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        value = self._data.get(key)
        return json.loads(json.dumps(value)) if value is not None else None

    def set(self, key: str, value: Any):
        # Stored values are detached JSON copies
        self._data[key] = json.loads(json.dumps(value))

    def delete(self, key: str):
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class DiscoveryCache:
    """JSON-file cache for discovery payloads, search results and series details."""

    SEARCH_CACHE_TTL = 3600     # 1 hour for search results
    SERIES_INFO_TTL = 86400     # 24 hours for series details
    PAYLOAD_TTL = None          # Discovery payloads are replaced, never expired

    def __init__(self, cache_dir: str = None):
        if cache_dir is None:
            cache_dir = DEFAULT_CACHE_DIR

        self.cache_dir = Path(cache_dir)
        self.payloads_dir = self.cache_dir / "payloads"
        self.search_dir = self.cache_dir / "search"
        self.series_dir = self.cache_dir / "series"

        for directory in (self.payloads_dir, self.search_dir, self.series_dir):
            directory.mkdir(parents=True, exist_ok=True)

        logger.info(f"[Cache] Initialized at {self.cache_dir}")

    def _key_hash(self, key: str) -> str:
        return hashlib.md5(key.encode()).hexdigest()

    def _is_expired(self, cache_file: Path, ttl: Optional[int]) -> bool:
        if not cache_file.exists():
            return True
        if ttl is None:
            return False
        return time.time() - cache_file.stat().st_mtime > ttl

    def _read(self, cache_file: Path) -> Optional[Dict]:
        try:
            with open(cache_file, 'r', encoding='utf-8') as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"[Cache] Unreadable entry {cache_file.name}: {e}")
            return None

    def _write(self, cache_file: Path, data: Dict):
        # Atomic replace of the previous entry
        tmp_file = cache_file.with_suffix('.tmp')
        try:
            with open(tmp_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_file, cache_file)
        except OSError as e:
            logger.warning(f"[Cache] Failed to write {cache_file.name}: {e}")

    # === Key-value surface (discovery payloads) ===

    def get(self, key: str) -> Optional[Any]:
        cache_file = self.payloads_dir / f"{self._key_hash(key)}.json"
        if self._is_expired(cache_file, self.PAYLOAD_TTL):
            return None
        entry = self._read(cache_file)
        if entry is None:
            return None
        logger.debug(f"[Cache] Hit for '{key}'")
        return entry.get('value')

    def set(self, key: str, value: Any):
        """Replace the entry for key wholesale."""
        cache_file = self.payloads_dir / f"{self._key_hash(key)}.json"
        self._write(cache_file, {'key': key, 'saved_at': time.time(), 'value': value})
        logger.debug(f"[Cache] Saved '{key}'")

    def delete(self, key: str):
        cache_file = self.payloads_dir / f"{self._key_hash(key)}.json"
        if cache_file.exists():
            cache_file.unlink()
            logger.debug(f"[Cache] Deleted '{key}'")

    # === Search Cache ===

    def _search_file(self, site: str, query: str, page: int) -> Path:
        return self.search_dir / f"{self._key_hash(f'{site}_{query.lower()}_{page}')}.json"

    def get_search_results(self, site: str, query: str, page: int = 1) -> Optional[List[Dict]]:
        cache_file = self._search_file(site, query, page)
        if self._is_expired(cache_file, self.SEARCH_CACHE_TTL):
            return None
        entry = self._read(cache_file)
        if entry is None:
            return None
        logger.debug(f"[Cache] Search hit for '{query}' on {site}")
        return entry.get('results', [])

    def set_search_results(self, site: str, query: str, results: List[Dict], page: int = 1):
        self._write(self._search_file(site, query, page), {
            'site': site,
            'query': query,
            'page': page,
            'timestamp': time.time(),
            'results': results,
        })
        logger.debug(f"[Cache] Saved {len(results)} search results for '{query}'")

    # === Series Cache ===

    def get_series(self, url: str) -> Optional[Dict]:
        cache_file = self.series_dir / f"{self._key_hash(url)}.json"
        if self._is_expired(cache_file, self.SERIES_INFO_TTL):
            return None
        return self._read(cache_file)

    def set_series(self, url: str, details: Dict):
        self._write(self.series_dir / f"{self._key_hash(url)}.json", dict(details, _cached_at=time.time()))

    # === Utility Methods ===

    def clear_expired(self) -> int:
        removed = 0
        for directory, ttl in ((self.search_dir, self.SEARCH_CACHE_TTL),
                               (self.series_dir, self.SERIES_INFO_TTL)):
            for f in directory.glob("*.json"):
                if self._is_expired(f, ttl):
                    f.unlink()
                    removed += 1
        if removed:
            logger.info(f"[Cache] Cleared {removed} expired entries")
        return removed

    def clear_all(self):
        shutil.rmtree(self.cache_dir, ignore_errors=True)
        for directory in (self.payloads_dir, self.search_dir, self.series_dir):
            directory.mkdir(parents=True, exist_ok=True)
        logger.info("[Cache] Cleared all cache")

    def get_stats(self) -> Dict:
        total_size = sum(f.stat().st_size for f in self.cache_dir.rglob("*") if f.is_file())
        return {
            'payloads': len(list(self.payloads_dir.glob("*.json"))),
            'search_results': len(list(self.search_dir.glob("*.json"))),
            'series': len(list(self.series_dir.glob("*.json"))),
            'total_size_mb': round(total_size / (1024 * 1024), 2),
            'cache_dir': str(self.cache_dir),
        }

