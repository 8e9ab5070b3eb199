"""File-backed JSON cache with TTL validation and legacy key migration."""
import json
import logging
import os
import re
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..errors import MalformedCacheEntry
from ..stats import RunStats

logger = logging.getLogger(__name__)

DEFAULT_TTL = 86400

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9_.\-]')
_SUBSCRIPTION_SUFFIX = r'_[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}'


class _Miss:
    """Sentinel returned by CacheStore.get when no valid entry exists."""

    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS = _Miss()


def normalize_key(key: str) -> str:
    """Turn an arbitrary key into a safe file stem.

    Path separators become '__' so "Microsoft.Compute/disks" stays distinct
    from "Microsoft.Compute"; everything else outside [A-Za-z0-9_.-] becomes '_'.

    Raises:
        ValueError: If nothing usable is left of the key.
    """
    normalized = _UNSAFE_CHARS.sub('_', key.replace('/', '__').replace('\\', '__'))
    normalized = normalized.lstrip('.')
    if not normalized:
        raise ValueError(f"Cache key {key!r} is empty after normalization")
    return normalized


@dataclass
class CacheEntry:
    """A cached payload and the time it was fetched."""
    key: str
    payload: Any
    fetched_at: float
    ttl: float

    def is_valid(self, now: float, ttl: Optional[float] = None) -> bool:
        """An entry fetched at t0 is valid for reads strictly before t0 + ttl."""
        effective_ttl = self.ttl if ttl is None else ttl
        return now - self.fetched_at < effective_ttl

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "fetchedAt": self.fetched_at,
            "ttl": self.ttl,
            "payload": self.payload,
        }

    @classmethod
    def from_dict(cls, key: str, data: Any) -> "CacheEntry":
        if not isinstance(data, dict) or "payload" not in data:
            raise MalformedCacheEntry(key, "missing payload envelope")
        fetched_at = data.get("fetchedAt")
        ttl = data.get("ttl")
        if not isinstance(fetched_at, (int, float)) or not isinstance(ttl, (int, float)):
            raise MalformedCacheEntry(key, "fetchedAt and ttl must be numbers")
        return cls(key=key, payload=data["payload"], fetched_at=float(fetched_at), ttl=float(ttl))


class CacheStore:
    """TTL-gated key/value store for JSON documents.

    Each key maps to ``<cache_dir>/<normalized key>.json``. Reads never raise
    on bad files: missing, empty, unparsable and expired entries are all a
    MISS. Writes go through a temp file and ``os.replace`` so concurrent
    readers never see a half-written entry.
    """

    def __init__(self, cache_dir: str, default_ttl: float = DEFAULT_TTL,
                 stats: Optional[RunStats] = None, clock: Callable[[], float] = time.time):
        """Initialize the store.

        Args:
            cache_dir: Directory holding the cache files; created if missing.
            default_ttl: TTL in seconds for entries written without one.
            stats: Run statistics to count hits and misses against.
            clock: Returns the current time in epoch seconds.
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.default_ttl = default_ttl
        self.stats = stats or RunStats()
        self.clock = clock

    def path_for(self, key: str) -> Path:
        return self.cache_dir / f"{normalize_key(key)}.json"

    def _read_entry(self, key: str, path: Path) -> CacheEntry:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise MalformedCacheEntry(key, str(e)) from e
        if not text.strip():
            raise MalformedCacheEntry(key, "empty file")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedCacheEntry(key, str(e)) from e
        return CacheEntry.from_dict(key, data)

    def _load(self, key: str) -> Optional[CacheEntry]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return self._read_entry(key, path)
        except MalformedCacheEntry as e:
            logger.debug("Treating cache entry as miss: %s", e)
            return None

    def get(self, key: str, ttl: Optional[float] = None) -> Any:
        """Return the cached payload for key, or MISS.

        Args:
            key: Cache key, normalized before use.
            ttl: Override for the TTL stored with the entry.

        Returns:
            Any: The payload, or MISS if no valid entry exists.
        """
        entry = self._load(key)
        now = self.clock()
        if entry is not None and entry.is_valid(now, ttl):
            logger.debug("[CACHE HIT] %s", key)
            self.stats.record_cache_hit()
            return entry.payload

        migrated = self._migrate_legacy(key, ttl, now)
        if migrated is not None:
            self.stats.record_cache_hit()
            return migrated.payload

        logger.debug("[CACHE MISS] %s", key)
        self.stats.record_cache_miss()
        return MISS

    def put(self, key: str, payload: Any, ttl: Optional[float] = None,
            fetched_at: Optional[float] = None) -> None:
        """Replace the entry for key with payload."""
        entry = CacheEntry(
            key=key,
            payload=payload,
            fetched_at=self.clock() if fetched_at is None else fetched_at,
            ttl=self.default_ttl if ttl is None else ttl,
        )
        path = self.path_for(key)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.cache_dir), prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, 'w', encoding="utf-8") as f:
                json.dump(entry.to_dict(), f, default=str)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def is_valid(self, key: str, ttl: Optional[float] = None) -> bool:
        """Check the canonical entry for key without touching counters or legacy keys."""
        entry = self._load(key)
        return entry is not None and entry.is_valid(self.clock(), ttl)

    def peek(self, key: str, ttl: Optional[float] = None) -> Any:
        """Like get, but leaves the hit/miss counters and legacy keys alone."""
        entry = self._load(key)
        if entry is not None and entry.is_valid(self.clock(), ttl):
            return entry.payload
        return MISS

    def _legacy_paths(self, key: str) -> List[Path]:
        stem = normalize_key(key)
        pattern = re.compile(re.escape(stem) + _SUBSCRIPTION_SUFFIX + r'\.json$')
        return [p for p in self.cache_dir.glob(f"{stem}_*.json") if pattern.match(p.name)]

    def _read_legacy(self, key: str, path: Path) -> Optional[CacheEntry]:
        # Older runs wrote the bare payload, so the file mtime is the fetch time
        try:
            return self._read_entry(key, path)
        except MalformedCacheEntry:
            pass
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            fetched_at = path.stat().st_mtime
        except (OSError, json.JSONDecodeError) as e:
            logger.debug("Ignoring unreadable legacy cache file %s: %s", path.name, e)
            return None
        return CacheEntry(key=key, payload=data, fetched_at=fetched_at, ttl=self.default_ttl)

    def _migrate_legacy(self, key: str, ttl: Optional[float], now: float) -> Optional[CacheEntry]:
        legacy_paths = self._legacy_paths(key)
        if not legacy_paths:
            return None

        newest = None
        for path in legacy_paths:
            entry = self._read_legacy(key, path)
            if entry is None or not entry.is_valid(now, ttl):
                continue
            if newest is None or entry.fetched_at > newest.fetched_at:
                newest = entry
        if newest is None:
            return None

        self.put(key, newest.payload, ttl=newest.ttl, fetched_at=newest.fetched_at)
        for path in legacy_paths:
            path.unlink(missing_ok=True)
        logger.info("Migrated legacy cache entries for %s (%d file(s))", key, len(legacy_paths))
        return newest

    def clear(self, prefix: str = "") -> int:
        """Delete cache files whose normalized key starts with prefix.

        Returns:
            int: Number of files removed.
        """
        stem = normalize_key(prefix) if prefix else ""
        removed = 0
        for path in self.cache_dir.glob(f"{stem}*.json"):
            path.unlink(missing_ok=True)
            removed += 1
        return removed

    def stats_summary(self) -> Dict[str, Any]:
        """Count the files in the cache and their total size."""
        files = list(self.cache_dir.glob("*.json"))
        return {
            "directory": str(self.cache_dir),
            "entries": len(files),
            "bytes": sum(p.stat().st_size for p in files),
        }
