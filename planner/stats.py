"""Run statistics shared between the cache and the API clients."""
import threading
from dataclasses import dataclass, field
from typing import Dict


@dataclass
class RunStats:
    """Counters for a single planner run.

    One instance is created per run and handed to every collaborator that
    talks to Azure or to the cache, so tests can assert on exact counts.
    """
    api_calls: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    warnings: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_api_call(self) -> None:
        with self._lock:
            self.api_calls += 1

    def record_cache_hit(self) -> None:
        with self._lock:
            self.cache_hits += 1

    def record_cache_miss(self) -> None:
        with self._lock:
            self.cache_misses += 1

    def record_warning(self) -> None:
        with self._lock:
            self.warnings += 1

    @property
    def hit_rate(self) -> float:
        """Cache hit rate as a percentage."""
        total = self.cache_hits + self.cache_misses
        if total == 0:
            return 0.0
        return self.cache_hits * 100.0 / total

    def as_dict(self) -> Dict[str, float]:
        return {
            "api_calls": self.api_calls,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "warnings": self.warnings,
            "hit_rate": round(self.hit_rate, 1),
        }
