"""Capability fetching with caching, region filtering and API version probing."""
import logging
from typing import Any, Dict, List, Optional

from ..arm import ArmClient
from ..cache.store import MISS, CacheStore
from ..errors import ProviderFetchFailed
from .catalog import candidate_api_versions
from .extractors import ExtractorRegistry, collect_items
from .models import CapabilityRecord, filter_by_region

logger = logging.getLogger(__name__)


def capability_cache_key(provider: str, region: Optional[str] = None) -> str:
    key = f"provider_skus_{provider}"
    return f"{key}_{region}" if region else key


def restriction_cache_key(provider: str, region: str) -> str:
    return f"provider_skus_meta_{provider}_{region}"


class CapabilityFetcher:
    """Fetches capability records for any provider.

    Lookups go to the cache first. On a miss, a registered extractor for the
    provider is tried, then the generic ``/skus`` endpoint over a list of
    api-versions. Failures come back as an empty list and the result, even
    an empty one, is always cached so failures are not retried within the TTL.
    """

    def __init__(self, cache: CacheStore, arm: ArmClient,
                 extractors: Optional[ExtractorRegistry] = None, ttl: Optional[float] = None):
        """Initialize the fetcher.

        Args:
            cache: Cache store for capability payloads.
            arm: ARM client for REST calls.
            extractors: Provider-specific extractors, defaults to the built-in set.
            ttl: TTL for capability entries, defaults to the cache default.
        """
        self.cache = cache
        self.arm = arm
        self.extractors = extractors if extractors is not None else ExtractorRegistry(arm)
        self.ttl = ttl

    def fetch_capabilities(self, provider: str, api_version: Optional[str] = None,
                           region: Optional[str] = None) -> List[CapabilityRecord]:
        """Return the capability records of provider, optionally limited to region.

        Args:
            provider: Provider namespace such as "Microsoft.Compute", or a
                synthetic provider such as "Microsoft.Compute/disks".
            api_version: api-version to try first against ``/skus``.
            region: Canonical region identifier to filter on.

        Returns:
            List[CapabilityRecord]: Records, empty if none or on failure.
        """
        key = capability_cache_key(provider, region)
        cached = self.cache.get(key, self.ttl)
        if cached is not MISS:
            if isinstance(cached, list):
                return self._to_records(cached)
            logger.debug("Ignoring non-list cache payload for %s", key)

        items = self._fetch(provider, api_version, region)
        self.cache.put(key, items, self.ttl)
        return self._to_records(items)

    def _fetch(self, provider: str, api_version: Optional[str], region: Optional[str]) -> List[Dict[str, Any]]:
        if not self.arm.subscription_id:
            logger.warning("No Azure subscription context available; returning empty capabilities for %s in %s",
                           provider, region or "all regions")
            self.arm.stats.record_warning()
            return []

        extractor = self.extractors.get(provider) if region else None
        if extractor is not None:
            try:
                result = extractor.extract(region)
            except ProviderFetchFailed as e:
                logger.warning("Extractor for %s in %s failed, falling back to /skus: %s", provider, region, e)
            else:
                if extractor.records_restrictions:
                    self._record_restriction(provider, region, result.note)
                if result.items:
                    logger.info("Found %d capabilities for %s in %s", len(result.items), provider, region)
                    return result.items

        return self._probe_skus(provider, api_version, region)

    def _probe_skus(self, provider: str, api_version: Optional[str], region: Optional[str]) -> List[Dict[str, Any]]:
        url = self.arm.subscription_url(f"/providers/{provider}/skus")
        attempted = []
        for version in candidate_api_versions(provider, api_version):
            attempted.append(version)
            try:
                items = collect_items(self.arm, url, {"api-version": version})
            except ProviderFetchFailed as e:
                logger.debug("%s /skus api-version %s failed: %s", provider, version, e)
                continue
            except ValueError as e:
                logger.debug("%s /skus api-version %s returned no array: %s", provider, version, e)
                continue

            records = filter_by_region(items, region) if region else [i for i in items if isinstance(i, dict)]
            if not records:
                logger.info("Provider %s exposes no capabilities in %s (api-version %s)",
                            provider, region or "any region", version)
            return records

        logger.warning("Provider %s unreachable for %s; tried api-versions %s",
                       provider, region or "all regions", ", ".join(attempted))
        self.arm.stats.record_warning()
        return []

    def _record_restriction(self, provider: str, region: str, note: Optional[str]) -> None:
        payload = {"reason": note, "restricted": bool(note)}
        self.cache.put(restriction_cache_key(provider, region), payload, self.ttl)

    def restriction_note(self, provider: str, region: str) -> Optional[str]:
        """Return the recorded reason a provider returned no capabilities in region."""
        meta = self.cache.peek(restriction_cache_key(provider, region), self.ttl)
        if isinstance(meta, dict) and meta.get("restricted") and meta.get("reason"):
            return meta["reason"]
        return None

    @staticmethod
    def _to_records(items: List[Any]) -> List[CapabilityRecord]:
        return [CapabilityRecord.from_dict(item) for item in items if isinstance(item, dict)]

    def find_capability(self, provider: str, sku: str, region: str,
                        resource_type: Optional[str] = None) -> Optional[CapabilityRecord]:
        """Find a capability by name (or kind) in region, optionally of one resource type."""
        for record in self.fetch_capabilities(provider, region=region):
            if resource_type and record.resource_type.lower() != resource_type.lower():
                continue
            if record.matches(sku):
                return record
        return None

    def list_capability_names(self, provider: str, region: Optional[str] = None) -> List[str]:
        return sorted({record.name for record in self.fetch_capabilities(provider, region=region) if record.name})

    def list_provider_locations(self, provider: str) -> List[str]:
        """All locations any capability of provider is offered in."""
        locations = set()
        for record in self.fetch_capabilities(provider):
            locations.update(record.locations)
        return sorted(locations)
