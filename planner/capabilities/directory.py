"""Resource provider listings per region."""
import logging
import threading
from typing import Any, Dict, List, Optional

from ..arm import ArmClient
from ..cache.store import MISS, CacheStore
from ..errors import ProviderFetchFailed
from .catalog import SYNTHETIC_PROVIDERS, namespace_of
from .models import canonical_location, decode_response

logger = logging.getLogger(__name__)

PROVIDERS_API_VERSION = "2021-04-01"
PROVIDERS_CACHE_KEY = "providers"


class ProviderDirectory:
    """Answers which provider namespaces and resource types exist in a region.

    The expanded provider list is fetched once per run and cached; per-region
    listings are derived from it and cached under ``providers_<region>``.
    """

    def __init__(self, cache: CacheStore, arm: ArmClient):
        self.cache = cache
        self.arm = arm
        self._providers: Optional[List[Dict[str, Any]]] = None
        self._lock = threading.Lock()

    def providers(self) -> List[Dict[str, Any]]:
        """Return [{namespace, resourceTypes: [{resourceType, locations}]}]."""
        with self._lock:
            if self._providers is not None:
                return self._providers

            cached = self.cache.get(PROVIDERS_CACHE_KEY)
            if isinstance(cached, list):
                self._providers = cached
                return cached

            try:
                self._providers = self._fetch_providers()
            except (ProviderFetchFailed, ValueError) as e:
                logger.warning("Failed to fetch resource providers: %s", e)
                self.arm.stats.record_warning()
                # Not cached so the next run retries
                self._providers = []
                return self._providers

            self.cache.put(PROVIDERS_CACHE_KEY, self._providers)
            return self._providers

    def _fetch_providers(self) -> List[Dict[str, Any]]:
        url = self.arm.subscription_url("/providers")
        params = {"api-version": PROVIDERS_API_VERSION, "$expand": "resourceTypes/locations"}
        providers = []
        for page in self.arm.iter_pages(url, params):
            for item in decode_response(page).items:
                if not isinstance(item, dict) or not item.get("namespace"):
                    continue
                providers.append({
                    "namespace": item["namespace"],
                    "resourceTypes": [
                        {"resourceType": rt.get("resourceType"), "locations": rt.get("locations") or []}
                        for rt in item.get("resourceTypes") or []
                        if isinstance(rt, dict) and rt.get("resourceType")
                    ],
                })
        logger.info("Found %d resource providers", len(providers))
        return providers

    def listing(self, region: str) -> Dict[str, List[str]]:
        """Map each namespace present in region to its resource types offered there."""
        key = f"providers_{region}"
        cached = self.cache.get(key)
        if isinstance(cached, dict):
            return cached

        providers = self.providers()
        target = canonical_location(region)
        result = {}
        for provider in providers:
            types = [
                rt["resourceType"] for rt in provider["resourceTypes"]
                if any(canonical_location(loc) == target for loc in rt["locations"])
            ]
            if types:
                result[provider["namespace"]] = types

        if providers:
            self.cache.put(key, result)
        return result

    def exists(self, provider: str, region: str, listing: Optional[Dict[str, List[str]]] = None) -> bool:
        """Check if a provider namespace (or synthetic provider) exists in region."""
        namespace = SYNTHETIC_PROVIDERS.get(provider, provider).lower()
        listing = self.listing(region) if listing is None else listing
        return any(ns.lower() == namespace for ns in listing)

    def resource_type_count(self, provider: str, region: str,
                            listing: Optional[Dict[str, List[str]]] = None) -> int:
        if provider in SYNTHETIC_PROVIDERS:
            return 1 if self.exists(provider, region, listing) else 0
        listing = self.listing(region) if listing is None else listing
        for namespace, types in listing.items():
            if namespace.lower() == provider.lower():
                return len(types)
        return 0

    def resource_type_available(self, resource_type: str, region: str) -> bool:
        """Check if "Namespace/type" is offered in region per the provider list."""
        namespace = namespace_of(resource_type).lower()
        type_name = resource_type.split('/', 1)[1].lower() if '/' in resource_type else ""
        for ns, types in self.listing(region).items():
            if ns.lower() == namespace:
                return any(t.lower() == type_name for t in types)
        return False

    def canonical_namespace(self, name: str) -> str:
        """Restore the provider's own casing, e.g. "microsoft.compute" -> "Microsoft.Compute"."""
        for provider in self.providers():
            if provider["namespace"].lower() == name.lower():
                return provider["namespace"]
        return name
