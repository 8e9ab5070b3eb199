"""Quota deduplication, fetching and enrichment."""
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from ..cache.store import MISS, CacheStore
from ..errors import ProviderFetchFailed, QuotaEndpointUnmapped
from ..inventory.schema import ResourceTuple
from .endpoints import ENDPOINTS, QuotaEndpoint, endpoints_for
from .models import QuotaMetric, QuotaReport, QuotaResult, QuotaSpec
from .providers import UsageAdapterRegistry

logger = logging.getLogger(__name__)


def build_unique_quota_specs(resource_types: Iterable[str]) -> List[QuotaSpec]:
    """Build one QuotaSpec per distinct (resource type, endpoint) pair.

    Resource types without a quota mapping are skipped.
    """
    specs = []
    seen = set()
    for resource_type in sorted({t.lower() for t in resource_types if t}):
        try:
            endpoint_ids = endpoints_for(resource_type)
        except QuotaEndpointUnmapped:
            continue
        for endpoint_id in endpoint_ids:
            spec = QuotaSpec(resource_type, endpoint_id)
            if spec not in seen:
                seen.add(spec)
                specs.append(spec)
    return specs


def _parse_metric(usage: Dict[str, Any], spec: QuotaSpec, region: str) -> Optional[QuotaMetric]:
    name = usage.get("name") or {}
    metric_name = name.get("value") if isinstance(name, dict) else name
    if not metric_name:
        return None
    try:
        limit = float(usage["limit"])
        current_value = float(usage["currentValue"])
    except (KeyError, TypeError, ValueError):
        logger.debug("Dropping usage %s for %s in %s: missing or non-numeric values",
                     metric_name, spec.resource_type, region)
        return None
    return QuotaMetric(
        resource_type=spec.resource_type,
        region=region,
        metric_name=metric_name,
        limit=limit,
        current_value=current_value,
        endpoint_id=spec.endpoint_id,
        display_name=name.get("localizedValue") if isinstance(name, dict) else None,
        unit=usage.get("unit"),
    )


def enrich_with_quota(tuples: List[ResourceTuple], results: List[QuotaResult]) -> List[ResourceTuple]:
    """Left-join quota results onto tuples by resource type.

    Each type takes the first metric of its first non-empty result. Tuples
    without a match keep quota and quota_usage as None. Returns copies.
    """
    index: Dict[str, QuotaMetric] = {}
    for result in results:
        key = result.resource_type.lower()
        if key not in index and result.quotas:
            index[key] = result.quotas[0]

    enriched = []
    for item in tuples:
        quota = index.get(item.type.lower())
        enriched.append(item.model_copy(update={
            "quota": quota,
            "quota_usage": quota.current_value if quota else None,
        }))
    return enriched


class QuotaChecker:
    """Fetches quota usage once per (resource type, endpoint) pair per region."""

    def __init__(self, adapters: UsageAdapterRegistry, cache: CacheStore,
                 endpoints: Optional[Dict[str, QuotaEndpoint]] = None):
        """Initialize the checker.

        Args:
            adapters: Usage adapters per provider namespace.
            cache: Cache store for raw usage listings.
            endpoints: Endpoint definitions, defaults to the built-in table.
        """
        self.adapters = adapters
        self.cache = cache
        self.endpoints = endpoints if endpoints is not None else ENDPOINTS
        self._usages: Dict[tuple, List[Dict[str, Any]]] = {}
        self._failures: Dict[tuple, ProviderFetchFailed] = {}
        self._lock = threading.Lock()

    def _usages_for(self, namespace: str, region: str) -> List[Dict[str, Any]]:
        # Endpoints sharing a namespace share one usage listing, or one failure
        memo_key = (namespace.lower(), region.lower())
        with self._lock:
            if memo_key in self._failures:
                raise self._failures[memo_key]
            if memo_key in self._usages:
                return self._usages[memo_key]

            cache_key = f"usages_{namespace}_{region}"
            usages = self.cache.get(cache_key)
            if usages is MISS or not isinstance(usages, list):
                try:
                    usages = self.adapters.get_adapter(namespace).list_usages(region)
                except ProviderFetchFailed as e:
                    logger.warning("Usage listing for %s in %s failed: %s", namespace, region, e)
                    self._failures[memo_key] = e
                    raise
                self.cache.put(cache_key, usages)
            self._usages[memo_key] = usages
            return usages

    def fetch_quota(self, spec: QuotaSpec, region: str) -> QuotaResult:
        """Fetch the metrics of one spec in region.

        Raises:
            ProviderFetchFailed: If the provider's usages cannot be fetched.
            KeyError: If spec names an endpoint that has no definition.
        """
        endpoint = self.endpoints[spec.endpoint_id]
        usages = self._usages_for(endpoint.namespace, region)
        metrics = []
        for usage in usages:
            if not isinstance(usage, dict):
                continue
            name = usage.get("name") or {}
            usage_name = (name.get("value") if isinstance(name, dict) else name) or ""
            if not endpoint.matches(usage_name):
                continue
            metric = _parse_metric(usage, spec, region)
            if metric is not None:
                metrics.append(metric)
        return QuotaResult(spec.resource_type, spec.endpoint_id, region, metrics)

    def fetch_quotas(self, specs: List[QuotaSpec], region: str) -> List[QuotaResult]:
        """Fetch every spec in region; failures are dropped, not raised."""
        results = []
        for spec in specs:
            try:
                results.append(self.fetch_quota(spec, region))
            except (ProviderFetchFailed, KeyError) as e:
                logger.debug("Dropping quota %s (%s) in %s: %s", spec.resource_type, spec.endpoint_id, region, e)
        logger.info("Fetched quota data for %d of %d quota endpoints in %s", len(results), len(specs), region)
        return results

    def fetch_region_quotas(self, tuples: List[ResourceTuple], region: str) -> List[QuotaResult]:
        specs = build_unique_quota_specs(t.type for t in tuples)
        if not specs:
            logger.info("No quota endpoints mapped for resources in inventory")
            return []
        return self.fetch_quotas(specs, region)

    def enrich_with_quota(self, tuples: List[ResourceTuple], source_region: str) -> List[ResourceTuple]:
        """Populate quota and quota_usage on every tuple from source_region usage."""
        return enrich_with_quota(tuples, self.fetch_region_quotas(tuples, source_region))

    def build_report(self, tuples: List[ResourceTuple], source_region: str,
                     target_region: Optional[str] = None) -> QuotaReport:
        """Fetch quotas for source and target; the target is skipped when it equals the source."""
        source = self.fetch_region_quotas(tuples, source_region)
        target = []
        if target_region and target_region.lower() != source_region.lower():
            target = self.fetch_region_quotas(tuples, target_region)
        else:
            logger.info("Target region same as source; skipping target region quota fetch")
        return QuotaReport(source_region, target_region, source, target)
