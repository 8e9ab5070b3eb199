"""Wiring of the resolution engine components for one run."""
import logging
from typing import Iterable, List, Optional

from .arm import ArmClient
from .availability.classifier import AvailabilityClassifier, AvailabilityReport, AvailabilityVerdict
from .cache.store import CacheStore
from .capabilities.directory import ProviderDirectory
from .capabilities.fetcher import CapabilityFetcher
from .comparison.aggregator import ComparisonAggregator, ComparisonReport
from .config import PlannerConfig
from .inventory.schema import ResourceTuple
from .quota.checker import QuotaChecker
from .quota.models import QuotaReport
from .quota.providers import UsageAdapterRegistry
from .regions.resolver import Region, RegionResolver, load_subscription_locations
from .stats import RunStats

logger = logging.getLogger(__name__)


class PlannerEngine:
    """Builds and shares the cache, ARM client and per-run memos of one run."""

    def __init__(self, config: Optional[PlannerConfig] = None, credential=None,
                 arm: Optional[ArmClient] = None, resolver: Optional[RegionResolver] = None):
        """Initialize the engine.

        Args:
            config: Planner configuration, defaults to PlannerConfig().
            credential: Azure credential, defaults to DefaultAzureCredential.
            arm: Pre-built ARM client, mainly for tests.
            resolver: Pre-built region resolver, mainly for tests.
        """
        self.config = config or PlannerConfig()
        self.stats = arm.stats if arm is not None else RunStats()
        self.cache = CacheStore(self.config.cache_dir, default_ttl=self.config.cache_ttl, stats=self.stats)
        self.arm = arm or ArmClient(
            self.config.resolve_subscription_id(),
            credential=credential,
            stats=self.stats,
            max_retries=self.config.max_retries,
            backoff_seconds=self.config.backoff_seconds,
            timeout=self.config.request_timeout,
            management_url=self.config.management_url,
        )
        self.resolver = resolver or RegionResolver(
            self.cache,
            loader=self._load_locations,
            confirm=self.config.confirm_region,
            confirm_timeout=self.config.confirm_timeout,
        )
        self.directory = ProviderDirectory(self.cache, self.arm)
        self.fetcher = CapabilityFetcher(self.cache, self.arm)
        self.aggregator = ComparisonAggregator(self.fetcher, self.directory, concurrency=self.config.concurrency)
        self.quota = QuotaChecker(UsageAdapterRegistry(self.arm), self.cache)

    def _load_locations(self):
        if not self.arm.subscription_id:
            logger.warning("No Azure subscription context available; cannot list regions")
            return []
        return load_subscription_locations(self.arm.subscription_id, self.arm.credential)

    def resolve_region(self, user_input: str) -> Region:
        return self.resolver.resolve(user_input)

    def classifier(self, source_region: Optional[str] = None) -> AvailabilityClassifier:
        return AvailabilityClassifier(self.fetcher, self.directory, source_region=source_region)

    def check_availability(self, resource_type: str, sku: Optional[str], target_region: str,
                           source_region: Optional[str] = None) -> AvailabilityVerdict:
        return self.classifier(source_region).check_availability(resource_type, sku, target_region)

    def check_resources(self, tuples: List[ResourceTuple], target_region: str,
                        source_region: Optional[str] = None) -> AvailabilityReport:
        return self.classifier(source_region).check_resources(tuples, target_region)

    def providers_for_inventory(self, resource_types: Iterable[str]) -> List[str]:
        """Provider ids to compare for an inventory's resource types."""
        return self.aggregator.providers_from_inventory(resource_types)

    def compare_providers(self, source_region: str, target_region: str,
                          provider_ids: Optional[List[str]] = None) -> ComparisonReport:
        """Compare the given providers, or every provider in either region when none are given."""
        if provider_ids is None:
            provider_ids = self.aggregator.all_providers(source_region, target_region)
        records = self.aggregator.compare_providers(source_region, target_region, provider_ids)
        return ComparisonReport(source_region, target_region, records)

    def enrich_with_quota(self, tuples: List[ResourceTuple], source_region: str) -> List[ResourceTuple]:
        return self.quota.enrich_with_quota(tuples, source_region)

    def quota_report(self, tuples: List[ResourceTuple], source_region: str,
                     target_region: Optional[str] = None) -> QuotaReport:
        return self.quota.build_report(tuples, source_region, target_region)
