"""Cross-region provider comparison."""
import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from ..capabilities.catalog import DISKS_PROVIDER, namespace_of
from ..capabilities.directory import ProviderDirectory
from ..capabilities.fetcher import CapabilityFetcher
from ..capabilities.models import CapabilityRecord
from ..errors import ComparisonAssemblyFailed

logger = logging.getLogger(__name__)

ASSEMBLY_FAILURE_NOTE = "capability details omitted due to assembly failure"


class ComparisonStatus(str, Enum):
    NOT_AVAILABLE = "NOT_AVAILABLE"
    TARGET_ONLY = "TARGET_ONLY"
    SOURCE_ONLY = "SOURCE_ONLY"
    RESTRICTED_BOTH = "RESTRICTED_BOTH"
    SOURCE_RESTRICTED = "SOURCE_RESTRICTED"
    TARGET_RESTRICTED = "TARGET_RESTRICTED"
    AVAILABLE_NO_SKUS = "AVAILABLE_NO_SKUS"
    FULL_MATCH = "FULL_MATCH"
    SOURCE_EXTENDED = "SOURCE_EXTENDED"
    TARGET_EXTENDED = "TARGET_EXTENDED"


def classify_status(source_exists: bool, target_exists: bool, source_count: int, target_count: int,
                    source_restricted: bool, target_restricted: bool) -> ComparisonStatus:
    """Classify a provider comparison; the first matching rule wins."""
    if not source_exists and not target_exists:
        return ComparisonStatus.NOT_AVAILABLE
    if not source_exists:
        return ComparisonStatus.TARGET_ONLY
    if not target_exists:
        return ComparisonStatus.SOURCE_ONLY
    if source_restricted and target_restricted:
        return ComparisonStatus.RESTRICTED_BOTH
    if source_restricted:
        return ComparisonStatus.SOURCE_RESTRICTED
    if target_restricted:
        return ComparisonStatus.TARGET_RESTRICTED
    if source_count == 0 and target_count == 0:
        return ComparisonStatus.AVAILABLE_NO_SKUS
    if source_count == target_count:
        return ComparisonStatus.FULL_MATCH
    if source_count > target_count:
        return ComparisonStatus.SOURCE_EXTENDED
    return ComparisonStatus.TARGET_EXTENDED


@dataclass
class RegionCapabilities:
    """One side of a provider comparison."""
    name: str
    exists: bool
    resource_type_count: int = 0
    capabilities: List[CapabilityRecord] = field(default_factory=list)
    note: Optional[str] = None
    capability_count: Optional[int] = None

    def __post_init__(self):
        if self.capability_count is None:
            self.capability_count = len(self.capabilities)

    @property
    def restricted(self) -> bool:
        """Provider present but returned nothing, with a recorded reason."""
        return self.exists and self.capability_count == 0 and bool(self.note)

    @property
    def keys(self) -> List[str]:
        return [record.key for record in self.capabilities]

    def to_dict(self, include_capabilities: bool = True) -> Dict[str, Any]:
        return {
            "name": self.name,
            "exists": self.exists,
            "resourceTypes": self.resource_type_count,
            "skuCount": self.capability_count,
            "restricted": self.restricted,
            "note": self.note,
            "skus": [r.to_dict() for r in self.capabilities] if include_capabilities else [],
        }


@dataclass
class ComparisonRecord:
    """Comparison of one provider between a source and a target region."""
    provider: str
    source: RegionCapabilities
    target: RegionCapabilities
    note: Optional[str] = None

    @property
    def status(self) -> ComparisonStatus:
        return classify_status(
            self.source.exists, self.target.exists,
            self.source.capability_count, self.target.capability_count,
            self.source.restricted, self.target.restricted,
        )

    @property
    def source_only(self) -> List[str]:
        target_keys = set(self.target.keys)
        return sorted({k for k in self.source.keys if k not in target_keys})

    @property
    def target_only(self) -> List[str]:
        source_keys = set(self.source.keys)
        return sorted({k for k in self.target.keys if k not in source_keys})

    @property
    def common(self) -> List[str]:
        return sorted(set(self.source.keys) & set(self.target.keys))

    def to_dict(self, include_capabilities: bool = True) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "status": self.status.value,
            "sourceRegion": self.source.to_dict(include_capabilities),
            "targetRegion": self.target.to_dict(include_capabilities),
            "sourceOnly": self.source_only if include_capabilities else [],
            "targetOnly": self.target_only if include_capabilities else [],
            "common": self.common if include_capabilities else [],
            "note": self.note,
        }

    def serialize(self) -> str:
        """Serialize to JSON.

        Raises:
            ComparisonAssemblyFailed: If the capability data cannot be encoded.
        """
        try:
            return json.dumps(self.to_dict())
        except (TypeError, ValueError) as e:
            raise ComparisonAssemblyFailed(self.provider, str(e)) from e

    def without_details(self, note: str) -> "ComparisonRecord":
        """Placeholder keeping counts and existence but dropping capability lists."""
        return ComparisonRecord(
            provider=self.provider,
            source=replace(self.source, capabilities=[], capability_count=self.source.capability_count),
            target=replace(self.target, capabilities=[], capability_count=self.target.capability_count),
            note=note,
        )


class ComparisonAggregator:
    """Compares capability providers between two regions."""

    def __init__(self, fetcher: CapabilityFetcher, directory: ProviderDirectory, concurrency: int = 8):
        """Initialize the aggregator.

        Args:
            fetcher: Capability fetcher used for both regions.
            directory: Provider listings for existence checks.
            concurrency: Maximum providers processed at once.
        """
        self.fetcher = fetcher
        self.directory = directory
        self.concurrency = concurrency

    def providers_from_inventory(self, resource_types: Iterable[str]) -> List[str]:
        """Distinct provider namespaces of an inventory, in the provider's own casing."""
        namespaces = set()
        has_disks = False
        for resource_type in resource_types:
            if not resource_type:
                continue
            namespaces.add(self.directory.canonical_namespace(namespace_of(resource_type)))
            if resource_type.lower() == DISKS_PROVIDER.lower():
                has_disks = True
        if has_disks:
            namespaces.add(DISKS_PROVIDER)
        return sorted(namespaces)

    def all_providers(self, source_region: str, target_region: str) -> List[str]:
        """Every namespace present in either region, plus the synthetic disks provider."""
        namespaces = set(self.directory.listing(source_region)) | set(self.directory.listing(target_region))
        namespaces.add(DISKS_PROVIDER)
        return sorted(namespaces)

    def compare_providers(self, source_region: str, target_region: str,
                          providers: List[str]) -> List[ComparisonRecord]:
        """Compare every provider between the two regions.

        Providers run concurrently; the result has exactly one record per
        requested provider, in request order.

        Args:
            source_region: Canonical source region.
            target_region: Canonical target region.
            providers: Provider ids to compare.

        Returns:
            List[ComparisonRecord]: One record per provider.
        """
        source_listing = self.directory.listing(source_region)
        target_listing = self.directory.listing(target_region)
        logger.info("Comparing %d providers between %s and %s", len(providers), source_region, target_region)

        results: Dict[int, ComparisonRecord] = {}
        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            futures = {
                executor.submit(self.compare_provider, provider, source_region, target_region,
                                source_listing, target_listing): (index, provider)
                for index, provider in enumerate(providers)
            }
            for future in as_completed(futures):
                index, provider = futures[future]
                try:
                    results[index] = future.result()
                except Exception as e:
                    logger.warning("Comparison failed for %s: %s", provider, e)
                    results[index] = self._failed_record(provider, source_region, target_region,
                                                         source_listing, target_listing, str(e))

        return [results[index] for index in range(len(providers))]

    def compare_provider(self, provider: str, source_region: str, target_region: str,
                         source_listing: Dict[str, List[str]],
                         target_listing: Dict[str, List[str]]) -> ComparisonRecord:
        """Build the comparison record for one provider."""
        logger.info("[SKU QUERY] Querying %s in both regions", provider)
        source = self._region_side(provider, source_region, source_listing)
        target = self._region_side(provider, target_region, target_listing)
        logger.info("[SKU RESULT] %s: %d in %s, %d in %s", provider,
                    source.capability_count, source_region, target.capability_count, target_region)

        record = ComparisonRecord(provider, source, target)
        try:
            record.serialize()
        except ComparisonAssemblyFailed as e:
            logger.warning("%s; emitting minimal record", e)
            return record.without_details(ASSEMBLY_FAILURE_NOTE)
        return record

    def _region_side(self, provider: str, region: str, listing: Dict[str, List[str]]) -> RegionCapabilities:
        exists = self.directory.exists(provider, region, listing)
        return RegionCapabilities(
            name=region,
            exists=exists,
            resource_type_count=self.directory.resource_type_count(provider, region, listing),
            capabilities=self.fetcher.fetch_capabilities(provider, region=region),
            note=self.fetcher.restriction_note(provider, region),
        )

    def _failed_record(self, provider: str, source_region: str, target_region: str,
                       source_listing: Dict[str, List[str]], target_listing: Dict[str, List[str]],
                       reason: str) -> ComparisonRecord:
        return ComparisonRecord(
            provider=provider,
            source=RegionCapabilities(source_region, self.directory.exists(provider, source_region, source_listing)),
            target=RegionCapabilities(target_region, self.directory.exists(provider, target_region, target_listing)),
            note=f"comparison failed: {reason}",
        )


@dataclass
class ComparisonReport:
    """Provider comparisons for a (source, target) region pair."""
    source_region: str
    target_region: str
    records: List[ComparisonRecord]

    def summary(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in ComparisonStatus}
        for record in self.records:
            counts[record.status.value] += 1
        return counts

    def save(self, output_path: str) -> None:
        """Save the comparison to a JSON file.

        Args:
            output_path: Path to write the JSON file.
        """
        result = []
        for record in self.records:
            try:
                record.serialize()
                result.append(record.to_dict())
            except ComparisonAssemblyFailed:
                result.append(record.without_details(ASSEMBLY_FAILURE_NOTE).to_dict())

        with open(output_path, 'w') as f:
            json.dump(result, f, indent=2)
