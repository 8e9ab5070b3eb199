"""Provider-specific capability extractors.

Some providers expose no usable ``/skus`` listing, or return it empty while
the data is available elsewhere. Each extractor here knows where one
provider keeps its SKU-like data and flattens it into ``{name, resourceType}``
items that CapabilityRecord.from_dict understands.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from azure.core.exceptions import AzureError

from ..arm import ArmClient
from ..errors import ProviderFetchFailed
from .catalog import DISKS_PROVIDER
from .models import ExtractionResult, decode_response, filter_by_region

logger = logging.getLogger(__name__)

COMPUTE_SKUS_API_VERSION = "2021-07-01"
FABRIC_SKUS_API_VERSION = "2023-11-01"
MYSQL_CAPABILITIES_API_VERSION = "2023-12-30"
SQL_CAPABILITIES_API_VERSION = "2021-11-01"


def collect_items(arm: ArmClient, url: str, params: Optional[Dict[str, str]] = None) -> List[Any]:
    """Fetch every page of a list endpoint and return the concatenated items.

    Raises:
        ProviderFetchFailed: If a request fails.
        ValueError: If a page holds no recognizable array.
    """
    items = []
    for page in arm.iter_pages(url, params):
        items.extend(decode_response(page).items)
    return items


def unique_named(names: Iterable[Optional[str]], resource_type: str) -> List[Dict[str, str]]:
    return [{"name": name, "resourceType": resource_type} for name in sorted({n for n in names if n})]


def first_reason(items: Iterable[Any]) -> Optional[str]:
    for item in items:
        reason = item.get("reason") if isinstance(item, dict) else getattr(item, "reason", None)
        if reason:
            return reason
    return None


class CapabilityExtractor(ABC):
    """Base class for provider-specific capability extractors."""

    # Whether an empty result should be explained by a restriction note
    records_restrictions = False

    def __init__(self, arm: ArmClient):
        self.arm = arm

    @abstractmethod
    def extract(self, region: str) -> ExtractionResult:
        """Return the capability items offered in region.

        Args:
            region: Canonical region identifier.

        Returns:
            ExtractionResult: Items plus an optional restriction note.

        Raises:
            ProviderFetchFailed: If the provider cannot be reached.
        """
        pass


class ManagedDiskExtractor(CapabilityExtractor):
    """Distinct managed disk SKU names from the Compute resource SKUs API."""

    def extract(self, region: str) -> ExtractionResult:
        url = self.arm.subscription_url("/providers/Microsoft.Compute/skus")
        params = {"api-version": COMPUTE_SKUS_API_VERSION, "$filter": f"location eq '{region}'"}
        try:
            items = collect_items(self.arm, url, params)
        except ValueError as e:
            raise ProviderFetchFailed(str(e), provider=DISKS_PROVIDER, region=region) from e

        # The same disk SKU is listed once per capability set
        names = (
            item.get("name") for item in items
            if isinstance(item, dict) and (item.get("resourceType") or "").lower() == "disks"
        )
        return ExtractionResult(unique_named(names, "disks"))


class FabricExtractor(CapabilityExtractor):
    """Fabric capacity SKUs, which report display-name locations."""

    def extract(self, region: str) -> ExtractionResult:
        url = self.arm.subscription_url("/providers/Microsoft.Fabric/skus")
        try:
            items = collect_items(self.arm, url, {"api-version": FABRIC_SKUS_API_VERSION})
        except ValueError as e:
            raise ProviderFetchFailed(str(e), provider="Microsoft.Fabric", region=region) from e
        return ExtractionResult(filter_by_region(items, region))


class MySQLFlexibleServerExtractor(CapabilityExtractor):
    """MySQL flexible server SKUs from the location capabilities API."""

    records_restrictions = True

    def extract(self, region: str) -> ExtractionResult:
        url = self.arm.subscription_url(f"/providers/Microsoft.DBforMySQL/locations/{region}/capabilities")
        try:
            items = collect_items(self.arm, url, {"api-version": MYSQL_CAPABILITIES_API_VERSION})
        except ProviderFetchFailed as e:
            logger.warning("Failed to fetch MySQL flexible server SKUs for %s: %s", region, e)
            return ExtractionResult([], note="Failed to fetch SKUs (MySQL flexible server capabilities)")
        except ValueError as e:
            logger.warning("Unexpected MySQL capabilities payload for %s: %s", region, e)
            return ExtractionResult([], note="Failed to fetch SKUs (MySQL flexible server capabilities)")

        names = []
        for capability in items:
            if not isinstance(capability, dict):
                continue
            for edition in capability.get("supportedFlexibleServerEditions") or []:
                for version in edition.get("supportedServerVersions") or []:
                    names.extend(sku.get("name") for sku in version.get("supportedSkus") or [])

        note = first_reason(items)
        if note:
            logger.warning("MySQL flexible server capabilities for %s returned reason: %s", region, note)
        return ExtractionResult(unique_named(names, "flexibleServers"), note=note)


class PostgreSQLFlexibleServerExtractor(CapabilityExtractor):
    """PostgreSQL flexible server SKUs via the flexible servers management SDK."""

    records_restrictions = True

    def extract(self, region: str) -> ExtractionResult:
        from azure.mgmt.postgresqlflexibleservers import PostgreSQLManagementClient

        if not self.arm.subscription_id:
            raise ProviderFetchFailed("No Azure subscription context available",
                                      provider="Microsoft.DBforPostgreSQL", region=region)

        client = PostgreSQLManagementClient(self.arm.credential, self.arm.subscription_id)
        self.arm.stats.record_api_call()
        try:
            capabilities = list(client.location_based_capabilities.execute(region))
        except AzureError as e:
            logger.warning("Failed to fetch PostgreSQL flexible server SKUs for %s: %s", region, e)
            return ExtractionResult([], note="Failed to fetch SKUs (PostgreSQL flexible server capabilities)")

        names = []
        for capability in capabilities:
            for edition in getattr(capability, "supported_server_editions", None) or []:
                names.extend(sku.name for sku in getattr(edition, "supported_server_skus", None) or [])

        note = first_reason(capabilities)
        if note:
            logger.warning("PostgreSQL flexible server capabilities for %s returned reason: %s", region, note)
        return ExtractionResult(unique_named(names, "flexibleServers"), note=note)


class SqlDatabaseExtractor(CapabilityExtractor):
    """SQL Database service objectives, named "<Edition>:<Objective>"."""

    def extract(self, region: str) -> ExtractionResult:
        url = self.arm.subscription_url(f"/providers/Microsoft.Sql/locations/{region}/capabilities")
        payload = self.arm.get_json(url, {"api-version": SQL_CAPABILITIES_API_VERSION})
        if not isinstance(payload, dict):
            raise ProviderFetchFailed("Unexpected SQL capabilities payload",
                                      provider="Microsoft.Sql", region=region)

        names = set()
        for version in payload.get("supportedServerVersions") or []:
            for edition in version.get("supportedEditions") or []:
                for objective in edition.get("supportedServiceLevelObjectives") or []:
                    if edition.get("name") and objective.get("name"):
                        names.add(f"{edition['name']}:{objective['name']}")
        return ExtractionResult(unique_named(names, "servers/databases"))


class ExtractorRegistry:
    """Registry of provider-specific extractors, keyed by provider id."""

    def __init__(self, arm: ArmClient):
        """Initialize the registry with the built-in extractors.

        Args:
            arm: ARM client the extractors call through.
        """
        self.extractors: Dict[str, CapabilityExtractor] = {}
        self.register(DISKS_PROVIDER, ManagedDiskExtractor(arm))
        self.register("Microsoft.Fabric", FabricExtractor(arm))
        self.register("Microsoft.DBforMySQL", MySQLFlexibleServerExtractor(arm))
        self.register("Microsoft.DBforPostgreSQL", PostgreSQLFlexibleServerExtractor(arm))
        self.register("Microsoft.Sql", SqlDatabaseExtractor(arm))

    def register(self, provider: str, extractor: CapabilityExtractor) -> None:
        self.extractors[provider.lower()] = extractor

    def get(self, provider: str) -> Optional[CapabilityExtractor]:
        return self.extractors.get(provider.lower())
