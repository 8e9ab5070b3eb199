"""Target-region availability classification per resource type and SKU."""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..capabilities.catalog import namespace_of
from ..capabilities.directory import ProviderDirectory
from ..capabilities.fetcher import CapabilityFetcher
from ..capabilities.models import CapabilityRecord, Restriction

logger = logging.getLogger(__name__)

REASON_SAME_REGION = "same region"
REASON_SERVICE_UNAVAILABLE = "service type not available"
REASON_PROVIDER_CONFIRMS = "provider lookup confirms region support"
REASON_SKU_NOT_FOUND = "SKU not found in target region"
REASON_SKU_RESTRICTED = "SKU has restrictions"
REASON_SKU_AVAILABLE = "SKU available in target region"


@dataclass
class AvailabilityVerdict:
    """Whether a resource type (and SKU) can be deployed in the target region."""
    resource_type: str
    target_region: str
    available: bool
    reason: str
    sku: Optional[str] = None
    service_available: Optional[bool] = None
    sku_available: Optional[bool] = None
    restrictions: List[Restriction] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.resource_type,
            "sku": self.sku,
            "targetRegion": self.target_region,
            "serviceAvailable": self.service_available,
            "skuAvailable": self.sku_available,
            "available": self.available,
            "reason": self.reason,
            "restrictions": [r.to_dict() for r in self.restrictions],
        }


def _exact_match(record: CapabilityRecord, sku: str) -> bool:
    return record.matches(sku)


def _sql_objective_match(record: CapabilityRecord, sku: str) -> bool:
    # Records are "<Edition>:<Objective>"; inventory usually carries only the objective
    wanted = sku.lower()
    return record.name.lower() == wanted or record.name.split(':')[-1].lower() == wanted


@dataclass
class SkuHandler:
    """How to check a SKU for one resource type.

    Attributes:
        provider: Provider id whose capabilities hold the SKU.
        resource_type: Capability resourceType to match, empty for any.
        sku_fields: Tuple fields the SKU is read from, in order.
        matcher: Decides whether a record is the requested SKU.
        strict: If False and the provider lists no capabilities at all, fall
            back to the provider-level check.
    """
    provider: str
    resource_type: str = ""
    sku_fields: Sequence[str] = ("sku",)
    matcher: Callable[[CapabilityRecord, str], bool] = _exact_match
    strict: bool = True

    def sku_of(self, resource: Any) -> Optional[str]:
        for name in self.sku_fields:
            value = getattr(resource, name, None) if not isinstance(resource, dict) else resource.get(name)
            if value:
                return str(value)
        return None


DEFAULT_HANDLERS = {
    "microsoft.compute/virtualmachines": SkuHandler(
        "Microsoft.Compute", "virtualMachines", ("vm_size", "sku")),
    "microsoft.compute/disks": SkuHandler(
        "Microsoft.Compute", "disks", ("disk_sku", "sku")),
    "microsoft.storage/storageaccounts": SkuHandler(
        "Microsoft.Storage", "storageAccounts", ("sku",)),
    "microsoft.dbforpostgresql/flexibleservers": SkuHandler(
        "Microsoft.DBforPostgreSQL", "flexibleServers", ("sku",)),
    "microsoft.dbformysql/flexibleservers": SkuHandler(
        "Microsoft.DBforMySQL", "flexibleServers", ("sku",)),
    "microsoft.sql/servers/databases": SkuHandler(
        "Microsoft.Sql", "servers/databases", ("sku",), matcher=_sql_objective_match),
}


class AvailabilityClassifier:
    """Decides availability of resource types and SKUs in a target region."""

    def __init__(self, fetcher: CapabilityFetcher, directory: ProviderDirectory,
                 source_region: Optional[str] = None):
        """Initialize the classifier.

        Args:
            fetcher: Capability fetcher for SKU lookups.
            directory: Provider listings for the service-level check.
            source_region: Canonical source region; checks against the same
                region short-circuit to available.
        """
        self.fetcher = fetcher
        self.directory = directory
        self.source_region = source_region
        self.handlers: Dict[str, SkuHandler] = dict(DEFAULT_HANDLERS)

    def register(self, resource_type: str, handler: SkuHandler) -> None:
        self.handlers[resource_type.lower()] = handler

    def handler_for(self, resource_type: str) -> SkuHandler:
        handler = self.handlers.get(resource_type.lower())
        if handler is not None:
            return handler
        # Unregistered types check SKUs only where the provider lists any
        return SkuHandler(namespace_of(resource_type), "", ("sku",), strict=False)

    def check_availability(self, resource_type: str, sku: Optional[str],
                           target_region: str) -> AvailabilityVerdict:
        """Classify one resource type and optional SKU against target_region.

        Args:
            resource_type: Namespaced type, e.g. "Microsoft.Compute/virtualMachines".
            sku: SKU, size or tier identifier, if any.
            target_region: Canonical target region.

        Returns:
            AvailabilityVerdict: The verdict with its reason.
        """
        if self.source_region and self.source_region.lower() == target_region.lower():
            return AvailabilityVerdict(resource_type, target_region, True, REASON_SAME_REGION, sku=sku)

        if not self.directory.resource_type_available(resource_type, target_region):
            return AvailabilityVerdict(resource_type, target_region, False, REASON_SERVICE_UNAVAILABLE,
                                       sku=sku, service_available=False)

        if not sku:
            return AvailabilityVerdict(resource_type, target_region, True, REASON_PROVIDER_CONFIRMS,
                                       service_available=True)

        handler = self.handler_for(resource_type)
        records = self.fetcher.fetch_capabilities(handler.provider, region=target_region)
        if not records and not handler.strict:
            return AvailabilityVerdict(resource_type, target_region, True, REASON_PROVIDER_CONFIRMS,
                                       sku=sku, service_available=True)

        record = self._find(records, handler, sku)
        if record is None:
            return AvailabilityVerdict(resource_type, target_region, False, REASON_SKU_NOT_FOUND,
                                       sku=sku, service_available=True, sku_available=False)

        if record.is_restricted:
            return AvailabilityVerdict(resource_type, target_region, False, REASON_SKU_RESTRICTED,
                                       sku=sku, service_available=True, sku_available=False,
                                       restrictions=list(record.restrictions))

        return AvailabilityVerdict(resource_type, target_region, True, REASON_SKU_AVAILABLE,
                                   sku=sku, service_available=True, sku_available=True)

    @staticmethod
    def _find(records: List[CapabilityRecord], handler: SkuHandler, sku: str) -> Optional[CapabilityRecord]:
        for record in records:
            if handler.resource_type and record.resource_type.lower() != handler.resource_type.lower():
                continue
            if handler.matcher(record, sku):
                return record
        return None

    def check_resource(self, resource: Any, target_region: str) -> AvailabilityVerdict:
        """Check an inventory tuple, reading its SKU from the handler's fields."""
        resource_type = resource.get("type") if isinstance(resource, dict) else resource.type
        sku = self.handler_for(resource_type).sku_of(resource)
        try:
            return self.check_availability(resource_type, sku, target_region)
        except Exception as e:
            logger.warning("Availability check failed for %s (%s) in %s: %s",
                           resource_type, sku, target_region, e)
            return AvailabilityVerdict(resource_type, target_region, False, f"check failed: {e}", sku=sku)

    def check_resources(self, resources: Sequence[Any], target_region: str) -> "AvailabilityReport":
        """Check every tuple; the report always has one verdict per tuple."""
        verdicts = [self.check_resource(resource, target_region) for resource in resources]
        available = sum(1 for v in verdicts if v.available)
        logger.info("Availability check complete: %d/%d available, %d unavailable",
                    available, len(verdicts), len(verdicts) - available)
        return AvailabilityReport(self.source_region, target_region, verdicts)


@dataclass
class AvailabilityReport:
    """Availability verdicts for one target region."""
    source_region: Optional[str]
    target_region: str
    verdicts: List[AvailabilityVerdict]

    @property
    def unavailable(self) -> List[AvailabilityVerdict]:
        return [v for v in self.verdicts if not v.available]

    def save(self, output_path: str) -> None:
        """Save the verdicts to a JSON file.

        Args:
            output_path: Path to write the JSON file.
        """
        result = {
            "sourceRegion": self.source_region,
            "targetRegion": self.target_region,
            "results": [v.to_dict() for v in self.verdicts],
        }
        with open(output_path, 'w') as f:
            json.dump(result, f, indent=2)
