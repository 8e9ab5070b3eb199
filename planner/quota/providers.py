"""Provider-specific usage adapters."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from azure.core.exceptions import AzureError

from ..arm import ArmClient
from ..capabilities.catalog import api_version_for
from ..capabilities.models import decode_response
from ..errors import ProviderFetchFailed

logger = logging.getLogger(__name__)

DEFAULT_USAGES_API_VERSION = "2023-01-01"
POSTGRES_USAGES_API_VERSION = "2024-11-01-preview"


def usage_to_dict(usage: Any) -> Dict[str, Any]:
    """Convert an SDK Usage object to the REST usage shape."""
    name = getattr(usage, "name", None)
    return {
        "name": {
            "value": getattr(name, "value", None),
            "localizedValue": getattr(name, "localized_value", None),
        },
        "limit": getattr(usage, "limit", None),
        "currentValue": getattr(usage, "current_value", None),
        "unit": getattr(usage, "unit", None),
    }


class UsageAdapter(ABC):
    """Base class for provider-specific usage adapters."""

    namespace = ""

    def __init__(self, arm: ArmClient):
        """Initialize the adapter.

        Args:
            arm: ARM client carrying the subscription and credential.
        """
        self.arm = arm

    @abstractmethod
    def list_usages(self, region: str) -> List[Dict[str, Any]]:
        """List the provider's usages in a region.

        Args:
            region: Canonical region identifier.

        Returns:
            List[Dict[str, Any]]: Usages shaped as {name: {value, localizedValue},
            limit, currentValue, unit}.

        Raises:
            ProviderFetchFailed: If the usages cannot be fetched.
        """
        pass

    def _require_subscription(self) -> str:
        if not self.arm.subscription_id:
            raise ProviderFetchFailed("No Azure subscription context available", provider=self.namespace)
        return self.arm.subscription_id


class ComputeUsageAdapter(UsageAdapter):
    """Adapter for Microsoft.Compute usages."""

    namespace = "Microsoft.Compute"

    def list_usages(self, region: str) -> List[Dict[str, Any]]:
        from azure.mgmt.compute import ComputeManagementClient

        client = ComputeManagementClient(self.arm.credential, self._require_subscription())
        self.arm.stats.record_api_call()
        try:
            return [usage_to_dict(u) for u in client.usage.list(region)]
        except AzureError as e:
            raise ProviderFetchFailed(f"Error listing compute usages: {e}",
                                      provider=self.namespace, region=region) from e


class NetworkUsageAdapter(UsageAdapter):
    """Adapter for Microsoft.Network usages."""

    namespace = "Microsoft.Network"

    def list_usages(self, region: str) -> List[Dict[str, Any]]:
        from azure.mgmt.network import NetworkManagementClient

        client = NetworkManagementClient(self.arm.credential, self._require_subscription())
        self.arm.stats.record_api_call()
        try:
            return [usage_to_dict(u) for u in client.usages.list(region)]
        except AzureError as e:
            raise ProviderFetchFailed(f"Error listing network usages: {e}",
                                      provider=self.namespace, region=region) from e


class StorageUsageAdapter(UsageAdapter):
    """Adapter for Microsoft.Storage usages."""

    namespace = "Microsoft.Storage"

    def list_usages(self, region: str) -> List[Dict[str, Any]]:
        from azure.mgmt.storage import StorageManagementClient

        client = StorageManagementClient(self.arm.credential, self._require_subscription())
        self.arm.stats.record_api_call()
        try:
            return [usage_to_dict(u) for u in client.usages.list_by_location(region)]
        except AzureError as e:
            raise ProviderFetchFailed(f"Error listing storage usages: {e}",
                                      provider=self.namespace, region=region) from e


class PostgreSQLUsageAdapter(UsageAdapter):
    """Adapter for Microsoft.DBforPostgreSQL flexible server usages."""

    namespace = "Microsoft.DBforPostgreSQL"

    def list_usages(self, region: str) -> List[Dict[str, Any]]:
        self._require_subscription()
        url = self.arm.subscription_url(
            f"/providers/Microsoft.DBforPostgreSQL/locations/{region}/resourceType/flexibleServers/usages"
        )
        payload = self.arm.get_json(url, {"api-version": POSTGRES_USAGES_API_VERSION})
        try:
            return [u for u in decode_response(payload).items if isinstance(u, dict)]
        except ValueError as e:
            raise ProviderFetchFailed(str(e), provider=self.namespace, region=region) from e


class RestUsageAdapter(UsageAdapter):
    """Fallback adapter using the provider's locations/{region}/usages endpoint."""

    def __init__(self, arm: ArmClient, namespace: str):
        super().__init__(arm)
        self.namespace = namespace

    def list_usages(self, region: str) -> List[Dict[str, Any]]:
        self._require_subscription()
        url = self.arm.subscription_url(f"/providers/{self.namespace}/locations/{region}/usages")
        api_version = api_version_for(self.namespace) or DEFAULT_USAGES_API_VERSION
        usages = []
        try:
            for page in self.arm.iter_pages(url, {"api-version": api_version}):
                usages.extend(u for u in decode_response(page).items if isinstance(u, dict))
        except ValueError as e:
            raise ProviderFetchFailed(str(e), provider=self.namespace, region=region) from e
        return usages


class UsageAdapterRegistry:
    """Registry of usage adapters with fallback logic."""

    def __init__(self, arm: ArmClient):
        """Initialize the registry.

        Args:
            arm: ARM client shared by all adapters.
        """
        self.arm = arm
        self.adapters: Dict[str, UsageAdapter] = {
            "microsoft.compute": ComputeUsageAdapter(arm),
            "microsoft.network": NetworkUsageAdapter(arm),
            "microsoft.storage": StorageUsageAdapter(arm),
            "microsoft.dbforpostgresql": PostgreSQLUsageAdapter(arm),
        }

    def get_adapter(self, namespace: str) -> UsageAdapter:
        """Get the adapter for a provider namespace, with fallback.

        Args:
            namespace: Provider namespace (e.g., "Microsoft.Compute").

        Returns:
            UsageAdapter: The appropriate adapter for the namespace.
        """
        adapter = self.adapters.get(namespace.lower())
        if adapter is None:
            adapter = RestUsageAdapter(self.arm, namespace)
            self.adapters[namespace.lower()] = adapter
        return adapter
