"""Static mapping from resource types to quota endpoints."""
from dataclasses import dataclass
from typing import Dict, List, Tuple

from ..errors import QuotaEndpointUnmapped


@dataclass(frozen=True)
class QuotaEndpoint:
    """Where a quota endpoint's metrics live and how to recognize them.

    A usage matches if its lowercased name equals one of ``names`` or
    contains one of ``contains``.
    """
    endpoint_id: str
    namespace: str
    names: Tuple[str, ...] = ()
    contains: Tuple[str, ...] = ()

    def matches(self, usage_name: str) -> bool:
        lowered = usage_name.lower()
        return lowered in self.names or any(part in lowered for part in self.contains)


QUOTA_ENDPOINTS: Dict[str, List[str]] = {
    # Compute
    "microsoft.compute/virtualmachines": ["compute.vcpu", "compute.vcpu_family"],
    "microsoft.compute/disks": ["compute.disk"],
    # Network
    "microsoft.network/loadbalancers": ["network.load_balancer"],
    "microsoft.network/publicipaddresses": ["network.public_ip"],
    "microsoft.network/natgateways": ["network.nat_gateway"],
    "microsoft.network/applicationgateways": ["network.app_gateway"],
    # Databases
    "microsoft.sql/servers/databases": ["sql.database", "sql.dtu"],
    "microsoft.dbforpostgresql/flexibleservers": ["postgre.server", "postgre.vcpu"],
    "microsoft.dbformysql/flexibleservers": ["mysql.server", "mysql.vcpu"],
    "microsoft.documentdb/databaseaccounts": ["cosmos.account", "cosmos.throughput"],
    "microsoft.cache/redis": ["redis.cache"],
    # Containers
    "microsoft.containerservice/managedclusters": ["container.aks", "container.vcpu"],
    "microsoft.containerregistry/registries": ["container.registry"],
    # App Service
    "microsoft.web/serverfarms": ["appservice.plan", "appservice.instance"],
    # Storage
    "microsoft.storage/storageaccounts": ["storage.account", "storage.capacity"],
    "microsoft.keyvault/vaults": ["keyvault.vault"],
}

ENDPOINTS: Dict[str, QuotaEndpoint] = {
    endpoint.endpoint_id: endpoint for endpoint in [
        QuotaEndpoint("compute.vcpu", "Microsoft.Compute", names=("cores",)),
        QuotaEndpoint("compute.vcpu_family", "Microsoft.Compute", contains=("family",)),
        QuotaEndpoint("compute.disk", "Microsoft.Compute", contains=("disk",)),
        QuotaEndpoint("network.load_balancer", "Microsoft.Network", names=("loadbalancers",)),
        QuotaEndpoint("network.public_ip", "Microsoft.Network", contains=("publicip",)),
        QuotaEndpoint("network.nat_gateway", "Microsoft.Network", names=("natgateways",)),
        QuotaEndpoint("network.app_gateway", "Microsoft.Network", names=("applicationgateways",)),
        QuotaEndpoint("sql.database", "Microsoft.Sql", names=("serverquota",)),
        QuotaEndpoint("sql.dtu", "Microsoft.Sql", contains=("dtu", "vcore")),
        QuotaEndpoint("postgre.server", "Microsoft.DBforPostgreSQL", contains=("server",)),
        QuotaEndpoint("postgre.vcpu", "Microsoft.DBforPostgreSQL", names=("cores",), contains=("vcore",)),
        QuotaEndpoint("mysql.server", "Microsoft.DBforMySQL", contains=("server",)),
        QuotaEndpoint("mysql.vcpu", "Microsoft.DBforMySQL", names=("cores",), contains=("vcore",)),
        QuotaEndpoint("cosmos.account", "Microsoft.DocumentDB", contains=("account",)),
        QuotaEndpoint("cosmos.throughput", "Microsoft.DocumentDB", contains=("throughput",)),
        QuotaEndpoint("redis.cache", "Microsoft.Cache", contains=("cache", "redis")),
        QuotaEndpoint("container.aks", "Microsoft.ContainerService", contains=("managedcluster", "cluster")),
        QuotaEndpoint("container.vcpu", "Microsoft.Compute", names=("cores",)),
        QuotaEndpoint("container.registry", "Microsoft.ContainerRegistry", contains=("registr",)),
        QuotaEndpoint("appservice.plan", "Microsoft.Web", contains=("serverfarm", "plan")),
        QuotaEndpoint("appservice.instance", "Microsoft.Web", contains=("instance", "worker")),
        QuotaEndpoint("storage.account", "Microsoft.Storage", names=("storageaccounts",)),
        QuotaEndpoint("storage.capacity", "Microsoft.Storage", contains=("capacity",)),
        QuotaEndpoint("keyvault.vault", "Microsoft.KeyVault", contains=("vault",)),
    ]
}


def endpoints_for(resource_type: str) -> List[str]:
    """Return the quota endpoint ids for a resource type.

    Raises:
        QuotaEndpointUnmapped: If the resource type has no known quota endpoint.
    """
    endpoint_ids = QUOTA_ENDPOINTS.get(resource_type.lower())
    if not endpoint_ids:
        raise QuotaEndpointUnmapped(resource_type)
    return list(endpoint_ids)
