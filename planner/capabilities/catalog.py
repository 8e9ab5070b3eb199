"""Provider catalog: API versions and resource types per provider namespace."""
from typing import Dict, List, Optional

# Service category to provider namespaces
SERVICE_CATEGORIES = {
    "compute": ["Microsoft.Compute"],
    "storage": ["Microsoft.Storage"],
    "networking": ["Microsoft.Network"],
    "databases": [
        "Microsoft.Sql",
        "Microsoft.DBforPostgreSQL",
        "Microsoft.DBforMySQL",
        "Microsoft.DocumentDB",
        "Microsoft.Cache",
    ],
    "analytics": [
        "Microsoft.Synapse",
        "Microsoft.DataFactory",
        "Microsoft.Kusto",
        "Microsoft.Databricks",
        "Microsoft.Fabric",
    ],
    "ai": ["Microsoft.CognitiveServices", "Microsoft.MachineLearningServices"],
    "containers": [
        "Microsoft.ContainerService",
        "Microsoft.ContainerRegistry",
        "Microsoft.ContainerInstance",
    ],
    "serverless": ["Microsoft.Web", "Microsoft.App"],
    "monitoring": ["Microsoft.OperationalInsights", "Microsoft.Insights"],
    "integration": ["Microsoft.ServiceBus", "Microsoft.EventHub", "Microsoft.EventGrid"],
}

# Preferred api-version per provider namespace
PROVIDER_API_VERSIONS = {
    "Microsoft.Compute": "2024-03-01",
    "Microsoft.Storage": "2023-01-01",
    "Microsoft.Network": "2024-01-01",
    "Microsoft.Sql": "2023-05-01-preview",
    "Microsoft.DBforPostgreSQL": "2024-12-30",
    "Microsoft.DBforMySQL": "2024-12-30",
    "Microsoft.DocumentDB": "2024-05-15",
    "Microsoft.Cache": "2023-08-01",
    "Microsoft.Synapse": "2021-06-01",
    "Microsoft.DataFactory": "2018-06-01",
    "Microsoft.Kusto": "2023-08-15",
    "Microsoft.Databricks": "2023-02-01",
    "Microsoft.Fabric": "2023-11-01",
    "Microsoft.CognitiveServices": "2024-04-01-preview",
    "Microsoft.MachineLearningServices": "2024-04-01",
    "Microsoft.ContainerService": "2024-05-01",
    "Microsoft.ContainerRegistry": "2023-11-01-preview",
    "Microsoft.ContainerInstance": "2023-05-01",
    "Microsoft.Web": "2023-01-01",
    "Microsoft.App": "2024-03-01",
    "Microsoft.OperationalInsights": "2023-09-01",
    "Microsoft.Insights": "2023-01-01",
    "Microsoft.ServiceBus": "2022-10-01-preview",
    "Microsoft.EventHub": "2024-01-01",
    "Microsoft.EventGrid": "2024-06-01-preview",
}

PROVIDER_RESOURCE_TYPES = {
    "Microsoft.Compute": ["virtualMachines", "virtualMachineScaleSets", "disks", "snapshots"],
    "Microsoft.Storage": ["storageAccounts"],
    "Microsoft.Network": [
        "loadBalancers", "applicationGateways", "azureFirewalls",
        "vpnGateways", "publicIPAddresses", "natGateways",
    ],
    "Microsoft.Sql": ["servers", "managedInstances", "elasticPools"],
    "Microsoft.DBforPostgreSQL": ["flexibleServers", "serverGroupsv2"],
    "Microsoft.DBforMySQL": ["flexibleServers"],
    "Microsoft.DocumentDB": ["databaseAccounts", "cassandraClusters", "mongoClusters"],
    "Microsoft.Cache": ["redis", "redisEnterprise"],
    "Microsoft.ContainerService": ["managedClusters", "agentPools", "snapshots"],
    "Microsoft.ContainerRegistry": ["registries"],
    "Microsoft.ContainerInstance": ["containerGroups"],
    "Microsoft.Web": ["serverfarms", "sites", "functionApps", "staticSites"],
    "Microsoft.App": ["containerApps", "managedEnvironments"],
}

# api-versions tried against /skus, newest first
SKU_API_VERSION_FALLBACKS = [
    "2025-08-01",
    "2024-11-01",
    "2024-01-01",
    "2023-11-01",
    "2023-09-01",
    "2021-06-01",
    "2020-10-01",
]

# Not a provider namespace, but compared separately
DISKS_PROVIDER = "Microsoft.Compute/disks"
SYNTHETIC_PROVIDERS = {DISKS_PROVIDER: "Microsoft.Compute"}


def namespace_of(resource_type: str) -> str:
    """Return the provider namespace of "Microsoft.X/type" style strings."""
    return resource_type.split('/')[0]


def providers_for_category(category: str) -> List[str]:
    return list(SERVICE_CATEGORIES.get(category.lower(), []))


def api_version_for(provider: str) -> Optional[str]:
    # Case-insensitive because inventory types are often lowercased
    for namespace, version in PROVIDER_API_VERSIONS.items():
        if namespace.lower() == namespace_of(provider).lower():
            return version
    return None


def candidate_api_versions(provider: str, requested: Optional[str] = None) -> List[str]:
    """Build the ordered, de-duplicated list of api-versions to probe."""
    versions = []
    for version in [requested, api_version_for(provider)] + SKU_API_VERSION_FALLBACKS:
        if version and version not in versions:
            versions.append(version)
    return versions


def catalog_summary() -> Dict[str, Dict[str, object]]:
    """Describe every catalogued provider, grouped by category."""
    summary = {}
    for category, providers in SERVICE_CATEGORIES.items():
        summary[category] = {
            provider: {
                "apiVersion": PROVIDER_API_VERSIONS.get(provider),
                "resourceTypes": PROVIDER_RESOURCE_TYPES.get(provider, []),
            }
            for provider in providers
        }
    return summary
