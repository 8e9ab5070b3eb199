"""Tests for capability fetching."""
import pytest
from unittest.mock import MagicMock, patch
from azure.core.exceptions import ServiceRequestError
from planner.cache.store import CacheStore
from planner.capabilities.catalog import SKU_API_VERSION_FALLBACKS
from planner.capabilities.extractors import ExtractorRegistry
from planner.capabilities.fetcher import CapabilityFetcher, capability_cache_key
from planner.capabilities.models import ExtractionResult
from planner.errors import ProviderFetchFailed
from tests.fakes import FakeArm

COMPUTE_SKUS = {
    "value": [
        {
            "resourceType": "virtualMachines",
            "name": "Standard_B2ms",
            "locations": ["swedencentral"],
            "locationInfo": [{"location": "swedencentral", "zones": ["1", "2"]}],
            "restrictions": [],
        },
        {
            "resourceType": "virtualMachines",
            "name": "Standard_D4s_v5",
            "locations": ["eastus"],
            "restrictions": [],
        },
        {
            "resourceType": "disks",
            "name": "Premium_LRS",
            "locations": ["SwedenCentral"],
            "restrictions": [],
        },
    ]
}


@pytest.fixture
def cache(tmp_path):
    return CacheStore(str(tmp_path / "cache"))


def test_fetch_filters_by_region(cache):
    """Test only capabilities offered in the region are returned."""
    arm = FakeArm(lambda url, params: COMPUTE_SKUS)
    fetcher = CapabilityFetcher(cache, arm)

    records = fetcher.fetch_capabilities("Microsoft.Compute", region="swedencentral")

    assert sorted(r.name for r in records) == ["Premium_LRS", "Standard_B2ms"]
    assert arm.calls[0][0].endswith("/providers/Microsoft.Compute/skus")
    assert arm.calls[0][1] == {"api-version": "2024-03-01"}


def test_fetch_without_region_returns_everything(cache):
    """Test a provider-wide fetch keeps all dict items."""
    arm = FakeArm(lambda url, params: COMPUTE_SKUS)
    fetcher = CapabilityFetcher(cache, arm)

    assert len(fetcher.fetch_capabilities("Microsoft.Compute")) == 3


def test_second_fetch_served_from_cache(cache):
    """Test repeated lookups within the TTL make exactly one API call."""
    arm = FakeArm(lambda url, params: COMPUTE_SKUS)
    fetcher = CapabilityFetcher(cache, arm)

    first = fetcher.fetch_capabilities("Microsoft.Compute", region="swedencentral")
    second = fetcher.fetch_capabilities("Microsoft.Compute", region="swedencentral")
    third = CapabilityFetcher(cache, arm).fetch_capabilities("Microsoft.Compute", region="swedencentral")

    assert first == second == third
    assert arm.stats.api_calls == 1
    assert cache.is_valid(capability_cache_key("Microsoft.Compute", "swedencentral"))


def test_empty_result_is_cached(cache):
    """Test a provider with no capabilities is not queried again."""
    arm = FakeArm(lambda url, params: {"value": []})
    fetcher = CapabilityFetcher(cache, arm)

    assert fetcher.fetch_capabilities("Microsoft.Insights", region="eastus") == []
    assert fetcher.fetch_capabilities("Microsoft.Insights", region="eastus") == []
    assert arm.stats.api_calls == 1


def test_api_version_probing(cache):
    """Test rejected api-versions fall through to the next candidate."""
    def responder(url, params):
        if params["api-version"] == "2023-08-15":
            return ProviderFetchFailed("No registered resource provider found", status_code=400)
        return {"value": [{"name": "Dev(No SLA)_Standard_E2a_v4", "resourceType": "clusters",
                           "locations": ["East US"]}]}

    arm = FakeArm(responder)
    fetcher = CapabilityFetcher(cache, arm)

    records = fetcher.fetch_capabilities("Microsoft.Kusto", region="eastus")

    assert [r.name for r in records] == ["Dev(No SLA)_Standard_E2a_v4"]
    assert [params["api-version"] for _, params in arm.calls] == ["2023-08-15", SKU_API_VERSION_FALLBACKS[0]]


def test_requested_api_version_tried_first(cache):
    """Test an explicit api-version is probed before the catalog's."""
    arm = FakeArm(lambda url, params: {"value": []})
    fetcher = CapabilityFetcher(cache, arm)

    fetcher.fetch_capabilities("Microsoft.Compute", api_version="2019-04-01", region="eastus")

    assert arm.calls[0][1] == {"api-version": "2019-04-01"}


def test_unrecognized_payload_moves_to_next_version(cache):
    """Test a payload without an array counts as a failed version."""
    responses = iter([{"error": "nope"}, ["bare", {"name": "S1", "locations": ["eastus"]}]])
    arm = FakeArm(lambda url, params: next(responses))
    fetcher = CapabilityFetcher(cache, arm)

    records = fetcher.fetch_capabilities("Microsoft.Cache", region="eastus")

    assert [r.name for r in records] == ["S1"]
    assert arm.stats.api_calls == 2


def test_all_versions_fail(cache):
    """Test an unreachable provider degrades to an empty, cached result."""
    arm = FakeArm(lambda url, params: ProviderFetchFailed("boom", status_code=404))
    fetcher = CapabilityFetcher(cache, arm)

    assert fetcher.fetch_capabilities("Microsoft.Synapse", region="eastus") == []
    calls = arm.stats.api_calls
    assert calls == len(set(["2021-06-01"] + SKU_API_VERSION_FALLBACKS))
    assert arm.stats.warnings == 1

    assert fetcher.fetch_capabilities("Microsoft.Synapse", region="eastus") == []
    assert arm.stats.api_calls == calls


def test_no_subscription_returns_empty(cache):
    """Test no API calls are attempted without a subscription."""
    arm = FakeArm(subscription_id=None)
    fetcher = CapabilityFetcher(cache, arm)

    assert fetcher.fetch_capabilities("Microsoft.Compute", region="eastus") == []
    assert arm.calls == []


def test_extractor_preferred_over_skus(cache):
    """Test a registered extractor answers without touching /skus."""
    arm = FakeArm()
    extractor = MagicMock(records_restrictions=False)
    extractor.extract.return_value = ExtractionResult([{"name": "F64", "resourceType": "capacities"}])
    registry = ExtractorRegistry(arm)
    registry.register("Microsoft.Fabric", extractor)
    fetcher = CapabilityFetcher(cache, arm, extractors=registry)

    records = fetcher.fetch_capabilities("Microsoft.Fabric", region="swedencentral")

    assert [r.key for r in records] == ["capacities:F64"]
    extractor.extract.assert_called_once_with("swedencentral")
    assert arm.calls == []


def test_extractor_failure_falls_back_to_skus(cache):
    """Test an extractor error falls back to the generic listing."""
    arm = FakeArm(lambda url, params: {"value": [{"name": "F2", "locations": ["eastus"]}]})
    extractor = MagicMock(records_restrictions=False)
    extractor.extract.side_effect = ProviderFetchFailed("forbidden", status_code=403)
    registry = ExtractorRegistry(arm)
    registry.register("Microsoft.Fabric", extractor)
    fetcher = CapabilityFetcher(cache, arm, extractors=registry)

    assert [r.name for r in fetcher.fetch_capabilities("Microsoft.Fabric", region="eastus")] == ["F2"]


def test_restriction_note_recorded(cache):
    """Test an empty extractor result keeps its reason for the comparison."""
    arm = FakeArm(lambda url, params: {"value": []})
    extractor = MagicMock(records_restrictions=True)
    extractor.extract.return_value = ExtractionResult([], note="Subscription is restricted in this region")
    registry = ExtractorRegistry(arm)
    registry.register("Microsoft.DBforMySQL", extractor)
    fetcher = CapabilityFetcher(cache, arm, extractors=registry)

    assert fetcher.fetch_capabilities("Microsoft.DBforMySQL", region="westeurope") == []
    assert fetcher.restriction_note("Microsoft.DBforMySQL", "westeurope") == "Subscription is restricted in this region"
    assert fetcher.restriction_note("Microsoft.DBforMySQL", "eastus") is None


def test_find_capability(cache):
    """Test lookups by name, case-insensitively, and by resource type."""
    arm = FakeArm(lambda url, params: COMPUTE_SKUS)
    fetcher = CapabilityFetcher(cache, arm)

    record = fetcher.find_capability("Microsoft.Compute", "standard_b2ms", "swedencentral")
    assert record is not None
    assert record.key == "virtualMachines:Standard_B2ms"
    assert fetcher.find_capability("Microsoft.Compute", "Premium_LRS", "swedencentral",
                                   resource_type="virtualMachines") is None


def test_list_helpers(cache):
    """Test the name and location listings."""
    arm = FakeArm(lambda url, params: COMPUTE_SKUS)
    fetcher = CapabilityFetcher(cache, arm)

    assert fetcher.list_capability_names("Microsoft.Compute", "eastus") == ["Standard_D4s_v5"]
    assert fetcher.list_provider_locations("Microsoft.Compute") == ["SwedenCentral", "eastus", "swedencentral"]


def test_restriction_lookup_not_counted_as_miss(cache):
    """Test looking up a restriction reason leaves the hit rate alone."""
    fetcher = CapabilityFetcher(cache, FakeArm())

    assert fetcher.restriction_note("Microsoft.Compute", "eastus") is None
    assert cache.stats.cache_misses == 0


@patch("azure.mgmt.postgresqlflexibleservers.PostgreSQLManagementClient")
def test_sdk_transport_error_returns_empty_and_caches(mock_client_cls, cache):
    """Test a connection failure inside an SDK extractor still yields a cached empty result."""
    mock_client = MagicMock()
    mock_client.location_based_capabilities.execute.side_effect = ServiceRequestError("dns failure")
    mock_client_cls.return_value = mock_client
    arm = FakeArm(lambda url, params: ProviderFetchFailed("unreachable"))
    fetcher = CapabilityFetcher(cache, arm)

    assert fetcher.fetch_capabilities("Microsoft.DBforPostgreSQL", region="eastus") == []
    assert cache.is_valid(capability_cache_key("Microsoft.DBforPostgreSQL", "eastus"))
    assert fetcher.restriction_note("Microsoft.DBforPostgreSQL", "eastus") == \
        "Failed to fetch SKUs (PostgreSQL flexible server capabilities)"
