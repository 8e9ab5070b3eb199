"""Tests for provider usage adapters."""
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from azure.core.exceptions import HttpResponseError, ServiceRequestError
from planner.errors import ProviderFetchFailed
from planner.quota.providers import (
    ComputeUsageAdapter, NetworkUsageAdapter, PostgreSQLUsageAdapter, RestUsageAdapter, StorageUsageAdapter,
    UsageAdapterRegistry, usage_to_dict,
)
from tests.fakes import FakeArm


def sdk_usage(value, limit, current):
    return SimpleNamespace(
        name=SimpleNamespace(value=value, localized_value=value.title()),
        limit=limit,
        current_value=current,
        unit="Count",
    )


def test_usage_to_dict():
    """Test SDK usage objects are converted to the REST shape."""
    assert usage_to_dict(sdk_usage("cores", 100, 4)) == {
        "name": {"value": "cores", "localizedValue": "Cores"},
        "limit": 100,
        "currentValue": 4,
        "unit": "Count",
    }


@patch("azure.mgmt.compute.ComputeManagementClient")
def test_compute_adapter(mock_client_cls):
    """Test compute usages are listed through the SDK."""
    mock_client = MagicMock()
    mock_client.usage.list.return_value = [sdk_usage("cores", 100, 4)]
    mock_client_cls.return_value = mock_client
    arm = FakeArm()

    usages = ComputeUsageAdapter(arm).list_usages("swedencentral")

    mock_client.usage.list.assert_called_once_with("swedencentral")
    assert usages[0]["currentValue"] == 4
    assert arm.stats.api_calls == 1


@patch("azure.mgmt.compute.ComputeManagementClient")
def test_compute_adapter_http_error(mock_client_cls):
    """Test SDK errors are raised as fetch failures."""
    mock_client = MagicMock()
    mock_client.usage.list.side_effect = HttpResponseError(message="AuthorizationFailed")
    mock_client_cls.return_value = mock_client

    with pytest.raises(ProviderFetchFailed):
        ComputeUsageAdapter(FakeArm()).list_usages("eastus")


@pytest.mark.parametrize("adapter_cls,client_path,operation", [
    (ComputeUsageAdapter, "azure.mgmt.compute.ComputeManagementClient", "usage.list"),
    (NetworkUsageAdapter, "azure.mgmt.network.NetworkManagementClient", "usages.list"),
    (StorageUsageAdapter, "azure.mgmt.storage.StorageManagementClient", "usages.list_by_location"),
])
def test_sdk_adapter_transport_error(adapter_cls, client_path, operation):
    """Test connection failures from the SDK are raised as fetch failures."""
    group, method = operation.split(".")
    with patch(client_path) as mock_client_cls:
        mock_client = MagicMock()
        getattr(getattr(mock_client, group), method).side_effect = ServiceRequestError("connection reset")
        mock_client_cls.return_value = mock_client

        with pytest.raises(ProviderFetchFailed, match="connection reset"):
            adapter_cls(FakeArm()).list_usages("eastus")


def test_adapter_requires_subscription():
    """Test adapters refuse to run without a subscription."""
    with pytest.raises(ProviderFetchFailed):
        RestUsageAdapter(FakeArm(subscription_id=None), "Microsoft.Cache").list_usages("eastus")


def test_rest_adapter():
    """Test the generic adapter reads locations/{region}/usages."""
    payload = {"value": [{"name": {"value": "RedisCaches"}, "limit": 1000, "currentValue": 2}]}
    arm = FakeArm(lambda url, params: payload)

    usages = RestUsageAdapter(arm, "Microsoft.Cache").list_usages("eastus")

    assert usages == payload["value"]
    url, params = arm.calls[0]
    assert url.endswith("/providers/Microsoft.Cache/locations/eastus/usages")
    assert params == {"api-version": "2023-08-01"}


def test_postgres_adapter():
    """Test PostgreSQL flexible server usages use their own route."""
    arm = FakeArm(lambda url, params: {"value": [{"name": {"value": "cores"}, "limit": 20, "currentValue": 2}]})

    usages = PostgreSQLUsageAdapter(arm).list_usages("eastus")

    assert usages[0]["limit"] == 20
    assert arm.calls[0][0].endswith("/locations/eastus/resourceType/flexibleServers/usages")


def test_registry_fallback():
    """Test unknown namespaces get a generic adapter, reused afterwards."""
    registry = UsageAdapterRegistry(FakeArm())

    assert isinstance(registry.get_adapter("microsoft.compute"), ComputeUsageAdapter)
    fallback = registry.get_adapter("Microsoft.Cache")
    assert isinstance(fallback, RestUsageAdapter)
    assert fallback.namespace == "Microsoft.Cache"
    assert registry.get_adapter("microsoft.cache") is fallback
