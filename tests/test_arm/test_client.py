"""Tests for the ARM REST client."""
from unittest.mock import MagicMock

import pytest
import requests
from azure.core.exceptions import ClientAuthenticationError
from planner.arm import ArmClient
from planner.errors import ProviderFetchFailed, TransientHttpError

URL = "https://management.azure.com/subscriptions/sub/providers"


def make_response(status_code, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.text = "error body"
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def credential():
    credential = MagicMock()
    credential.get_token.return_value = MagicMock(token="test-token")
    return credential


def make_client(credential, responses, max_retries=3):
    session = MagicMock()
    session.get.side_effect = responses
    return ArmClient("sub", credential=credential, max_retries=max_retries,
                     backoff_seconds=0, session=session)


def test_get_json_sends_bearer_token(credential):
    """Test the token is requested for the management scope and sent."""
    client = make_client(credential, [make_response(200, {"value": []})])

    assert client.get_json(URL, {"api-version": "2021-04-01"}) == {"value": []}

    credential.get_token.assert_called_with("https://management.azure.com/.default")
    _, kwargs = client.session.get.call_args
    assert kwargs["headers"]["Authorization"] == "Bearer test-token"
    assert kwargs["params"] == {"api-version": "2021-04-01"}
    assert client.stats.api_calls == 1


def test_retries_transient_status(credential):
    """Test 429 and 503 responses are retried."""
    client = make_client(credential, [make_response(429), make_response(503), make_response(200, [1])])

    assert client.get_json(URL) == [1]
    assert client.session.get.call_count == 3
    assert client.stats.api_calls == 3


def test_retries_connection_errors(credential):
    """Test dropped connections are retried."""
    client = make_client(credential, [requests.ConnectionError("reset"), make_response(200, {"ok": True})])
    assert client.get_json(URL) == {"ok": True}


def test_gives_up_after_max_retries(credential):
    """Test the last transient error is raised once attempts run out."""
    client = make_client(credential, [make_response(503)] * 2, max_retries=2)

    with pytest.raises(TransientHttpError) as excinfo:
        client.get_json(URL)
    assert excinfo.value.status_code == 503
    assert client.session.get.call_count == 2


def test_client_errors_not_retried(credential):
    """Test a 404 fails immediately."""
    client = make_client(credential, [make_response(404)])

    with pytest.raises(ProviderFetchFailed) as excinfo:
        client.get_json(URL)
    assert not isinstance(excinfo.value, TransientHttpError)
    assert excinfo.value.status_code == 404
    assert client.session.get.call_count == 1


def test_non_json_body(credential):
    """Test an unparsable body is a fetch failure."""
    client = make_client(credential, [make_response(200)])
    with pytest.raises(ProviderFetchFailed):
        client.get_json(URL)


def test_auth_failure(credential):
    """Test credential errors surface as fetch failures."""
    credential.get_token.side_effect = ClientAuthenticationError("no login")
    client = make_client(credential, [])
    with pytest.raises(ProviderFetchFailed):
        client.get_json(URL)


def test_iter_pages_follows_next_link(credential):
    """Test every page is yielded, following nextLink."""
    client = make_client(credential, [
        make_response(200, {"value": [1], "nextLink": URL + "?page=2"}),
        make_response(200, {"value": [2]}),
    ])

    pages = list(client.iter_pages(URL, {"api-version": "2021-04-01"}))

    assert [p["value"] for p in pages] == [[1], [2]]
    assert client.session.get.call_args_list[1][0][0] == URL + "?page=2"


def test_subscription_url_requires_subscription(credential):
    """Test subscription-scoped URLs need a subscription."""
    assert ArmClient("abc", credential=credential).subscription_url("/providers") == \
        "https://management.azure.com/subscriptions/abc/providers"
    with pytest.raises(ProviderFetchFailed):
        ArmClient(None, credential=credential).subscription_url("/providers")
