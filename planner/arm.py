"""Authenticated Azure Resource Manager REST access."""
import logging
from typing import Any, Dict, Iterator, Optional

import requests
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import DefaultAzureCredential
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import MANAGEMENT_URL
from .errors import ProviderFetchFailed, TransientHttpError
from .stats import RunStats

logger = logging.getLogger(__name__)

TOKEN_SCOPE = "https://management.azure.com/.default"
TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


class ArmClient:
    """Thin REST client for management.azure.com.

    GET requests are retried with exponential backoff on rate limiting,
    server errors and connection failures. Any other failure is raised as
    ProviderFetchFailed without retrying.
    """

    def __init__(self, subscription_id: Optional[str], credential=None,
                 stats: Optional[RunStats] = None, max_retries: int = 3,
                 backoff_seconds: float = 2.0, timeout: float = 60.0,
                 management_url: str = MANAGEMENT_URL,
                 session: Optional[requests.Session] = None):
        """Initialize the client.

        Args:
            subscription_id: Azure subscription ID, may be None when offline.
            credential: Azure credential, defaults to DefaultAzureCredential.
            stats: Run statistics to count API calls against.
            max_retries: Attempts per request, including the first one.
            backoff_seconds: Initial backoff; doubles on every retry.
            timeout: Per-request timeout in seconds.
            management_url: ARM endpoint.
            session: requests session to reuse.
        """
        self.subscription_id = subscription_id
        self._credential = credential
        self.stats = stats or RunStats()
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.timeout = timeout
        self.management_url = management_url.rstrip('/')
        self.session = session or requests.Session()

    @property
    def credential(self):
        if self._credential is None:
            self._credential = DefaultAzureCredential()
        return self._credential

    def subscription_url(self, path: str) -> str:
        """Build a subscription-scoped URL for path (which starts with '/')."""
        if not self.subscription_id:
            raise ProviderFetchFailed("No Azure subscription context available")
        return f"{self.management_url}/subscriptions/{self.subscription_id}{path}"

    def _headers(self) -> Dict[str, str]:
        try:
            token = self.credential.get_token(TOKEN_SCOPE).token
        except ClientAuthenticationError as e:
            raise ProviderFetchFailed(f"Error acquiring token: {e}") from e
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json"
        }

    def _get_once(self, url: str, params: Optional[Dict[str, str]]) -> Any:
        headers = self._headers()
        self.stats.record_api_call()
        logger.debug("GET %s params=%s", url, params)

        try:
            response = self.session.get(url, headers=headers, params=params, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientHttpError(f"Request to {url} failed: {e}") from e
        except requests.RequestException as e:
            raise ProviderFetchFailed(f"Request to {url} failed: {e}") from e

        if response.status_code in TRANSIENT_STATUS_CODES:
            raise TransientHttpError(
                f"GET {url} returned {response.status_code}",
                status_code=response.status_code
            )
        if response.status_code >= 400:
            raise ProviderFetchFailed(
                f"GET {url} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderFetchFailed(f"GET {url} returned a non-JSON body") from e

    def get_json(self, url: str, params: Optional[Dict[str, str]] = None) -> Any:
        """GET url and return the decoded JSON body.

        Args:
            url: Absolute URL.
            params: Query parameters such as api-version.

        Returns:
            Any: Decoded JSON payload.

        Raises:
            ProviderFetchFailed: If the request fails after all retries.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff_seconds),
            retry=retry_if_exception_type(TransientHttpError),
            before_sleep=lambda state: logger.info(
                "Retrying %s after attempt %d: %s",
                url, state.attempt_number, state.outcome.exception()
            ),
            reraise=True,
        )
        return retrying(self._get_once, url, params)

    def iter_pages(self, url: str, params: Optional[Dict[str, str]] = None) -> Iterator[Any]:
        """Yield every page of a list response, following nextLink."""
        payload = self.get_json(url, params)
        yield payload
        while isinstance(payload, dict) and payload.get("nextLink"):
            # nextLink already carries the query string
            payload = self.get_json(payload["nextLink"])
            yield payload
