"""Error types raised by the planner."""
from typing import Optional


class PlannerError(Exception):
    """Base class for planner errors."""
    pass


class RegionNotFound(PlannerError):
    """Raised when a region name cannot be resolved to a canonical region."""

    def __init__(self, user_input: str, message: Optional[str] = None):
        self.user_input = user_input
        super().__init__(message or f"Could not resolve region '{user_input}'")


class ProviderFetchFailed(PlannerError):
    """Raised when capability or usage data for a provider cannot be fetched."""

    def __init__(self, message: str, provider: Optional[str] = None,
                 region: Optional[str] = None, status_code: Optional[int] = None):
        self.provider = provider
        self.region = region
        self.status_code = status_code
        super().__init__(message)


class TransientHttpError(ProviderFetchFailed):
    """Rate limiting, server errors and dropped connections. Safe to retry."""
    pass


class MalformedCacheEntry(PlannerError):
    """Raised when a cache file exists but cannot be decoded."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Malformed cache entry '{key}': {reason}")


class QuotaEndpointUnmapped(PlannerError):
    """Raised when no quota endpoint is known for a resource type."""

    def __init__(self, resource_type: str):
        self.resource_type = resource_type
        super().__init__(f"No quota endpoint mapped for {resource_type}")


class ComparisonAssemblyFailed(PlannerError):
    """Raised when a comparison record cannot be serialized."""

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"Could not assemble comparison for {provider}: {reason}")
