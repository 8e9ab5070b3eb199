"""Planner configuration."""
import logging
import os
import subprocess
from typing import Mapping, Optional

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ENV_PREFIX = "PLANNER_"
MANAGEMENT_URL = "https://management.azure.com"


class PlannerConfig(BaseModel):
    """Settings for cache location, concurrency and Azure access."""
    cache_dir: str = ".cache"
    cache_ttl: int = Field(default=86400, ge=0)
    concurrency: int = Field(default=8, ge=1)
    max_retries: int = Field(default=3, ge=1)
    backoff_seconds: float = Field(default=2.0, ge=0)
    request_timeout: float = Field(default=60.0, gt=0)
    confirm_timeout: float = Field(default=10.0, ge=0)
    confirm_region: bool = True
    subscription_id: Optional[str] = None
    management_url: str = MANAGEMENT_URL

    @classmethod
    def load(cls, file_path: Optional[str] = None,
             environ: Optional[Mapping[str, str]] = None) -> "PlannerConfig":
        """Load configuration from an optional YAML file and the environment.

        Environment variables win over the file. ``PLANNER_<FIELD>`` sets any
        field; ``AZURE_SUBSCRIPTION_ID`` is honoured for the subscription.

        Args:
            file_path: Path to a YAML settings file.
            environ: Environment mapping, defaults to ``os.environ``.

        Returns:
            PlannerConfig: Validated configuration.

        Raises:
            FileNotFoundError: If file_path doesn't exist.
            ValidationError: If a value has the wrong type.
        """
        data = {}
        if file_path:
            with open(file_path, 'r') as f:
                data = yaml.safe_load(f) or {}

        env = os.environ if environ is None else environ
        if env.get("AZURE_SUBSCRIPTION_ID"):
            data["subscription_id"] = env["AZURE_SUBSCRIPTION_ID"]
        for name in cls.model_fields:
            value = env.get(ENV_PREFIX + name.upper())
            if value:
                data[name] = value

        return cls.model_validate(data)

    def resolve_subscription_id(self) -> Optional[str]:
        """Return the configured subscription, falling back to the Azure CLI default."""
        if self.subscription_id:
            return self.subscription_id
        return get_default_subscription()


def get_default_subscription() -> Optional[str]:
    """Get the default subscription ID from Azure CLI.

    Returns:
        Optional[str]: Azure subscription ID, or None when the CLI is missing
        or not logged in.
    """
    cmd = ["az", "account", "show", "--query", "id", "-o", "tsv"]
    logger.debug("Running command: %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    except (FileNotFoundError, subprocess.CalledProcessError) as e:
        logger.warning("Could not determine default subscription: %s", e)
        return None

    subscription_id = result.stdout.strip()
    logger.debug("Using subscription ID: %s", subscription_id)
    return subscription_id or None
