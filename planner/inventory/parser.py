"""Inventory snapshot parser."""
import json
import logging
from typing import List

import yaml

from .schema import Inventory, ResourceTuple

logger = logging.getLogger(__name__)


class InventoryParser:
    """Parser for JSON or YAML inventory snapshots."""

    @staticmethod
    def load(file_path: str) -> Inventory:
        """Load and validate an inventory file.

        Both ``{"data": [...]}`` and a bare list of resources are accepted.

        Args:
            file_path: Path to the JSON or YAML inventory file.

        Returns:
            Inventory: Validated inventory object.

        Raises:
            FileNotFoundError: If the inventory file doesn't exist.
            ValidationError: If the inventory is invalid.
            yaml.YAMLError: If the YAML is malformed.
        """
        with open(file_path, 'r') as f:
            if file_path.endswith(".json"):
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
        if isinstance(data, list):
            data = {"data": data}
        return Inventory.model_validate(data or {})


def derive_unique_tuples(inventory: Inventory) -> List[ResourceTuple]:
    """Collapse the inventory to distinct (type, size/SKU fields) tuples, first seen wins."""
    seen = set()
    tuples = []
    for resource in inventory.data:
        item = ResourceTuple(
            type=resource.type,
            sku=resource.sku,
            vm_size=resource.vm_size,
            disk_sku=resource.disk_sku,
            disk_size_gb=resource.disk_size_gb,
            tier=resource.tier,
            capacity=resource.capacity,
            storage_account_kind=resource.storage_account_kind,
            region=resource.location,
        )
        if item.identity in seen:
            continue
        seen.add(item.identity)
        tuples.append(item)
    logger.info("Derived %d unique resource tuples from %d resources", len(tuples), len(inventory.data))
    return tuples
