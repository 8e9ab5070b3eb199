"""Tests for inventory parsing."""
import json

import pytest
from planner.inventory.parser import InventoryParser, derive_unique_tuples
from planner.inventory.schema import Inventory


def test_valid_yaml_inventory(tmp_path):
    """Test parsing a YAML inventory."""
    yaml_content = """
    data:
      - name: vm-web-01
        type: Microsoft.Compute/virtualMachines
        location: eastus
        vmSize: Standard_B2ms
      - name: stcontoso
        type: Microsoft.Storage/storageAccounts
        location: eastus
        sku:
          name: Standard_LRS
          tier: Standard
        storageAccountKind: StorageV2
    """
    inventory_path = tmp_path / "inventory.yaml"
    inventory_path.write_text(yaml_content)

    inventory = InventoryParser.load(str(inventory_path))
    assert isinstance(inventory, Inventory)
    assert len(inventory.data) == 2
    assert inventory.data[0].vm_size == "Standard_B2ms"
    assert inventory.data[1].sku == "Standard_LRS"
    assert inventory.data[1].storage_account_kind == "StorageV2"
    assert inventory.resource_types == ["microsoft.compute/virtualmachines", "microsoft.storage/storageaccounts"]


def test_bare_json_list(tmp_path):
    """Test a JSON array of resources is accepted."""
    inventory_path = tmp_path / "inventory.json"
    inventory_path.write_text(json.dumps([
        {"type": "Microsoft.Compute/disks", "diskSku": "Premium_LRS", "diskSizeGB": 128, "location": "eastus"},
    ]))

    inventory = InventoryParser.load(str(inventory_path))
    assert inventory.data[0].disk_sku == "Premium_LRS"
    assert inventory.data[0].disk_size_gb == 128


def test_empty_file(tmp_path):
    """Test an empty inventory has no resources."""
    inventory_path = tmp_path / "inventory.yaml"
    inventory_path.write_text("")
    assert InventoryParser.load(str(inventory_path)).data == []


def test_invalid_inventory(tmp_path):
    """Test resources without a type are rejected."""
    inventory_path = tmp_path / "inventory.yaml"
    inventory_path.write_text("data:\n  - name: nameless\n")

    with pytest.raises(Exception):
        InventoryParser.load(str(inventory_path))


def test_nonexistent_file():
    """Test loading a nonexistent file."""
    with pytest.raises(FileNotFoundError):
        InventoryParser.load("nonexistent.yaml")


def test_derive_unique_tuples():
    """Test resources sharing type and size fields collapse to one tuple."""
    inventory = Inventory.model_validate({"data": [
        {"name": "vm-1", "type": "Microsoft.Compute/virtualMachines", "vmSize": "Standard_B2ms", "location": "eastus"},
        {"name": "vm-2", "type": "Microsoft.Compute/virtualMachines", "vmSize": "Standard_B2ms", "location": "eastus"},
        {"name": "vm-3", "type": "Microsoft.Compute/virtualMachines", "vmSize": "Standard_D4s_v5", "location": "eastus"},
        {"name": "disk-1", "type": "Microsoft.Compute/disks", "diskSku": "Premium_LRS", "location": "eastus"},
    ]})

    tuples = derive_unique_tuples(inventory)

    assert [(t.type, t.vm_size, t.disk_sku) for t in tuples] == [
        ("Microsoft.Compute/virtualMachines", "Standard_B2ms", None),
        ("Microsoft.Compute/virtualMachines", "Standard_D4s_v5", None),
        ("Microsoft.Compute/disks", None, "Premium_LRS"),
    ]
    assert tuples[0].region == "eastus"
    assert tuples[0].to_dict()["vmSize"] == "Standard_B2ms"
