"""Tests for the CLI commands."""
import json
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from main import app
from planner.comparison.aggregator import ComparisonReport
from planner.errors import RegionNotFound
from planner.regions.resolver import Region
from planner.stats import RunStats

runner = CliRunner()


def test_catalog_category():
    """Test the catalog can be limited to one category."""
    result = runner.invoke(app, ["catalog", "--category", "analytics"])
    assert result.exit_code == 0
    assert "Microsoft.Fabric" in result.output
    assert "Microsoft.Compute" not in result.output


def test_catalog_unknown_category():
    """Test an unknown category fails."""
    result = runner.invoke(app, ["catalog", "--category", "quantum"])
    assert result.exit_code == 1


@patch("main.PlannerEngine")
def test_resolve_region(mock_engine_cls):
    """Test a resolved region is printed with its identifier."""
    engine = MagicMock()
    engine.resolve_region.return_value = Region("swedencentral", "Sweden Central")
    mock_engine_cls.return_value = engine

    result = runner.invoke(app, ["resolve-region", "sweden central"])

    assert result.exit_code == 0
    assert "swedencentral" in result.output
    engine.resolve_region.assert_called_once_with("sweden central")


@patch("main.PlannerEngine")
def test_resolve_region_not_found(mock_engine_cls):
    """Test an unresolvable region exits with an error."""
    engine = MagicMock()
    engine.resolve_region.side_effect = RegionNotFound("atlantis")
    mock_engine_cls.return_value = engine

    result = runner.invoke(app, ["resolve-region", "atlantis"])

    assert result.exit_code == 1
    assert "atlantis" in result.output


@patch("main.PlannerEngine")
def test_compare_with_inventory(mock_engine_cls, tmp_path):
    """Test an inventory limits the comparison to its providers."""
    inventory = tmp_path / "inventory.json"
    inventory.write_text(json.dumps({"data": [{"type": "Microsoft.Compute/disks", "diskSku": "Premium_LRS"}]}))
    engine = MagicMock()
    engine.resolve_region.side_effect = lambda name: Region(name, name)
    engine.providers_for_inventory.return_value = ["Microsoft.Compute", "Microsoft.Compute/disks"]
    engine.compare_providers.return_value = ComparisonReport("eastus", "swedencentral", [])
    engine.stats = RunStats()
    mock_engine_cls.return_value = engine

    result = runner.invoke(app, ["compare", "--source", "eastus", "--target", "swedencentral",
                                 "--inventory", str(inventory), "--output", str(tmp_path / "out.json")])

    assert result.exit_code == 0
    engine.providers_for_inventory.assert_called_once_with(["microsoft.compute/disks"])
    engine.compare_providers.assert_called_once_with(
        "eastus", "swedencentral", ["Microsoft.Compute", "Microsoft.Compute/disks"])
