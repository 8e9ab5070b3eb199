#!/usr/bin/env python
"""Standalone region comparison script."""
import sys
import argparse
import logging

from planner.config import PlannerConfig
from planner.engine import PlannerEngine
from planner.inventory.parser import InventoryParser


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Compare Azure provider capabilities between two regions")
    parser.add_argument("--source", required=True, help="Source region")
    parser.add_argument("--target", required=True, help="Target region")
    parser.add_argument("--inventory", "-i", help="Limit the comparison to this inventory's providers")
    parser.add_argument("--output", "-o", default="comparison.json", help="Output comparison file")
    parser.add_argument("--settings", "-s", help="Planner settings YAML")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        engine = PlannerEngine(PlannerConfig.load(args.settings))
        source = engine.resolve_region(args.source).name
        target = engine.resolve_region(args.target).name
        providers = None
        if args.inventory:
            providers = engine.providers_for_inventory(InventoryParser.load(args.inventory).resource_types)

        report = engine.compare_providers(source, target, providers)
        report.save(args.output)

        missing = [r.provider for r in report.records if r.status.value in ("SOURCE_ONLY", "TARGET_RESTRICTED")]
        if missing:
            print(f"Providers missing or restricted in {target}: {', '.join(missing)}", file=sys.stderr)
            return 2

        print(f"Comparison saved to {args.output}")
        return 0
    except Exception as e:
        print(f"Error comparing regions: {e}", file=sys.stderr)
        return 1

if __name__ == "__main__":
    sys.exit(main())
