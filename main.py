"""Azure Region Planner CLI entrypoint."""
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from planner.capabilities.catalog import catalog_summary, providers_for_category
from planner.comparison.aggregator import ComparisonStatus
from planner.config import PlannerConfig
from planner.engine import PlannerEngine
from planner.errors import PlannerError
from planner.inventory.parser import InventoryParser, derive_unique_tuples

app = typer.Typer(help="Azure Region Planner - capability, availability and quota checks for region migrations")
console = Console()

STATUS_STYLES = {
    ComparisonStatus.FULL_MATCH: "green",
    ComparisonStatus.SOURCE_EXTENDED: "yellow",
    ComparisonStatus.TARGET_EXTENDED: "green",
    ComparisonStatus.AVAILABLE_NO_SKUS: "dim",
    ComparisonStatus.SOURCE_ONLY: "red",
    ComparisonStatus.NOT_AVAILABLE: "dim",
}


def _setup_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=debug, show_path=debug)],
        force=True,
    )
    # Azure SDK request logging is too chatty even for --debug
    logging.getLogger("azure").setLevel(logging.WARNING)


def _engine(settings: Optional[str], debug: bool) -> PlannerEngine:
    _setup_logging(debug)
    return PlannerEngine(PlannerConfig.load(settings))


def _print_stats(engine: PlannerEngine) -> None:
    stats = engine.stats
    console.print(
        f"[dim]API calls: {stats.api_calls}, cache hits: {stats.cache_hits}, "
        f"cache misses: {stats.cache_misses} ({stats.hit_rate:.1f}% hit rate), warnings: {stats.warnings}[/]"
    )


@app.command("resolve-region")
def resolve_region(
    region: str = typer.Argument(..., help="Region name or display name, e.g. 'Sweden Central'"),
    settings: Optional[str] = typer.Option(None, "--settings", "-s", help="Path to planner settings YAML"),
    debug: bool = typer.Option(False, "--debug", help="Print verbose debug information"),
):
    """Resolve a free-form region name to its canonical identifier."""
    try:
        engine = _engine(settings, debug)
        resolved = engine.resolve_region(region)
        console.print(f"[green]{resolved.display_name}[/] ([bold]{resolved.name}[/])")
    except PlannerError as e:
        console.print(f"[bold red]Error: {e}[/]")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"[bold red]Unexpected error: {e}[/]")
        raise typer.Exit(code=1)


@app.command("check-availability")
def check_availability(
    inventory: str = typer.Option(..., "--inventory", "-i", help="Path to the inventory JSON or YAML file"),
    target: str = typer.Option(..., "--target", "-t", help="Target region"),
    source: Optional[str] = typer.Option(None, "--source", help="Source region; same-region checks short-circuit"),
    output: str = typer.Option("availability.json", "--output", "-o", help="Path for availability output"),
    settings: Optional[str] = typer.Option(None, "--settings", "-s", help="Path to planner settings YAML"),
    debug: bool = typer.Option(False, "--debug", help="Print verbose debug information"),
):
    """Check whether every inventory resource type and SKU is available in the target region."""
    console.print("[bold blue]Checking target region availability...[/]")

    try:
        engine = _engine(settings, debug)
        target_region = engine.resolve_region(target).name
        source_region = engine.resolve_region(source).name if source else None
        tuples = derive_unique_tuples(InventoryParser.load(inventory))

        report = engine.check_resources(tuples, target_region, source_region)
        report.save(output)
        console.print(f"[green]Availability results saved to {output}[/]")

        table = Table(title=f"Availability in {target_region}")
        table.add_column("Resource Type", style="cyan")
        table.add_column("SKU")
        table.add_column("Available")
        table.add_column("Reason")
        for verdict in report.verdicts:
            mark = "[green]✓[/]" if verdict.available else "[red]❌[/]"
            table.add_row(verdict.resource_type, verdict.sku or "", mark, verdict.reason)
        console.print(table)

        if report.unavailable:
            console.print(f"[bold red]{len(report.unavailable)} resource(s) not available in {target_region}[/]")
        _print_stats(engine)
        if report.unavailable:
            raise typer.Exit(code=2)
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[bold red]Error: {e}[/]")
        raise typer.Exit(code=1)


@app.command("compare")
def compare(
    source: str = typer.Option(..., "--source", help="Source region"),
    target: str = typer.Option(..., "--target", "-t", help="Target region"),
    inventory: Optional[str] = typer.Option(None, "--inventory", "-i",
                                            help="Limit the comparison to the inventory's providers"),
    output: str = typer.Option("comparison.json", "--output", "-o", help="Path for comparison output"),
    settings: Optional[str] = typer.Option(None, "--settings", "-s", help="Path to planner settings YAML"),
    debug: bool = typer.Option(False, "--debug", help="Print verbose debug information"),
):
    """Compare provider capabilities between a source and a target region."""
    console.print("[bold blue]Comparing regions...[/]")

    try:
        engine = _engine(settings, debug)
        source_region = engine.resolve_region(source).name
        target_region = engine.resolve_region(target).name
        providers = None
        if inventory:
            providers = engine.providers_for_inventory(InventoryParser.load(inventory).resource_types)

        report = engine.compare_providers(source_region, target_region, providers)
        report.save(output)
        console.print(f"[green]Comparison saved to {output}[/]")

        table = Table(title=f"{source_region} vs {target_region}")
        table.add_column("Provider", style="cyan")
        table.add_column("Status")
        table.add_column(source_region, justify="right")
        table.add_column(target_region, justify="right")
        table.add_column("Note")
        for record in report.records:
            style = STATUS_STYLES.get(record.status, "yellow")
            table.add_row(
                record.provider,
                f"[{style}]{record.status.value}[/]",
                str(record.source.capability_count),
                str(record.target.capability_count),
                record.note or record.target.note or "",
            )
        console.print(table)

        summary = Table(title="Summary", show_header=False, box=None)
        summary.add_column("Status")
        summary.add_column("Count", justify="right")
        for status, count in report.summary().items():
            if count:
                summary.add_row(status, str(count))
        console.print(summary)
        _print_stats(engine)
    except Exception as e:
        console.print(f"[bold red]Error: {e}[/]")
        raise typer.Exit(code=1)


@app.command("quota")
def quota(
    inventory: str = typer.Option(..., "--inventory", "-i", help="Path to the inventory JSON or YAML file"),
    source: str = typer.Option(..., "--source", help="Source region"),
    target: Optional[str] = typer.Option(None, "--target", "-t", help="Target region"),
    output: str = typer.Option("quota.json", "--output", "-o", help="Path for quota output"),
    settings: Optional[str] = typer.Option(None, "--settings", "-s", help="Path to planner settings YAML"),
    debug: bool = typer.Option(False, "--debug", help="Print verbose debug information"),
):
    """Fetch quota usage for the inventory's resource types."""
    console.print("[bold blue]Checking quotas...[/]")

    try:
        engine = _engine(settings, debug)
        source_region = engine.resolve_region(source).name
        target_region = engine.resolve_region(target).name if target else None
        tuples = derive_unique_tuples(InventoryParser.load(inventory))

        report = engine.quota_report(tuples, source_region, target_region)
        report.save(output)
        console.print(f"[green]Quota results saved to {output}[/]")

        rows = report.summary_rows()
        if not rows:
            console.print("[yellow]No quota data found for the inventory's resource types[/]")
        else:
            table = Table(title="Quota Usage")
            table.add_column("Region", style="cyan")
            table.add_column("Resource Type")
            table.add_column("Metric")
            table.add_column("Used/Limit", justify="right")
            table.add_column("% Used", justify="right")
            for row in rows:
                percent = row["percentUsed"]
                style = "red" if percent is not None and percent >= 80 else "green"
                table.add_row(
                    row["region"],
                    row["resourceType"].split('/')[-1],
                    row["metric"],
                    f"[{style}]{row['current']:g}/{row['limit']:g}[/]",
                    "" if percent is None else f"{percent:g}%",
                )
            console.print(table)
            console.print("\n[yellow]To request a quota increase, visit:[/]")
            console.print("[link]https://portal.azure.com/#blade/Microsoft_Azure_Capacity/QuotaMenuBlade/myQuotas[/link]")
        _print_stats(engine)
    except Exception as e:
        console.print(f"[bold red]Error: {e}[/]")
        raise typer.Exit(code=1)


@app.command("catalog")
def catalog(
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Only show one service category"),
):
    """List the catalogued providers with their api-versions."""
    summary = catalog_summary()
    if category:
        wanted = set(providers_for_category(category))
        if not wanted:
            console.print(f"[bold red]Error: unknown category '{category}'[/]")
            raise typer.Exit(code=1)
        summary = {category.lower(): summary[category.lower()]}

    table = Table(title="Provider Catalog")
    table.add_column("Category", style="cyan")
    table.add_column("Provider")
    table.add_column("API Version")
    table.add_column("Resource Types")
    for name, providers in summary.items():
        for provider, info in providers.items():
            table.add_row(name, provider, info["apiVersion"] or "", ", ".join(info["resourceTypes"]))
    console.print(table)


@app.command("cache-stats")
def cache_stats(
    settings: Optional[str] = typer.Option(None, "--settings", "-s", help="Path to planner settings YAML"),
):
    """Show the cache location and size."""
    try:
        engine = _engine(settings, debug=False)
        summary = engine.cache.stats_summary()
        console.print(f"Cache directory: [bold]{summary['directory']}[/]")
        console.print(f"Entries: {summary['entries']} ({summary['bytes']} bytes)")
    except Exception as e:
        console.print(f"[bold red]Error: {e}[/]")
        raise typer.Exit(code=1)


@app.command("cache-clear")
def cache_clear(
    prefix: str = typer.Option("", "--prefix", "-p", help="Only remove keys starting with this prefix"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
    settings: Optional[str] = typer.Option(None, "--settings", "-s", help="Path to planner settings YAML"),
):
    """Delete cached entries."""
    try:
        engine = _engine(settings, debug=False)
        if not force:
            confirmed = typer.confirm(f"Delete cache entries in '{engine.cache.cache_dir}'?")
            if not confirmed:
                console.print("Cache clear cancelled")
                return
        removed = engine.cache.clear(prefix)
        console.print(f"[green]Removed {removed} cache entries[/]")
    except Exception as e:
        console.print(f"[bold red]Error: {e}[/]")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
