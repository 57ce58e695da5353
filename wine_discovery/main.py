"""
Wine Discovery Pipeline - CLI Entry Point.
Production-grade CLI using Click and Rich.
"""

import sys
import asyncio
from functools import wraps
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from sqlalchemy.engine import make_url

from wine_discovery import __version__
from wine_discovery.config.settings import get_settings, Settings
from wine_discovery.models.schemas import DiscoveryResult, WineRecord, WineSource
from wine_discovery.pipeline.orchestrator import WineDiscoveryPipeline
from wine_discovery.utils.logger import setup_logging

# Initialize Rich Console
console = Console()

# =============================================================================
# Helper Functions
# =============================================================================

def async_command(f):
    """Decorator to run async click commands."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))
    return wrapper

def setup_logger(verbose: bool, settings: Settings):
    """Configure logging based on verbosity."""
    level = "DEBUG" if verbose else "WARNING"
    setup_logging(level=level, json_format=bool(settings.log_json))

def load_settings() -> Settings:
    """Load settings or exit with a readable configuration error."""
    try:
        return get_settings()
    except ValidationError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {escape(str(e))}")
        sys.exit(1)

def wine_table(wine: WineRecord, title: Optional[str] = None) -> Table:
    """Render one wine as a two-column table."""
    table = Table(title=escape(title or wine.display_name), show_header=False)
    table.add_row("ID", str(wine.id))
    table.add_row("Winery", escape(wine.winery))
    table.add_row("Wine", escape(wine.wine_name))
    table.add_row("Vintage", escape(wine.vintage))
    table.add_row("Grapes", escape(", ".join(wine.grapes)) or "-")
    table.add_row("Region", escape(wine.region))
    table.add_row("Country", escape(wine.country))
    alcohol = f"{wine.alcohol_content:g}%" if wine.alcohol_content is not None else "-"
    table.add_row("Alcohol", alcohol)
    table.add_row("Type", str(wine.wine_type))
    table.add_row("Image", escape(wine.image_url or "-"))
    table.add_row("Source", str(wine.source))
    table.add_row("Validated", "[green]yes[/green]" if wine.validated else "[yellow]no[/yellow]")
    return table

def wines_table(wines: list[WineRecord], title: str) -> Table:
    """Render a list of wines, one per row."""
    table = Table(title=escape(title), show_header=True, header_style="bold magenta")
    table.add_column("ID", justify="right")
    table.add_column("Winery")
    table.add_column("Wine")
    table.add_column("Vintage")
    table.add_column("Region")
    table.add_column("Country")
    table.add_column("Type")
    table.add_column("Source")
    for wine in wines:
        table.add_row(
            str(wine.id),
            escape(wine.winery),
            escape(wine.wine_name),
            escape(wine.vintage),
            escape(wine.region),
            escape(wine.country),
            str(wine.wine_type),
            str(wine.source),
        )
    return table

def print_result(result: DiscoveryResult) -> None:
    if result.succeeded:
        if result.cache_hit:
            status = "[blue]Found in cache[/blue]"
        elif result.conflict_recovered:
            status = "[blue]Discovered concurrently, using stored record[/blue]"
        else:
            status = "[green]Discovered[/green]"
        console.print(wine_table(result.wine))
        console.print(f"[green]✓[/green] {status} (run {result.run_id})")
        return

    failure = result.failure
    lines = [f"[bold red]{failure.message}[/bold red]", f"Reason: {failure.reason}"]
    if failure.rejection:
        lines.append(f"Rule: {failure.rejection}")
    if failure.detail:
        lines.append(f"Detail: {escape(failure.detail)}")
    console.print(Panel("\n".join(lines), title="Discovery Failed"))

# =============================================================================
# CLI Group
# =============================================================================

@click.group()
@click.version_option(version=__version__)
def cli():
    """Wine Discovery Pipeline"""
    pass

# =============================================================================
# Commands
# =============================================================================

@cli.command()
@click.argument('winery')
@click.argument('name')
@click.option('--vintage', default=None, help='Vintage year or NV (default: NV)')
@click.option('--json', 'as_json', is_flag=True, help='Print the result as JSON')
@click.option('--verbose', is_flag=True, help='Detailed logging')
@async_command
async def discover(winery: str, name: str, vintage: Optional[str], as_json: bool, verbose: bool):
    """
    Discover a wine, or return it from the cache.

    WINERY: Producer name (e.g., "Tabor Winery")
    NAME: Wine name (e.g., "Adama")
    """
    settings = load_settings()
    setup_logger(verbose, settings)

    try:
        async with WineDiscoveryPipeline(settings=settings) as pipeline:
            if as_json:
                result = await pipeline.discover(winery, name, vintage)
            else:
                with console.status(f"[cyan]Discovering {escape(winery)} {escape(name)}..."):
                    result = await pipeline.discover(winery, name, vintage)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        if verbose:
            console.print_exception()
        sys.exit(1)

    if as_json:
        click.echo(result.to_json())
    else:
        print_result(result)

    if not result.succeeded:
        sys.exit(1)


@cli.command()
@click.argument('wine_id', type=int)
@async_command
async def show(wine_id: int):
    """
    Show a stored wine.

    WINE_ID: Identifier assigned when the wine was stored.
    """
    settings = load_settings()
    setup_logger(False, settings)

    async with WineDiscoveryPipeline(settings=settings) as pipeline:
        wine = await pipeline.get_wine(wine_id)

    if wine is None:
        console.print(f"[red]No wine with id {wine_id}.[/red]")
        sys.exit(1)
    console.print(wine_table(wine))


@cli.command()
@click.option('--winery', default=None, help='Winery contains (case-insensitive)')
@click.option('--name', default=None, help='Wine name contains (case-insensitive)')
@click.option('--country', default=None, help='Exact country (case-insensitive)')
@click.option('--region', default=None, help='Exact region (case-insensitive)')
@click.option(
    '--source',
    type=click.Choice([s.value for s in WineSource], case_sensitive=False),
    default=None,
    help='Record provenance',
)
@async_command
async def search(
    winery: Optional[str],
    name: Optional[str],
    country: Optional[str],
    region: Optional[str],
    source: Optional[str],
):
    """Search stored wines. Multiple filters are combined."""
    if not any((winery, name, country, region, source)):
        raise click.UsageError("Provide at least one of --winery, --name, --country, --region, --source")

    settings = load_settings()
    setup_logger(False, settings)

    async with WineDiscoveryPipeline(settings=settings) as pipeline:
        queries = []
        if winery:
            queries.append(pipeline.find_by_winery_contains(winery))
        if name:
            queries.append(pipeline.find_by_name_contains(name))
        if country:
            queries.append(pipeline.find_by_country(country))
        if region:
            queries.append(pipeline.find_by_region(region))
        if source:
            queries.append(pipeline.find_by_source(WineSource(source.upper())))
        results = [await q for q in queries]

    wines = results[0]
    for other in results[1:]:
        ids = {w.id for w in other}
        wines = [w for w in wines if w.id in ids]

    if not wines:
        console.print("[yellow]No matching wines.[/yellow]")
        return
    console.print(wines_table(wines, f"{len(wines)} matching wine(s)"))


@cli.command()
@async_command
async def validated():
    """List every wine that passed validation."""
    settings = load_settings()
    setup_logger(False, settings)

    async with WineDiscoveryPipeline(settings=settings) as pipeline:
        wines = await pipeline.find_all_validated()

    if not wines:
        console.print("[yellow]No validated wines stored yet.[/yellow]")
        return
    console.print(wines_table(wines, "Validated wines"))


@cli.command()
def validate_setup():
    """Check API keys and environment configuration."""
    console.print("[bold]Validating Setup...[/bold]")

    settings = load_settings()

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Details")

    # Check Search
    provider = settings.get_search_provider()
    has_search = provider != "none"
    status = "[green]Pass[/green]" if has_search else "[red]Fail[/red]"
    table.add_row("Search Provider", status, provider)

    # Check extraction backend
    if settings.ai_extraction_available:
        table.add_row("AI Extraction", "[green]Pass[/green]", settings.claude_model)
    else:
        table.add_row("AI Extraction", "[yellow]Off[/yellow]", "heuristic extraction only")
    table.add_row("Extraction Strategy", "[blue]Info[/blue]", settings.extraction_strategy)

    # Configuration
    table.add_row("Database", "[blue]Info[/blue]", make_url(settings.database_url).render_as_string(hide_password=True))
    table.add_row("Environment", "[blue]Info[/blue]", settings.app_env)

    console.print(table)

    if not has_search:
        console.print("\n[yellow]Warning: No search provider configured (Serper or SerpAPI). Discovery will fail.[/yellow]")
        sys.exit(1)

if __name__ == "__main__":
    cli()
