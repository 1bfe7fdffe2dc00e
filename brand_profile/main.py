"""
Brand Profile Pipeline - CLI Entry Point.

Commands:
    run      Build a profile for a website and print or save the document
    context  Print the prompt context blocks of a saved profile document
"""

import asyncio
import json
import sys
from functools import wraps
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text

from brand_profile import __version__
from brand_profile.pipeline.orchestrator import BrandProfilePipeline
from brand_profile.pipeline.prompt_context import build_prompt_context
from brand_profile.utils.logger import setup_logging
from brand_profile.utils.retry import AppError

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


def configure_logging(verbose: bool) -> None:
    setup_logging(level="DEBUG" if verbose else "WARNING", json_format=False)


def build_summary_table(document: dict[str, Any]) -> Table:
    """Key facts of an enriched profile document."""
    main_profile = document.get("main_profile") or {}
    metadata = document.get("products_metadata") or {}

    table = Table(title="Brand Profile Summary", show_header=False)
    table.add_row("Brand Name", str(main_profile.get("brand_name") or "N/A"))
    table.add_row("Market", f"{document.get('country_code')} ({document.get('region_confidence')} confidence)")
    table.add_row("Languages", ", ".join(document.get("languages") or []))
    table.add_row("Currency", str(document.get("currency")))
    table.add_row("Business Model", str(document.get("business_model")))
    table.add_row(
        "Competitors",
        f"{len(document.get('competitors') or [])} ({document.get('competitors_source')})",
    )
    table.add_row(
        "Personas",
        f"{len(document.get('personas') or [])} ({document.get('personas_source')})",
    )
    table.add_row("Catalogue", f"{metadata.get('count', 0)} entries ({metadata.get('source')})")
    return table


# =============================================================================
# CLI Group
# =============================================================================

@click.group()
@click.version_option(version=__version__)
def cli():
    """Brand Profile Pipeline"""
    pass


# =============================================================================
# Commands
# =============================================================================

@cli.command()
@click.argument("url")
@click.option("--no-enhance", is_flag=True, help="Return the base profile only")
@click.option("--sitemap-url", default=None, help="Sitemap to extract products from")
@click.option("--competitor", "competitors", multiple=True, help="Known competitor (repeatable)")
@click.option("--output", "output", type=click.Path(dir_okay=False), default=None, help="Write the document to FILE")
@click.option("--verbose", is_flag=True, help="Detailed logging")
@async_command
async def run(
    url: str,
    no_enhance: bool,
    sitemap_url: Optional[str],
    competitors: tuple[str, ...],
    output: Optional[str],
    verbose: bool,
):
    """
    Build a brand profile for a website.

    URL: The brand's website (e.g., https://www.acme.de)
    """
    configure_logging(verbose)

    params: dict[str, Any] = {"enhance": not no_enhance}
    if sitemap_url:
        params["sitemapUrl"] = sitemap_url
    if competitors:
        params["competitors"] = list(competitors)

    console.print(Panel.fit(f"[bold blue]Brand Profile[/bold blue]\nTarget: [cyan]{url}[/cyan]"))

    try:
        async with BrandProfilePipeline() as pipeline:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task("[cyan]Running pipeline...", total=None)
                document = await pipeline.run(url, params)
                progress.update(task, description="[green]Profile complete!")
    except AppError as e:
        console.print(f"[bold red]Error:[/bold red] {e.message}")
        if verbose:
            console.print_exception()
        sys.exit(1)

    if not no_enhance:
        console.print(build_summary_table(document))

    rendered = json.dumps(document, indent=2, ensure_ascii=False)
    if output:
        Path(output).write_text(rendered, encoding="utf-8")
        console.print(f"[green]✓[/green] Profile saved to {output}")
    else:
        console.print_json(rendered)


@cli.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
def context(file_path: str):
    """
    Print the prompt context blocks of a saved profile.

    FILE_PATH: JSON document written by `brand-profile run --output`.
    """
    try:
        document = json.loads(Path(file_path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[bold red]Error:[/bold red] {file_path} is not valid JSON: {e}")
        sys.exit(1)

    if not isinstance(document, dict):
        console.print(f"[bold red]Error:[/bold red] {file_path} does not contain a profile object")
        sys.exit(1)

    for name, block in build_prompt_context(document).items():
        console.print(Panel(Text(block), title=name.capitalize(), expand=False))


if __name__ == "__main__":
    cli()
