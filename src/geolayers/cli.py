"""Typer-based CLI for geolayers."""

import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import GeoLayersConfig
from .indexer import LayerController
from .layers.models import LayerKind, format_number
from .query.engine import Query, QueryError

app = typer.Typer(
    name="geolayers",
    help="geolayers - index the locations in a markdown vault and query them",
    add_completion=False,
)

console = Console()


def _setup_logging(debug: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if debug else logging.WARNING)


def _load_controller(vault_path: Optional[str]) -> LayerController:
    try:
        cfg = GeoLayersConfig.from_env(cli_vault_path=vault_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    return LayerController.from_config(cfg)


def _coordinate_text(layer) -> str:
    if layer.kind == LayerKind.POINT_MARKER:
        return f"{format_number(layer.coordinate.lat)},{format_number(layer.coordinate.lng)}"
    return "-"


@app.command()
def scan(
    vault_path: str = typer.Option(
        None,
        "--vault",
        "-v",
        help="Path to vault directory (default: .geolayers/config.toml, GEOLAYERS_VAULT or cwd)",
    ),
    query: str = typer.Option(
        "",
        "--query",
        "-q",
        help='Filter layers, e.g. \'tag:#food AND NOT path:"Archive"\'',
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Index the vault and list the layers matching a query."""
    _setup_logging(debug)
    controller = _load_controller(vault_path)
    summary = controller.refresh()

    result = controller.filter_layers(query)
    if result.query_error:
        console.print(f"[red]Query error: {result.message}[/red]")
        raise typer.Exit(code=1)

    table = Table(title="Geo layers")
    table.add_column("Kind", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("File")
    table.add_column("Line", justify="right")
    table.add_column("Location")
    table.add_column("Tags", style="dim")
    table.add_column("Edges", justify="right")

    for layer in result.layers:
        table.add_row(
            layer.kind.value,
            layer.name,
            layer.source.path,
            "" if layer.source_line is None else str(layer.source_line),
            _coordinate_text(layer),
            " ".join(layer.tags),
            str(controller.edges.degree(layer.id)) if layer.kind == LayerKind.POINT_MARKER else "",
        )

    console.print(table)
    console.print(
        f"[green]{len(result.layers)} of {len(controller.index)} layers shown[/green] "
        f"[dim]({summary.scanned} files scanned)[/dim]"
    )


@app.command()
def links(
    vault_path: str = typer.Option(
        None,
        "--vault",
        "-v",
        help="Path to vault directory (default: .geolayers/config.toml, GEOLAYERS_VAULT or cwd)",
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """List the edges between markers derived from note links."""
    _setup_logging(debug)
    controller = _load_controller(vault_path)
    controller.refresh()

    edges = controller.edges.edges()
    if not edges:
        console.print("[yellow]No linked markers found[/yellow]")
        return

    table = Table(title="Marker links")
    table.add_column("From", style="bold")
    table.add_column("From file")
    table.add_column("To", style="bold")
    table.add_column("To file")
    for edge in edges:
        table.add_row(edge.marker1.name, edge.marker1.source.path, edge.marker2.name, edge.marker2.source.path)
    console.print(table)
    console.print(f"[green]{len(edges)} links[/green]")


@app.command("check-query")
def check_query(
    query: str = typer.Argument(..., help="Query string to compile"),
):
    """Compile a query and print its postfix form."""
    try:
        compiled = Query(query)
    except QueryError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    if compiled.is_empty:
        console.print("[dim]Empty query, matches every layer[/dim]")
        return
    console.print(f"[green]OK[/green] {compiled}")


@app.command()
def version():
    """Show geolayers version."""
    from . import __version__
    console.print(f"geolayers v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
