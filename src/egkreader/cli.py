"""Command-line interface for the eGK reader.

Example:
    $ egk-dump readers
    $ egk-dump dump
    $ egk-dump dump --reader 1 --trace
    $ egk-dump dump --layout layout.yaml --json
"""

import json
import logging
import sys
from typing import Any, Optional, Union

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from egkreader.config import CardLayout, load_layout
from egkreader.dumper import ApplicationResult, CardDumper
from egkreader.exceptions import EgkError
from egkreader.file_access import FileAccess
from egkreader.transport import CardTransport, PCSCTransport, TracingTransport

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Set up logging with Rich handler on stderr."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def _reader_arg(reader: Optional[str]) -> Union[str, int, None]:
    """Interpret a numeric reader argument as an index."""
    if reader is not None and reader.isdigit():
        return int(reader)
    return reader


def _format_value(value: Any) -> str:
    if hasattr(value, "to_dict"):
        value = value.to_dict()
    if isinstance(value, dict):
        return "\n".join(f"{k}: {v}" for k, v in value.items() if v not in ("", None))
    return str(value)


def _print_application(app: ApplicationResult) -> None:
    if not app.selected:
        console.print(
            f"[yellow]{app.name}[/yellow] ({app.aid.hex().upper()}): [red]{escape(app.error)}[/red]"
        )
        return

    if not app.files:
        console.print(f"[green]{app.name}[/green] ({app.aid.hex().upper()}): ok")
        return

    table = Table(title=f"{app.name} ({app.aid.hex().upper()})")
    table.add_column("File", style="cyan")
    table.add_column("Value", style="white")

    for result in app.files:
        if result.error:
            table.add_row(result.name, f"[red]{escape(result.error)}[/red]")
        elif result.value is not None:
            table.add_row(result.name, escape(_format_value(result.value)))
        else:
            raw = result.raw.hex() if result.raw else ""
            if len(raw) > 64:
                raw = f"{raw[:64]}... ({len(result.raw)} bytes)"
            table.add_row(result.name, raw)

    console.print(table)


@click.group()
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Read the public files of a German health insurance card (eGK)."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command()
def readers() -> None:
    """List PC/SC readers."""
    try:
        names = PCSCTransport.list_readers()
    except EgkError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        sys.exit(1)

    if not names:
        console.print("[yellow]No readers found[/yellow]")
        return

    for index, name in enumerate(names):
        console.print(f"[cyan]{index}[/cyan]  {name}")


@cli.command()
@click.option("--reader", "-r", default=None, help="Reader name or index (default: first with a card)")
@click.option("--trace", "-t", is_flag=True, help="Trace APDUs")
@click.option(
    "--layout",
    "layout_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML file overriding AIDs and SFIDs",
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def dump(
    ctx: click.Context,
    reader: Optional[str],
    trace: bool,
    layout_path: Optional[str],
    json_output: bool,
) -> None:
    """Dump MF, HCA and eSign contents of the card."""
    try:
        layout = load_layout(layout_path) if layout_path else CardLayout()

        with PCSCTransport.connect(_reader_arg(reader)) as card:
            if not json_output:
                console.print(f"reader: {card.reader_name}")
                console.print(f"atr: {card.atr.hex(' ')}")

            transport: CardTransport = card
            if trace:
                # Keep stdout clean for JSON
                transport = TracingTransport(card, sys.stderr if json_output else sys.stdout)

            result = CardDumper(FileAccess(transport), layout).dump()

    except EgkError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        if ctx.obj.get("verbose"):
            console.print_exception()
        sys.exit(1)

    if json_output:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    for app in result.applications:
        _print_application(app)


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
