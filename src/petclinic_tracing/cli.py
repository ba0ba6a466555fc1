"""CLI commands for petclinic tracing.

Example:
    $ petclinic-tracing config --config tracing.yaml
    $ petclinic-tracing emit --name smoke-test --count 3

Environment Variables:
    PETCLINIC_* variables are read when no --config file is given.
    See petclinic_tracing.config.BootstrapConfig.from_env.
"""

import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from petclinic_tracing.bootstrap import TracingBootstrap
from petclinic_tracing.config import BootstrapConfig
from petclinic_tracing.exceptions import ConfigurationError

console = Console()


def _load_config(config_path: Optional[str]) -> BootstrapConfig:
    if config_path:
        return BootstrapConfig.from_file(config_path)
    return BootstrapConfig.from_env()


@click.group()
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Tracing bootstrap tools for the petclinic sample application."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML configuration file",
)
@click.pass_context
def config(ctx: click.Context, config_path: Optional[str]) -> None:
    """Show the resolved configuration and validate it."""
    try:
        resolved = _load_config(config_path)
        resolved.validate()
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        sys.exit(1)

    table = Table(title="Tracing configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    tracing = resolved.tracing
    table.add_row("enabled", str(tracing.enabled))
    table.add_row("service name", tracing.service_name)
    table.add_row("OTLP endpoint", tracing.otlp_endpoint or "-")
    table.add_row("export timeout", f"{tracing.export_timeout:g}s")
    table.add_row("propagation", tracing.propagation)
    table.add_row("correlation fields", ", ".join(tracing.correlation_fields) or "-")
    table.add_row("remote fields", ", ".join(tracing.remote_fields) or "-")
    table.add_row("log level", resolved.logging.level)
    table.add_row("log format", resolved.logging.format)

    console.print(table)
    console.print("[green]Configuration is valid[/green]")


@cli.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML configuration file",
)
@click.option(
    "--name",
    "-n",
    default="petclinic-tracing-check",
    help="Span name",
)
@click.option(
    "--count",
    type=click.IntRange(min=1),
    default=1,
    help="Number of spans to emit",
)
@click.pass_context
def emit(ctx: click.Context, config_path: Optional[str], name: str, count: int) -> None:
    """Emit test spans to the configured collector.

    Each span carries one log line. Spans that cannot be delivered are
    dropped without failing the command.
    """
    try:
        resolved = _load_config(config_path)
        if ctx.obj.get("verbose"):
            resolved.logging.level = "DEBUG"
        bootstrap = TracingBootstrap(resolved)
        bootstrap.start()
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        sys.exit(1)

    try:
        log = bootstrap.logger.get_logger("cli")
        for i in range(count):
            with bootstrap.tracer.start_as_current_span(name, attributes={"emit.index": i}):
                log.info(f"Emitting test span {i + 1}/{count}")
                trace_id = bootstrap.tracer.current_trace_id()
            console.print(f"[cyan]Span {i + 1}:[/cyan] trace_id={trace_id or '-'}")
    finally:
        bootstrap.shutdown()

    console.print(f"[green]Emitted {count} span(s)[/green]")


def main() -> None:
    """Entry point for the petclinic-tracing CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
