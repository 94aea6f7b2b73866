"""Typer CLI for the binlog relay."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.table import Table

from binlog_relay.config.loader import load_relay_config
from binlog_relay.config.models import RelayConfig
from binlog_relay.config.routing import RoutingTable, load_routing_table
from binlog_relay.observability.health import Status, check_relay_health
from binlog_relay.observability.logs import configure_logging
from binlog_relay.pipeline.context import build_context

logger = structlog.get_logger()
console = Console()
app = typer.Typer(name="binlog-relay", help="MySQL binlog → HTTP change relay")

ConfigOption = typer.Option(None, "--config", "-c", help="Relay override YAML")


def _load(config_path: str | None) -> RelayConfig:
    if config_path is not None and not Path(config_path).exists():
        console.print(f"[red]Config file not found: {config_path}[/red]")
        raise typer.Exit(1)
    try:
        config = load_relay_config(Path(config_path) if config_path else None)
    except (ValueError, TypeError, FileNotFoundError) as exc:
        console.print(f"[red]Invalid configuration:[/red] {exc}")
        raise typer.Exit(1) from exc
    configure_logging(config.log_level)
    return config


def _load_routing(config: RelayConfig) -> RoutingTable:
    try:
        return load_routing_table(config.routing_file)
    except (ValueError, TypeError, FileNotFoundError) as exc:
        console.print(f"[red]Invalid routing table:[/red] {exc}")
        raise typer.Exit(1) from exc


@app.command()
def validate(config_path: str | None = ConfigOption) -> None:
    """Validate the relay configuration and routing table."""
    config = _load(config_path)
    routing = _load_routing(config)
    console.print("[green]Valid[/green]")
    console.print(f"  source:     {config.source.host}:{config.source.port}")
    console.print(f"  redis:      {config.redis.addr}")
    console.print(f"  checkpoint: {config.checkpoint.position_file}")
    console.print(f"  delivery:   {config.delivery.base_url} ({config.delivery.mode})")
    console.print(f"  routing:    {config.routing_file}")
    for group, tables in routing.groups.items():
        console.print(f"    - {group}: {', '.join(tables)}")


@app.command()
def health(config_path: str | None = ConfigOption) -> None:
    """Check health of MySQL, Redis and the delivery endpoint."""
    config = _load(config_path)
    result = asyncio.run(check_relay_health(config))

    table = Table(title="Relay Health")
    table.add_column("Component", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")

    for c in result.components:
        style = "green" if c.status == Status.HEALTHY else "red"
        table.add_row(c.name, f"[{style}]{c.status}[/{style}]", c.detail)

    console.print(table)
    if not result.healthy:
        raise typer.Exit(1)


@app.command()
def checkpoint(config_path: str | None = ConfigOption) -> None:
    """Show the position the relay would resume from."""
    config = _load(config_path)

    async def _show() -> None:
        ctx = await build_context(config, RoutingTable({}))
        try:
            position = await ctx.checkpoints.load()
        finally:
            await ctx.close()
        if position.is_bootstrap:
            console.print("[yellow]No checkpoint — would start from scratch[/yellow]")
        else:
            console.print(
                f"[green]Resume from[/green] {position.log_name}:{position.offset}"
            )

    asyncio.run(_show())


@app.command("queue-depth")
def queue_depth(config_path: str | None = ConfigOption) -> None:
    """Show how many change records are waiting in the delivery queue."""
    config = _load(config_path)

    async def _depth() -> int | None:
        ctx = await build_context(config, RoutingTable({}))
        try:
            return await ctx.queue.depth()
        finally:
            await ctx.close()

    depth = asyncio.run(_depth())
    if depth is None:
        console.print(f"[red]Redis unavailable at {config.redis.addr}[/red]")
        raise typer.Exit(1)
    console.print(f"{config.redis.queue_key}: {depth} queued event(s)")


@app.command()
def run(config_path: str | None = ConfigOption) -> None:
    """Run the relay (binlog → queue → HTTP)."""
    config = _load(config_path)
    routing = _load_routing(config)

    from binlog_relay.pipeline.runner import Relay

    console.print(f"[yellow]Starting relay:[/yellow] {config.delivery.base_url}")
    for group, tables in routing.groups.items():
        console.print(f"  group: {group} ← {', '.join(tables)}")

    relay = Relay(config, routing=routing)
    try:
        relay.start()
    except KeyboardInterrupt:
        # The loop is already gone; shutdown ran in start()'s finally.
        console.print("[yellow]Relay interrupted[/yellow]")
