"""CLI command implementations — all commands resolve agents through the registry."""

from __future__ import annotations

import asyncio
import logging
import signal

import click
from rich import box
from rich.console import Console
from rich.table import Table

from chief_of_staff.agents.base import AgentSpec
from chief_of_staff.agents.registry import AGENTS, get_agent_spec
from chief_of_staff.agents.scheduler import create_agent_scheduler

logger = logging.getLogger(__name__)
console = Console(width=200)


def _resolve(ctx: click.Context, agent_name: str) -> AgentSpec:
    spec = get_agent_spec(agent_name)
    if spec is None:
        console.print(f"[red]Error: agent {agent_name!r} not found.[/red]")
        console.print("Use `agents list` to see available agents.")
        ctx.exit(1)
    return spec


@click.command(name="list")
def list_agents() -> None:
    """List all available agents."""
    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("Agent", style="bold")
    table.add_column("Description")
    for spec in AGENTS.values():
        table.add_row(spec.name, spec.description)
    console.print(table)


@click.command()
@click.argument("agent_name")
@click.pass_context
def run(ctx: click.Context, agent_name: str) -> None:
    """Run one agent by name."""
    spec = _resolve(ctx, agent_name)
    console.print(f"\nRunning agent: [bold]{spec.name}[/bold]")
    console.print(f"[dim]{spec.description}[/dim]\n")

    try:
        agent = spec.factory()
        asyncio.run(agent.run())
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted.[/yellow]")
        ctx.exit(130)
    except Exception as exc:  # noqa: BLE001
        logger.debug("Agent %s failed", spec.name, exc_info=True)
        console.print(f"\n[red]Agent {spec.name!r} failed: {exc}[/red]")
        ctx.exit(1)

    console.print(f"\n[green]Agent {spec.name!r} completed successfully.[/green]")


@click.command()
@click.argument("agent_name")
@click.option("--at", "at_time", default=None, help="Daily run time, HH:MM (default: $AGENT_SCHEDULE_TIME or 07:00).")
@click.pass_context
def schedule(ctx: click.Context, agent_name: str, at_time: str | None) -> None:
    """Run an agent every day at a fixed time until interrupted."""
    spec = _resolve(ctx, agent_name)
    try:
        asyncio.run(_schedule_async(spec, at_time))
    except KeyboardInterrupt:
        console.print("[yellow]Scheduler stopped.[/yellow]")


async def _schedule_async(spec: AgentSpec, at_time: str | None) -> None:
    scheduler = create_agent_scheduler(spec, at_time)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)
    except (NotImplementedError, AttributeError):
        pass

    scheduler.start()
    console.print(f"Scheduled [bold]{spec.name}[/bold]; press Ctrl+C to stop.")
    try:
        await stop.wait()
    finally:
        scheduler.shutdown(wait=False)
