"""CLI entry point for the agents."""

import logging

import click
from dotenv import load_dotenv


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output.")
def cli(verbose: bool) -> None:
    """Personal-productivity agents — list and run them."""
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # The HTTP and MCP clients log every request at INFO.
    for noisy in ("httpx", "mcp"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# Import and register commands after cli is defined to avoid circular imports.
from chief_of_staff.cli.commands import list_agents, run, schedule  # noqa: E402

cli.add_command(list_agents)
cli.add_command(run)
cli.add_command(schedule)
