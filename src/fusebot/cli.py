"""
CLI — entry point for fusebot.

Commands:
    fusebot run    — post the message and wait for delete or timeout
"""

from __future__ import annotations

import asyncio
import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler

from fusebot import __version__

console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # slack_sdk logs every frame at DEBUG
    logging.getLogger("slack_sdk").setLevel(logging.INFO if verbose else logging.WARNING)


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """fusebot — a Slack message with a delete button and a fuse."""
    pass


@main.command()
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False),
    default=".env",
    show_default=True,
    help="Optional dotenv file read before the environment",
)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def run(env_file: str, verbose: bool) -> None:
    """Post the message, then exit on delete, timeout or disconnect."""
    from fusebot.config import ConfigError, load_config
    from fusebot.lifecycle import EXIT_FAILURE, run_notice

    _setup_logging(verbose)

    try:
        config = load_config(env_file=env_file)
    except ConfigError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(EXIT_FAILURE)

    sys.exit(asyncio.run(run_notice(config)))


if __name__ == "__main__":
    main()
