"""CLI entry point for NoteSteward."""

import sys
from pathlib import Path

import click

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cli.commands.conversation import ask, chat, confirm, history, pending, reset
from cli.commands.server import serve, stop
from cli.commands.vault import index, list_commands, trash_cleanup
from cli.config import load_config_model
from cli.logging_config import setup_logging


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """NoteSteward - natural-language commands for a Markdown vault."""
    try:
        config = load_config_model()
    except ValueError as e:
        click.echo(f"Config error: {e}", err=True)
        sys.exit(1)
    setup_logging(
        json_mode=config.logging.json_mode,
        level="DEBUG" if verbose else config.logging.level,
        log_file=config.paths.log_file,
    )


for command in (
    ask,
    chat,
    confirm,
    pending,
    history,
    reset,
    stop,
    serve,
    index,
    trash_cleanup,
    list_commands,
):
    cli.add_command(command)


if __name__ == "__main__":
    cli()
