"""Vault maintenance commands: index, trash-cleanup, commands."""

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components

console = Console()


@click.command()
@click.option("--full", is_flag=True, help="Drop and rebuild instead of an incremental sync")
def index(full: bool):
    """Sync the full-text search index with the vault."""
    c = get_components(with_classifier=False)
    search_index = c["steward"].services.search_index
    with console.status("Indexing vault..."):
        if full:
            updated, removed = search_index.rebuild(), 0
        else:
            updated, removed = search_index.sync()
    console.print(f"[green]Indexed:[/] {updated} updated, {removed} removed")
    console.print(f"Total notes: {search_index.count()}")


@click.command("trash-cleanup")
@click.option("--days", type=int, default=None, help="Retention in days (default from config)")
def trash_cleanup(days: int):
    """Permanently delete trashed notes older than the retention period."""
    c = get_components(with_classifier=False)
    retention = days if days is not None else c["config"].trash.retention_days
    removed = c["steward"].services.trash.cleanup(retention)
    console.print(f"[green]Removed[/] {removed} trashed note(s) older than {retention} days")


@click.command("commands")
def list_commands():
    """List built-in and user-defined commands."""
    from intents.commands import BUILTIN_COMMANDS

    c = get_components(with_classifier=False)
    table = Table(show_header=True)
    table.add_column("Command", style="cyan")
    table.add_column("Aliases", style="dim")
    table.add_column("Source")
    table.add_column("Description")
    for command in BUILTIN_COMMANDS:
        table.add_row(command.name, ", ".join(command.aliases), "built-in", command.description)

    registry = c["steward"].services.user_commands
    if registry is not None:
        for name, description in registry.descriptions().items():
            table.add_row(name, "", "user", description)
    console.print(table)
