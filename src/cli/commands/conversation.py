"""Conversation commands: ask, chat, confirm, pending, history, reset."""

import asyncio

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components, print_messages
from observability import log_run_summary

console = Console()

DEFAULT_CONVERSATION = "Steward"

conversation_option = click.option(
    "-c", "--conversation", "title", default=DEFAULT_CONVERSATION, help="Conversation title"
)


def _run_turn(steward, title: str, text: str, **kwargs) -> str:
    before = len(steward.conversations.read_history(title))
    status = asyncio.run(steward.handle_utterance(title, text, **kwargs))
    # skip the user's own message
    print_messages(steward.conversations.read_history(title), since=before + 1)
    return status


@click.command()
@click.argument("text")
@conversation_option
@click.option("--lang", help="ISO 639-1 language of the reply")
@click.option("--reload", is_flag=True, help="Ignore and forget the cached classification")
def ask(text: str, title: str, lang: str, reload: bool):
    """Send one message to a conversation."""
    c = get_components()
    with console.status("Working..."):
        status = asyncio.run(
            c["steward"].handle_utterance(title, text, lang=lang, reload=reload)
        )
    history = c["steward"].conversations.read_history(title)
    last_user = max(i for i, m in enumerate(history) if m.role == "user")
    print_messages(history, since=last_user + 1)
    console.print(f"\n[dim]status: {status}[/]")


@click.command()
@conversation_option
def chat(title: str):
    """Interactive conversation. /quit to leave, /help for commands."""
    c = get_components()
    steward = c["steward"]
    console.print(f"[bold]Conversation:[/] {title}  [dim](/quit to exit)[/]")
    while True:
        try:
            text = console.input("\n[bold cyan]you>[/] ").strip()
        except (EOFError, KeyboardInterrupt):
            break
        if not text:
            continue
        if text in ("/quit", "/exit"):
            break
        try:
            _run_turn(steward, title, text)
        except KeyboardInterrupt:
            steward.stop()
            console.print("[yellow]Stopped.[/]")
    log_run_summary()


@click.command()
@click.argument("confirmation_id")
@click.option("--no", "declined", is_flag=True, help="Decline instead of confirming")
def confirm(confirmation_id: str, declined: bool):
    """Answer a pending confirmation by id."""
    c = get_components(with_classifier=False)
    steward = c["steward"]
    pending = {p.id: p for p in steward.router.get_pending_confirmations()}
    if confirmation_id not in pending:
        console.print(f"[yellow]No pending confirmation with id {confirmation_id}.[/]")
        return

    title = pending[confirmation_id].conversation_title
    before = len(steward.conversations.read_history(title))
    with console.status("Working..."):
        asyncio.run(steward.respond_to_confirmation(confirmation_id, not declined))
    print_messages(steward.conversations.read_history(title), since=before)


@click.command()
@click.option("-c", "--conversation", "title", default=None, help="Only this conversation")
def pending(title: str):
    """List pending confirmations."""
    c = get_components(with_classifier=False)
    items = c["steward"].router.get_pending_confirmations(title)
    if not items:
        console.print("[yellow]No pending confirmations.[/]")
        return

    table = Table(show_header=True)
    table.add_column("ID", style="cyan")
    table.add_column("Conversation")
    table.add_column("Created", style="dim")
    table.add_column("Question")
    for p in items:
        table.add_row(p.id, p.conversation_title, p.created_at[:19], p.message[:60])
    console.print(table)


@click.command()
@conversation_option
@click.option("-n", "--limit", default=20, help="Messages to show")
def history(title: str, limit: int):
    """Show a conversation's recent messages."""
    c = get_components(with_classifier=False)
    messages = c["steward"].conversations.read_history(title)
    if not messages:
        console.print(f"[yellow]No messages in {title}.[/]")
        return
    print_messages(messages, since=max(len(messages) - limit, 0))


@click.command()
@conversation_option
@click.confirmation_option(prompt="Clear artifacts, model fallback and to-do state?")
def reset(title: str):
    """Forget a conversation's artifacts, pending confirmations and model state."""
    c = get_components(with_classifier=False)
    c["steward"].reset(title)
    console.print(f"[green]Reset:[/] {title}")
