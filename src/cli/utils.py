"""Shared CLI utilities."""

import sys
from pathlib import Path
from typing import Optional

import structlog
from rich.console import Console
from rich.markdown import Markdown

console = Console()
logger = structlog.get_logger()


def get_components(config_path: Optional[Path] = None, with_classifier: bool = True):
    """Initialize the steward and its collaborators from config.

    Args:
        config_path: Explicit config file (default: standard locations)
        with_classifier: If False, skip loading the ChromaDB classifier
            (for commands that never extract intents)
    """
    from cli.config import load_config_model
    from intents import build_steward

    try:
        config = load_config_model(config_path)
    except ValueError as e:
        console.print(f"[red]Config error:[/] {e}")
        sys.exit(1)

    if not with_classifier:
        config.classifier.enabled = False

    try:
        steward = build_steward(config)
    except Exception as e:
        err = str(e).lower()
        if "dimension" in err or "mismatch" in err:
            console.print(
                "[red]ChromaDB dimension mismatch, the embedding model may have changed.[/]\n"
                f"Delete {config.paths.chroma_dir} to re-seed the classifier."
            )
            sys.exit(1)
        raise

    return {"config": config, "steward": steward}


def print_messages(messages, since: int = 0) -> None:
    """Render conversation messages from index ``since`` on."""
    for message in messages[since:]:
        if message.role == "user":
            console.print(f"\n[bold cyan]you>[/] {message.content}")
            continue
        label = f"[dim]{message.command}[/] " if message.command else ""
        console.print(f"\n[bold green]steward>[/] {label}")
        console.print(Markdown(message.content))
