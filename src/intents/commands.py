"""Built-in command vocabulary."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CommandDefinition:
    name: str
    description: str
    aliases: tuple[str, ...] = ()
    available_to_llm: bool = True
    query_required: bool = True


BUILTIN_COMMANDS: tuple[CommandDefinition, ...] = (
    CommandDefinition("search", "Search notes by keywords, filenames, folders, tags or properties"),
    CommandDefinition("close", "Close the current conversation", query_required=False),
    CommandDefinition(
        "confirm",
        "Answer a pending confirmation",
        aliases=("yes", "no"),
        available_to_llm=False,
        query_required=False,
    ),
    CommandDefinition("image", "Generate an image from a description"),
    CommandDefinition("audio", "Read text aloud and save the audio", aliases=("speak",)),
    CommandDefinition("create", "Create new notes"),
    CommandDefinition(
        "stop",
        "Stop every running operation",
        aliases=("abort",),
        available_to_llm=False,
        query_required=False,
    ),
    CommandDefinition("help", "List available commands", available_to_llm=False, query_required=False),
    CommandDefinition("delete", "Delete notes given by name or pattern"),
    CommandDefinition("delete_from_artifact", "Delete the notes from the latest results"),
    CommandDefinition("copy", "Copy notes given by name or pattern to a folder"),
    CommandDefinition("copy_from_artifact", "Copy the notes from the latest results to a folder"),
    CommandDefinition("move", "Move notes given by name or pattern to a folder"),
    CommandDefinition("move_from_artifact", "Move the notes from the latest results to a folder"),
    CommandDefinition("update", "Change frontmatter properties of notes given by name or pattern"),
    CommandDefinition("update_from_artifact", "Change frontmatter properties of the latest results"),
    CommandDefinition("revert", "Undo the latest change", query_required=False),
    CommandDefinition(
        "build_search_index", "Rebuild the search index", query_required=False
    ),
    CommandDefinition("generate", "Answer, write or summarize with the language model"),
    CommandDefinition("read", "Read the content of notes"),
    CommandDefinition("todo_list", "Plan a multi-step task as a to-do list"),
    CommandDefinition("todo_list_update", "Advance or change the current to-do list"),
)

# Intents answered outside the queue
ISOLATED_COMMANDS = frozenset({"confirm", "yes", "no", "stop", "abort"})

# Multi-type extraction always runs the query stage for these
QUERY_STAGE_TYPES = frozenset({"read", "generate"})


def _alias_map() -> dict[str, str]:
    mapping = {}
    for command in BUILTIN_COMMANDS:
        mapping[command.name] = command.name
        for alias in command.aliases:
            mapping[alias] = command.name
    return mapping


ALIASES = _alias_map()


def canonical_command(name: str) -> str:
    """Map an alias (``speak``) to its command (``audio``); unknown names pass through."""
    return ALIASES.get(name, name)


def llm_vocabulary(extra: tuple[str, ...] | list[str] = ()) -> list[str]:
    names = [c.name for c in BUILTIN_COMMANDS if c.available_to_llm]
    names.extend(n for n in extra if n not in names)
    return names


def is_valid_type(intent_type: str, vocabulary: list[str]) -> bool:
    """Base name before ``?`` must be in the vocabulary."""
    base = intent_type.split("?", 1)[0].strip()
    return base in vocabulary


def describe_commands(extra: dict[str, str] | None = None) -> str:
    lines = [f"- {c.name}: {c.description}" for c in BUILTIN_COMMANDS if c.available_to_llm]
    for name, description in (extra or {}).items():
        lines.append(f"- {name}: {description}")
    return "\n".join(lines)
