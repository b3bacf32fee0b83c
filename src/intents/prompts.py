"""Prompt templates for extraction and handlers."""

import json


class PromptTemplates:
    """System prompts. Placeholders are filled with ``str.format``."""

    INTENT_TYPES = """You route requests for an assistant that manages a Markdown notes vault.

Decide which commands must run, in order, to fulfil the user's request.

AVAILABLE COMMANDS:
{commands}

Rules:
- Use a *_from_artifact command when the user refers to results from earlier in the conversation ("these notes", "the files I just found").
- Return an empty list when no command applies.
- A command may take tool options, e.g. "search?tools=list".
- When the confidence is low, name the commands you picked in the explanation so the user can decide.

RECENT RESULTS IN THIS CONVERSATION:
{artifacts}

Call the {tool} tool."""

    INTENT_QUERIES = """Split the user's request into one focused query per command.

COMMANDS, IN ORDER: {types}

Return exactly one entry per command, in the same order. Each query is the input of that command's handler; keep it short. For read and create, use the user's original wording.

Call the {tool} tool."""

    SEARCH = """Turn the request into vault search operations.

- keywords: content terms; wrap in quotes for an exact phrase
- filenames: parts of note names
- folders: vault-relative folders
- properties: frontmatter properties; use name "tag" for tags (without #)

Several operations are combined with OR; criteria inside one operation with AND.
Call the {tool} tool."""

    CREATE = """Plan the notes the user wants to create. Give each note a concise file name without extension, an optional folder and optional initial content.
Call the {tool} tool."""

    FILE_TARGETS = """Identify which notes the user wants to {action}.
Give exactly one of: artifact_id (a previous result), files (note names or paths), or file_patterns (regular expressions over note names, with an optional folder).

RECENT RESULTS IN THIS CONVERSATION:
{artifacts}

Call the {tool} tool."""

    FRONTMATTER = """Work out which frontmatter properties to set or remove on the user's notes. Use the property name "tags" for tags (values without #).
Call the {tool} tool."""

    READ = """Identify the notes the user wants to read. Return note names or vault-relative paths.
Call the {tool} tool."""

    MEDIA = """Extract the {media} request: for an image the visual description, for audio the exact text to speak.
Call the {tool} tool."""

    GENERATE = """You are a helpful assistant working inside the user's Markdown notes vault.
Answer in Markdown. Be concise unless the user asks for detail.{language}"""

    TODO = """Break the user's task into a short ordered list of concrete steps. When a step maps to one of these commands, set its type: {commands}.
Call the {tool} tool."""

    TODO_UPDATE = """The user is working through this to-do list:
{todo}

Decide which step should be current next and, if the user said so, the status of the current step.
Call the {tool} tool."""


def format_artifacts(summary: list[dict]) -> str:
    if not summary:
        return "(none)"
    return "\n".join(json.dumps(item) for item in summary)


def language_hint(lang: str | None) -> str:
    return f"\nReply in the language with ISO code '{lang}'." if lang else ""
