"""User-defined commands loaded from YAML files in the vault.

Example ``Steward/Commands/clean_up.yaml``::

    command_name: clean_up
    description: Archive draft notes
    track_progress: true
    steps:
      - name: search
        query: "#draft $from_user"
      - name: move_from_artifact
        query: Archive
        no_confirm: true
"""

from pathlib import Path
from typing import Optional

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .commands import ALIASES

logger = structlog.get_logger()

FROM_USER = "$from_user"


class UserCommandStep(BaseModel):
    name: str = Field(min_length=1)
    query: str = ""
    task: Optional[str] = None
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    no_confirm: bool = False


class UserCommandDefinition(BaseModel):
    command_name: str = Field(min_length=1)
    description: str = ""
    query_required: bool = False
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    track_progress: bool = False
    steps: list[UserCommandStep] = Field(min_length=1)

    @field_validator("command_name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        name = v.strip().lstrip("/").lower().replace(" ", "_")
        if not name:
            raise ValueError("command_name is empty")
        return name


class UserCommandRegistry:
    """Reads ``*.yaml``/``*.yml`` definitions from a folder; invalid files are skipped."""

    def __init__(self, folder: Path | str):
        self.folder = Path(folder)
        self._commands: dict[str, UserCommandDefinition] = {}

    def load(self) -> int:
        commands: dict[str, UserCommandDefinition] = {}
        if self.folder.is_dir():
            for path in sorted([*self.folder.glob("*.yaml"), *self.folder.glob("*.yml")]):
                try:
                    with open(path) as f:
                        data = yaml.safe_load(f) or {}
                    definition = UserCommandDefinition.model_validate(data)
                except (OSError, yaml.YAMLError, ValidationError) as e:
                    logger.warning("user_command.invalid", path=str(path), error=str(e))
                    continue
                if definition.command_name in commands:
                    logger.warning("user_command.duplicate", name=definition.command_name)
                    continue
                commands[definition.command_name] = definition
        self._commands = commands
        logger.info("user_commands.loaded", count=len(commands), folder=str(self.folder))
        return len(commands)

    def add(self, definition: UserCommandDefinition) -> None:
        self._commands[definition.command_name] = definition

    def get(self, name: str) -> Optional[UserCommandDefinition]:
        return self._commands.get(name)

    def names(self) -> list[str]:
        return list(self._commands)

    def descriptions(self) -> dict[str, str]:
        return {name: d.description or "User-defined command" for name, d in self._commands.items()}

    def shadows_builtin(self, name: str) -> bool:
        return name in self._commands and name in ALIASES

