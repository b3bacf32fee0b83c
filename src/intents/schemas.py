"""Tool-call argument models. Each model is both the JSON schema sent to the
model and the validator for what comes back."""

from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator, model_validator

from llm import GenerateResponse, ToolDefinition

from .commands import is_valid_type

EXPLANATION = "A brief explanation of how you interpreted the request."
CONFIDENCE = (
    "Confidence from 0 to 1: 0.0-0.3 ambiguous, 0.4-0.7 plausible but could be read "
    "differently, 0.8-1.0 very clear."
)
EXACTLY_ONE_TARGET = "You can only provide either artifactId, files, or filePatterns."
MISSING_TARGET = "You must provide one of artifactId, files, or filePatterns."
NO_CHANGES = "No property changes were given."


class ToolArgumentsError(ValueError):
    """The model's tool call was missing or failed validation."""


# ----------------------------------------------------------------------
# Extraction
# ----------------------------------------------------------------------


class IntentTypesArgs(BaseModel):
    types: list[str] = Field(
        max_length=20, description="Intent types to execute in sequence."
    )
    explanation: str = Field(min_length=1, description=EXPLANATION)
    confidence: float = Field(ge=0, le=1, description=CONFIDENCE)
    query_template: Optional[str] = Field(
        None,
        description=(
            "The user's request with specific names, folders, tags and values replaced "
            "by generic words, e.g. 'move notes with tag to folder'."
        ),
    )

    @field_validator("types")
    @classmethod
    def validate_types(cls, v: list[str], info: ValidationInfo) -> list[str]:
        vocabulary = (info.context or {}).get("vocabulary")
        cleaned = [t.strip() for t in v]
        if vocabulary is not None:
            for t in cleaned:
                if not t or not is_valid_type(t, vocabulary):
                    raise ValueError(f"Invalid intent type: {t}.")
        return cleaned


class IntentQuery(BaseModel):
    type: str = Field(min_length=1)
    query: str = Field(
        "",
        description="Focused input for this intent. For read and create, the user's original query.",
    )


class IntentQueriesArgs(BaseModel):
    intents: list[IntentQuery] = Field(max_length=20)
    explanation: str = Field(min_length=1, description=EXPLANATION)
    lang: Optional[str] = Field(None, description="ISO 639-1 code of the user's language.")


# ----------------------------------------------------------------------
# Handlers
# ----------------------------------------------------------------------


class PropertyArg(BaseModel):
    name: str
    value: Optional[str | int | float | bool | list[str]] = None


class SearchOperationArgs(BaseModel):
    keywords: list[str] = Field(
        default_factory=list,
        description="Terms to match in note content. Wrap in quotes for an exact phrase.",
    )
    filenames: list[str] = Field(default_factory=list)
    folders: list[str] = Field(default_factory=list)
    properties: list[PropertyArg] = Field(
        default_factory=list, description="Frontmatter properties; use name 'tag' for tags."
    )


class SearchArgs(BaseModel):
    operations: list[SearchOperationArgs] = Field(min_length=1, max_length=10)
    explanation: str = Field(min_length=1, description=EXPLANATION)
    confidence: float = Field(ge=0, le=1, description=CONFIDENCE)


class NoteSpec(BaseModel):
    file_name: str = Field(min_length=1, description="Note name without extension.")
    folder: str = ""
    content: str = ""


class CreateNotesArgs(BaseModel):
    notes: list[NoteSpec] = Field(min_length=1, max_length=20)
    explanation: str = Field(min_length=1, description=EXPLANATION)
    confidence: float = Field(ge=0, le=1, description=CONFIDENCE)


class FilePatterns(BaseModel):
    patterns: list[str] = Field(min_length=1, description="Regular expressions matched against note names.")
    folder: Optional[str] = None


class FileTargetArgs(BaseModel):
    """Exactly one of artifact_id, files, file_patterns identifies the notes."""

    artifact_id: Optional[str] = Field(None, description="Id of a previous result to operate on.")
    files: Optional[list[str]] = Field(None, description="Note names or paths.")
    file_patterns: Optional[FilePatterns] = None
    explanation: str = Field(min_length=1, description=EXPLANATION)
    confidence: float = Field(1.0, ge=0, le=1, description=CONFIDENCE)

    @model_validator(mode="after")
    def exactly_one_target(self):
        given = [
            bool(self.artifact_id),
            bool(self.files),
            self.file_patterns is not None,
        ]
        if sum(given) > 1:
            raise ValueError(EXACTLY_ONE_TARGET)
        if sum(given) == 0:
            raise ValueError(MISSING_TARGET)
        return self


class DeleteArgs(FileTargetArgs):
    pass


class CopyMoveArgs(FileTargetArgs):
    destination_folder: str = Field(description="Vault-relative destination folder.")


class FrontmatterChangesArgs(FileTargetArgs):
    properties: list[PropertyArg] = Field(
        default_factory=list, description="Properties to set; use name 'tags' for tags."
    )
    remove: list[str] = Field(default_factory=list, description="Property names to remove.")

    @model_validator(mode="after")
    def has_changes(self):
        if not self.properties and not self.remove:
            raise ValueError(NO_CHANGES)
        return self


class DestinationArgs(BaseModel):
    """Destination for copy/move of earlier results."""

    destination_folder: str = Field(description="Vault-relative destination folder.")
    explanation: str = Field(min_length=1, description=EXPLANATION)
    confidence: float = Field(1.0, ge=0, le=1, description=CONFIDENCE)


class PropertyChangesArgs(BaseModel):
    """Property changes for earlier results."""

    properties: list[PropertyArg] = Field(default_factory=list)
    remove: list[str] = Field(default_factory=list)
    explanation: str = Field(min_length=1, description=EXPLANATION)
    confidence: float = Field(1.0, ge=0, le=1, description=CONFIDENCE)

    @model_validator(mode="after")
    def has_changes(self):
        if not self.properties and not self.remove:
            raise ValueError(NO_CHANGES)
        return self


class ReadTargetsArgs(BaseModel):
    notes: list[str] = Field(min_length=1, max_length=10, description="Note names or paths to read.")
    explanation: str = Field(min_length=1, description=EXPLANATION)
    confidence: float = Field(ge=0, le=1, description=CONFIDENCE)


class MediaPromptArgs(BaseModel):
    text: str = Field(min_length=1, description="Image description or text to speak.")
    explanation: str = Field(min_length=1, description=EXPLANATION)
    confidence: float = Field(ge=0, le=1, description=CONFIDENCE)


class TodoStepArg(BaseModel):
    task: str = Field(min_length=1)
    type: Optional[str] = Field(None, description="Intent type that performs this step, if any.")


class TodoStepsArgs(BaseModel):
    steps: list[TodoStepArg] = Field(min_length=1, max_length=20)
    explanation: str = Field(min_length=1, description=EXPLANATION)


class TodoUpdateArgs(BaseModel):
    current_step: Optional[int] = Field(None, description="1-based step to make current.")
    step_status: Optional[Literal["in_progress", "skipped", "completed"]] = Field(
        None, description="New status of the current step."
    )
    explanation: str = Field(min_length=1, description=EXPLANATION)


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------


def tool_definition(name: str, description: str, model: type[BaseModel]) -> ToolDefinition:
    return ToolDefinition(name=name, description=description, input_schema=model.model_json_schema())


def format_validation_error(e: ValidationError) -> str:
    messages = []
    for err in e.errors():
        msg = err["msg"].removeprefix("Value error, ")
        loc = ".".join(str(p) for p in err["loc"])
        messages.append(msg if not loc or err["type"] == "value_error" else f"{loc}: {msg}")
    return " ".join(dict.fromkeys(messages))


def parse_tool_args(
    response: GenerateResponse,
    tool: ToolDefinition,
    model: type[BaseModel],
    context: Optional[dict] = None,
):
    """Validate the arguments of the ``tool`` call in ``response``."""
    call = response.first_call(tool.name)
    if call is None:
        raise ToolArgumentsError(response.content or f"The model did not call {tool.name}.")
    try:
        return model.model_validate(call.arguments, context=context)
    except ValidationError as e:
        raise ToolArgumentsError(format_validation_error(e)) from e
