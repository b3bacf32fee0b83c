"""Two-stage intent extraction: which commands, then one query per command."""

from dataclasses import dataclass, field
from typing import Optional

import structlog

from .classifier import IntentClassifier
from .commands import QUERY_STAGE_TYPES, describe_commands, llm_vocabulary
from .exact_match import exact_search_operations
from .gateway import ModelGateway
from .prompts import PromptTemplates, format_artifacts
from .schemas import (
    IntentQueriesArgs,
    IntentTypesArgs,
    ToolArgumentsError,
    parse_tool_args,
    tool_definition,
)
from .types import Intent

logger = structlog.get_logger()

INTENT_TYPES_TOOL = tool_definition(
    "intent_types", "Ordered command types for the user's request.", IntentTypesArgs
)
INTENT_QUERIES_TOOL = tool_definition(
    "intent_queries", "One focused query per command type.", IntentQueriesArgs
)


class IntentExtractionError(Exception):
    """The model returned an unusable plan (e.g. an unknown intent type)."""


@dataclass
class ExtractionResult:
    intents: list[Intent] = field(default_factory=list)
    explanation: str = ""
    confidence: float = 0.0
    lang: Optional[str] = None
    classified: bool = False


class IntentExtractor:
    """Turns an utterance into ordered intents.

    Stage 1 picks intent types, from the classifier cache or a tool call.
    Stage 2 extracts a query per type, and is skipped when there is exactly
    one type that is not ``read`` or ``generate``.
    """

    def __init__(
        self,
        gateway: ModelGateway,
        classifier: Optional[IntentClassifier] = None,
        classified_confidence: float = 0.9,
        learn_threshold: float = 0.9,
        user_commands=None,
    ):
        self.gateway = gateway
        self.classifier = classifier
        self.classified_confidence = classified_confidence
        self.learn_threshold = learn_threshold
        self.user_commands = user_commands

    def _vocabulary(self) -> list[str]:
        extra = self.user_commands.names() if self.user_commands else []
        return llm_vocabulary(extra)

    async def extract(
        self,
        title: str,
        utterance: str,
        history: Optional[list[dict]] = None,
        artifacts: Optional[list[dict]] = None,
        lang: Optional[str] = None,
        reload: bool = False,
        ignore_classify: bool = False,
    ) -> ExtractionResult:
        text = utterance.strip()
        if exact_search_operations(text) is not None:
            return ExtractionResult(
                intents=[Intent(type="search", query=text)],
                explanation="Exact-match search.",
                confidence=1.0,
                lang=lang,
            )

        if reload and self.classifier is not None:
            self.classifier.delete_embeddings_by_value(text)

        vocabulary = self._vocabulary()
        template = None
        types = self._classify(text, vocabulary) if not (reload or ignore_classify) else None
        classified = types is not None

        if classified:
            confidence = self.classified_confidence
            explanation = f"Recognized as {', '.join(types)}."
        else:
            stage1 = await self._extract_types(title, text, history or [], artifacts or [])
            types = stage1.types
            confidence = stage1.confidence
            explanation = stage1.explanation
            template = stage1.query_template

        logger.info(
            "extract.types", title=title, types=types, confidence=confidence, classified=classified
        )

        if not types:
            return ExtractionResult([], explanation, confidence, lang, classified)

        if len(types) == 1 and types[0].split("?", 1)[0] not in QUERY_STAGE_TYPES:
            intents = [Intent(type=types[0], query=text)]
        else:
            intents, lang = await self._extract_queries(title, text, types, history or [], lang)

        if (
            not classified
            and template
            and self.classifier is not None
            and confidence >= self.learn_threshold
        ):
            self.classifier.save_embedding(template, ":".join(dict.fromkeys(types)))

        return ExtractionResult(intents, explanation, confidence, lang, classified)

    def _classify(self, text: str, vocabulary: list[str]) -> Optional[list[str]]:
        if self.classifier is None:
            return None
        label = self.classifier.classify(text)
        if not label:
            return None
        types = [t for t in label.split(":") if t]
        allowed = set(vocabulary) | {"confirm", "stop", "help"}
        if not types or any(t.split("?", 1)[0] not in allowed for t in types):
            logger.warning("extract.stale_label", label=label)
            return None
        return types

    async def _extract_types(
        self, title: str, text: str, history: list[dict], artifacts: list[dict]
    ) -> IntentTypesArgs:
        extra = self.user_commands.descriptions() if self.user_commands else {}
        system = PromptTemplates.INTENT_TYPES.format(
            commands=describe_commands(extra),
            artifacts=format_artifacts(artifacts),
            tool=INTENT_TYPES_TOOL.name,
        )
        response = await self.gateway.generate_with_tools(
            title,
            "extract_intent_types",
            messages=[*history, {"role": "user", "content": text}],
            tools=[INTENT_TYPES_TOOL],
            system=system,
            tool_choice=INTENT_TYPES_TOOL.name,
        )
        try:
            return parse_tool_args(
                response, INTENT_TYPES_TOOL, IntentTypesArgs, {"vocabulary": self._vocabulary()}
            )
        except ToolArgumentsError as e:
            raise IntentExtractionError(str(e)) from e

    async def _extract_queries(
        self, title: str, text: str, types: list[str], history: list[dict], lang: Optional[str]
    ) -> tuple[list[Intent], Optional[str]]:
        system = PromptTemplates.INTENT_QUERIES.format(
            types=", ".join(types), tool=INTENT_QUERIES_TOOL.name
        )
        response = await self.gateway.generate_with_tools(
            title,
            "extract_intent_queries",
            messages=[*history, {"role": "user", "content": text}],
            tools=[INTENT_QUERIES_TOOL],
            system=system,
            tool_choice=INTENT_QUERIES_TOOL.name,
        )
        try:
            args = parse_tool_args(response, INTENT_QUERIES_TOOL, IntentQueriesArgs)
        except ToolArgumentsError as e:
            raise IntentExtractionError(str(e)) from e

        return align_queries(types, args.intents, text), args.lang or lang


def align_queries(types: list[str], extracted: list, fallback_query: str) -> list[Intent]:
    """One intent per type, in the given order, whatever the model returned."""
    used: set[int] = set()
    intents = []
    for position, intent_type in enumerate(types):
        base = intent_type.split("?", 1)[0]
        match = None
        if (
            position < len(extracted)
            and position not in used
            and extracted[position].type.split("?", 1)[0] == base
        ):
            match = position
        else:
            for i, item in enumerate(extracted):
                if i not in used and item.type.split("?", 1)[0] == base:
                    match = i
                    break
        query = fallback_query
        if match is not None:
            used.add(match)
            query = extracted[match].query.strip() or fallback_query
        intents.append(Intent(type=intent_type, query=query))
    return intents
