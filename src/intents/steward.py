"""Steward facade: utterance -> extraction -> router, and component wiring."""

import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

import structlog

from cli.config_models import StewardConfig
from llm import LLMProvider, MediaGenerator, create_llm_provider, parse_model_id
from observability import metrics
from shared_types import IntentResultStatus, MessageRole
from vault import ConversationStore, NoteStore, TrashService, VaultSearchIndex

from .abort import AbortRegistry, OperationAborted
from .artifacts import ArtifactStore
from .classifier import IntentClassifier
from .confirmations import ConfirmationBroker
from .events import ConversationEvents
from .extractor import IntentExtractionError, IntentExtractor
from .fallback import ModelFallbackService
from .gateway import ModelCallError, ModelGateway
from .handlers import HandlerServices, build_handlers, parse_confirmation
from .router import CommandRouter
from .state_store import StateStore
from .todo import TodoListService
from .types import Intent, IntentBatch
from .user_commands import UserCommandRegistry

logger = structlog.get_logger()


@dataclass
class Steward:
    """Entry point for the CLI and the HTTP API."""

    config: StewardConfig
    services: HandlerServices
    router: CommandRouter
    extractor: IntentExtractor
    events: ConversationEvents
    state: StateStore
    fallback: ModelFallbackService

    @property
    def conversations(self) -> ConversationStore:
        return self.services.conversations

    async def handle_utterance(
        self,
        title: str,
        text: str,
        lang: Optional[str] = None,
        reload: bool = False,
        ignore_classify: bool = False,
    ) -> IntentResultStatus:
        """Record the user's message, work out the intents and run them."""
        text = text.strip()
        if not text:
            raise ValueError("Empty message")
        self.conversations.append_message(title, text, role=MessageRole.USER)
        metrics.counter("steward.utterances")

        if text.startswith("/"):
            return await self._run_command(title, text, lang)

        if self.router.get_pending_confirmations(title) and parse_confirmation(text) is not None:
            return await self.router.process_intents(
                IntentBatch(
                    title, [Intent(type="confirm", query=text)], original_query=text, lang=lang
                )
            )

        history = self.conversations.history_for_llm(title, self.config.llm.history_limit)[:-1]
        try:
            result = await self.extractor.extract(
                title,
                text,
                history=history,
                artifacts=self.services.artifacts.summarize(title),
                lang=lang,
                reload=reload,
                ignore_classify=ignore_classify,
            )
        except (IntentExtractionError, ModelCallError, OperationAborted) as e:
            logger.warning("steward.extraction_failed", title=title, error=str(e))
            message = "Operation aborted." if isinstance(e, OperationAborted) else str(e)
            self._post(title, f"I couldn't work out what to do: {message}")
            return IntentResultStatus.ERROR

        intents = result.intents or [Intent(type="generate", query=text)]
        if self.config.extraction.show_explanation and result.explanation:
            self.conversations.append_message(
                title, f"_{result.explanation}_", role=MessageRole.ASSISTANT, in_history=False
            )
        return await self.router.process_intents(
            IntentBatch(
                title=title,
                intents=intents,
                original_query=text,
                lang=result.lang or lang,
                confidence=result.confidence if result.intents else None,
                explanation=result.explanation,
            )
        )

    async def _run_command(self, title: str, text: str, lang: Optional[str]) -> IntentResultStatus:
        """``/name rest of line`` runs one command directly, skipping extraction."""
        name, _, query = text[1:].partition(" ")
        intent = Intent(type=name.strip().lower(), query=query.strip())
        if self.router.handler_for(intent) is None:
            self._post(title, f"Unknown command: /{intent.type}. Type /help for the list.")
            return IntentResultStatus.ERROR
        return await self.router.process_intents(
            IntentBatch(title=title, intents=[intent], original_query=query.strip(), lang=lang)
        )

    async def respond_to_confirmation(self, confirmation_id: str, confirmed: bool) -> bool:
        return await self.router.respond_to_confirmation(confirmation_id, confirmed)

    def stop(self) -> int:
        return self.services.aborts.cancel_all()

    def reset(self, title: str) -> None:
        """Forget everything the conversation has accumulated, except its messages."""
        self.router.clear(title)
        self.services.artifacts.clear(title)
        self.fallback.clear_state(title)
        self.services.todo.clear(title)
        logger.info("steward.reset", title=title)

    def _post(self, title: str, text: str) -> None:
        self.conversations.append_message(title, text, role=MessageRole.ASSISTANT)


def provider_factory(config: StewardConfig) -> Callable[[str], LLMProvider]:
    """Build providers for ``provider:model`` ids.

    The configured API key only applies to the configured provider; other
    providers in a fallback chain read their key from the environment.
    """
    configured = config.llm.provider if config.llm.provider != "auto" else None

    def factory(model_id: str) -> LLMProvider:
        provider, _ = parse_model_id(model_id)
        provider = provider or configured
        api_key = config.llm.api_key if provider is None or provider == configured else None
        return create_llm_provider(provider=provider, api_key=api_key, model=model_id)

    return factory


def build_steward(
    config: StewardConfig,
    provider_factory_fn: Optional[Callable[[str], LLMProvider]] = None,
    classifier: Optional[IntentClassifier] = None,
    media: Optional[MediaGenerator] = None,
) -> Steward:
    """Wire every component from config. Arguments override the defaults for tests."""
    paths = config.paths
    notes = NoteStore(paths.vault_dir)
    conversations = ConversationStore(notes, paths.conversations_folder)
    state = StateStore(paths.state_db)
    events = ConversationEvents()
    aborts = AbortRegistry()
    artifacts = ArtifactStore(state)
    fallback = ModelFallbackService(
        state,
        config.model_fallback.fallback_chain,
        enabled=config.model_fallback.enabled,
        conversations=conversations,
    )
    gateway = ModelGateway(
        config.llm.model,
        fallback,
        aborts,
        provider_factory_fn or provider_factory(config),
        retry_config=config.retry,
        max_tokens=config.llm.max_tokens,
    )
    confirmations = ConfirmationBroker(state, events, conversations=conversations)

    user_commands = None
    if config.commands.enabled:
        user_commands = UserCommandRegistry(notes.vault_dir / paths.commands_folder)
        user_commands.load()

    if classifier is None and config.classifier.enabled:
        classifier = IntentClassifier(
            paths.chroma_dir,
            collection_name=config.classifier.collection,
            similarity_threshold=config.classifier.similarity_threshold,
        )

    if media is None and os.getenv("OPENAI_API_KEY"):
        media = MediaGenerator(
            image_model=config.media.image_model,
            speech_model=config.media.speech_model,
            voice=config.media.voice,
        )

    services = HandlerServices(
        config=config,
        notes=notes,
        conversations=conversations,
        artifacts=artifacts,
        gateway=gateway,
        trash=TrashService(notes, paths.trash_folder),
        search_index=VaultSearchIndex(
            paths.search_db, notes, exclude=(paths.steward_folder,)
        ),
        todo=TodoListService(state, conversations),
        aborts=aborts,
        confirmations=confirmations,
        media=media,
        user_commands=user_commands,
    )
    router = CommandRouter(
        services,
        build_handlers(services, events=events),
        state,
        confirmations,
        events,
        confidence_threshold=config.extraction.confidence_threshold,
    )
    extractor = IntentExtractor(
        gateway,
        classifier=classifier,
        classified_confidence=config.extraction.classified_confidence,
        learn_threshold=config.extraction.learn_threshold,
        user_commands=user_commands,
    )
    logger.info(
        "steward.ready",
        vault=str(notes.vault_dir),
        model=config.llm.model,
        classifier=classifier is not None,
        media=media is not None,
    )
    return Steward(
        config=config,
        services=services,
        router=router,
        extractor=extractor,
        events=events,
        state=state,
        fallback=fallback,
    )
