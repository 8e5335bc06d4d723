from __future__ import annotations

import structlog
from dependency_injector import containers, providers

from core.settings import SETTINGS
from infra.resources import DatabaseResource, OpenAIResource

logger = structlog.get_logger("assistant")


def storage_backend() -> str:
    return "database" if SETTINGS.DATABASE.USE_DATABASE else "memory"


def completion_backend() -> str:
    return "openai" if SETTINGS.OPENAI.OPENAI_API_KEY.get_secret_value() else "offline"


class InfrastructureContainer(containers.DeclarativeContainer):
    config = providers.Configuration()
    settings = providers.Object(SETTINGS)
    logger = providers.Object(logger)

    # Database
    database = providers.Resource(
        DatabaseResource,
        database_url=str(SETTINGS.DATABASE.DATABASE_URL),
    )

    # Model endpoint (client stays unset without an API key)
    openai = providers.Resource(
        OpenAIResource,
        api_key=SETTINGS.OPENAI.OPENAI_API_KEY.get_secret_value(),
        base_url=SETTINGS.OPENAI.OPENAI_BASE_URL,
        timeout=SETTINGS.CHAT.CHAT_COMPLETION_TIMEOUT_SECONDS,
    )


class ServiceContainer(containers.DeclarativeContainer):
    """Gateways and session wiring - depends on infrastructure."""

    infrastructure = providers.DependenciesContainer()

    in_memory_store = providers.Singleton(
        "infra.gateways.in_memory.InMemoryStore",
    )

    persistence = providers.Selector(
        storage_backend,
        database=providers.Singleton(
            "api.features.conversation.service.ConversationService",
            database=infrastructure.database,
        ),
        memory=in_memory_store,
    )

    memory = providers.Selector(
        storage_backend,
        database=providers.Singleton(
            "api.features.memory.service.MemoryService",
            database=infrastructure.database,
        ),
        memory=in_memory_store,
    )

    offline_completion = providers.Singleton(
        "infra.gateways.offline_completion.OfflineCompletionGateway",
    )

    completion = providers.Selector(
        completion_backend,
        openai=providers.Singleton(
            "infra.gateways.openai_completion.OpenAICompletionGateway",
            resource=infrastructure.openai,
            model=SETTINGS.OPENAI.OPENAI_MODEL,
            temperature=SETTINGS.OPENAI.OPENAI_TEMPERATURE,
            max_tokens=SETTINGS.OPENAI.OPENAI_MAX_TOKENS,
        ),
        offline=offline_completion,
    )

    title_completion = providers.Selector(
        completion_backend,
        openai=providers.Singleton(
            "infra.gateways.openai_completion.OpenAICompletionGateway",
            resource=infrastructure.openai,
            model=SETTINGS.OPENAI.OPENAI_TITLE_MODEL,
            temperature=0.3,
            max_tokens=20,
        ),
        offline=offline_completion,
    )

    notifier = providers.Singleton("chat.gateways.LoggingNotifier")

    chat_session = providers.Factory(
        "chat.session.ChatSession",
        persistence=persistence,
        memory=memory,
        completion=completion,
        title_completion=title_completion,
        notifier=notifier,
        settings=SETTINGS.CHAT,
    )

    session_registry = providers.Singleton(
        "api.features.chat.service.SessionRegistry",
        session_factory=chat_session.provider,
        max_sessions=SETTINGS.CHAT.CHAT_MAX_SESSIONS,
    )


class ControllerContainer(containers.DeclarativeContainer):
    """Controller-specific dependencies."""

    services = providers.DependenciesContainer()

    conversation_controller = providers.Factory(
        "api.features.conversation.controller.ConversationController",
        persistence=services.persistence,
    )

    memory_controller = providers.Factory(
        "api.features.memory.controller.MemoryController",
        memory=services.memory,
        context_limit=SETTINGS.CHAT.CHAT_MEMORY_CONTEXT_LIMIT,
        context_max_chars=SETTINGS.CHAT.CHAT_MEMORY_CONTEXT_MAX_CHARS,
    )

    chat_controller = providers.Factory(
        "api.features.chat.controller.ChatController",
        registry=services.session_registry,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Main application container composing all sub-containers."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "api.main",
            "api.features.conversation.router",
            "api.features.memory.router",
            "api.features.chat.router",
        ]
    )

    infrastructure = providers.Container(InfrastructureContainer)
    services = providers.Container(ServiceContainer, infrastructure=infrastructure)
    controllers = providers.Container(ControllerContainer, services=services)
