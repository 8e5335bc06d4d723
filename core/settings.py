from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, PostgresDsn, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CustomSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


class AppSettings(CustomSettings):
    ENVIRONMENT: Literal["local", "dev", "prod", "test"] = Field(default="local")
    LOG_LEVEL: str = Field(default="INFO")
    JSON_LOGS: bool = Field(default=True)


class PgDbSettings(CustomSettings):
    USE_DATABASE: bool = Field(default=False)
    POSTGRES_ENGINE: str = Field(default="postgresql+asyncpg")
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: SecretStr = Field(default="postgres")
    POSTGRES_DB: str = Field(default="assistant")
    POSTGRES_HOST: str = Field(default="localhost")
    POSTGRES_PORT: int = Field(default=5432)
    DATABASE_URL: PostgresDsn | str = Field(default="")

    @model_validator(mode="before")
    def validate_postgres_dsn(cls, data: dict):
        if isinstance(data, dict) and not data.get("DATABASE_URL"):
            _built_uri = PostgresDsn.build(
                scheme=data.get("POSTGRES_ENGINE", "postgresql+asyncpg"),
                username=data.get("POSTGRES_USER", "postgres"),
                password=data.get("POSTGRES_PASSWORD", "postgres"),
                host=data.get("POSTGRES_HOST", "localhost"),
                port=int(data.get("POSTGRES_PORT", 5432)),
                path=data.get("POSTGRES_DB", "assistant"),
            ).unicode_string()
            data["DATABASE_URL"] = _built_uri
        return data


class OpenAISettings(CustomSettings):
    """Configuration for the OpenAI-compatible completion endpoint.

    Env vars:
    - OPENAI_API_KEY (empty key switches to the offline completion gateway)
    - OPENAI_BASE_URL
    - OPENAI_MODEL
    - OPENAI_TITLE_MODEL
    """

    OPENAI_API_KEY: SecretStr = Field(default="")
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1")
    OPENAI_MODEL: str = Field(default="gpt-4o-mini")
    OPENAI_TITLE_MODEL: str = Field(default="gpt-4o-mini")
    OPENAI_TEMPERATURE: float = Field(default=0.7)
    OPENAI_MAX_TOKENS: int = Field(default=500)


class ChatSettings(CustomSettings):
    """Tuning for the conversation engine.

    Set via env vars (optional):
    - CHAT_CONTEXT_WINDOW
    - CHAT_PLACEHOLDER_TITLE
    - CHAT_TITLE_MAX_LENGTH
    - CHAT_MEMORY_CONTEXT_LIMIT
    - CHAT_MEMORY_CONTEXT_MAX_CHARS
    - CHAT_TRANSCRIPT_READ_LIMIT
    - CHAT_GATEWAY_TIMEOUT_SECONDS
    - CHAT_COMPLETION_TIMEOUT_SECONDS
    - CHAT_READ_RETRIES
    - CHAT_MAX_SESSIONS
    """

    CHAT_CONTEXT_WINDOW: int = Field(default=5, ge=0)
    CHAT_PLACEHOLDER_TITLE: str = Field(default="New Conversation")
    CHAT_TITLE_MAX_LENGTH: int = Field(default=50, ge=1)
    CHAT_MEMORY_CONTEXT_LIMIT: int = Field(default=10, ge=1)
    CHAT_MEMORY_CONTEXT_MAX_CHARS: int = Field(default=2000, ge=64)
    CHAT_TRANSCRIPT_READ_LIMIT: int = Field(default=100, ge=1)
    CHAT_CONVERSATION_LIST_LIMIT: int = Field(default=20, ge=1)
    CHAT_GATEWAY_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    CHAT_COMPLETION_TIMEOUT_SECONDS: float = Field(default=60.0, gt=0)
    CHAT_READ_RETRIES: int = Field(default=1, ge=0, le=1)
    CHAT_MAX_SESSIONS: int = Field(default=1000, ge=1)


class Settings(BaseModel):
    APP: AppSettings = Field(default_factory=AppSettings)
    DATABASE: PgDbSettings = Field(default_factory=PgDbSettings)
    OPENAI: OpenAISettings = Field(default_factory=OpenAISettings)
    CHAT: ChatSettings = Field(default_factory=ChatSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()


SETTINGS = get_settings()
