from typing import Any
from urllib.parse import quote_plus

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Default OpenAI-compatible endpoints per provider
LLM_PROVIDER_BASE_URLS: dict[str, str] = {
    "openai": "https://api.openai.com/v1",
    "deepseek": "https://api.deepseek.com/v1",
    "groq": "https://api.groq.com/openai/v1",
}


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and .env.

    The database block is the single fixed credential the agent runs with.
    """

    # API Configuration
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "SQL Agent API"
    PROJECT_DESCRIPTION: str = "Natural-language questions answered with read-only SQL"
    VERSION: str = "0.1.0"

    # PostgreSQL Database Settings
    DB_HOST: str = Field("localhost", description="PostgreSQL host")
    DB_PORT: int = Field(5432, description="PostgreSQL port")
    DB_NAME: str = Field("postgres", description="Database name")
    DB_USER: str = Field("postgres", description="Database user used by the agent")
    DB_PASSWORD: str | None = Field(None, description="Database password")
    DB_ECHO: bool = Field(False, description="Log SQL statements (debug only)")

    # Database connection pool settings
    DB_POOL_SIZE: int = Field(10, description="Connection pool size")
    DB_MAX_OVERFLOW: int = Field(20, description="Maximum pool overflow")
    DB_POOL_RECYCLE: int = Field(1800, description="Recycle connections every X seconds")
    DB_POOL_TIMEOUT: int = Field(30, description="Timeout to obtain a pooled connection")

    # Agent database objects
    SQL_AGENT_SCHEMA: str = Field("public", description="Schema the catalog reader introspects")
    SCHEMA_OVERVIEW_TABLE: str = Field("schema_table_overview", description="Pre-maintained schema summary")
    EXEC_SQL_FUNCTION: str = Field("exec_sql", description="Read-only SQL execution function")
    SQL_STATEMENT_TIMEOUT_MS: int = Field(8000, description="Statement timeout applied per query")

    # Language model
    LLM_PROVIDER: str = Field("openai", description="openai, deepseek, groq or any OpenAI-compatible API")
    LLM_API_KEY: str | None = Field(None, description="API key for the language model provider")
    LLM_BASE_URL: str | None = Field(None, description="Override the provider base URL")
    LLM_MODEL: str = Field("gpt-4o-mini", description="Chat model with tool calling support")
    LLM_TEMPERATURE: float = Field(0.2, description="Sampling temperature")
    LLM_TIMEOUT: int = Field(30, description="Request timeout for the model in seconds")
    LLM_MAX_RETRIES: int = Field(2, description="Retries for failed model requests")

    # Orchestration
    AGENT_MAX_STEPS: int = Field(15, description="Maximum model/tool round trips per request")
    AGENT_TIMEOUT_SECONDS: float = Field(30.0, description="Wall-clock ceiling for one orchestration")

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = Field(True, description="Enable per-client admission control")
    RATE_LIMIT_REQUESTS: int = Field(10, description="Requests allowed per window")
    RATE_LIMIT_WINDOW_SECONDS: int = Field(60, description="Sliding window length in seconds")
    RATE_LIMIT_BACKEND: str = Field("database", description="Request log backend: database or redis")

    # Redis Settings
    REDIS_HOST: str = Field("localhost", description="Redis host")
    REDIS_PORT: int = Field(6379, description="Redis port")
    REDIS_DB: int = Field(0, description="Redis database")
    REDIS_PASSWORD: str | None = Field(None, description="Redis password")

    # Application Settings
    DEBUG: bool = Field(False, description="Debug mode")
    ENVIRONMENT: str = Field("production", description="Runtime environment")
    CORS_ORIGINS: str = Field("", description="Comma-separated allowed CORS origins")

    # Sentry Configuration
    SENTRY_DSN: str | None = Field(None, description="Sentry DSN for error tracking")

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def __init__(self, **data: Any):
        super().__init__(**data)

    @field_validator("AGENT_MAX_STEPS", "RATE_LIMIT_REQUESTS", "RATE_LIMIT_WINDOW_SECONDS")
    @classmethod
    def validate_positive(cls, v, info):
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1")
        return v

    @field_validator("AGENT_TIMEOUT_SECONDS")
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("AGENT_TIMEOUT_SECONDS must be greater than 0")
        return v

    @field_validator("RATE_LIMIT_BACKEND")
    @classmethod
    def validate_rate_limit_backend(cls, v):
        v = v.lower()
        if v not in ("database", "redis"):
            raise ValueError("RATE_LIMIT_BACKEND must be 'database' or 'redis'")
        return v

    @field_validator("DB_POOL_SIZE")
    @classmethod
    def validate_pool_size(cls, v):
        if v < 1:
            raise ValueError("DB_POOL_SIZE must be at least 1")
        if v > 100:
            raise ValueError("DB_POOL_SIZE should not exceed 100")
        return v

    @computed_field
    @property
    def database_url(self) -> str:
        """Synchronous PostgreSQL URL (used by Alembic)."""
        return self._build_database_url("postgresql")

    @computed_field
    @property
    def async_database_url(self) -> str:
        """asyncpg URL used by the application engine."""
        return self._build_database_url("postgresql+asyncpg")

    @computed_field
    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @computed_field
    @property
    def llm_base_url_resolved(self) -> str:
        """Explicit LLM_BASE_URL wins, otherwise the provider default."""
        if self.LLM_BASE_URL:
            return self.LLM_BASE_URL
        return LLM_PROVIDER_BASE_URLS.get(self.LLM_PROVIDER.lower(), LLM_PROVIDER_BASE_URLS["openai"])

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @computed_field
    @property
    def is_development(self) -> bool:
        return self.DEBUG or self.ENVIRONMENT.lower() in ["development", "dev", "local"]

    def _build_database_url(self, driver: str) -> str:
        user = quote_plus(self.DB_USER)
        if self.DB_PASSWORD:
            password = quote_plus(self.DB_PASSWORD)
            return f"{driver}://{user}:{password}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        return f"{driver}://{user}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"


# Settings singleton
_settings_instance = None


def get_settings() -> Settings:
    """
    Return the cached settings instance.

    Avoids re-reading the environment on every call.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
