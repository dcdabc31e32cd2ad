from typing import List, Optional
from pydantic import PostgresDsn, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Audience Pipeline"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/v1"
    LOG_LEVEL: str = "INFO"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "audience"
    POSTGRES_PORT: int = 5432
    # Full URL override, e.g. "sqlite+aiosqlite://" for local runs
    DATABASE_URL: Optional[str] = None

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return str(PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        ))

    # LLM providers per role: "ollama" | "openai" | "anthropic"
    LLM_PROVIDER_PRIMARY: str = "ollama"
    LLM_PROVIDER_SECONDARY: str = "ollama"
    LLM_PROVIDER_TRANSLATION: str = "ollama"

    # Ollama
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL_PRIMARY: str = "gpt-oss:20b"
    OLLAMA_MODEL_SECONDARY: str = "gemma3:12b"
    OLLAMA_MODEL_TRANSLATION: str = "gemma3:12b"

    # OpenAI
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL_PRIMARY: str = "gpt-4o"
    OPENAI_MODEL_SECONDARY: str = "gpt-4o-mini"
    OPENAI_MODEL_TRANSLATION: str = "gpt-4o-mini"

    # Anthropic
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL_PRIMARY: str = "claude-sonnet-4-5"
    ANTHROPIC_MODEL_SECONDARY: str = "claude-haiku-4-5"
    ANTHROPIC_MODEL_TRANSLATION: str = "claude-haiku-4-5"

    # Translation
    NATIVE_LANGUAGE: str = "en"
    SUPPORTED_LANGUAGES: List[str] = ["en", "ru", "uk", "de", "es", "fr"]
    DEEPL_API_KEY: Optional[str] = None
    DEEPL_API_URL: str = "https://api-free.deepl.com/v2/translate"
    TRANSLATION_TIMEOUT_SECONDS: float = 30.0
    TRANSLATION_CACHE_BACKEND: str = "database"  # "database" | "memory"

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")

settings = Settings()
