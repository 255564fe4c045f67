"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
See .env.example for required variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant for customer support. "
    "Be concise, friendly, and professional. "
    "Keep responses under 50 words for voice chat."
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ==========================================================================
    # API Keys
    # ==========================================================================
    deepgram_api_key: SecretStr | None = Field(
        default=None, description="Deepgram API key for STT"
    )
    gemini_api_key: SecretStr | None = Field(
        default=None, description="Google Gemini API key for chat completion"
    )
    groq_api_key: SecretStr | None = Field(
        default=None, description="Groq API key (alternative LLM provider)"
    )

    # ==========================================================================
    # Security
    # ==========================================================================
    jwt_secret: SecretStr = Field(description="Secret used to verify bearer tokens")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")

    # ==========================================================================
    # Providers
    # ==========================================================================
    llm_provider: Literal["auto", "gemini", "groq", "fallback"] = Field(
        default="auto",
        description="Response generator routing strategy",
    )
    deepgram_model: str = Field(default="nova-2", description="Deepgram model name")
    stt_language: str = Field(default="en", description="Primary transcription language")
    gemini_model: str = Field(default="gemini-2.5-flash", description="Gemini model name")
    groq_model: str = Field(
        default="llama-3.3-70b-versatile", description="Groq model name"
    )
    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        description="System instruction prepended to every generation request",
    )

    # ==========================================================================
    # Voice Pipeline
    # ==========================================================================
    history_max_messages: int = Field(
        default=10,
        ge=1,
        description="Sliding window size of conversation history",
    )
    min_audio_bytes: int = Field(
        default=1000,
        ge=0,
        description="Audio payloads below this size are rejected as empty/corrupt",
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_json: bool = Field(
        default=False, description="Write file logs as JSON lines instead of text"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )
    cors_origins: list[str] = Field(
        default_factory=list,
        description="Allowed CORS origins (all origins allowed in debug mode)",
    )

    # ==========================================================================
    # Derived Properties
    # ==========================================================================
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def resolved_llm_provider(self) -> Literal["gemini", "groq", "fallback"]:
        """Resolve the 'auto' strategy against configured keys."""
        if self.llm_provider != "auto":
            return self.llm_provider
        if self.gemini_api_key and self.gemini_api_key.get_secret_value():
            return "gemini"
        if self.groq_api_key and self.groq_api_key.get_secret_value():
            return "groq"
        return "fallback"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Use dependency injection in FastAPI:
        settings: Settings = Depends(get_settings)
    """
    return Settings()  # type: ignore[call-arg]  # loads from env
