"""
Client settings using Pydantic BaseSettings for environment variable management.
"""
from typing import Optional

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from polyllm.utils.logging import LOG_LEVELS


class Settings(BaseSettings):
    """Client settings with environment variable support (``POLYLLM_`` prefix)."""

    model_config = SettingsConfigDict(
        env_prefix="POLYLLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # LLM Provider Settings
    provider: str = Field(default="openai", description="LLM provider to use")
    model: str = Field(default="gpt-4o-mini", description="Model name")
    api_key: Optional[SecretStr] = Field(default=None, description="API key for the configured provider")
    endpoint: Optional[str] = Field(default=None, description="Custom endpoint for local providers")

    # Provider-specific keys, read from their conventional variable names
    openai_api_key: Optional[SecretStr] = Field(
        default=None, validation_alias=AliasChoices("POLYLLM_OPENAI_API_KEY", "OPENAI_API_KEY")
    )
    openrouter_api_key: Optional[SecretStr] = Field(
        default=None, validation_alias=AliasChoices("POLYLLM_OPENROUTER_API_KEY", "OPENROUTER_API_KEY")
    )
    zhipu_api_key: Optional[SecretStr] = Field(
        default=None, validation_alias=AliasChoices("POLYLLM_ZHIPU_API_KEY", "ZHIPU_API_KEY")
    )
    tongyi_api_key: Optional[SecretStr] = Field(
        default=None, validation_alias=AliasChoices("POLYLLM_TONGYI_API_KEY", "TONGYI_API_KEY", "DASHSCOPE_API_KEY")
    )
    lmstudio_api_key: Optional[SecretStr] = Field(
        default=None, validation_alias=AliasChoices("POLYLLM_LMSTUDIO_API_KEY", "LMSTUDIO_API_KEY")
    )

    # Generation defaults
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)

    # Pipeline
    timeout: float = Field(default=60.0, gt=0, description="HTTP timeout per attempt in seconds")
    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    retry_delay: float = Field(default=1.0, ge=0.0, description="Seconds between attempts")

    # Memory
    memory_max_tokens: Optional[int] = Field(default=None, ge=1, description="Enable bounded memory with this budget")

    # Logging
    log_level: str = Field(default="WARNING", description="Logging level")
    log_format: str = Field(default="plain", description="Log format (json/plain)")
    log_prompts: bool = Field(default=False, description="Log prompt text at DEBUG")
    log_responses: bool = Field(default=False, description="Log response text at DEBUG")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate logging level."""
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"Log level must be one of {list(LOG_LEVELS)}")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = ["json", "plain"]
        if v not in allowed:
            raise ValueError(f"Log format must be one of {allowed}")
        return v

    def get_api_key(self, provider: Optional[str] = None) -> str:
        """
        Get the API key for a provider.

        The generic ``api_key`` wins over the provider-specific one. LM Studio
        may run without a key.
        """
        provider = provider or self.provider
        if self.api_key:
            return self.api_key.get_secret_value()
        specific = getattr(self, f"{provider}_api_key", None)
        if specific:
            return specific.get_secret_value()
        if provider == "lmstudio":
            return ""
        raise ValueError(f"API key for provider '{provider}' not configured")
