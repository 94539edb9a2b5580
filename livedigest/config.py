from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from livedigest.pipeline_config import PROVIDER_URLS, CompletionProvider, SummaryPolicy

DEFAULT_CONFIG_FILE = "config.toml"


class SystemConfig(BaseModel):
    """Prompt templates for one recognised source key."""

    key: str
    initial_prompt: str = "Summarize this transcription: {transcription}"
    update_prompt: str = (
        "Here is text summary:\n{summary}\n"
        "Please update this summary with new information from this transcription:\n"
        "{transcription}"
    )


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables, a .env file and a TOML file
    named by ``CONFIG_FILE`` (``config.toml`` by default), in that order of
    precedence. Source keys and their prompts live in the TOML ``[[systems]]``
    tables.
    """

    # Completion API
    completion_provider: CompletionProvider = CompletionProvider.OPENAI
    completion_api_url: str = PROVIDER_URLS[CompletionProvider.OPENAI]
    completion_model: str = "gpt-3.5-turbo"
    completion_timeout: float = 120.0
    completion_max_tokens: int = 1024
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # Webhook
    webhook_url: str = ""
    webhook_template: str = '{"summary":"{summary}"}'
    webhook_content_type: str = "application/json"
    webhook_timeout: float = 10.0

    # Speech model
    whisper_model: str = "base.en"
    whisper_device: str = "auto"
    whisper_compute_type: str = "int8"
    whisper_language: str = "en"

    # Supabase (optional durable state; in-memory when unset)
    supabase_url: str = ""
    supabase_key: str = ""

    # Summary state
    summary_policy: SummaryPolicy = SummaryPolicy.IMMEDIATE
    batch_interval_seconds: float = 60.0
    sweep_interval_seconds: float = 60.0
    inactivity_threshold_seconds: float = 3600.0

    # App config
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    systems: list[SystemConfig] = [SystemConfig(key="default")]

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        toml_file = os.getenv("CONFIG_FILE", DEFAULT_CONFIG_FILE)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            file_secret_settings,
        )

    def system(self, key: str) -> SystemConfig | None:
        """Return the prompt configuration for ``key``, or None if unknown."""
        for system in self.systems:
            if system.key == key:
                return system
        return None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide Settings, loaded once.

    An unreadable .env file is skipped; environment variables, the TOML file
    and defaults still apply.
    """
    try:
        return Settings()
    except Exception:
        return Settings(_env_file=None)  # type: ignore[call-arg]


settings = get_settings()
