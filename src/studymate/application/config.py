from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from studymate.domain.constants import (
    DEFAULT_OPENAI_BASE_URL,
    DEFAULT_OPENAI_MODEL,
    GRADING_TIMEOUT,
    ORACLE_TIMEOUT,
    QUESTIONS_PER_CONCEPT,
)


def config_files() -> list[Path]:
    """Candidate config file locations, in priority order."""
    return [
        Path.home() / ".config/studymate/config.toml",
        Path.home() / ".studymate.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for studymate.
    Supports loading from:
    1. Environment variables (STUDYMATE_*)
    2. Config file (~/.config/studymate/config.toml or ~/.studymate.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="STUDYMATE_",
        extra="ignore",
    )

    # Oracles
    openai_api_key: str | None = None
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    openai_model: str = DEFAULT_OPENAI_MODEL
    oracle_timeout: float = Field(default=ORACLE_TIMEOUT, gt=0)
    grading_timeout: float = Field(default=GRADING_TIMEOUT, gt=0)

    # Sessions
    questions_per_concept: int = Field(default=QUESTIONS_PER_CONCEPT, ge=1)

    # Server
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    log_level: Literal["debug", "info", "warning", "error"] = "info"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # First existing config file wins
        toml_file = next((f for f in config_files() if f.exists()), None)

        # Earlier sources take precedence: overrides > env > file
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("openai_base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def lowercase_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.lower()
        return v


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/studymate/config.toml (if exists)
    3. Environment variables (STUDYMATE_*)
    4. cli_overrides (None values are ignored)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
