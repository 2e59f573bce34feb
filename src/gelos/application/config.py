from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class AppConfig(BaseSettings):
    """
    Configuration model for gelos.
    Supports loading from:
    1. Environment variables (GELOS_*)
    2. Config file (~/.config/gelos/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="GELOS_",
        extra="ignore",
    )

    # Storage
    backend: Literal["auto", "yaml", "postgrest", "memory"] = "auto"
    deck_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/gelos/decks")
    postgrest_url: str | None = None
    postgrest_key: str | None = None
    learner_id: str = "local"

    # Study
    seed: int | None = None  # fixed shuffle order, mostly for demos

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

        # First existing file wins
        toml_file = next((f for f in _config_files() if f.exists()), None)

        # Earlier sources take priority: CLI overrides, then env, then TOML
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("deck_dir", mode="before")
    @classmethod
    def resolve_path(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("postgrest_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: Any) -> str | None:
        if not v:
            return None
        return str(v).rstrip("/")


def _config_files() -> list[Path]:
    # Path.home() is re-read so tests can point HOME at a temp dir
    return [
        Path.home() / ".config/gelos/config.toml",
        Path.home() / ".gelos.toml",
    ]


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/gelos/config.toml (if exists)
    3. Environment variables (GELOS_*)
    4. cli_overrides (passed from Typer), None values ignored
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
