import os
from pathlib import Path
from typing import Optional

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from .types import ListenerEquality

_CONFIG_PATH = os.getenv("EMITTER_CONFIG", "emitter.toml")
_ENV_PATH = os.getenv("EMITTER_ENV", ".env")


class Settings(BaseSettings):
    """Process-wide defaults for every Emitter created in this process."""

    model_config = SettingsConfigDict(
        env_prefix="EMITTER_",
        env_nested_delimiter="__",
        toml_file=_CONFIG_PATH,
        env_file=_ENV_PATH,
        extra="ignore",
    )

    limit_warn: bool = True
    isolate_errors: bool = False
    listener_equality: ListenerEquality = ListenerEquality.IDENTITY

    log_level: Optional[str] = None
    logs_dir: Optional[Path] = None
    log_to_stdout: bool = False

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Source order: init args > OS env > .env > emitter.toml > secrets
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    def default_options(self) -> dict:
        """Option values an Emitter falls back to for anything not given."""
        return {
            "limit_warn": self.limit_warn,
            "isolate_errors": self.isolate_errors,
            "listener_equality": self.listener_equality,
        }


settings = Settings()
