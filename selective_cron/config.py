import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

_CONFIG_PATH = os.getenv("SELECTIVE_CRON_CONFIG", "config.toml")
_ENV_PATH = os.getenv("SELECTIVE_CRON_ENV", ".env")


def split_job_codes(value) -> List[str]:
    """Accept a list or a comma separated string of job codes."""
    if value is None or value == "":
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(code).strip() for code in value if str(code).strip()]


class SelectiveCronSettings(BaseModel):
    enabled: bool = False
    selected_jobs: List[str] = Field(default_factory=list)
    default_cron_expression: str = "* * * * *"
    horizon_minutes: int = Field(default=60, gt=0)
    search_window_minutes: int = Field(default=1440, gt=0)
    timezone: str = "UTC"
    ticker_enabled: bool = True
    ticker_cron: str = "* * * * *"

    @field_validator("selected_jobs", mode="before")
    @classmethod
    def _split_selected_jobs(cls, value):
        return split_job_codes(value)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SELECTIVE_CRON_",
        env_nested_delimiter="__",
        toml_file=_CONFIG_PATH,
        env_file=_ENV_PATH,
        extra="ignore",
    )

    database_url: str = "sqlite:///selective_cron.db"
    database_echo: bool = False
    master_token: Optional[str] = None

    host: str = "127.0.0.1"
    port: int = 5680
    logs_dir: Path = Field(default=Path("logs"))

    selective_cron: SelectiveCronSettings = Field(default_factory=SelectiveCronSettings)
    # Named configuration values referenced by a job's config_path
    values: Dict[str, str] = Field(default_factory=dict)
    # Host modules imported at startup so their jobs register themselves
    job_modules: List[str] = Field(default_factory=list)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Source order: init args > OS env > .env > config.toml > secrets
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Load settings, optionally from a specific TOML file."""
    if config_path is None:
        return Settings()

    class _FileSettings(Settings):
        model_config = SettingsConfigDict(toml_file=config_path)

    return _FileSettings()


settings = Settings()
