"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """Process configuration. Task definitions live in the JSON config file."""

    # Task config file (tasks, built-in jobs, stats)
    config_path: Path = Field(default=Path("data/autotask.json"))

    # OneBot HTTP API
    onebot_api_url: str = Field(default="http://127.0.0.1:3000")
    onebot_access_token: str = Field(default="")
    onebot_timeout_seconds: float = Field(default=20.0)

    # Scheduler (empty → system local time)
    scheduler_timezone: str = Field(default="")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)


settings = Settings()
