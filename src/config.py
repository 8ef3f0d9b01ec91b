"""Application settings loaded from environment variables."""

import os
import tempfile
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """sqlcourier configuration. All values come from environment variables."""

    # Record stores (YAML, owned by the CRUD tooling)
    config_dir: Path = Field(default=Path.home() / ".sqlcourier")
    tasks_file: str = Field(default="tasks.yaml")
    databases_file: str = Field(default="config.yaml")
    destinations_file: str = Field(default="destinations.yaml")

    # Scheduling
    default_timezone: str = Field(default="UTC")

    # Execution
    run_once_timeout_seconds: float = Field(default=30.0)
    db_connect_timeout_seconds: int = Field(default=10)
    temp_dir: Path = Field(default=Path(tempfile.gettempdir()) / "sqlcourier")

    # Delivery
    http_timeout_seconds: float = Field(default=30.0)
    api_key_header: str = Field(default="X-API-Key")

    # systemd timer units
    systemd_unit_dir: Path = Field(default=Path("/etc/systemd/system"))
    unit_prefix: str = Field(default="sqlcourier")
    executable: str = Field(default="/usr/local/bin/sqlcourier")
    log_file: Path = Field(default=Path("/var/log/sqlcourier.log"))
    error_log_file: Path = Field(default=Path("/var/log/sqlcourier.error.log"))

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

    @property
    def tasks_path(self) -> Path:
        return self.config_dir / self.tasks_file

    @property
    def databases_path(self) -> Path:
        return self.config_dir / self.databases_file

    @property
    def destinations_path(self) -> Path:
        return self.config_dir / self.destinations_file


settings = Settings()
