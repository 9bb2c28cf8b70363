"""Configuration management for lancenter.

Loads settings from a YAML configuration file with environment variable
overrides for sensitive values (SSH password). Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/lancenter.yaml")


class ServerConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080, ge=1, le=65535)
    static_dir: str | None = Field(default=None, description="Override the bundled static assets")
    allowed_networks: list[str] = Field(default_factory=lambda: ["tcp", "tcp4", "tcp6"])
    buffer_size: int = Field(default=1024, gt=0, description="Max bytes per upstream read")
    websockify_host: str = Field(default="localhost")
    websockify_port: int = Field(default=5968, ge=1, le=65535)


class SshConfig(BaseModel):
    host: str = Field(default="localhost")
    port: int = Field(default=22, ge=1, le=65535)
    username: str = Field(default="")
    password: SecretStr = Field(default=SecretStr(""))
    key_filename: str | None = Field(default=None)
    term: str = Field(default="xterm")
    cols: int = Field(default=80, gt=0)
    rows: int = Field(default=40, gt=0)
    connect_timeout: float = Field(default=10.0, gt=0)
    host_key_policy: Literal["auto_add", "reject"] = Field(default="auto_add")


class ClientConfig(BaseModel):
    url: str = Field(default="http://localhost:8080")
    open_timeout: float = Field(default=10.0, gt=0)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for lancenter.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "LANCENTER_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    server: ServerConfig = Field(default_factory=ServerConfig)
    ssh: SshConfig = Field(default_factory=SshConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML values arrive as init kwargs; environment wins over them
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    # Load .env file manually for non-prefixed vars
    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    password = os.environ.get("SSH_PASSWORD", "")
    if not password:
        return
    if "ssh" not in yaml_data or yaml_data["ssh"] is None:
        yaml_data["ssh"] = {}
    yaml_data["ssh"]["password"] = password
