"""
Configuration management for PluginHub.

Precedence: env vars > .env file > config.yaml > defaults

Home directory: $PLUGINHUB_HOME or ~/.pluginhub
Config file:    <home>/config.yaml
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

ENV_PREFIX = "PLUGINHUB_"

# Known config keys that can be set via `pluginhub config set`
CONFIG_KEYS = {
    "store_path", "index_path", "enable_symlinks", "hash_chunk_size",
    "host", "port", "log_level", "debug",
}


def _resolve_home() -> Path:
    """Resolve the PluginHub home directory from env or default."""
    raw = os.environ.get(f"{ENV_PREFIX}HOME", "")
    if raw:
        return Path(raw).expanduser().resolve()
    return (Path.home() / ".pluginhub").resolve()


def _load_yaml_config(home: Path) -> dict[str, Any]:
    """Load config.yaml from the home directory."""
    config_file = get_config_path(home)
    if not config_file.exists():
        return {}
    try:
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.warning(f"config.yaml is not a dict, ignoring: {config_file}")
            return {}
        return data
    except Exception as e:
        logger.warning(f"Error loading config.yaml: {e}")
        return {}


def save_yaml_config(home: Path, data: dict[str, Any]) -> Path:
    """Write config values to <home>/config.yaml."""
    config_file = get_config_path(home)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    return config_file


def get_config_path(home: Path) -> Path:
    """Get the config.yaml path for a home directory."""
    return home / "config.yaml"


class Settings(BaseSettings):
    """PluginHub configuration. Precedence: env vars > .env > config.yaml > defaults."""

    home: Path = Field(
        default_factory=_resolve_home,
        description="PluginHub home directory (config, index, default store)",
    )

    # Store
    store_path: Optional[Path] = Field(
        default=None,
        description="Root of the content-addressed store (defaults to <home>/store)",
    )
    index_path: Optional[Path] = Field(
        default=None,
        description="Plugin index file (defaults to <home>/index.json)",
    )
    hash_chunk_size: int = Field(
        default=1024 * 1024,
        description="Bytes read per chunk when hashing plugin files",
    )

    # Linking
    enable_symlinks: bool = Field(
        default=True,
        description="Prefer symlinks; when disabled, hardlink trees are built instead",
    )

    # Editors
    editor_paths: dict[str, str] = Field(
        default_factory=dict,
        description="Editor type name -> extensions directory override",
    )
    disabled_editors: list[str] = Field(
        default_factory=list,
        description="Editor type names to leave out of scans and GC",
    )

    # Server
    port: int = Field(default=3340, description="Server port")
    host: str = Field(default="127.0.0.1", description="Server bind address")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_prefix": ENV_PREFIX,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="before")
    @classmethod
    def _inject_yaml_config(cls, data: Any) -> Any:
        """Inject config.yaml values as fallbacks below env vars and .env."""
        if not isinstance(data, dict):
            data = {}

        raw_home = data.get("home")
        home = Path(raw_home).expanduser().resolve() if raw_home else _resolve_home()

        yaml_config = _load_yaml_config(home)

        # Inject YAML values only where not already set (env/explicit take priority)
        for key, value in yaml_config.items():
            if key not in data or data[key] is None:
                env_val = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
                if env_val is None:
                    data[key] = value

        return data

    @property
    def store_root(self) -> Path:
        """Get the store root, defaulting to <home>/store."""
        if self.store_path:
            return Path(self.store_path).expanduser()
        return self.home / "store"

    @property
    def index_file(self) -> Path:
        """Get the index file path, defaulting to <home>/index.json."""
        if self.index_path:
            return Path(self.index_path).expanduser()
        return self.home / "index.json"

    @property
    def config_file(self) -> Path:
        return get_config_path(self.home)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings
