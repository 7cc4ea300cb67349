# retrace/config.py
"""
Configuration management for retrace.
Uses TOML format for configuration files; environment variables override it.
"""
import os
import sys
from pathlib import Path
from typing import Optional, Union

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from retrace.constants import (
    BACKUP_DIR_NAME, CONFIG_FILE, DATA_DIR, DEFAULT_CASCADE_POLICY, DEFAULT_MAX_OPERATIONS,
    ENV_BACKUP_DIR, ENV_CASCADE_POLICY, ENV_DATA_DIR, ENV_DEBUG,
)
from retrace.models import CascadePolicy
from retrace.utils.logging import get_logger

logger = get_logger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


# --- Configuration Models ---

class StorageConfig(BaseModel):
    """Where the operation log and backups live."""
    data_dir: Path = Field(DATA_DIR, description="Directory holding operations-<workspace>.json files")
    backup_dir: Optional[Path] = Field(None, description="Backup directory; defaults to data_dir/operation-backups")

    @property
    def resolved_backup_dir(self) -> Path:
        return self.backup_dir or self.data_dir / BACKUP_DIR_NAME


class TrackerConfig(BaseModel):
    """Tracker behaviour."""
    cascade_policy: CascadePolicy = Field(
        CascadePolicy(DEFAULT_CASCADE_POLICY),
        description="How undo/redo treats dependent operations",
    )
    max_operations: int = Field(DEFAULT_MAX_OPERATIONS, gt=0, description="Maximum operations kept in the log")


class AppConfig(BaseModel):
    """Application configuration settings."""
    storage: StorageConfig = Field(default_factory=StorageConfig, description="Storage configuration")
    tracker: TrackerConfig = Field(default_factory=TrackerConfig, description="Tracker configuration")
    debug: bool = Field(False, description="Enable debug mode")


# --- Configuration Manager ---

class ConfigManager:
    """Loads and saves the retrace configuration file."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        self.config_file = Path(config_file) if config_file else CONFIG_FILE
        self._config: AppConfig = AppConfig()

    def _load_environment(self) -> None:
        """Apply overrides from environment variables and a .env file."""
        load_dotenv()

        data_dir = os.getenv(ENV_DATA_DIR)
        if data_dir:
            self._config.storage.data_dir = Path(data_dir).expanduser()

        backup_dir = os.getenv(ENV_BACKUP_DIR)
        if backup_dir:
            self._config.storage.backup_dir = Path(backup_dir).expanduser()

        policy = os.getenv(ENV_CASCADE_POLICY)
        if policy:
            try:
                self._config.tracker.cascade_policy = CascadePolicy(policy.lower())
            except ValueError:
                logger.warning(f"Invalid {ENV_CASCADE_POLICY} value '{policy}'. Ignoring.")

        debug = os.getenv(ENV_DEBUG)
        if debug:
            self._config.debug = debug.strip().lower() in _TRUE_VALUES

    def load_config(self) -> AppConfig:
        """
        Load configuration from the TOML config file, then the environment.

        A missing or unreadable file leaves the defaults in place.
        """
        self._config = AppConfig()

        if not self.config_file.exists():
            logger.debug(f"Configuration file not found at '{self.config_file}'. Using defaults.")
            self._load_environment()
            return self._config

        try:
            logger.debug(f"Loading configuration from: {self.config_file}")
            with open(self.config_file, "rb") as f:
                config_data = tomllib.load(f)

            self._config = AppConfig.model_validate(config_data)

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Error decoding TOML configuration file ({self.config_file}): {e}")
            logger.error("Using default configuration and environment variables.")
            self._config = AppConfig()
        except ValidationError as e:
            logger.error(f"Invalid configuration in {self.config_file}: {e}")
            logger.error("Using default configuration and environment variables.")
            self._config = AppConfig()
        except OSError as e:
            logger.error(f"I/O error accessing configuration file: {e}")
            self._config = AppConfig()

        self._load_environment()
        return self._config

    def save_config(self) -> None:
        """Save the current configuration to the config file (as TOML)."""
        # TOML has no null, so unset optional fields are left out
        config_dict = self._config.model_dump(mode="json", exclude_none=True)

        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "wb") as f:
                tomli_w.dump(config_dict, f)
            logger.info(f"Configuration saved to {self.config_file}")
        except OSError as e:
            logger.error(f"Error saving TOML configuration to {self.config_file}: {e}")
            raise

    @property
    def config(self) -> AppConfig:
        """The current application configuration."""
        return self._config
