"""Configuration management for script-vault."""

import json
import os
from pathlib import Path
from typing import Literal, Optional

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from script_vault.utils import setup_logging

DATA_DIR_NAME = ".script-vault"
CONFIG_FILE_NAME = "config.json"
STATE_FILE_NAME = "state.json"
METADATA_FILE_NAME = "metadata.json"

Environment = Literal["test", "dev", "user"]


class ScriptVaultConfig(BaseSettings):
    """Pydantic model for Script Vault global configuration."""

    env: Environment = Field(default="dev", description="Environment name")

    # overridden by ~/.script-vault/config.json
    log_level: str = "INFO"

    linked_folder: Optional[str] = Field(
        default=None,
        description="Path of the folder linked to the vault. Re-checked for permission before every use.",
    )

    metadata_filename: str = Field(
        default=METADATA_FILE_NAME,
        description="Reserved name of the side-car metadata document (matched case-insensitively).",
    )

    state_file_name: str = Field(
        default=STATE_FILE_NAME,
        description="File in the data directory that holds the local copy of the vault state.",
    )

    default_language: str = Field(
        default="javascript",
        description="Language assigned to files whose extension is not recognized.",
    )

    binary_sample_chars: int = Field(
        default=2000,
        description="Number of leading characters inspected when deciding whether a file is binary.",
        gt=0,
    )

    binary_non_printable_ratio: float = Field(
        default=0.2,
        description="Files whose sampled non-printable ratio exceeds this value are treated as binary.",
        gt=0.0,
        le=1.0,
    )

    sync_max_concurrent_reads: int = Field(
        default=8,
        description="Maximum number of files read concurrently during a folder scan.",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="SCRIPT_VAULT_",
        extra="ignore",
    )

    @field_validator("default_language")
    @classmethod
    def validate_default_language(cls, value: str) -> str:
        from script_vault.languages import LANGUAGE_MAP

        if value not in LANGUAGE_MAP:
            raise ValueError(f"Unknown language '{value}'")
        return value

    @property
    def data_dir_path(self) -> Path:
        """Get app state directory for config, local state and logs."""
        if config_dir := os.getenv("SCRIPT_VAULT_CONFIG_DIR"):
            return Path(config_dir)

        home = os.getenv("HOME", Path.home())
        return Path(home) / DATA_DIR_NAME

    @property
    def state_file_path(self) -> Path:
        return self.data_dir_path / self.state_file_name


# Module-level cache for configuration
_CONFIG_CACHE: Optional[ScriptVaultConfig] = None


class ConfigManager:
    """Manages Script Vault configuration."""

    def __init__(self) -> None:
        home = os.getenv("HOME", Path.home())
        if isinstance(home, str):
            home = Path(home)

        # Allow override via environment variable
        if config_dir := os.getenv("SCRIPT_VAULT_CONFIG_DIR"):
            self.config_dir = Path(config_dir)
        else:
            self.config_dir = home / DATA_DIR_NAME

        self.config_file = self.config_dir / CONFIG_FILE_NAME

        self.config_dir.mkdir(parents=True, exist_ok=True)

    @property
    def config(self) -> ScriptVaultConfig:
        """Get configuration, loading it lazily if needed."""
        return self.load_config()

    def load_config(self) -> ScriptVaultConfig:
        """Load configuration from file or create default.

        Environment variables take precedence over file config values.
        Uses a module-level cache shared across ConfigManager instances.
        """
        global _CONFIG_CACHE

        if _CONFIG_CACHE is not None:
            return _CONFIG_CACHE

        if not self.config_file.exists():
            config = ScriptVaultConfig()
            self.save_config(config)
            return config

        try:
            file_data = json.loads(self.config_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in config file {self.config_file}: {e}")
            raise SystemExit(
                f"Error: config file is not valid JSON: {self.config_file}\n"
                f"  {e}\n"
                f"Fix or delete the file and re-run."
            )

        if not isinstance(file_data, dict):
            raise SystemExit(f"Error: config file must contain a JSON object: {self.config_file}")

        # File data is the base; fields set through SCRIPT_VAULT_* variables win
        env_dict = ScriptVaultConfig().model_dump()
        merged_data = file_data.copy()
        for field_name in ScriptVaultConfig.model_fields.keys():
            if f"SCRIPT_VAULT_{field_name.upper()}" in os.environ:
                merged_data[field_name] = env_dict[field_name]

        _CONFIG_CACHE = ScriptVaultConfig(**merged_data)
        return _CONFIG_CACHE

    def save_config(self, config: ScriptVaultConfig) -> None:
        """Save configuration to file and invalidate cache."""
        global _CONFIG_CACHE
        save_script_vault_config(self.config_file, config)
        _CONFIG_CACHE = None

    def set_linked_folder(self, folder: Path) -> ScriptVaultConfig:
        """Remember the linked folder so later sessions can restore it."""
        config = self.load_config()
        config.linked_folder = str(folder.expanduser().resolve())
        self.save_config(config)
        logger.info(f"Linked folder set: {config.linked_folder}")
        return self.load_config()

    def clear_linked_folder(self) -> ScriptVaultConfig:
        config = self.load_config()
        config.linked_folder = None
        self.save_config(config)
        return self.load_config()


def save_script_vault_config(file_path: Path, config: ScriptVaultConfig) -> None:
    """Save configuration to file."""
    file_path.parent.mkdir(parents=True, exist_ok=True)
    config_dict = config.model_dump(mode="json")
    file_path.write_text(json.dumps(config_dict, indent=2), encoding="utf-8")


def init_cli_logging() -> None:  # pragma: no cover
    """Initialize logging for CLI commands - file only.

    CLI commands should not log to stdout to avoid interfering with
    command output.
    """
    log_level = os.getenv("SCRIPT_VAULT_LOG_LEVEL", "INFO")
    setup_logging(log_level=log_level, log_to_file=True)
