"""
Configuration module for NoteVault MCP Server.

Uses pydantic-settings for configuration management with environment variable
and .env file support. A single Settings instance is built in main() and passed
to the stores, the git layer and the tool handlers.
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .utils import ConfigurationError

DEFAULT_SUBFOLDER = "NoteVault"


def _get_default_data_dir() -> Path:
    """Get default directory for the JSON note backend."""
    return Path.cwd() / "data"


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Environment variables:
    - OBSIDIAN_VAULT_PATH: Root of the vault (also the git working tree)
    - OBSIDIAN_SUBFOLDER: Folder inside the vault that holds the notes
    - DEFAULT_BRANCH: Remote branch used for pull/push
    - GIT_REMOTE: Remote name used for pull/push/fetch
    - AUTO_SYNC_ON_SAVE: Commit and push after every note write
    - GIT_TIMEOUT: Timeout for a single git command, in milliseconds
    - NOTES_STORAGE: "vault" (Markdown files) or "json" (flat JSON files)
    - NOTES_DATA_DIR: Directory for the JSON backend
    - NOTES_MAX_TITLE_LENGTH: Maximum title length
    - NOTES_MAX_CONTENT_SIZE: Maximum content size in bytes
    - NOTES_LOG_LEVEL: Log level name
    """

    vault_path: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("vault_path", "OBSIDIAN_VAULT_PATH"),
    )
    notes_subfolder: str = Field(
        default=DEFAULT_SUBFOLDER,
        validation_alias=AliasChoices("notes_subfolder", "OBSIDIAN_SUBFOLDER"),
    )
    default_branch: str = Field(
        default="main",
        validation_alias=AliasChoices("default_branch", "DEFAULT_BRANCH"),
    )
    remote_name: str = Field(
        default="origin",
        validation_alias=AliasChoices("remote_name", "GIT_REMOTE"),
    )
    auto_sync_on_save: bool = Field(
        default=False,
        validation_alias=AliasChoices("auto_sync_on_save", "AUTO_SYNC_ON_SAVE"),
    )
    git_timeout_ms: int = Field(
        default=15000,
        gt=0,
        validation_alias=AliasChoices("git_timeout_ms", "GIT_TIMEOUT"),
    )
    storage_backend: Literal["vault", "json"] = Field(
        default="vault",
        validation_alias=AliasChoices("storage_backend", "NOTES_STORAGE"),
    )
    data_dir: Path = Field(
        default_factory=_get_default_data_dir,
        validation_alias=AliasChoices("data_dir", "NOTES_DATA_DIR"),
    )
    max_title_length: int = Field(
        default=200,
        validation_alias=AliasChoices("max_title_length", "NOTES_MAX_TITLE_LENGTH"),
    )
    max_content_size: int = Field(
        default=1 * 1024 * 1024,  # 1MB in bytes
        validation_alias=AliasChoices("max_content_size", "NOTES_MAX_CONTENT_SIZE"),
    )
    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("log_level", "NOTES_LOG_LEVEL"),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def git_timeout(self) -> float:
        """Git command timeout in seconds."""
        return self.git_timeout_ms / 1000

    @property
    def notes_path(self) -> Path:
        """Folder holding the Markdown notes of the vault backend."""
        return self.require_vault_path() / self.notes_subfolder

    @property
    def repository_path(self) -> Path:
        """Working tree that git commands run in."""
        if self.storage_backend == "json":
            return self.data_dir
        return self.require_vault_path()

    def require_vault_path(self) -> Path:
        """Return the vault path or raise if it was never configured."""
        if self.vault_path is None:
            raise ConfigurationError(
                "OBSIDIAN_VAULT_PATH not configured",
                remedy="Set OBSIDIAN_VAULT_PATH in the environment or in .env",
            )
        return self.vault_path
