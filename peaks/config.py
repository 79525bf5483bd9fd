"""PEAKS configuration.

Centralised, typed configuration for the service. All settings use Pydantic v2
models so they can be validated at construction time and serialised to/from
JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


DEFAULT_ORACLE_URL = "https://replitback.created.app/api/claude-chat"

_TRUTHY = {"1", "true", "yes", "on"}


class OracleConfig(BaseModel):
    """Connection and retry policy for the text-generation endpoint."""

    url: str = Field(default=DEFAULT_ORACLE_URL)
    timeout: float = Field(default=60.0, ge=1, description="Per-request timeout in seconds")
    connect_timeout: float = Field(default=10.0, ge=1)
    max_retries: int = Field(
        default=2, ge=0, description="Retries after the first attempt for retryable failures"
    )
    backoff_base: float = Field(default=0.5, ge=0, description="First backoff delay in seconds")
    backoff_max: float = Field(default=8.0, ge=0)


class StorageConfig(BaseModel):
    """Where projects and chat logs are persisted."""

    data_dir: Path = Field(default=Path("./data"))

    @property
    def projects_path(self) -> Path:
        """Path to the persisted ``projects.json``."""
        return self.data_dir / "projects.json"

    @property
    def messages_path(self) -> Path:
        """Path to the persisted ``messages.json``."""
        return self.data_dir / "messages.json"


class ServerConfig(BaseModel):
    """HTTP / WebSocket server settings."""

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=23010, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    ws_path: str = Field(default="/ws")


class Config(BaseModel):
    """Global PEAKS configuration.

    Instances are typically created once by the CLI entry point (or by
    ``create_app`` in tests) and then passed through the rest of the system.
    """

    oracle: OracleConfig = Field(default_factory=OracleConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    # Keep previous bytes for files the oracle only reformatted when enhancing.
    preserve_unchanged_files: bool = Field(default=True)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path | None = None) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file. Defaults to ``<data_dir>/config.json``.

        Returns:
            The resolved path where the file was written.
        """
        target = path or (self.storage.data_dir / "config.json")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            PEAKS_ORACLE_URL, PEAKS_ORACLE_TIMEOUT, PEAKS_ORACLE_MAX_RETRIES,
            PEAKS_DATA_DIR, PEAKS_HOST, PEAKS_PORT, PEAKS_CORS_ORIGINS,
            PEAKS_PRESERVE_UNCHANGED_FILES.
        """
        oracle_kwargs: dict[str, Any] = {}
        if os.environ.get("PEAKS_ORACLE_URL"):
            oracle_kwargs["url"] = os.environ["PEAKS_ORACLE_URL"]
        if os.environ.get("PEAKS_ORACLE_TIMEOUT"):
            oracle_kwargs["timeout"] = float(os.environ["PEAKS_ORACLE_TIMEOUT"])
        if os.environ.get("PEAKS_ORACLE_MAX_RETRIES"):
            oracle_kwargs["max_retries"] = int(os.environ["PEAKS_ORACLE_MAX_RETRIES"])

        storage_kwargs: dict[str, Any] = {}
        if os.environ.get("PEAKS_DATA_DIR"):
            storage_kwargs["data_dir"] = Path(os.environ["PEAKS_DATA_DIR"])

        server_kwargs: dict[str, Any] = {}
        if os.environ.get("PEAKS_HOST"):
            server_kwargs["host"] = os.environ["PEAKS_HOST"]
        if os.environ.get("PEAKS_PORT"):
            server_kwargs["port"] = int(os.environ["PEAKS_PORT"])
        if os.environ.get("PEAKS_CORS_ORIGINS"):
            server_kwargs["cors_origins"] = [
                o.strip() for o in os.environ["PEAKS_CORS_ORIGINS"].split(",") if o.strip()
            ]

        preserve = os.environ.get("PEAKS_PRESERVE_UNCHANGED_FILES", "true")

        return cls(
            oracle=OracleConfig(**oracle_kwargs),
            storage=StorageConfig(**storage_kwargs),
            server=ServerConfig(**server_kwargs),
            preserve_unchanged_files=preserve.strip().lower() in _TRUTHY,
        )

    def ensure_directories(self) -> None:
        """Create the data directory if it does not exist yet."""
        self.storage.data_dir.mkdir(parents=True, exist_ok=True)
