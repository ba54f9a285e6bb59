"""Configuration handling for the phonebooth daemon."""

import getpass
import os
import tomllib
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_AUDIO_EXTENSIONS = ["mp3", "wav", "ogg", "flac", "m4a", "aac"]


def get_default_config_path() -> Path:
    """Get the default config file path following XDG spec."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base_dir = Path(xdg_config)
    else:
        base_dir = Path.home() / ".config"

    return base_dir / "phonebooth" / "config.toml"


def get_default_socket_path() -> Path:
    """Get the default socket path following XDG spec."""
    xdg_runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if xdg_runtime_dir:
        sock_dir = Path(xdg_runtime_dir) / "phonebooth"
        try:
            sock_dir.mkdir(parents=True, exist_ok=True)
            if not os.access(sock_dir, os.W_OK | os.X_OK):
                raise OSError("Insufficient permissions for XDG runtime dir.")
            return sock_dir / "daemon.sock"
        except OSError as e:
            print(
                f"Warning: Could not use XDG_RUNTIME_DIR ({e}), falling back to /tmp."
            )

    # Fallback if XDG_RUNTIME_DIR not set or unusable
    uid = getpass.getuser()
    return Path(f"/tmp/phonebooth-{uid}.sock")


def get_default_log_path() -> Path:
    """Get the default log file path following XDG spec."""
    xdg_state = os.environ.get("XDG_STATE_HOME")
    if xdg_state:
        base_dir = Path(xdg_state)
    else:
        base_dir = Path.home() / ".local" / "state"

    log_dir = base_dir / "phonebooth"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / "phoneboothd.log"


class TransformerConfig(BaseModel):
    """External transformer invocation."""

    command: List[str] = Field(
        default_factory=lambda: ["python", "telephone.py"],
        description="Executable and leading arguments; input and output paths are appended.",
    )
    suffix: str = Field(
        default="_telephone",
        description="Suffix inserted between the input stem and its extension.",
    )
    timeout_s: Optional[float] = Field(
        default=None,
        gt=0,
        description="Kill the transformer after this many seconds (unset = wait forever).",
    )
    verify_output: bool = Field(
        default=False,
        description="Treat a zero exit as failure if the output file was not produced.",
    )

    @field_validator("command")
    @classmethod
    def check_command_not_empty(cls, v: List[str]) -> List[str]:
        if not v or not v[0]:
            raise ValueError("Transformer command cannot be empty")
        return v

    @field_validator("suffix")
    @classmethod
    def check_suffix_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("Output suffix cannot be empty")
        return v


class LibraryConfig(BaseModel):
    """Audio file discovery configuration."""

    extensions: List[str] = Field(
        default_factory=lambda: list(DEFAULT_AUDIO_EXTENSIONS),
        description="Audio file extensions accepted on import (case-insensitive).",
    )

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        normalized = [ext.lower().lstrip(".") for ext in v if ext.strip(". ")]
        if not normalized:
            raise ValueError("At least one audio extension must be configured")
        return normalized


class PlayerConfig(BaseModel):
    """Playback state defaults."""

    default_volume: int = Field(
        default=70, ge=0, le=100, description="Initial volume in percent."
    )


class DaemonConfig(BaseModel):
    """Daemon runtime configuration."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).",
    )
    log_file: Optional[Path] = Field(
        default=None, description="Optional custom log file path."
    )
    socket_path: Optional[Path] = Field(
        default=None, description="Optional custom socket path for IPC."
    )
    status_reset_s: float = Field(
        default=3.0,
        ge=0,
        description="Seconds before a transient status message reverts to 'Ready'.",
    )

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in allowed_levels:
            raise ValueError(f"Invalid log level. Choose from {allowed_levels}")
        return upper_v

    @property
    def computed_log_file(self) -> Path:
        return self.log_file or get_default_log_path()

    @property
    def computed_socket_path(self) -> Path:
        return self.socket_path or get_default_socket_path()


class AppConfig(BaseModel):
    """Root configuration."""

    transformer: TransformerConfig = Field(default_factory=TransformerConfig)
    library: LibraryConfig = Field(default_factory=LibraryConfig)
    player: PlayerConfig = Field(default_factory=PlayerConfig)
    daemon: DaemonConfig = Field(default_factory=DaemonConfig)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load and validate configuration.

    If path is not provided, looks for config in standard locations.
    If no config file is found, returns default configuration.

    Args:
        path: Optional path to config file.

    Returns:
        Validated AppConfig instance.

    Raises:
        ValueError: If config file exists but has invalid format/content.
        OSError: If config file exists but can't be read.
    """
    if path is None:
        path = get_default_config_path()

    if not path.exists():
        return AppConfig()  # Use defaults

    try:
        with open(path, "rb") as f:
            config_data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Error decoding TOML file: {path}\n{e}") from e
    except OSError as e:
        raise OSError(f"Error reading file: {path}\n{e}") from e

    try:
        return AppConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}") from e
