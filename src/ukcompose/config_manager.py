"""Configuration management module.

This module handles persistent configuration storage using TOML format.
Stores user preferences like the default compose file, the kraft binary
and timeouts.

Security:
- Config file permissions: 0600 (owner read/write only)
- Path validation
- Input sanitization
"""

import logging
import os
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

try:
    import tomli  # type: ignore[import]
except ImportError:
    # Python 3.11+ ships the same parser as tomllib
    try:
        import tomllib as tomli  # type: ignore[import]
    except ImportError as e:
        raise ImportError("toml library not available. Install with: pip install tomli") from e

try:
    import tomlkit
except ImportError as e:
    raise ImportError("tomlkit library not available. Install with: pip install tomlkit") from e

logger = logging.getLogger(__name__)

DEFAULT_KRAFT_BINARY = "kraft"
DEFAULT_COMMAND_TIMEOUT = 1800


class ConfigError(Exception):
    """Raised when configuration operations fail."""

    pass


@dataclass
class UKComposeConfig:
    """ukcompose configuration data."""

    compose_file: str | None = None
    kraft_binary: str = DEFAULT_KRAFT_BINARY
    command_timeout: int = DEFAULT_COMMAND_TIMEOUT  # build/pull/package can be slow
    max_workers: int | None = None  # None: launch every service at once

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        data = asdict(self)
        # TOML has no null
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UKComposeConfig":
        """Create from dictionary.

        Raises:
            ConfigError: If a value has the wrong type or range
        """
        command_timeout = data.get("command_timeout", DEFAULT_COMMAND_TIMEOUT)
        max_workers = data.get("max_workers")

        if not isinstance(command_timeout, int) or command_timeout <= 0:
            raise ConfigError(f"command_timeout must be a positive integer: {command_timeout!r}")
        if max_workers is not None and (not isinstance(max_workers, int) or max_workers < 1):
            raise ConfigError(f"max_workers must be an integer >= 1: {max_workers!r}")

        return cls(
            compose_file=data.get("compose_file"),
            kraft_binary=str(data.get("kraft_binary") or DEFAULT_KRAFT_BINARY),
            command_timeout=command_timeout,
            max_workers=max_workers,
        )


class ConfigManager:
    """Manage ukcompose configuration file.

    Configuration is stored at ~/.ukcompose/config.toml with secure permissions.
    """

    DEFAULT_CONFIG_DIR = Path.home() / ".ukcompose"
    DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.toml"

    @classmethod
    def _validate_config_path(cls, path: Path) -> Path:
        """Validate configuration file path for security.

        Ensures the path is within allowed directories to prevent path traversal attacks.

        Args:
            path: Path to validate

        Returns:
            Validated, resolved path

        Raises:
            ConfigError: If path is outside allowed directories

        Security:
            - Resolves symlinks to prevent symlink attacks
            - Validates path is within ~/.ukcompose/, the current working
              directory or the system temporary directory
            - Prevents path traversal (../../etc/passwd)
        """
        resolved_path = path.resolve()

        allowed_dirs = [
            cls.DEFAULT_CONFIG_DIR.resolve(),
            Path.cwd().resolve(),
            Path(tempfile.gettempdir()).resolve(),  # Allow pytest tmp_path
        ]

        for allowed_dir in allowed_dirs:
            try:
                resolved_path.relative_to(allowed_dir)
                return resolved_path
            except ValueError:
                continue

        raise ConfigError(
            f"Config path outside allowed directories: {resolved_path}\n"
            f"Allowed directories:\n"
            f"  - {cls.DEFAULT_CONFIG_DIR}\n"
            f"  - {Path.cwd()}\n"
            "This restriction prevents path traversal attacks."
        )

    @classmethod
    def get_config_path(cls, custom_path: str | None = None) -> Path:
        """Get configuration file path.

        Args:
            custom_path: Custom config file path (optional)

        Returns:
            Path to config file

        Raises:
            ConfigError: If path is invalid or outside allowed directories
        """
        if custom_path:
            path = cls._validate_config_path(Path(custom_path).expanduser())
            if not path.exists():
                raise ConfigError(f"Config file not found: {path}")
            return path

        return cls.DEFAULT_CONFIG_FILE

    @classmethod
    def ensure_config_dir(cls) -> Path:
        """Ensure config directory exists with secure permissions.

        Raises:
            ConfigError: If directory creation fails
        """
        try:
            cls.DEFAULT_CONFIG_DIR.mkdir(parents=True, exist_ok=True)
            os.chmod(cls.DEFAULT_CONFIG_DIR, 0o700)
            logger.debug(f"Config directory ready: {cls.DEFAULT_CONFIG_DIR}")
            return cls.DEFAULT_CONFIG_DIR
        except OSError as e:
            raise ConfigError(f"Failed to create config directory: {e}") from e

    @classmethod
    def load_config(cls, custom_path: str | None = None) -> UKComposeConfig:
        """Load configuration from file.

        A missing default config file yields the defaults.

        Raises:
            ConfigError: If loading fails
        """
        config_path = cls.get_config_path(custom_path)

        if not config_path.exists():
            logger.debug("Config file not found, using defaults")
            return UKComposeConfig()

        try:
            mode = config_path.stat().st_mode & 0o777
            if mode & 0o077:
                logger.warning(
                    f"Config file has insecure permissions: {oct(mode)}. Fixing to 0600..."
                )
                os.chmod(config_path, 0o600)

            with open(config_path, "rb") as f:
                data = tomli.load(f)  # type: ignore[attr-defined]
        except (OSError, tomli.TOMLDecodeError) as e:  # type: ignore[attr-defined]
            raise ConfigError(f"Failed to load config: {e}") from e

        logger.debug(f"Loaded config from: {config_path}")
        return UKComposeConfig.from_dict(data)

    @classmethod
    def save_config(cls, config: UKComposeConfig, custom_path: str | None = None) -> Path:
        """Save configuration to file.

        Existing comments and formatting are preserved. The file is written
        to a temporary sibling and atomically renamed.

        Returns:
            Path the configuration was written to

        Raises:
            ConfigError: If saving fails or path is outside allowed directories
        """
        temp_path: Path | None = None
        try:
            if custom_path:
                config_path = cls._validate_config_path(Path(custom_path).expanduser())
                config_path.parent.mkdir(parents=True, exist_ok=True)
            else:
                cls.ensure_config_dir()
                config_path = cls.DEFAULT_CONFIG_FILE

            temp_path = config_path.with_suffix(".tmp")

            if config_path.exists():
                with open(config_path) as f:
                    doc = tomlkit.load(f)
            else:
                doc = tomlkit.document()

            values = config.to_dict()
            for key, value in values.items():
                doc[key] = value
            # Unset optional values must not linger from an older file
            for key in ("compose_file", "max_workers"):
                if key not in values and key in doc:
                    del doc[key]

            with open(temp_path, "w") as f:
                tomlkit.dump(doc, f)
            os.chmod(temp_path, 0o600)
            temp_path.replace(config_path)

            logger.debug(f"Saved config to: {config_path}")
            return config_path

        except OSError as e:
            if temp_path and temp_path.exists():
                temp_path.unlink()
            raise ConfigError(f"Failed to save config: {e}") from e


__all__ = ["ConfigError", "ConfigManager", "UKComposeConfig"]
