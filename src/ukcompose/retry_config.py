"""Configuration for retry logic.

This module provides configurable retry settings for read-only kraft CLI
queries (listing instances, catalog lookups, listing networks).

Design Philosophy:
- Ruthless simplicity: Single configuration object
- Sensible defaults: Works out of the box
- Environment-aware: Can be overridden via env vars
"""

import os
from dataclasses import dataclass


@dataclass
class RetryConfig:
    """Retry configuration settings."""

    kraft_cli_max_attempts: int = 3
    kraft_cli_initial_delay: float = 1.0
    kraft_cli_max_delay: float = 30.0
    jitter_enabled: bool = True

    @classmethod
    def from_environment(cls) -> "RetryConfig":
        """Load retry configuration from environment variables.

        Environment variables (all optional):
            UKCOMPOSE_RETRY_MAX_ATTEMPTS: Max attempts (default: 3)
            UKCOMPOSE_RETRY_INITIAL_DELAY: Initial delay in seconds (default: 1.0)
            UKCOMPOSE_RETRY_MAX_DELAY: Max delay in seconds (default: 30.0)
            UKCOMPOSE_RETRY_JITTER_ENABLED: Enable jitter (default: true)

        Returns:
            RetryConfig with values from environment or defaults
        """
        return cls(
            kraft_cli_max_attempts=int(os.getenv("UKCOMPOSE_RETRY_MAX_ATTEMPTS", "3")),
            kraft_cli_initial_delay=float(os.getenv("UKCOMPOSE_RETRY_INITIAL_DELAY", "1.0")),
            kraft_cli_max_delay=float(os.getenv("UKCOMPOSE_RETRY_MAX_DELAY", "30.0")),
            jitter_enabled=os.getenv("UKCOMPOSE_RETRY_JITTER_ENABLED", "true").lower() == "true",
        )


# Global configuration instance (lazily loaded)
_config: RetryConfig | None = None


def get_retry_config() -> RetryConfig:
    """Get global retry configuration (loaded from environment on first access)."""
    global _config
    if _config is None:
        _config = RetryConfig.from_environment()
    return _config


def reset_retry_config() -> None:
    """Force reload from environment on next access. Useful for testing."""
    global _config
    _config = None


__all__ = ["RetryConfig", "get_retry_config", "reset_retry_config"]
