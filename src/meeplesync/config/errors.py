"""Configuration error definitions."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised when an environment setting for meeplesync cannot be used."""


class MissingConfigurationError(ConfigurationError):
    """Raised when required environment variables are absent or blank."""

    def __init__(self, names: tuple[str, ...]) -> None:
        super().__init__(f"Missing configuration for: {', '.join(names)}")
        self.names = names
