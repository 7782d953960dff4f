"""
Configuration Provider Port - Abstract interface for configuration.

Implementations:
- EnvironmentConfigProvider: Load from env vars and .env, on top of a config file
- FileConfigProvider: Load from YAML/TOML config files
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from typing import Any


@dataclass
class ClientConfig:
    """Configuration for a domain service client."""

    service_url: str = ""
    timeout: float = 30.0
    max_retries: int = 3
    max_workers: int = 4
    verify_ssl: bool = True
    headers: dict[str, str] = field(default_factory=dict)

    # Cancellation is only offered when the transport can honour it
    supports_cancellation: bool = True

    # Log errors nobody marked as handled after completion callbacks ran
    log_unhandled_errors: bool = True

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def is_valid(self) -> bool:
        """Check if configuration is valid."""
        return not self.validate()

    def validate(self) -> list[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if self.service_url and not self.service_url.startswith(("http://", "https://")):
            errors.append(f"service_url must be an http(s) URL, got '{self.service_url}'")
        if self.timeout <= 0:
            errors.append(f"timeout must be positive, got {self.timeout}")
        if self.max_retries < 0:
            errors.append(f"max_retries cannot be negative, got {self.max_retries}")
        if self.max_workers < 1:
            errors.append(f"max_workers must be at least 1, got {self.max_workers}")

        return errors

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for display; header values are masked."""
        return {
            "service_url": self.service_url,
            "timeout": self.timeout,
            "max_retries": self.max_retries,
            "max_workers": self.max_workers,
            "verify_ssl": self.verify_ssl,
            "headers": {name: "***" for name in self.headers},
            "supports_cancellation": self.supports_cancellation,
            "log_unhandled_errors": self.log_unhandled_errors,
        }


class ConfigProviderPort(ABC):
    """
    Abstract interface for configuration providers.

    Configuration can come from various sources:
    - Environment variables
    - .env files
    - YAML/TOML config files
    - Command line arguments
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the provider name."""
        ...

    @abstractmethod
    def load(self) -> ClientConfig:
        """
        Load configuration from source.

        Returns:
            Complete client configuration
        """
        ...

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a specific configuration value.

        Args:
            key: Configuration key
            default: Default value if not found

        Returns:
            Configuration value
        """
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            key: Configuration key
            value: Value to set
        """
        ...

    @abstractmethod
    def validate(self) -> list[str]:
        """
        Validate loaded configuration.

        Returns:
            List of validation errors
        """
        ...
