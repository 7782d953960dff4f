"""
Environment Configuration Provider - Load configuration from the environment.

Precedence, highest first:

1. CLI overrides
2. Environment variables (``DOMAINCLIENT_SERVICE_URL``, ``DOMAINCLIENT_TIMEOUT``, ...)
3. A ``.env`` file in the working directory
4. A config file (see FileConfigProvider)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from ...core.exceptions import ConfigError, ConfigFileError, ConfigValidationError
from ...core.ports.config_provider import ClientConfig, ConfigProviderPort
from .file_provider import FileConfigProvider, coerce_values, normalize_key


ENV_PREFIX = "DOMAINCLIENT_"


class EnvironmentConfigProvider(ConfigProviderPort):
    """Configuration provider layering env vars and .env over a config file."""

    def __init__(
        self,
        config_file: Path | str | None = None,
        env_file: Path | str | None = None,
        cli_overrides: dict[str, Any] | None = None,
        prefix: str = ENV_PREFIX,
    ):
        """
        Initialize the environment provider.

        Args:
            config_file: Explicit config file; auto-detected when None
            env_file: Explicit .env file; ``./.env`` when None
            cli_overrides: Values from command line arguments
            prefix: Environment variable prefix
        """
        self.logger = logging.getLogger("EnvironmentConfigProvider")
        self.prefix = prefix
        self._file_provider = FileConfigProvider(config_path=config_file)
        self._env_file = Path(env_file) if env_file is not None else None
        self._overrides = {
            normalize_key(k): v for k, v in (cli_overrides or {}).items() if v is not None
        }

    @property
    def name(self) -> str:
        path = self._file_provider.config_file_path
        if path is not None:
            return f"environment + {path.name}"
        return "environment"

    @property
    def config_file_path(self) -> Path | None:
        return self._file_provider.config_file_path

    # -------------------------------------------------------------------------
    # ConfigProviderPort
    # -------------------------------------------------------------------------

    def load(self) -> ClientConfig:
        return ClientConfig(**self._merged_values())

    def get(self, key: str, default: Any = None) -> Any:
        return self._merged_values().get(normalize_key(key), default)

    def set(self, key: str, value: Any) -> None:
        self._overrides[normalize_key(key)] = value

    def validate(self) -> list[str]:
        try:
            config = self.load()
        except ConfigValidationError as e:
            return list(e.errors)
        except ConfigError as e:
            return [str(e)]

        errors = config.validate()
        if not config.service_url:
            errors.insert(
                0,
                "Missing service URL: set client.service_url in a config file "
                f"or the {self.prefix}SERVICE_URL environment variable",
            )
        return errors

    # -------------------------------------------------------------------------
    # Sources
    # -------------------------------------------------------------------------

    def _merged_values(self) -> dict[str, Any]:
        values = self._file_provider.file_values()
        values.update(coerce_values(self._read_env_file(), self._env_file_path().name))
        values.update(coerce_values(self._read_environment(), "environment"))
        values.update(coerce_values(self._overrides, "command line"))
        return values

    def _read_environment(self) -> dict[str, str]:
        return {
            key[len(self.prefix) :].lower(): value
            for key, value in os.environ.items()
            if key.startswith(self.prefix) and len(key) > len(self.prefix)
        }

    def _env_file_path(self) -> Path:
        return self._env_file or Path.cwd() / ".env"

    def _read_env_file(self) -> dict[str, str]:
        """Prefixed ``KEY=VALUE`` pairs from the .env file."""
        path = self._env_file_path()
        if not path.is_file():
            if self._env_file is not None:
                raise ConfigFileError(str(path), "Env file not found")
            return {}

        values = {}
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise ConfigFileError(str(path), f"Cannot read env file: {e}", cause=e)

        for line in lines:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("export "):
                line = line[len("export ") :].lstrip()
            key, sep, value = line.partition("=")
            if not sep:
                continue
            key = key.strip()
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                value = value[1:-1]
            if key.startswith(self.prefix):
                values[key[len(self.prefix) :].lower()] = value

        self.logger.debug(f"Read {len(values)} settings from {path}")
        return values
