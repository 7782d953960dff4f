"""
File Configuration Provider - Load configuration from YAML or TOML files.

Supported files, searched in the working directory and then the home
directory when no path is given:

- .domainclient.yaml / .domainclient.yml
- .domainclient.toml
- pyproject.toml ([tool.domainclient] section)

Values may sit at the top level or under a ``client`` table::

    client:
      service_url: https://example.com/Services/Orders
      timeout: 10
      headers:
        Authorization: Bearer ...
"""

from __future__ import annotations

import json
import logging
import tomllib
from pathlib import Path
from typing import Any

import yaml

from ...core.exceptions import ConfigError, ConfigFileError, ConfigValidationError
from ...core.ports.config_provider import ClientConfig, ConfigProviderPort


CONFIG_FILENAMES = (
    ".domainclient.yaml",
    ".domainclient.yml",
    ".domainclient.toml",
    "pyproject.toml",
)

# Alternative spellings accepted in files and overrides
KEY_ALIASES = {
    "url": "service_url",
    "workers": "max_workers",
    "retries": "max_retries",
}


# -------------------------------------------------------------------------
# Value handling shared by the providers
# -------------------------------------------------------------------------


def normalize_key(key: str) -> str:
    """Map ``client.timeout``, ``url`` and similar spellings to a field name."""
    name = key.strip().lower().replace("-", "_")
    if name.startswith("client."):
        name = name[len("client.") :]
    return KEY_ALIASES.get(name, name)


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def parse_headers(value: Any) -> dict[str, str]:
    """Headers come as a mapping, or as a JSON object in a string."""
    if isinstance(value, str):
        value = json.loads(value) if value.strip() else {}
    if not isinstance(value, dict):
        raise ValueError(f"headers must be a mapping, got {type(value).__name__}")
    return {str(k): str(v) for k, v in value.items()}


_CONVERTERS: dict[str, Any] = {
    "service_url": str,
    "timeout": float,
    "max_retries": int,
    "max_workers": int,
    "verify_ssl": parse_bool,
    "headers": parse_headers,
    "supports_cancellation": parse_bool,
    "log_unhandled_errors": parse_bool,
}


def coerce_values(values: dict[str, Any], source: str) -> dict[str, Any]:
    """
    Normalize keys and convert values to the ClientConfig field types.

    Raises:
        ConfigValidationError: On unknown keys or unconvertible values
    """
    errors = []
    coerced: dict[str, Any] = {}
    for key, value in values.items():
        name = normalize_key(key)
        converter = _CONVERTERS.get(name)
        if converter is None:
            errors.append(f"Unknown configuration key '{key}' in {source}")
            continue
        try:
            coerced[name] = converter(value)
        except (TypeError, ValueError) as e:
            errors.append(f"Invalid value for '{key}' in {source}: {e}")
    if errors:
        raise ConfigValidationError(errors)
    return coerced


class FileConfigProvider(ConfigProviderPort):
    """
    Configuration provider that loads from YAML or TOML files.

    CLI overrides take precedence over file values.
    """

    def __init__(
        self,
        config_path: Path | str | None = None,
        cli_overrides: dict[str, Any] | None = None,
    ):
        """
        Initialize the file provider.

        Args:
            config_path: Explicit config file; auto-detected when None
            cli_overrides: Values from command line arguments
        """
        self.logger = logging.getLogger("FileConfigProvider")
        self._explicit_path = Path(config_path) if config_path is not None else None
        self._cli_overrides = {
            normalize_key(k): v for k, v in (cli_overrides or {}).items() if v is not None
        }
        self._config_file_path: Path | None = None
        self._values: dict[str, Any] | None = None

    @property
    def name(self) -> str:
        path = self.config_file_path
        return f"file:{path}" if path else "file"

    @property
    def config_file_path(self) -> Path | None:
        """The file the configuration is read from, if any."""
        if self._config_file_path is None:
            self._config_file_path = self._explicit_path or self._find_config_file()
        return self._config_file_path

    # -------------------------------------------------------------------------
    # ConfigProviderPort
    # -------------------------------------------------------------------------

    def load(self) -> ClientConfig:
        """
        Load configuration.

        Raises:
            ConfigFileError: If the file is missing or cannot be parsed
            ConfigValidationError: If the file holds unknown keys or bad values
        """
        values = self.file_values()
        values.update(coerce_values(self._cli_overrides, "command line"))
        return ClientConfig(**values)

    def get(self, key: str, default: Any = None) -> Any:
        name = normalize_key(key)
        if name in self._cli_overrides:
            return coerce_values({name: self._cli_overrides[name]}, "command line")[name]
        return self.file_values().get(name, default)

    def set(self, key: str, value: Any) -> None:
        self._cli_overrides[normalize_key(key)] = value

    def validate(self) -> list[str]:
        try:
            config = self.load()
        except ConfigValidationError as e:
            return list(e.errors)
        except ConfigError as e:
            return [str(e)]
        return config.validate()

    # -------------------------------------------------------------------------
    # File handling
    # -------------------------------------------------------------------------

    def file_values(self) -> dict[str, Any]:
        """Coerced values from the config file (empty when there is none)."""
        if self._values is None:
            path = self.config_file_path
            if path is None:
                self._values = {}
            else:
                self._values = coerce_values(self._read(path), str(path))
                self.logger.debug(f"Loaded configuration from {path}")
        return dict(self._values)

    def _find_config_file(self) -> Path | None:
        for directory in (Path.cwd(), Path.home()):
            for filename in CONFIG_FILENAMES:
                candidate = directory / filename
                if not candidate.is_file():
                    continue
                if filename == "pyproject.toml" and not self._has_tool_section(candidate):
                    continue
                return candidate
        return None

    @staticmethod
    def _has_tool_section(path: Path) -> bool:
        try:
            with path.open("rb") as f:
                return "domainclient" in tomllib.load(f).get("tool", {})
        except (OSError, tomllib.TOMLDecodeError):
            return False

    def _read(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            raise ConfigFileError(str(path), "Config file not found")

        try:
            if path.suffix in (".yaml", ".yml"):
                with path.open(encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            elif path.suffix == ".toml":
                with path.open("rb") as f:
                    data = tomllib.load(f)
                if path.name == "pyproject.toml":
                    data = data.get("tool", {}).get("domainclient", {})
            else:
                raise ConfigFileError(str(path), f"Unsupported config format '{path.suffix}'")
        except yaml.YAMLError as e:
            raise ConfigFileError(str(path), f"Invalid YAML syntax: {e}", cause=e)
        except tomllib.TOMLDecodeError as e:
            raise ConfigFileError(str(path), f"Invalid TOML syntax: {e}", cause=e)
        except OSError as e:
            raise ConfigFileError(str(path), f"Cannot read config file: {e}", cause=e)

        if not isinstance(data, dict):
            raise ConfigFileError(str(path), "Config file must contain a mapping")

        values = {k: v for k, v in data.items() if k != "client"}
        client = data.get("client", {})
        if not isinstance(client, dict):
            raise ConfigFileError(str(path), "'client' must be a table")
        values.update(client)
        return values
