"""
Config adapters - Configuration from the environment and from files.
"""

from .environment import EnvironmentConfigProvider
from .file_provider import FileConfigProvider


__all__ = ["EnvironmentConfigProvider", "FileConfigProvider"]
