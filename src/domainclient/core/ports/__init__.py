"""
Ports - Abstract interfaces for external dependencies.

Ports define the contracts that adapters must implement.
This enables dependency inversion and easy testing.
"""

from .config_provider import ClientConfig, ConfigProviderPort
from .transport_client import (
    EntityQuery,
    InvokeArgs,
    InvokeResult,
    QueryResult,
    SubmitResult,
    TransportClientPort,
)


__all__ = [
    "ClientConfig",
    "ConfigProviderPort",
    "EntityQuery",
    "InvokeArgs",
    "InvokeResult",
    "QueryResult",
    "SubmitResult",
    "TransportClientPort",
]
