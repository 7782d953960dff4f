"""
Local adapter - In-process transport for tests and embedded services.
"""

from .client import LocalTransportClient


__all__ = ["LocalTransportClient"]
