"""
HTTP adapter - JSON over HTTP transport built on requests.
"""

from .client import HttpApiClient
from .codec import GenericEntity, JsonCodec
from .transport import HttpTransportClient


__all__ = [
    "GenericEntity",
    "HttpApiClient",
    "HttpTransportClient",
    "JsonCodec",
]
