"""
Application layer - Orchestrates operations against a domain service.
"""

from .context import DomainContext


__all__ = ["DomainContext"]
