"""
Shared pytest fixtures for the domainclient test suite.

Fixture Categories:
- Transports: A manually driven transport and an in-process one
- Context: DomainContext wired to either transport
- Queries: Sample queries
"""

from __future__ import annotations

import pytest
from support import Customer, ManualTransportClient, Order

from domainclient.adapters.local import LocalTransportClient
from domainclient.application import DomainContext
from domainclient.core.ports.transport_client import EntityQuery


# =============================================================================
# Transports
# =============================================================================


@pytest.fixture
def manual_transport() -> ManualTransportClient:
    """A transport whose futures the test resolves."""
    return ManualTransportClient()


@pytest.fixture
def local_transport() -> LocalTransportClient:
    """An inline in-process transport serving a few customers."""
    transport = LocalTransportClient()
    transport.register_query(
        "GetCustomers",
        lambda query: [
            Customer(id=1, name="Ada", city="London"),
            Customer(id=2, name="Grace", city="Arlington"),
            Customer(id=3, name="Edsger", city="Nuenen"),
        ],
    )
    transport.register_invoke("Add", lambda a, b: a + b)
    return transport


# =============================================================================
# Context
# =============================================================================


@pytest.fixture
def context(manual_transport: ManualTransportClient) -> DomainContext:
    """DomainContext over the manual transport with Customer and Order sets."""
    return DomainContext(manual_transport, entity_types=[Customer, Order])


@pytest.fixture
def local_context(local_transport: LocalTransportClient) -> DomainContext:
    """DomainContext over the in-process transport."""
    return DomainContext(local_transport, entity_types=[Customer, Order])


# =============================================================================
# Queries
# =============================================================================


@pytest.fixture
def customers_query() -> EntityQuery:
    return EntityQuery("GetCustomers", Customer)
