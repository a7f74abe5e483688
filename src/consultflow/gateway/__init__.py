"""Persistence gateway for consultation records and drafts."""

from consultflow.gateway.base import PersistenceGateway, SectionMap
from consultflow.gateway.errors import (
    AuthExpiredError,
    GatewayError,
    NotFoundError,
    TransientNetworkError,
    ValidationError,
)
from consultflow.gateway.http import HttpPersistenceGateway

__all__ = [
    "AuthExpiredError",
    "GatewayError",
    "HttpPersistenceGateway",
    "NotFoundError",
    "PersistenceGateway",
    "SectionMap",
    "TransientNetworkError",
    "ValidationError",
]
