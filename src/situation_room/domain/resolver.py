"""
Domain Entity Resolver

Resolves a (type, id) pair to a business object snapshot that is embedded
into a room as its context.
"""
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

import httpx

from ..config import Config
from ..exceptions import RemoteOperationFailed, UnsupportedEntityType, ValidationFailed

logger = logging.getLogger("situation.domain.resolver")


class EntityType(str, Enum):
    """Business objects a room can be attached to"""
    SHIPMENT = "shipment"
    PURCHASE_ORDER = "purchase_order"
    SALES_ORDER = "sales_order"

    @classmethod
    def parse(cls, value: str) -> "EntityType":
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedEntityType(f"Invalid entity type {value}") from None


# (entity_id, tenant_id) -> business object as JSON-compatible dict
EntityReader = Callable[[str, str], Awaitable[dict]]


class EntityResolver(ABC):
    """Resolves business objects by type and id"""

    @abstractmethod
    async def resolve(self, entity_type: str, entity_id: str, tenant_id: str) -> dict:
        """
        Fetch a business object.

        Raises:
            UnsupportedEntityType: entity_type is not a known EntityType
        """
        ...


class RegistryEntityResolver(EntityResolver):
    """Dispatches each entity type to its registered reader"""

    def __init__(self, readers: Optional[Dict[EntityType, EntityReader]] = None):
        self._readers: Dict[EntityType, EntityReader] = dict(readers or {})

    def register(self, entity_type: EntityType, reader: EntityReader) -> None:
        self._readers[entity_type] = reader

    async def resolve(self, entity_type: str, entity_id: str, tenant_id: str) -> dict:
        if not entity_type:
            raise ValidationFailed("Entity type can't be null or empty")
        if not entity_id:
            raise ValidationFailed("Entity id can't be null or empty")

        reader = self._readers.get(EntityType.parse(entity_type))
        if reader is None:
            raise UnsupportedEntityType(f"Invalid entity type {entity_type}")
        return await reader(entity_id, tenant_id)


class HttpEntityReader:
    """Reads one kind of business object from the domain REST API"""

    def __init__(
        self,
        resource: str,
        client: httpx.AsyncClient,
        base_url: Optional[str] = None,
        token: Optional[str] = None
    ):
        self.resource = resource
        self.client = client
        self.base_url = (base_url or Config.DOMAIN_API_URL).rstrip("/")
        self.token = token if token is not None else Config.DOMAIN_API_TOKEN

    async def __call__(self, entity_id: str, tenant_id: str) -> dict:
        url = f"{self.base_url}/{self.resource}/{entity_id}"
        headers = {"Accept": "application/json", "X-Tenant-Id": tenant_id}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            response = await self.client.get(url, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Failed to read {self.resource}/{entity_id}: {e}")
            raise RemoteOperationFailed(f"Unable to read {self.resource} {entity_id}: {e}") from e

        if response.status_code == 404:
            raise ValidationFailed(f"{self.resource} {entity_id} does not exist")
        if not response.is_success:
            logger.error(f"Reading {self.resource}/{entity_id} failed: {response.status_code} - {response.text[:200]}")
            raise RemoteOperationFailed(f"Unable to read {self.resource} {entity_id}: HTTP {response.status_code}")
        return response.json()


# Domain API resource per entity type
ENTITY_RESOURCES = {
    EntityType.SHIPMENT: "shipments",
    EntityType.PURCHASE_ORDER: "purchase-orders",
    EntityType.SALES_ORDER: "sales-orders",
}


def create_http_resolver(
    client: httpx.AsyncClient,
    base_url: Optional[str] = None,
    token: Optional[str] = None
) -> RegistryEntityResolver:
    """Resolver reading every supported type from the domain REST API"""
    resolver = RegistryEntityResolver()
    for entity_type, resource in ENTITY_RESOURCES.items():
        resolver.register(entity_type, HttpEntityReader(resource, client, base_url, token))
    return resolver
