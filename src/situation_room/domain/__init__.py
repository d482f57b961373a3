"""
Business object access for room context snapshots.
"""
from .resolver import (
    EntityType,
    EntityReader,
    EntityResolver,
    RegistryEntityResolver,
    HttpEntityReader,
    create_http_resolver,
)

__all__ = [
    'EntityType',
    'EntityReader',
    'EntityResolver',
    'RegistryEntityResolver',
    'HttpEntityReader',
    'create_http_resolver',
]
