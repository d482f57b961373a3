"""
Engine Service

Main composite service that manages all storages, remote clients and services.
Singleton pattern - one instance per process.
"""
import logging
from typing import Optional

import httpx

from ..chat.mattermost import MattermostClient
from ..config import Config
from ..domain.resolver import create_http_resolver
from ..locks import KeyedLockManager
from ..storage.room_storage import RoomStorage
from ..storage.token_storage import TokenStorage
from .identity_service import IdentityService
from .room_service import SituationRoomService

logger = logging.getLogger("situation.services.engine")

# Singleton instance
_engine_service: Optional["EngineService"] = None


class EngineService:
    """
    Composite engine service.

    Manages:
    - Storage connections (PostgreSQL)
    - Chat provider and domain API clients
    - Business logic services
    - Graceful shutdown
    """

    def __init__(self):
        """Initialize engine service with all storages and clients"""
        self.postgres_dsn = Config.get_postgres_dsn()

        # Initialize storages
        self.room_storage = RoomStorage(self.postgres_dsn)
        self.token_storage = TokenStorage(self.postgres_dsn)

        # Remote clients
        self.chat_client = MattermostClient()
        self.domain_http_client = httpx.AsyncClient(timeout=Config.CHAT_HTTP_TIMEOUT)
        self.entity_resolver = create_http_resolver(self.domain_http_client)

        # Shared by both services, room and user keys never collide
        self.locks = KeyedLockManager()

        # Initialize services (after storages)
        self.identity_service = IdentityService(
            token_storage=self.token_storage,
            chat_client=self.chat_client,
            locks=self.locks,
        )
        self.room_service = SituationRoomService(
            room_storage=self.room_storage,
            identity_service=self.identity_service,
            chat_client=self.chat_client,
            entity_resolver=self.entity_resolver,
            locks=self.locks,
        )

        self._initialized = False
        logger.info("EngineService created")

    async def initialize(self):
        """Initialize all storages"""
        if self._initialized:
            logger.info("EngineService already initialized")
            return

        logger.info("Initializing EngineService...")

        await self.room_storage.init()
        await self.token_storage.init()

        if not Config.CHAT_TEAM_ID:
            logger.warning("CHAT_TEAM_ID is not set, remote team membership will fail")

        self._initialized = True
        logger.info("EngineService initialized successfully")

    async def close(self):
        """Close all connections"""
        logger.info("Closing EngineService...")

        await self.room_storage.close()
        await self.token_storage.close()
        await self.chat_client.close()
        await self.domain_http_client.aclose()

        self._initialized = False
        logger.info("EngineService closed")

    async def is_ready(self) -> bool:
        """Storages and the chat server are reachable"""
        if not (await self.room_storage.ping() and await self.token_storage.ping()):
            return False
        return await self.chat_client.health_check()

    @property
    def is_initialized(self) -> bool:
        """Check if service is initialized"""
        return self._initialized


def get_engine_service() -> EngineService:
    """Get or create engine service singleton"""
    global _engine_service
    if _engine_service is None:
        _engine_service = EngineService()
    return _engine_service


async def init_engine_service() -> EngineService:
    """Initialize and return engine service"""
    service = get_engine_service()
    await service.initialize()
    return service
