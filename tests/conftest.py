import httpx
import pytest

from situation_room.chat.mattermost import MattermostClient
from situation_room.domain.resolver import EntityType, RegistryEntityResolver
from situation_room.locks import KeyedLockManager
from situation_room.models.context import RequestContext
from situation_room.services.identity_service import IdentityService
from situation_room.services.room_service import SituationRoomService

from tests.fakes import FakeMattermost, InMemoryRoomStorage, InMemoryTokenStorage

TENANT = "tenant-1"
TEAM = "team-1"
CHAT_URL = "http://chat.test/api/v4"

ALICE = RequestContext(user_id="alice", tenant_id=TENANT)
BOB = RequestContext(user_id="bob", tenant_id=TENANT)
CAROL = RequestContext(user_id="carol", tenant_id=TENANT)


def make_reader(entity_type: EntityType):
    async def read(entity_id: str, tenant_id: str) -> dict:
        return {"type": entity_type.value, "id": entity_id, "tenant": tenant_id}
    return read


@pytest.fixture
def chat_server():
    return FakeMattermost()


@pytest.fixture
async def chat_client(chat_server):
    client = MattermostClient(
        base_url=CHAT_URL,
        admin_token=chat_server.admin_token,
        client=httpx.AsyncClient(transport=chat_server.transport()),
    )
    yield client
    await client.close()


@pytest.fixture
def room_storage():
    return InMemoryRoomStorage()


@pytest.fixture
def token_storage():
    return InMemoryTokenStorage()


@pytest.fixture
def locks():
    return KeyedLockManager()


@pytest.fixture
def entity_resolver():
    return RegistryEntityResolver({t: make_reader(t) for t in EntityType})


@pytest.fixture
def identity_service(token_storage, chat_client, locks):
    return IdentityService(
        token_storage=token_storage,
        chat_client=chat_client,
        locks=locks,
        team_id=TEAM,
        email_domain="example.test",
        initial_password="secret-pw",
        max_username_length=22,
    )


@pytest.fixture
def room_service(room_storage, identity_service, chat_client, entity_resolver, locks):
    return SituationRoomService(
        room_storage=room_storage,
        identity_service=identity_service,
        chat_client=chat_client,
        entity_resolver=entity_resolver,
        locks=locks,
        team_id=TEAM,
    )


async def create_room(service, ctx=ALICE, participants=("bob",), **overrides) -> str:
    """Create a room and return its id"""
    request = {
        "name": "Late shipment",
        "entity_type": "shipment",
        "object_ids": ["SH-1"],
        "participants": list(participants),
        "purpose": "Shipment SH-1 is delayed",
        "situation_type": "delay",
    }
    request.update(overrides)
    body = await service.create_room(ctx, **request)
    return body["id"]


@pytest.fixture
async def room_id(room_service):
    """Room created by alice with bob invited"""
    return await create_room(room_service)
