"""
Room Storage

PostgreSQL storage for situation rooms and their participants.
"""
import json
import logging
from typing import Optional, List

from .base import BaseStorage
from ..exceptions import ConcurrentModification
from ..models.participant import Participant, ParticipantStatus
from ..models.room import Room, RoomStatus, Resolution

logger = logging.getLogger("situation.storage.room")


class RoomStorage(BaseStorage):
    """Storage for Room entities"""

    async def create(self, room: Room) -> Room:
        """Create a new room with its participants"""
        query = """
            INSERT INTO situation_rooms (
                id, name, entity_type, created_by, description, situation_type,
                team_id, tenant_id, status, resolution, domain_object_ids,
                chats, contexts, total_message_count,
                created_at, updated_at, last_post_at, version
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10::jsonb, $11,
                    $12, $13, $14, $15, $16, $17, $18)
        """
        async with self.transaction() as conn:
            await conn.execute(
                query,
                room.id, room.name, room.entity_type, room.created_by,
                room.description, room.situation_type, room.team_id, room.tenant_id,
                room.status.value, self._resolution_json(room), list(room.domain_object_ids),
                room.chats, room.contexts, room.total_message_count,
                room.created_at, room.updated_at, room.last_post_at, room.version
            )
            await self._upsert_participants(conn, room)
        logger.debug(f"Room {room.id} created with {len(room.participants)} participants")
        return room

    async def get_by_id(self, room_id: str, tenant_id: str) -> Optional[Room]:
        """Get room by ID within a tenant"""
        row = await self.fetchrow(
            "SELECT * FROM situation_rooms WHERE id = $1 AND tenant_id = $2",
            room_id, tenant_id
        )
        if not row:
            return None
        participants = await self.fetch(
            "SELECT * FROM room_participants WHERE room_id = $1 ORDER BY invited_at, user_name",
            room_id
        )
        return self._row_to_room(row, [self._row_to_participant(p) for p in participants])

    async def update(self, room: Room) -> Room:
        """
        Persist room and participant set.

        The write only applies when the stored version still equals
        room.version; otherwise ConcurrentModification is raised.
        """
        query = """
            UPDATE situation_rooms
            SET name = $3, description = $4, status = $5, resolution = $6::jsonb,
                chats = $7, total_message_count = $8, updated_at = $9,
                last_post_at = $10, version = version + 1
            WHERE id = $1 AND version = $2 AND tenant_id = $11
            RETURNING version
        """
        async with self.transaction() as conn:
            new_version = await conn.fetchval(
                query,
                room.id, room.version, room.name, room.description, room.status.value,
                self._resolution_json(room), room.chats, room.total_message_count,
                room.updated_at, room.last_post_at, room.tenant_id
            )
            if new_version is None:
                raise ConcurrentModification(f"Room {room.id} was modified concurrently")

            await conn.execute(
                "DELETE FROM room_participants WHERE room_id = $1 AND NOT (id = ANY($2::text[]))",
                room.id, [p.id for p in room.participants]
            )
            await self._upsert_participants(conn, room)

        room.version = new_version
        return room

    async def delete(self, room_id: str, tenant_id: str) -> bool:
        """Hard delete room (participants cascade)"""
        result = await self.execute(
            "DELETE FROM situation_rooms WHERE id = $1 AND tenant_id = $2",
            room_id, tenant_id
        )
        return result == "DELETE 1"

    async def list_by_user(self, user_name: str, tenant_id: str) -> List[Room]:
        """Rooms the user participates in, latest modified first"""
        query = """
            SELECT r.* FROM situation_rooms r
            JOIN room_participants p ON p.room_id = r.id
            WHERE p.user_name = $1 AND r.tenant_id = $2
            ORDER BY r.updated_at DESC
        """
        return await self._load_rooms(await self.fetch(query, user_name, tenant_id))

    async def list_by_user_and_room_status(
        self,
        user_name: str,
        tenant_id: str,
        status: RoomStatus
    ) -> List[Room]:
        """Rooms of the user in the given room status"""
        query = """
            SELECT r.* FROM situation_rooms r
            JOIN room_participants p ON p.room_id = r.id
            WHERE p.user_name = $1 AND r.tenant_id = $2 AND r.status = $3
            ORDER BY r.updated_at DESC
        """
        return await self._load_rooms(await self.fetch(query, user_name, tenant_id, status.value))

    async def list_by_user_and_participant_status(
        self,
        user_name: str,
        tenant_id: str,
        status: ParticipantStatus
    ) -> List[Room]:
        """Rooms where the user's membership has the given status"""
        query = """
            SELECT r.* FROM situation_rooms r
            JOIN room_participants p ON p.room_id = r.id
            WHERE p.user_name = $1 AND r.tenant_id = $2 AND p.status = $3
            ORDER BY r.updated_at DESC
        """
        return await self._load_rooms(await self.fetch(query, user_name, tenant_id, status.value))

    async def _load_rooms(self, rows) -> List[Room]:
        if not rows:
            return []
        room_ids = [row["id"] for row in rows]
        participant_rows = await self.fetch(
            "SELECT * FROM room_participants WHERE room_id = ANY($1::text[]) ORDER BY invited_at, user_name",
            room_ids
        )
        by_room = {room_id: [] for room_id in room_ids}
        for p in participant_rows:
            by_room[p["room_id"]].append(self._row_to_participant(p))
        return [self._row_to_room(row, by_room[row["id"]]) for row in rows]

    async def _upsert_participants(self, conn, room: Room) -> None:
        query = """
            INSERT INTO room_participants (id, room_id, user_name, status, invited_at, joined_at)
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (id) DO UPDATE
            SET status = EXCLUDED.status, joined_at = EXCLUDED.joined_at
        """
        await conn.executemany(query, [
            (p.id, room.id, p.user_name, p.status.value, p.invited_at, p.joined_at)
            for p in room.participants
        ])

    def _resolution_json(self, room: Room) -> Optional[str]:
        return json.dumps(room.resolution.to_dict()) if room.resolution else None

    def _row_to_participant(self, row) -> Participant:
        """Convert database row to Participant"""
        return Participant(
            room_id=row["room_id"],
            user_name=row["user_name"],
            status=ParticipantStatus(row["status"]),
            invited_at=row["invited_at"],
            joined_at=row["joined_at"]
        )

    def _row_to_room(self, row, participants: List[Participant]) -> Room:
        """Convert database row to Room"""
        resolution = row["resolution"]
        if isinstance(resolution, str):
            resolution = json.loads(resolution)

        return Room(
            id=row["id"],
            name=row["name"],
            entity_type=row["entity_type"],
            created_by=row["created_by"],
            description=row["description"],
            situation_type=row["situation_type"],
            team_id=row["team_id"],
            tenant_id=row["tenant_id"],
            status=RoomStatus(row["status"]),
            resolution=Resolution.from_dict(resolution) if resolution else None,
            participants=participants,
            domain_object_ids=list(row["domain_object_ids"] or []),
            chats=bytes(row["chats"]),
            contexts=bytes(row["contexts"]),
            total_message_count=row["total_message_count"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            last_post_at=row["last_post_at"],
            version=row["version"]
        )
