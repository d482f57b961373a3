"""
Situation Room Exceptions

Error taxonomy shared by services, storages and the API layer.
Each error carries a stable code and the HTTP status the API answers with.
"""
from typing import Optional


class ChatError(Exception):
    """Base exception for situation room operations"""

    code = "CHAT_ERROR"
    status_code = 500

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class ValidationFailed(ChatError):
    """Required input is missing or empty"""
    code = "VALIDATION_FAILED"
    status_code = 400


class UnsupportedEntityType(ValidationFailed):
    """Entity type is not supported by the chat service"""
    code = "UNSUPPORTED_ENTITY_TYPE"


class RoomNotFound(ChatError):
    """Room does not exist"""
    code = "ROOM_NOT_EXISTS"
    status_code = 404


class InvalidRoom(ChatError):
    """Invalid chat room"""
    code = "INVALID_CHAT_ROOM"
    status_code = 404


class ChannelNotFound(ChatError):
    """Channel does not exist"""
    code = "CHANNEL_NOT_EXISTS"
    status_code = 404


class ParticipantNotMember(ChatError):
    """User is not a participant of the room"""
    code = "PARTICIPANT_NOT_BELONG"
    status_code = 404


class Unauthorized(ChatError):
    """Caller is not allowed to perform this operation"""
    code = "UNAUTHORIZED"
    status_code = 403


class RoomAlreadyResolved(Unauthorized):
    """Operation is not allowed on a resolved room"""
    code = "ROOM_RESOLVED"


class RemoteOperationFailed(ChatError):
    """Remote chat system call failed"""
    code = "REMOTE_OPERATION_FAILED"
    status_code = 502


class ProvisioningFailed(RemoteOperationFailed):
    """Unable to set up the user in the remote chat system"""
    code = "PROVISIONING_FAILED"


class ArchiveDecodeError(ChatError):
    """Archived room data could not be decoded"""
    code = "ARCHIVE_DECODE_ERROR"
    status_code = 500


class ConcurrentModification(ChatError):
    """Room was modified concurrently, reload and try again"""
    code = "CONCURRENT_MODIFICATION"
    status_code = 409


class DuplicateTokenMapping(ChatError):
    """Token mapping already exists for user"""
    code = "DUPLICATE_TOKEN_MAPPING"
    status_code = 409
