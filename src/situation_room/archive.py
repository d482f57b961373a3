"""
Room Archive Codec

Versioned container for the archived message log and the business context
snapshot stored with every room.

Layout (big-endian):
    b"SRA" | version (1 byte) | record count (4 bytes)
    then per record: length (4 bytes) | UTF-8 JSON bytes

The message log holds one record per message payload. The context snapshot
holds a single record with the JSON text captured at room creation.
"""
import json
import struct
from typing import Any, List

from .exceptions import ArchiveDecodeError

MAGIC = b"SRA"
VERSION = 1

_HEADER = struct.Struct(">3sBI")
_LENGTH = struct.Struct(">I")


def encode_records(records: List[bytes]) -> bytes:
    """Pack raw records into a container"""
    parts = [_HEADER.pack(MAGIC, VERSION, len(records))]
    for record in records:
        parts.append(_LENGTH.pack(len(record)))
        parts.append(record)
    return b"".join(parts)


def decode_records(blob: bytes) -> List[bytes]:
    """Unpack a container into raw records"""
    if not blob or len(blob) < _HEADER.size:
        raise ArchiveDecodeError("Archive is empty or truncated")

    magic, version, count = _HEADER.unpack_from(blob, 0)
    if magic != MAGIC:
        raise ArchiveDecodeError("Archive has an unknown format")
    if version != VERSION:
        raise ArchiveDecodeError(f"Unsupported archive version {version}")

    records = []
    offset = _HEADER.size
    for index in range(count):
        if offset + _LENGTH.size > len(blob):
            raise ArchiveDecodeError(f"Archive truncated at record {index}")
        (length,) = _LENGTH.unpack_from(blob, offset)
        offset += _LENGTH.size
        end = offset + length
        if end > len(blob):
            raise ArchiveDecodeError(f"Archive truncated at record {index}")
        records.append(bytes(blob[offset:end]))
        offset = end

    if offset != len(blob):
        raise ArchiveDecodeError("Archive has trailing data")
    return records


def encode_message_log(messages: List[Any]) -> bytes:
    """Encode the ordered list of message payloads"""
    return encode_records([json.dumps(m).encode("utf-8") for m in messages])


def decode_message_log(blob: bytes) -> List[Any]:
    """Decode the ordered list of message payloads"""
    try:
        return [json.loads(r.decode("utf-8")) for r in decode_records(blob)]
    except (UnicodeDecodeError, ValueError) as e:
        raise ArchiveDecodeError(f"Archived message is not valid JSON: {e}") from e


def encode_snapshot(snapshot_json: str) -> bytes:
    """Encode the serialized context snapshot text"""
    return encode_records([snapshot_json.encode("utf-8")])


def decode_snapshot(blob: bytes) -> str:
    """Decode the serialized context snapshot text"""
    records = decode_records(blob)
    if len(records) != 1:
        raise ArchiveDecodeError(f"Snapshot must hold one record, found {len(records)}")
    try:
        return records[0].decode("utf-8")
    except UnicodeDecodeError as e:
        raise ArchiveDecodeError(f"Snapshot is not valid UTF-8: {e}") from e
