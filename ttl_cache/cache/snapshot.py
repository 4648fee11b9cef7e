"""
Snapshot Codec Module

Encodes the value-only view of a cache (key -> value, no TTL state) into a
portable binary format and reads it back.

Format (all integers big-endian, all strings UTF-8):

    magic      4 bytes   b"TTLC"
    version    1 byte    0x01
    count      uint32    number of records
    records    count x:
        key_len    uint32
        key        key_len bytes
        value_len  uint32
        value      value_len bytes

Record order carries no meaning.
"""

import logging
import os
import struct
import tempfile
from typing import Dict, Mapping

from .errors import SnapshotFormatError, SnapshotIOError

logger = logging.getLogger(__name__)

MAGIC = b"TTLC"
VERSION = 1

_HEADER = struct.Struct(">4sBI")
_LENGTH = struct.Struct(">I")


def encode(mapping: Mapping[str, str]) -> bytes:
    """
    Serialize a key -> value mapping.

    Raises:
        SnapshotFormatError: If a key or value is not a string
    """
    parts = [_HEADER.pack(MAGIC, VERSION, len(mapping))]
    for key, value in mapping.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise SnapshotFormatError(
                f"snapshot keys and values must be str, got {type(key).__name__} -> {type(value).__name__}"
            )
        for text in (key, value):
            raw = text.encode("utf-8")
            parts.append(_LENGTH.pack(len(raw)))
            parts.append(raw)
    return b"".join(parts)


def decode(data: bytes) -> Dict[str, str]:
    """
    Parse snapshot bytes back into a dict.

    Raises:
        SnapshotFormatError: On bad magic, unknown version, truncated or
            trailing data, invalid UTF-8 or duplicate keys
    """
    if len(data) < _HEADER.size:
        raise SnapshotFormatError("snapshot is truncated: missing header")

    magic, version, count = _HEADER.unpack_from(data, 0)
    if magic != MAGIC:
        raise SnapshotFormatError("not a snapshot file: bad magic")
    if version != VERSION:
        raise SnapshotFormatError(f"unsupported snapshot version {version}")

    offset = _HEADER.size
    result: Dict[str, str] = {}

    for index in range(count):
        key, offset = _read_string(data, offset, index)
        value, offset = _read_string(data, offset, index)
        if key in result:
            raise SnapshotFormatError(f"duplicate key {key!r} in record {index}")
        result[key] = value

    if offset != len(data):
        raise SnapshotFormatError(f"{len(data) - offset} trailing bytes after {count} records")
    return result


def _read_string(data: bytes, offset: int, index: int):
    end = offset + _LENGTH.size
    if end > len(data):
        raise SnapshotFormatError(f"snapshot is truncated in record {index}")
    (length,) = _LENGTH.unpack_from(data, offset)

    start, end = end, end + length
    if end > len(data):
        raise SnapshotFormatError(f"snapshot is truncated in record {index}")
    try:
        return data[start:end].decode("utf-8"), end
    except UnicodeDecodeError as exc:
        raise SnapshotFormatError(f"record {index} is not valid UTF-8: {exc}") from exc


def write_snapshot(path: str, mapping: Mapping[str, str]) -> str:
    """
    Write mapping to path, creating parent directories as needed.

    The file is written next to its destination and moved into place, so a
    failed write never leaves a half-written snapshot behind.

    Returns:
        Absolute path of the written file

    Raises:
        SnapshotIOError: If the directory or file cannot be written
        SnapshotFormatError: If the mapping holds non-string data
    """
    payload = encode(mapping)
    target = os.path.abspath(path)
    directory = os.path.dirname(target)

    try:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".snapshot-", dir=directory)
    except OSError as exc:
        raise SnapshotIOError(f"cannot write snapshot {path}: {exc}") from exc

    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, target)
    except OSError as exc:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise SnapshotIOError(f"cannot write snapshot {path}: {exc}") from exc

    logger.debug(f"Wrote {len(mapping)} records ({len(payload)} bytes) to {target}")
    return target


def read_snapshot(path: str) -> Dict[str, str]:
    """
    Read and decode a snapshot file.

    Raises:
        SnapshotIOError: If the file cannot be opened or read
        SnapshotFormatError: If the content is malformed
    """
    try:
        with open(path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        raise SnapshotIOError(f"cannot read snapshot {path}: {exc}") from exc
    return decode(data)
