"""Binary Patcher: overwrite tagged placeholder payloads in place."""
from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import BinaryIO

from zbin_core.errors import CapacityExceededError, DestinationError, HeaderMismatchError, MalformedSourceError
from zbin_core.protocol import PAYLOAD_CAPACITY
from zbin_core.tags import Tag

log = logging.getLogger(__name__)

_ZEROS = bytes(PAYLOAD_CAPACITY)


def read_placeholder(image: bytes, offset: int) -> bytes:
    """Current payload at offset, up to the first NUL."""
    payload = image[offset:offset + PAYLOAD_CAPACITY]
    end = payload.find(b"\x00")
    return payload if end == -1 else payload[:end]


def check_placeholder(fh: BinaryIO, offset: int, header: bytes, directory: bytes, role: str = "") -> None:
    """Validate one placeholder without writing anything."""
    if len(directory) > PAYLOAD_CAPACITY:
        raise CapacityExceededError(
            f"{directory.decode('utf-8', 'replace')} is {len(directory)} bytes, limit {PAYLOAD_CAPACITY}",
            role=role,
            path=directory,
            limit=PAYLOAD_CAPACITY,
        )
    if b"\x00" in directory:
        raise DestinationError("path contains NUL", role=role, path=directory)

    start = offset - len(header)
    if start < 0:
        raise HeaderMismatchError(f"offset {offset} precedes header", role=role, offset=offset)
    fh.seek(start)
    actual = fh.read(len(header))
    if actual != header:
        raise HeaderMismatchError(
            f"role {role!r} at offset {offset}",
            role=role,
            offset=offset,
            expected=header,
            actual=actual,
        )

    fh.seek(0, 2)
    size = fh.tell()
    if offset + PAYLOAD_CAPACITY > size:
        raise MalformedSourceError(
            f"payload for role {role!r} at offset {offset} runs past end of file ({size} bytes)",
            code="E_LAYOUT_ASSUMPTION",
            role=role,
            offset=offset,
        )


def patch_placeholder(fh: BinaryIO, offset: int, header: bytes, directory: bytes, role: str = "") -> None:
    """Zero the payload region, then write directory at its start."""
    check_placeholder(fh, offset, header, directory, role)
    fh.seek(offset)
    fh.write(_ZEROS)
    fh.seek(offset)
    fh.write(directory)


def patch_binary(path: Path, offsets: Mapping[str, int], magic: str, directories: Mapping[str, str]) -> None:
    """Patch every role of the binary at path (normally a scratch copy).

    Every role is validated before the first byte is written.
    """
    plan = []
    for role, directory in directories.items():
        if role not in offsets:
            raise HeaderMismatchError(f"no recorded offset for role {role!r}", role=role)
        tag = Tag(magic, role, directory)
        plan.append((role, offsets[role], tag.header, tag.payload))

    with open(path, "r+b") as fh:
        for role, offset, header, data in plan:
            check_placeholder(fh, offset, header, data, role)
        for role, offset, header, data in plan:
            patch_placeholder(fh, offset, header, data, role)
            log.debug("patched %s at offset %d -> %s", role, offset, data.decode("utf-8", "replace"))
        fh.flush()
