"""Text Patcher: rewrite the directory inside a MAGIC ... MAGIC pair.

The value is spliced in as opaque bytes. No regex or shell is involved,
so slashes and shell metacharacters in the path are harmless.
"""
from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from zbin_core.errors import DestinationError, MalformedSourceError
from zbin_core.tags import encode_directory, text_placeholder, validate_magic


def scratch_sibling(path: Path) -> Path:
    """Create an empty, private `<name>.XXXX.tmp` file next to path."""
    fd, name = tempfile.mkstemp(dir=path.parent, prefix=path.name + ".", suffix=".tmp")
    os.close(fd)
    return Path(name)


def _split(data: bytes, magic: bytes) -> tuple[bytes, bytes, bytes]:
    count = data.count(magic)
    if count != 2:
        raise MalformedSourceError(f"magic marker found {count} times, expected one pair", occurrences=count)
    head, body, tail = data.split(magic)
    return head, body, tail


def read_text_directory(data: bytes, magic: str) -> bytes:
    """Directory currently stored between the markers."""
    _, body, _ = _split(data, validate_magic(magic).encode("ascii"))
    return body.removeprefix(b"\n").removesuffix(b"\n")


def patch_text(data: bytes, magic: str, directory: str) -> bytes:
    """Return data with the placeholder value replaced by directory."""
    m = validate_magic(magic).encode("ascii")
    raw = encode_directory(directory)
    if b"\n" in raw or m in raw:
        raise DestinationError(f"path cannot be stored in a text placeholder: {directory!r}", path=directory)
    head, _, tail = _split(data, m)
    return head + text_placeholder(magic, directory) + tail


def patch_text_file(path: Path, magic: str, directory: str) -> Path:
    """Write the patched copy of path to a scratch sibling and return it."""
    path = Path(path)
    try:
        patched = patch_text(path.read_bytes(), magic, directory)
    except MalformedSourceError as e:
        e.context["path"] = str(path)
        raise
    tmp = scratch_sibling(path)
    try:
        tmp.write_bytes(patched)
        shutil.copymode(path, tmp)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise
    return tmp
