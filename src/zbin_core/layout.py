"""Install layout and the sealed offset-table manifest.

The manifest is the only configuration the relocator reads. It is written
once at build time, next to the binary, and never recomputed afterwards.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from .crypto import sign_ed25519, verify_ed25519
from .errors import ManifestError, RelocationIOError
from .protocol import MANIFEST_SCHEMA, PAYLOAD_CAPACITY, ROLES
from .tags import validate_magic

CANONICAL_JSON_KW = {"sort_keys": True, "separators": (",", ":"), "ensure_ascii": False}


def canonical_json_bytes(obj) -> bytes:
    return json.dumps(obj, **CANONICAL_JSON_KW).encode("utf-8")


def _relative(value) -> str:
    """A path that stays inside the install root."""
    if not isinstance(value, str) or not value:
        raise ManifestError(f"layout path must be a non-empty string: {value!r}", code="E_MANIFEST_JSON")
    p = PurePosixPath(value)
    if p.is_absolute() or ".." in p.parts:
        raise ManifestError(f"layout path escapes the install root: {value!r}", code="E_MANIFEST_JSON")
    return value


def _default_role_dirs() -> dict[str, str]:
    return {
        "fpath": "share/zsh/5.8/functions",
        "script": "share/zsh/5.8/scripts",
        "terminfo": "share/terminfo",
    }


@dataclass(frozen=True)
class InstallLayout:
    """Relative paths inside an install root."""

    binary: str = "bin/zsh"
    help_files: tuple[str, ...] = (
        "share/zsh/5.8/functions/run-help",
        "share/zsh/5.8/functions/_run-help",
    )
    help_dir: str = "share/zsh/5.8/help"
    role_dirs: dict[str, str] = field(default_factory=_default_role_dirs)
    manifest: str = "share/zsh/5.8/scripts/relocate.json"
    signature: str = "share/zsh/5.8/scripts/relocate.sig"
    publisher: str = "share/zsh/5.8/scripts/relocate.pub"

    def max_subpath_len(self) -> int:
        """Longest suffix appended to the destination by any role."""
        return max(len(p.encode("utf-8")) for p in self.role_dirs.values())

    def to_dict(self) -> dict:
        return {
            "binary": self.binary,
            "help_files": list(self.help_files),
            "help_dir": self.help_dir,
            "role_dirs": dict(self.role_dirs),
            "manifest": self.manifest,
            "signature": self.signature,
            "publisher": self.publisher,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "InstallLayout":
        role_dirs = dict(d["role_dirs"])
        unknown = set(role_dirs) - set(ROLES)
        if not isinstance(d["help_files"], list):
            raise ManifestError("help_files must be a list", code="E_MANIFEST_JSON")
        if unknown:
            raise ManifestError(f"unknown roles in layout: {sorted(unknown)}", code="E_MANIFEST_JSON")
        return cls(
            binary=_relative(d["binary"]),
            help_files=tuple(_relative(p) for p in d["help_files"]),
            help_dir=_relative(d["help_dir"]),
            role_dirs={role: _relative(p) for role, p in role_dirs.items()},
            manifest=_relative(d["manifest"]),
            signature=_relative(d["signature"]),
            publisher=_relative(d["publisher"]),
        )


@dataclass(frozen=True)
class Manifest:
    magic: str
    offsets: dict[str, int]
    layout: InstallLayout
    created: str
    pubkey: str
    capacity: int = PAYLOAD_CAPACITY

    def to_dict(self) -> dict:
        return {
            "schema": MANIFEST_SCHEMA,
            "created": self.created,
            "magic": self.magic,
            "capacity": self.capacity,
            "offsets": dict(self.offsets),
            "layout": self.layout.to_dict(),
            "publisher": {"pubkey": self.pubkey},
        }


def write_manifest(root: Path, manifest: Manifest, key) -> bytes:
    """Write manifest, detached signature and publisher key under root."""
    layout = manifest.layout
    man_bytes = canonical_json_bytes(manifest.to_dict())
    for rel in (layout.manifest, layout.signature, layout.publisher):
        (root / rel).parent.mkdir(parents=True, exist_ok=True)
    (root / layout.manifest).write_bytes(man_bytes)
    (root / layout.signature).write_bytes(sign_ed25519(key, man_bytes))
    (root / layout.publisher).write_bytes(bytes(key.verify_key))
    return man_bytes


def _parse_manifest(obj: dict) -> Manifest:
    if obj.get("schema") != MANIFEST_SCHEMA:
        raise ManifestError(f"unsupported schema {obj.get('schema')!r}", code="E_MANIFEST_JSON")
    if obj.get("capacity") != PAYLOAD_CAPACITY:
        raise ManifestError(
            f"capacity {obj.get('capacity')!r} does not match {PAYLOAD_CAPACITY}", code="E_MANIFEST_JSON"
        )
    layout = InstallLayout.from_dict(obj["layout"])
    offsets = {}
    for role in layout.role_dirs:
        off = obj["offsets"].get(role)
        # bool is an int subclass; reject it too
        if not isinstance(off, int) or isinstance(off, bool) or off < 0:
            raise ManifestError(f"offset for role {role!r} is not a nonnegative integer: {off!r}",
                                code="E_MANIFEST_JSON", role=role)
        offsets[role] = off
    return Manifest(
        magic=validate_magic(obj["magic"]),
        offsets=offsets,
        layout=layout,
        created=obj.get("created", ""),
        pubkey=obj["publisher"]["pubkey"],
        capacity=obj["capacity"],
    )


def load_manifest(root: Path, layout: InstallLayout | None = None) -> Manifest:
    """Read and verify the sealed manifest of an install root."""
    layout = layout or InstallLayout()
    manifest_path = root / layout.manifest
    sig_path = root / layout.signature
    pub_path = root / layout.publisher

    try:
        for p in (manifest_path, sig_path, pub_path):
            if not p.is_file():
                raise ManifestError(f"not a relocatable zsh directory: {root}", path=str(p))
        raw = manifest_path.read_bytes()
        sig = sig_path.read_bytes()
        pub = pub_path.read_bytes()
    except OSError as e:
        raise RelocationIOError(f"cannot read layout manifest: {e}", path=str(manifest_path)) from e
    try:
        obj = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ManifestError(str(e), code="E_MANIFEST_JSON", path=str(manifest_path)) from e

    # Signature covers the canonical bytes, not whatever is on disk
    if not verify_ed25519(pub, canonical_json_bytes(obj), sig):
        raise ManifestError(str(manifest_path), code="E_SIG_INVALID")

    try:
        manifest = _parse_manifest(obj)
    except (KeyError, TypeError, AttributeError) as e:
        raise ManifestError(f"missing or malformed field: {e}", code="E_MANIFEST_JSON",
                            path=str(manifest_path)) from e
    if manifest.pubkey.lower() != pub.hex().lower():
        raise ManifestError("publisher key does not match manifest", code="E_SIG_INVALID")
    return manifest
