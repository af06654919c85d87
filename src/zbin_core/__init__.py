"""zbin core - Relocation protocol constants, tags and layout."""
from .errors import RelocationError
from .layout import InstallLayout, Manifest, load_manifest
from .tags import Tag, generate_magic, reserved_size, tag_header, text_placeholder

__all__ = [
    "InstallLayout",
    "Manifest",
    "RelocationError",
    "Tag",
    "generate_magic",
    "load_manifest",
    "reserved_size",
    "tag_header",
    "text_placeholder",
]
