"""C declarations that reserve the tagged placeholder buffers.

The buffers are `volatile` so the compiler keeps the full reserved size and
cannot fold the default path into its uses.
"""
from __future__ import annotations

from collections.abc import Mapping

from zbin_core.errors import CapacityExceededError
from zbin_core.protocol import C_TAG_MACROS, DEFAULT_DIRS, PAYLOAD_CAPACITY, ROLES
from zbin_core.tags import tag_header


def _c_string(s: str) -> str:
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def render_paths_header(magic: str, module_dir: str = "/dev/null") -> str:
    """Render zshpaths.h for a build with the given magic."""
    lines = [f"#define MODULE_DIR {_c_string(module_dir)}", ""]
    for role in ROLES:
        macro = C_TAG_MACROS[role]
        lines.append(f"#define {macro}_TAG {_c_string(tag_header(magic, role).decode('ascii'))}")
    lines.append("")
    for role in ROLES:
        macro = C_TAG_MACROS[role]
        lines.append(
            f"extern volatile char tagged_{macro.lower()}[sizeof({macro}_TAG) + {PAYLOAD_CAPACITY}];"
        )
    lines.append("")
    for role in ROLES:
        macro = C_TAG_MACROS[role]
        lines.append(
            f"#define {macro} ((const char *)(tagged_{macro.lower()} + sizeof({macro}_TAG) - 1))"
        )
    lines.append("")
    lines.append("extern int tgetent_with_env(char *, char *);")
    return "\n".join(lines) + "\n"


def render_tagged_buffers(defaults: Mapping[str, str] | None = None) -> str:
    """Render the buffer definitions, each holding its tag and default path."""
    defaults = {**DEFAULT_DIRS, **(defaults or {})}
    out = []
    for role in ROLES:
        path = defaults[role]
        if len(path.encode("utf-8")) > PAYLOAD_CAPACITY:
            raise CapacityExceededError(path, role=role, limit=PAYLOAD_CAPACITY)
        macro = C_TAG_MACROS[role]
        out.append(
            f"volatile char tagged_{macro.lower()}[sizeof({macro}_TAG) + {PAYLOAD_CAPACITY}] = {{\n"
            f"  {macro}_TAG {_c_string(path)}\n"
            "};\n"
        )
    return "".join(out)
