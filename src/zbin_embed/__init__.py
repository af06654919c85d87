"""zbin embed - Build-time placeholder layout and sealing."""
from .cheader import render_paths_header, render_tagged_buffers
from .locator import locate_offsets, locate_payload
from .seal import seal_install, template_help_file

__all__ = [
    "locate_offsets",
    "locate_payload",
    "render_paths_header",
    "render_tagged_buffers",
    "seal_install",
    "template_help_file",
]
