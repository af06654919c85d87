"""Error taxonomy for the relocation protocol.

Every error is terminal. Nothing here is retried.
"""
from __future__ import annotations

ERRORS = {
    "E_TAG_INVALID": "Tag magic or role is not valid",
    "E_TAG_COUNT": "Tag must occur exactly once",
    "E_LAYOUT_ASSUMPTION": "Placeholder does not lie inside the binary image",
    "E_CAPACITY": "Path exceeds reserved placeholder capacity",
    "E_HEADER_MISMATCH": "Not a relocatable artifact of this build",
    "E_VERIFY": "Patched binary did not report the relocated path",
    "E_IO": "Filesystem operation failed",
    "E_DST_INVALID": "Cannot relocate to or from this directory",
    "E_LAYOUT_MISSING": "Required file missing",
    "E_MANIFEST_JSON": "Layout manifest JSON invalid",
    "E_SIG_INVALID": "Layout manifest signature invalid",
}


class RelocationError(Exception):
    """Base class. Carries an error code and diagnostic context."""

    code = "E_IO"

    def __init__(self, detail: str, code: str | None = None, **context):
        if code is not None:
            self.code = code
        self.detail = detail
        self.context = context
        super().__init__(f"{ERRORS[self.code]}: {detail}")

    def to_dict(self) -> dict:
        d = {"code": self.code, "message": ERRORS[self.code], "detail": self.detail}
        for k, v in self.context.items():
            d[k] = v.decode("latin-1") if isinstance(v, bytes) else v
        return d


class TagError(RelocationError):
    code = "E_TAG_INVALID"


class MalformedSourceError(RelocationError):
    code = "E_TAG_COUNT"


class CapacityExceededError(RelocationError):
    code = "E_CAPACITY"


class HeaderMismatchError(RelocationError):
    code = "E_HEADER_MISMATCH"


class VerificationError(RelocationError):
    code = "E_VERIFY"


class RelocationIOError(RelocationError):
    code = "E_IO"


class DestinationError(RelocationError):
    code = "E_DST_INVALID"


class ManifestError(RelocationError):
    code = "E_LAYOUT_MISSING"
