"""zbin relocation protocol constants.

Single source of truth for the placeholder layout embedded in the binary.
Keep this file stable. The build-time sealer and the install-time relocator
must remain synchronized with every binary already shipped.
"""

# Placeholder payload capacity in bytes. Part of the on-disk ABI.
PAYLOAD_CAPACITY = 4096

# Tag grammar: ":" MAGIC ":" ROLE ":"
TAG_SEPARATOR = b":"

# Roles, in the order the relocator patches them
ROLE_FPATH = "fpath"
ROLE_SCRIPT = "script"
ROLE_TERMINFO = "terminfo"
ROLES = (ROLE_FPATH, ROLE_SCRIPT, ROLE_TERMINFO)

# Magic token: random alphanumerics chosen once per build
MAGIC_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
MAGIC_LEN = 20

# Bytes kept by the locator scan; everything else becomes a space
SCAN_KEEP = frozenset((MAGIC_ALPHABET + ":").encode("ascii"))

# Build-time default payloads
DEFAULT_DIRS = {
    ROLE_SCRIPT: "/usr/share/zsh/5.8/scripts",
    ROLE_FPATH: "/usr/share/zsh/5.8/functions",
    ROLE_TERMINFO: "/usr/share/terminfo",
}

# C macro names for each role's tag
C_TAG_MACROS = {
    ROLE_SCRIPT: "SCRIPT_DIR",
    ROLE_FPATH: "FPATH_DIR",
    ROLE_TERMINFO: "TERMINFO_DIR",
}

# Self-report probes run by the verifier: role -> zsh script
DEFAULT_PROBES = {
    ROLE_FPATH: "print -r -- $fpath[1]",
}
DEFAULT_VERIFY_TIMEOUT = 30.0  # seconds

# Sealed layout manifest
MANIFEST_SCHEMA = "zbin-layout-v1"
