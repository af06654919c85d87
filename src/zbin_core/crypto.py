from __future__ import annotations

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey


def signing_key(seed: bytes | None = None) -> SigningKey:
    """Deterministic key from a 32-byte seed, or a fresh one per build."""
    return SigningKey(seed) if seed is not None else SigningKey.generate()


def sign_ed25519(key: SigningKey, message: bytes) -> bytes:
    return key.sign(message).signature


def verify_ed25519(public_key_bytes: bytes, message: bytes, signature: bytes) -> bool:
    try:
        vk = VerifyKey(public_key_bytes)
        vk.verify(message, signature)
        return True
    except (BadSignatureError, ValueError, TypeError):
        return False
