"""Client key pair generation.

Keys are raw 32-byte Curve25519 values encoded as unpadded base64url.
"""

from __future__ import annotations

import base64

from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)


def encode_key(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_key(encoded: str) -> bytes:
    padded = encoded + "=" * (-len(encoded) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except Exception as exc:  # pragma: no cover - exact exception class may vary
        raise ValueError("invalid base64url key") from exc
    if len(raw) != 32:
        raise ValueError("key must decode to 32 bytes")
    return raw


def generate_keypair() -> tuple[str, str]:
    """Return ``(public_key, private_key)``, both base64url encoded."""
    private = X25519PrivateKey.generate()
    private_bytes = private.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
    public_bytes = private.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return encode_key(public_bytes), encode_key(private_bytes)
