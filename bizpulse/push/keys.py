"""
VAPID key handling.

The application-server key is configured as URL-safe base64 (usually
without padding) and must decode to an uncompressed P-256 point: 65
bytes starting with 0x04.
"""

from __future__ import annotations

import base64
import binascii

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from .faults import PUSH_VAPID_INVALID

UNCOMPRESSED_POINT_SIZE = 65


def urlsafe_b64decode(data: str) -> bytes:
    """URL-safe base64 decode, repairing missing padding."""
    data = data.strip()
    padding = 4 - (len(data) % 4)
    if padding != 4:
        data += "=" * padding
    try:
        return base64.b64decode(data.replace("-", "+").replace("_", "/"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"not base64: {exc}") from None


def urlsafe_b64encode(data: bytes) -> str:
    """URL-safe base64 encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def b64encode(data: bytes) -> str:
    """Standard base64, as the backend expects subscription keys."""
    return base64.b64encode(data).decode("ascii")


def decode_vapid_public_key(value: str) -> bytes:
    """
    Decode and validate a VAPID public key.

    Raises:
        PushFault: PUSH_VAPID_INVALID when the value is not base64 or
            not an uncompressed point on P-256
    """
    try:
        raw = urlsafe_b64decode(value)
    except ValueError as exc:
        raise PUSH_VAPID_INVALID(str(exc)) from None

    if len(raw) != UNCOMPRESSED_POINT_SIZE or raw[0] != 0x04:
        raise PUSH_VAPID_INVALID(
            f"expected {UNCOMPRESSED_POINT_SIZE}-byte uncompressed point, got {len(raw)} bytes"
        )

    try:
        ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), raw)
    except ValueError:
        raise PUSH_VAPID_INVALID("not a point on P-256") from None

    return raw


def public_key_bytes(public_key: ec.EllipticCurvePublicKey) -> bytes:
    """Uncompressed point encoding of a P-256 public key."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )


def generate_vapid_public_key() -> str:
    """Fresh URL-safe application-server key (development and tests)."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    return urlsafe_b64encode(public_key_bytes(private_key.public_key()))
