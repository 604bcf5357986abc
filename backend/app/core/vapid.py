"""VAPID key handling and assertion signing for Web Push (RFC 8292)."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlsplit

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
import jwt

from .exceptions import VapidConfigurationError, VapidSigningError

VAPID_ALGORITHM = "ES256"
ASSERTION_LIFETIME_SECONDS = 12 * 60 * 60
MAX_ASSERTION_LIFETIME_SECONDS = 24 * 60 * 60

_P256_CURVE_NAME = ec.SECP256R1.name
_RAW_SCALAR_LENGTH = 32
_DEFAULT_PORTS = {"https": 443, "http": 80}


def b64url_encode(data: bytes) -> str:
    """Encode bytes as urlsafe base64 with the padding stripped."""

    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(payload: str) -> bytes:
    """Decode urlsafe base64, tolerating missing padding and standard alphabet."""

    cleaned = payload.strip().replace("+", "-").replace("/", "_")
    padding_len = (-len(cleaned)) % 4
    return base64.urlsafe_b64decode((cleaned + "=" * padding_len).encode("ascii"))


@dataclass(frozen=True)
class ServerKeyPair:
    """Process-wide P-256 key pair used to sign VAPID assertions."""

    private_key: ec.EllipticCurvePrivateKey
    public_key_b64: str

    @property
    def public_key(self) -> ec.EllipticCurvePublicKey:
        return self.private_key.public_key()


@dataclass(frozen=True)
class VapidAssertion:
    """A signed, origin-scoped VAPID token and the claims it carries."""

    token: str
    audience: str
    expires_at: int
    subject: str

    def authorization_header(self, public_key_b64: str) -> str:
        return f"vapid t={self.token}, k={public_key_b64}"


def encode_public_key(private_key: ec.EllipticCurvePrivateKey) -> str:
    """Return the uncompressed X9.62 public point for ``private_key``, base64url."""

    raw = private_key.public_key().public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )
    return b64url_encode(raw)


def parse_private_key(encoded: str) -> ec.EllipticCurvePrivateKey:
    """
    Parse a VAPID private key.

    Accepts PKCS8 DER (base64url), a PEM block, or a bare 32-byte P-256
    scalar (base64url) as printed by most VAPID key generators.

    Raises:
        VapidSigningError: if the key cannot be parsed or is not on P-256
    """
    value = (encoded or "").strip()
    if not value:
        raise VapidSigningError("VAPID private key is empty")

    try:
        if value.startswith("-----BEGIN"):
            key = serialization.load_pem_private_key(value.encode("ascii"), password=None)
        else:
            raw = b64url_decode(value)
            if len(raw) == _RAW_SCALAR_LENGTH:
                key = ec.derive_private_key(int.from_bytes(raw, "big"), ec.SECP256R1())
            else:
                key = serialization.load_der_private_key(raw, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm, binascii.Error) as exc:
        raise VapidSigningError("VAPID private key could not be parsed") from exc

    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise VapidSigningError("VAPID private key is not an elliptic-curve key")
    if key.curve.name != _P256_CURVE_NAME:
        raise VapidSigningError(
            "VAPID private key must use the P-256 curve",
            details={"curve": key.curve.name},
        )
    return key


def load_server_keys(public_key: str, private_key: str) -> ServerKeyPair:
    """
    Build the server key pair from configuration.

    Both halves are required and must belong together; anything else is a
    fatal configuration error.
    """
    if not public_key or not private_key:
        raise VapidConfigurationError("VAPID_PUBLIC_KEY and VAPID_PRIVATE_KEY must be configured")

    try:
        parsed = parse_private_key(private_key)
    except VapidSigningError as exc:
        raise VapidConfigurationError(f"Invalid VAPID_PRIVATE_KEY: {exc.message}") from exc

    derived = encode_public_key(parsed)
    try:
        configured = b64url_encode(b64url_decode(public_key))
    except (ValueError, binascii.Error) as exc:
        raise VapidConfigurationError("VAPID_PUBLIC_KEY is not valid base64url") from exc

    if configured != derived:
        raise VapidConfigurationError("VAPID_PUBLIC_KEY does not match VAPID_PRIVATE_KEY")

    return ServerKeyPair(private_key=parsed, public_key_b64=derived)


def audience_for(endpoint: str) -> str:
    """
    Return the origin of a push endpoint, dropping a default port.

    Raises:
        VapidSigningError: if the endpoint cannot be parsed or has no origin
    """
    try:
        parts = urlsplit(endpoint or "")
        port = parts.port
    except ValueError as exc:
        raise VapidSigningError(
            "Push endpoint is not a valid URL",
            details={"endpoint": endpoint},
        ) from exc

    scheme = parts.scheme.lower()
    host = parts.hostname
    if not scheme or not host:
        raise VapidSigningError(
            "Push endpoint has no origin",
            details={"endpoint": endpoint},
        )
    if ":" in host:
        host = f"[{host}]"
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"
    return f"{scheme}://{host}"


def sign_vapid_assertion(
    endpoint: str,
    keys: ServerKeyPair,
    subject: str,
    now: Optional[datetime] = None,
) -> VapidAssertion:
    """
    Sign a VAPID assertion scoped to ``endpoint``'s origin.

    The token is a compact ES256 JWT: base64url(header).base64url(claims).
    base64url(r||s). Claims are ``aud`` (endpoint origin), ``exp`` (now + 12h,
    epoch seconds) and ``sub`` (contact URI).

    Raises:
        VapidSigningError: on a missing subject, an endpoint without an
            origin, a non-P-256 key, or any failure inside the signer
    """
    if not subject:
        raise VapidSigningError("VAPID subject must be configured")
    if keys.private_key.curve.name != _P256_CURVE_NAME:
        raise VapidSigningError("VAPID private key must use the P-256 curve")

    audience = audience_for(endpoint)
    issued_at = now or datetime.now(timezone.utc)
    expires_at = int(issued_at.timestamp()) + ASSERTION_LIFETIME_SECONDS

    claims = {"aud": audience, "exp": expires_at, "sub": subject}
    try:
        token = jwt.encode(
            claims,
            keys.private_key,
            algorithm=VAPID_ALGORITHM,
            headers={"typ": "JWT", "alg": VAPID_ALGORITHM},
        )
    except (jwt.PyJWTError, ValueError, TypeError) as exc:
        raise VapidSigningError("Failed to sign VAPID assertion") from exc

    return VapidAssertion(
        token=token,
        audience=audience,
        expires_at=expires_at,
        subject=subject,
    )


__all__ = [
    "ASSERTION_LIFETIME_SECONDS",
    "MAX_ASSERTION_LIFETIME_SECONDS",
    "ServerKeyPair",
    "VapidAssertion",
    "audience_for",
    "b64url_decode",
    "b64url_encode",
    "encode_public_key",
    "load_server_keys",
    "parse_private_key",
    "sign_vapid_assertion",
]
