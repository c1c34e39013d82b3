import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

_logger = logging.getLogger(__name__)


# Bearer tokens are only ever verified with an RSA public key
ALGORITHM = "RS256"

# ---------------------------------------------------------------------------
# Key material
# ---------------------------------------------------------------------------


def load_public_key(
    pem: str | bytes | None = None,
    pem_file: Path | str | None = None,
) -> bytes | None:
    """
    Return PEM bytes from an inline value or a file. Inline value wins.

    Raises ValueError when the material is not an RSA public key, so a bad key
    fails at startup instead of on the first protected request.
    """
    if pem:
        data = pem.encode() if isinstance(pem, str) else pem
    elif pem_file:
        data = Path(pem_file).read_bytes()
    else:
        return None
    # PEM from env vars often arrives with literal "\n"
    data = data.replace(b"\\n", b"\n").strip()
    key = serialization.load_pem_public_key(data)
    if not isinstance(key, rsa.RSAPublicKey):
        raise ValueError("Public key must be an RSA key for RS256 verification")
    _logger.debug("Loaded RSA public key (%d bits)", key.key_size)
    return data


def generate_key_pair(key_size: int = 2048) -> tuple[bytes, bytes]:
    """Generate an RSA key pair for local development. Returns (private_pem, public_pem)."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


# ---------------------------------------------------------------------------
# JWT helpers
# ---------------------------------------------------------------------------


def create_access_token(
    private_key: str | bytes,
    expires_delta: timedelta,
    **claims: Any,
) -> str:
    """Sign claims (Role, EntityId, EntityType, IpList, ...) with RS256 for local testing."""
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {"exp": expire, **claims}
    return jwt.encode(to_encode, private_key, algorithm=ALGORITHM)
