"""Key loading and key-ID computation for JWT client assertions."""

import base64
import binascii
import hashlib
import logging
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import (
    PrivateKeyTypes,
    PublicKeyTypes,
)

from agent_authz.utils.errors import KeyReadError

logger = logging.getLogger(__name__)

PEM_PUBLIC_KEY_HEADER = b"-----BEGIN PUBLIC KEY-----"


def parse_public_key_der(public_key: bytes) -> bytes:
    """Return the DER encoding of a public key.

    Accepts base64-encoded DER, raw DER, or a PEM "PUBLIC KEY" block.

    Args:
        public_key: Public key bytes in any of the accepted encodings

    Returns:
        DER-encoded SubjectPublicKeyInfo

    Raises:
        KeyReadError: If the bytes are not a recognizable public key
    """
    compact = public_key.replace(b"\r", b"").replace(b"\n", b"")
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError):
        pass

    try:
        serialization.load_der_public_key(public_key)
        return public_key
    except ValueError:
        pass

    if PEM_PUBLIC_KEY_HEADER not in public_key:
        if b"-----BEGIN" in public_key:
            raise KeyReadError("unsupported key type")
        raise KeyReadError("data in key was not valid")
    try:
        key = serialization.load_pem_public_key(public_key)
    except ValueError as e:
        raise KeyReadError("data in key was not valid") from e
    return key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def compute_kid_from_der(public_key: bytes) -> str:
    """Compute the key ID advertised in assertion headers and JWKS.

    The kid is the SHA-256 digest of the DER public key, base64 encoded with
    the URL-safe alphabet and no padding.
    """
    digest = hashlib.sha256(parse_public_key_der(public_key)).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def load_public_key(public_key: bytes) -> PublicKeyTypes:
    """Load a public key object from any encoding parse_public_key_der accepts."""
    try:
        return serialization.load_der_public_key(parse_public_key_der(public_key))
    except ValueError as e:
        raise KeyReadError("failed to parse public key") from e


class KeyReader:
    """Reads the key pair used for private_key_jwt authentication."""

    def __init__(
        self,
        private_key_path: Path | str,
        public_key_path: Path | str,
        password_path: Path | str | None = None,
    ):
        """Initialize key reader.

        Args:
            private_key_path: PEM private key file
            public_key_path: Public key file (PEM, DER or base64 DER)
            password_path: Optional file holding the private key password
        """
        self.private_key_path = Path(private_key_path)
        self.public_key_path = Path(public_key_path)
        self.password_path = Path(password_path) if password_path else None

    def _read_password(self) -> bytes | None:
        if self.password_path is None:
            logger.debug("no password, assuming unencrypted key")
            return None
        try:
            password = self.password_path.read_bytes().strip()
        except OSError as e:
            raise KeyReadError(f"unable to read key password file {self.password_path}") from e
        if not password:
            logger.debug("password file empty, assuming unencrypted key")
            return None
        return password

    def get_private_key(self) -> PrivateKeyTypes:
        """Load the private key.

        Raises:
            KeyReadError: If the file is missing, the password is wrong,
                or the content is not a PEM private key
        """
        try:
            key_bytes = self.private_key_path.read_bytes()
        except OSError as e:
            raise KeyReadError(f"unable to read private key file {self.private_key_path}") from e

        try:
            return serialization.load_pem_private_key(key_bytes, password=self._read_password())
        except (ValueError, TypeError) as e:
            # Never echo key material or password back
            raise KeyReadError(f"unable to parse private key {self.private_key_path}") from e

    def get_public_key(self) -> bytes:
        """Read the public key bytes as stored on disk.

        Raises:
            KeyReadError: If the file cannot be read
        """
        try:
            return self.public_key_path.read_bytes()
        except OSError as e:
            raise KeyReadError(f"unable to read public key file {self.public_key_path}") from e
