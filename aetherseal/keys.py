"""
Aether Seal key material.

Certificates are signed with a single Ed25519 key pair per process. Each key
is supplied either as a JWK JSON object or as PEM (PKCS8 for the private key,
SPKI for the public key). The encoding is decided once when the key is
loaded.
"""

import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from jwcrypto import jwk

from aetherseal.config import PRIVATE_KEY_ENV, PUBLIC_KEY_ENV
from aetherseal.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class KeyEncoding(str, Enum):
    JWK = "jwk"
    PEM = "pem"


def detect_encoding(value: str) -> KeyEncoding:
    """A value starting with '{' is a JWK, anything else is PEM."""
    return KeyEncoding.JWK if value.lstrip().startswith("{") else KeyEncoding.PEM


def parse_key(value: str, private: bool) -> jwk.JWK:
    """
    Parse an Ed25519 key from JWK JSON or PEM.

    Args:
        value: The encoded key.
        private: Whether a private key is required.

    Raises:
        ConfigurationError: If the value cannot be parsed or is not an
            Ed25519 key of the requested kind.
    """
    encoding = detect_encoding(value)
    kind = "private" if private else "public"
    try:
        if encoding is KeyEncoding.JWK:
            key = jwk.JWK.from_json(value.strip())
        else:
            key = jwk.JWK.from_pem(value.strip().encode("utf-8"))
    except Exception as e:
        raise ConfigurationError(f"Invalid {kind} key ({encoding.value}): {e}")

    if key.get("kty") != "OKP" or key.get("crv") != "Ed25519":
        raise ConfigurationError(f"{kind.capitalize()} key must be Ed25519 (OKP with crv=Ed25519)")
    if private and not key.has_private:
        raise ConfigurationError("Private key material is missing the private component")

    return key


class KeyStore:
    """
    Load-once holder for the certificate signing keys.

    Keys are read from the environment (or explicit values) on first access
    and cached for the lifetime of the store. Concurrent first accesses
    block on the same load.

    Example:
        >>> store = KeyStore()
        >>> key = store.get_private_key()
    """

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        private_key: Optional[str] = None,
        public_key: Optional[str] = None,
    ):
        """
        Args:
            environ: Mapping to read SEAL_SIGNING_*_KEY from (default: os.environ).
            private_key: Explicit private key, overrides the environment.
            public_key: Explicit public key, overrides the environment.
        """
        self._environ = environ
        self._private_value = private_key
        self._public_value = public_key
        self._private: Optional[jwk.JWK] = None
        self._public: Optional[jwk.JWK] = None
        self._lock = threading.Lock()
        self._loads = 0

    def _read(self, explicit: Optional[str], env_name: str) -> str:
        if explicit:
            return explicit
        env = os.environ if self._environ is None else self._environ
        value = env.get(env_name, "")
        if not value:
            raise ConfigurationError(f"{env_name} is not configured")
        return value

    def get_private_key(self) -> jwk.JWK:
        """
        Raises:
            ConfigurationError: If the private key is missing or invalid.
        """
        if self._private is None:
            with self._lock:
                if self._private is None:
                    key = parse_key(self._read(self._private_value, PRIVATE_KEY_ENV), private=True)
                    self._loads += 1
                    logger.info("Loaded certificate signing key")
                    self._private = key
        return self._private

    def get_public_key(self) -> jwk.JWK:
        """
        Raises:
            ConfigurationError: If the public key is missing or invalid.
        """
        if self._public is None:
            with self._lock:
                if self._public is None:
                    key = parse_key(self._read(self._public_value, PUBLIC_KEY_ENV), private=False)
                    self._loads += 1
                    self._public = key
        return self._public

    @property
    def loads(self) -> int:
        """Number of keys parsed so far (at most two)."""
        return self._loads


@dataclass(frozen=True)
class KeyPair:
    """A freshly generated Ed25519 key pair in both supported encodings."""

    private_key_jwk: str
    public_key_jwk: str
    private_key_pem: str
    public_key_pem: str
    key_id: str


def generate_identity() -> KeyPair:
    """
    Generate a new certificate signing key pair.

    Example:
        >>> keys = generate_identity()
        >>> store = KeyStore(private_key=keys.private_key_jwk, public_key=keys.public_key_pem)
    """
    key = jwk.JWK.generate(kty="OKP", crv="Ed25519")
    return KeyPair(
        private_key_jwk=key.export_private(),
        public_key_jwk=key.export_public(),
        private_key_pem=key.export_to_pem(private_key=True, password=None).decode("utf-8"),
        public_key_pem=key.export_to_pem().decode("utf-8"),
        key_id=key.thumbprint(),
    )
