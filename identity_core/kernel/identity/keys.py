"""
RSA key provisioning and caching for token signing.

Each token class (access, refresh) has its own key pair. Pairs are
generated once, written as PEM, and read back into an in-memory cache
on first use. The private half is PKCS#8 encrypted under a passphrase
that is either configured or persisted beside the key, so keys stay
readable across restarts.
"""

import os
import secrets
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from identity_core.config import Settings
from identity_core.kernel.identity.errors import InvalidArgumentError, KeyProvisioningError
from identity_core.logging_config import get_logger

logger = get_logger(__name__)

RSA_PUBLIC_EXPONENT = 65537


class TokenClass(str, Enum):
    """Token classes, each signed by its own key pair."""
    ACCESS = "access"
    REFRESH = "refresh"

    @classmethod
    def coerce(cls, value) -> "TokenClass":
        """Return the matching TokenClass or raise InvalidArgumentError."""
        try:
            return cls(value)
        except ValueError:
            raise InvalidArgumentError(
                f"token class expected to be access or refresh, got {value!r}"
            ) from None


@dataclass(frozen=True)
class KeyPairPaths:
    """On-disk locations of one key pair."""

    public_key: Path
    private_key: Path

    @property
    def passphrase_file(self) -> Path:
        return self.private_key.with_name(self.private_key.name + ".passphrase")


def _write_secret(path: Path, data: bytes) -> None:
    """Write data readable only by the owning user."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as fh:
        fh.write(data)


class KeyManager:
    """
    Provisions and caches the access and refresh key pairs.

    Usage:
        key_manager = KeyManager(settings)
        key_manager.provision()
        pem = key_manager.get_private_key(TokenClass.ACCESS)
    """

    def __init__(self, settings: Settings):
        self.key_size = settings.key_size
        self._passphrase = settings.key_passphrase
        self.paths: Dict[TokenClass, KeyPairPaths] = {
            TokenClass.ACCESS: KeyPairPaths(
                public_key=Path(settings.public_access_key_path),
                private_key=Path(settings.private_access_key_path),
            ),
            TokenClass.REFRESH: KeyPairPaths(
                public_key=Path(settings.public_refresh_key_path),
                private_key=Path(settings.private_refresh_key_path),
            ),
        }
        self._private_keys: Dict[TokenClass, str] = {}
        self._public_keys: Dict[TokenClass, str] = {}
        self._lock = threading.Lock()

    def provision(self) -> None:
        """
        Ensure both key pairs exist on disk.

        A pair is generated only when its private key file is absent.

        Raises:
            KeyProvisioningError: If the key files cannot be written
        """
        for token_class, paths in self.paths.items():
            if paths.private_key.exists():
                logger.debug("Using existing %s key pair at %s", token_class.value, paths.private_key)
                continue
            self._generate(token_class, paths)

    def _generate(self, token_class: TokenClass, paths: KeyPairPaths) -> None:
        logger.info(
            "Generating %d-bit RSA %s key pair at %s",
            self.key_size, token_class.value, paths.private_key,
        )
        passphrase = self._passphrase if self._passphrase is not None else secrets.token_urlsafe(32)

        private_key = rsa.generate_private_key(
            public_exponent=RSA_PUBLIC_EXPONENT,
            key_size=self.key_size,
        )
        encrypted_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(passphrase.encode("utf-8")),
        )
        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

        # Private key goes last: its presence marks the pair as complete
        try:
            paths.private_key.parent.mkdir(parents=True, exist_ok=True)
            paths.public_key.parent.mkdir(parents=True, exist_ok=True)
            if self._passphrase is None:
                _write_secret(paths.passphrase_file, passphrase.encode("utf-8"))
            paths.public_key.write_bytes(public_pem)
            _write_secret(paths.private_key, encrypted_pem)
        except OSError as exc:
            raise KeyProvisioningError(
                f"cannot write {token_class.value} key pair to {paths.private_key.parent}"
            ) from exc

        with self._lock:
            self._private_keys[token_class] = _unencrypted_pem(private_key)
            self._public_keys[token_class] = public_pem.decode("utf-8")

    def get_private_key(self, token_class) -> str:
        """Return the decrypted PEM private key for a token class."""
        token_class = TokenClass.coerce(token_class)
        return self._cached(self._private_keys, token_class, self._load_private_key)

    def get_public_key(self, token_class) -> str:
        """Return the PEM public key for a token class."""
        token_class = TokenClass.coerce(token_class)
        return self._cached(self._public_keys, token_class, self._load_public_key)

    def _cached(self, cache: Dict[TokenClass, str], token_class: TokenClass, loader) -> str:
        key = cache.get(token_class)
        if key is not None:
            return key
        with self._lock:
            # Another thread may have filled it while we waited
            key = cache.get(token_class)
            if key is None:
                key = loader(self.paths[token_class])
                cache[token_class] = key
        return key

    def _read_passphrase(self, paths: KeyPairPaths) -> bytes:
        if self._passphrase is not None:
            return self._passphrase.encode("utf-8")
        return paths.passphrase_file.read_bytes().strip()

    def _load_private_key(self, paths: KeyPairPaths) -> str:
        try:
            private_key = serialization.load_pem_private_key(
                paths.private_key.read_bytes(),
                password=self._read_passphrase(paths),
            )
        except (OSError, ValueError, TypeError) as exc:
            raise KeyProvisioningError(f"cannot load private key {paths.private_key}") from exc
        return _unencrypted_pem(private_key)

    def _load_public_key(self, paths: KeyPairPaths) -> str:
        try:
            data = paths.public_key.read_bytes()
            serialization.load_pem_public_key(data)
        except (OSError, ValueError) as exc:
            raise KeyProvisioningError(f"cannot load public key {paths.public_key}") from exc
        return data.decode("utf-8")


def _unencrypted_pem(private_key) -> str:
    """In-memory PEM form handed to the JWT signer."""
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
