"""
Identity Core - key management, tokens, password hashing and sessions.
"""

from identity_core.kernel.identity.errors import (
    AuthFailedError,
    DuplicateRecordError,
    IdentityError,
    InvalidArgumentError,
    KeyProvisioningError,
    NotFoundError,
    StoreError,
    StoreUnavailableError,
    TokenError,
    TokenExpiredError,
    TokenInvalidError,
)
from identity_core.kernel.identity.password import PasswordHasher, hash_password, verify_password
from identity_core.kernel.identity.keys import KeyManager, KeyPairPaths, TokenClass
from identity_core.kernel.identity.jwt import JWTManager, TokenPair
from identity_core.kernel.identity.credential_store import CredentialStore
from identity_core.kernel.identity.identity_service import IdentityService

__all__ = [
    "AuthFailedError",
    "DuplicateRecordError",
    "IdentityError",
    "InvalidArgumentError",
    "KeyProvisioningError",
    "NotFoundError",
    "StoreError",
    "StoreUnavailableError",
    "TokenError",
    "TokenExpiredError",
    "TokenInvalidError",
    "PasswordHasher",
    "hash_password",
    "verify_password",
    "KeyManager",
    "KeyPairPaths",
    "TokenClass",
    "JWTManager",
    "TokenPair",
    "CredentialStore",
    "IdentityService",
]
