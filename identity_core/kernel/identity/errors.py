"""
Error taxonomy for the identity core.

Nothing here is retried by the core; retry policy belongs to the caller.
"""


class IdentityError(Exception):
    """Base class for all identity-core errors."""


class InvalidArgumentError(IdentityError, ValueError):
    """Malformed or missing required input. Always caller-fixable."""


class NotFoundError(IdentityError):
    """A store lookup found no matching record."""


class AuthFailedError(IdentityError):
    """
    Credential mismatch.

    Raised for both "no such principal" and "wrong password" so callers
    cannot enumerate accounts.
    """

    def __init__(self, message: str = "invalid credentials"):
        super().__init__(message)


class TokenError(IdentityError):
    """Base class for token verification failures."""


class TokenInvalidError(TokenError):
    """Signature mismatch, wrong token class, tampering or an unknown token."""


class TokenExpiredError(TokenError):
    """The token signature is valid but its expiry has passed."""


class StoreError(IdentityError):
    """Base class for failures reported by the document store."""


class StoreUnavailableError(StoreError):
    """The store could not complete the operation."""


class DuplicateRecordError(StoreError):
    """A unique field collided with an existing record."""


class KeyProvisioningError(IdentityError):
    """Signing keys could not be generated, written or read. Fatal."""
