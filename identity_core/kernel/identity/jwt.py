"""
JWT token management for authentication.

Access and refresh tokens are both RS256 JWTs; the token class is carried
implicitly by which key pair signed it, so an access token never verifies
as a refresh token and vice versa.
"""

import uuid
from collections.abc import Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel

from identity_core.config import Settings, parse_duration
from identity_core.kernel.identity.errors import (
    InvalidArgumentError,
    TokenExpiredError,
    TokenInvalidError,
)
from identity_core.kernel.identity.keys import KeyManager, TokenClass

# Claims added at signing time and removed again on verification
REGISTERED_CLAIMS = ("iat", "exp", "jti")

# Claims a caller may not put in a payload: they are set here or checked on decode
RESERVED_CLAIMS = REGISTERED_CLAIMS + ("nbf", "aud", "iss", "sub")

Duration = Union[timedelta, int, float, str]


class TokenPair(BaseModel):
    """Access and refresh token pair."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # Seconds until access token expires


class JWTManager:
    """
    JWT token creation and verification.

    Handles access tokens (short-lived) and refresh tokens (long-lived).
    Signing and verification only read key material; the one-time key
    cache fill happens inside the KeyManager.
    """

    algorithm = "RS256"

    def __init__(self, key_manager: KeyManager, settings: Settings):
        self.key_manager = key_manager
        self.ttls: Dict[TokenClass, timedelta] = {
            TokenClass.ACCESS: settings.access_ttl,
            TokenClass.REFRESH: settings.refresh_ttl,
        }

    def generate(
        self,
        token_class: Union[TokenClass, str],
        payload: Mapping,
        expires_in: Optional[Duration] = None,
    ) -> str:
        """
        Sign a payload as a token of the given class.

        Args:
            token_class: 'access' or 'refresh'
            payload: JSON-serializable claims
            expires_in: Optional TTL override (timedelta, seconds or "1 hour")

        Returns:
            The signed JWT

        Raises:
            InvalidArgumentError: Unknown class, bad payload, reserved claim or bad TTL
        """
        token_class = TokenClass.coerce(token_class)
        if not isinstance(payload, Mapping):
            raise InvalidArgumentError("token payload must be a mapping")
        reserved = sorted(set(payload).intersection(RESERVED_CLAIMS))
        if reserved:
            raise InvalidArgumentError(f"token payload may not set reserved claims: {reserved}")

        if expires_in is None:
            ttl = self.ttls[token_class]
        else:
            try:
                ttl = parse_duration(expires_in)
            except ValueError as exc:
                raise InvalidArgumentError(str(exc)) from exc

        now = datetime.now(timezone.utc)
        claims = dict(payload)
        claims["iat"] = now
        claims["exp"] = now + ttl
        claims["jti"] = str(uuid.uuid4())

        private_key = self.key_manager.get_private_key(token_class)
        try:
            return jwt.encode(claims, private_key, algorithm=self.algorithm)
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError(f"token payload is not serializable: {exc}") from exc

    def verify(self, token_class: Union[TokenClass, str], token: str) -> Dict[str, Any]:
        """
        Verify a token's signature and expiry.

        Args:
            token_class: 'access' or 'refresh'
            token: The JWT to check

        Returns:
            The payload as originally signed (iat, exp and jti removed)

        Raises:
            InvalidArgumentError: Unknown class or empty/non-string token
            TokenExpiredError: Signature valid but expired
            TokenInvalidError: Any other verification failure
        """
        token_class = TokenClass.coerce(token_class)
        if not isinstance(token, str) or not token:
            raise InvalidArgumentError("token must be a non-empty string")

        public_key = self.key_manager.get_public_key(token_class)
        try:
            claims = jwt.decode(token, public_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpiredError(f"{token_class.value} token has expired") from exc
        except JWTError as exc:
            raise TokenInvalidError(f"invalid {token_class.value} token: {exc}") from exc

        for claim in REGISTERED_CLAIMS:
            claims.pop(claim, None)
        return claims

    def create_token_pair(self, payload: Mapping) -> TokenPair:
        """Create both access and refresh tokens for the same payload."""
        access_token = self.generate(TokenClass.ACCESS, payload)
        refresh_token = self.generate(TokenClass.REFRESH, payload)

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(self.ttls[TokenClass.ACCESS].total_seconds()),
        )
