"""
Identity service: registration, login, token refresh and logout.
"""

import asyncio
from functools import lru_cache
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from identity_core.config import Settings
from identity_core.kernel.identity.credential_store import CredentialStore
from identity_core.kernel.identity.errors import (
    AuthFailedError,
    InvalidArgumentError,
    NotFoundError,
    TokenError,
    TokenInvalidError,
)
from identity_core.kernel.identity.jwt import JWTManager
from identity_core.kernel.identity.keys import TokenClass
from identity_core.kernel.identity.password import PasswordHasher
from identity_core.logging_config import get_logger
from identity_core.schemas import LoginResult, Principal, PrincipalDraft, PublicPrincipal, TokenValidation

logger = get_logger(__name__)

ADMIN_USERNAME = "admin"


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    """Hash compared against when the principal does not exist."""
    return PasswordHasher.hash("identity-core-timing-equalizer")


def _compare_dummy(password: str) -> bool:
    return PasswordHasher.compare(password, _dummy_hash())


class IdentityService:
    """
    Service for principal identity operations.

    Session states are implicit: a principal is authenticated while it
    holds a refresh token on record, and logged out once that record is gone.

    Usage:
        service = IdentityService(store, jwt_manager, settings)
        await service.startup()
        result = await service.login(username="alice", password="secret123")
    """

    def __init__(self, store: CredentialStore, jwt_manager: JWTManager, settings: Settings):
        self.store = store
        self.jwt_manager = jwt_manager
        self.settings = settings

    async def startup(self) -> None:
        """
        Provision signing keys and seed the administrator.

        Must complete before the service takes requests. The store schema
        is expected to exist already.
        """
        await asyncio.to_thread(self.jwt_manager.key_manager.provision)
        if self.settings.init_admin:
            await self._seed_admin()

    async def _seed_admin(self) -> None:
        try:
            await self.store.find_by_username(ADMIN_USERNAME)
            return
        except NotFoundError:
            pass

        if self.settings.admin_password == "admin":
            logger.warning("Seeding administrator with the default password; change it")

        await self.register(PrincipalDraft(
            username=ADMIN_USERNAME,
            password=self.settings.admin_password,
            name=ADMIN_USERNAME,
            given_name=ADMIN_USERNAME,
            family_name=ADMIN_USERNAME,
            nickname=ADMIN_USERNAME,
        ))
        logger.info("Administrator account created")

    async def _find_principal(self, username: Optional[str], email: Optional[str]) -> Principal:
        """Resolve a principal from exactly one of username or email."""
        if bool(username) == bool(email):
            raise InvalidArgumentError("exactly one of username or email is required")
        if username:
            return await self.store.find_by_username(username)
        return await self.store.find_by_email(email)

    async def register(self, draft: Union[PrincipalDraft, Mapping[str, Any]]) -> PublicPrincipal:
        """
        Register a new principal.

        Args:
            draft: Registration fields; password is optional

        Returns:
            The stored principal, without its password hash

        Raises:
            InvalidArgumentError: Invalid draft, or username/email taken
        """
        if not isinstance(draft, PrincipalDraft):
            try:
                draft = PrincipalDraft.model_validate(draft)
            except ValidationError as exc:
                raise InvalidArgumentError(str(exc)) from exc

        password_hash = None
        if draft.password is not None:
            password_hash = await asyncio.to_thread(PasswordHasher.hash, draft.password)

        principal = await self.store.insert(draft, password_hash=password_hash)
        return principal.public()

    async def login(
        self,
        username: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> LoginResult:
        """
        Authenticate a principal and issue tokens.

        Args:
            username: Login name (mutually exclusive with email)
            email: Email address (mutually exclusive with username)
            password: Plain text password

        Returns:
            LoginResult with access token, refresh token and public user

        Raises:
            InvalidArgumentError: Missing password, or not exactly one of username/email
            AuthFailedError: Unknown principal or wrong password
        """
        if not isinstance(password, str) or not password:
            raise InvalidArgumentError("password is required")

        try:
            principal = await self._find_principal(username, email)
        except NotFoundError:
            # Same bcrypt cost as a real check so timing does not reveal existence
            await asyncio.to_thread(_compare_dummy, password)
            logger.info("Login failed: unknown principal")
            raise AuthFailedError() from None

        if principal.password_hash:
            matched = await asyncio.to_thread(
                PasswordHasher.compare, password, principal.password_hash
            )
        else:
            # Passwordless principals pay the same cost as everyone else
            await asyncio.to_thread(_compare_dummy, password)
            matched = False
        if not matched:
            logger.info("Login failed: bad password", extra={"user_id": principal.user_id})
            raise AuthFailedError()

        if PasswordHasher.needs_rehash(principal.password_hash):
            new_hash = await asyncio.to_thread(PasswordHasher.hash, password)
            await self.store.update_password_hash(principal.user_id, new_hash)
            logger.info("Password rehashed", extra={"user_id": principal.user_id})

        principal = await self.store.record_login(principal.user_id)
        user = principal.public()

        token_pair = self.jwt_manager.create_token_pair(user.claims())
        await self.store.add_refresh_token(principal.user_id, token_pair.refresh_token)

        logger.info("Login succeeded", extra={"user_id": principal.user_id})
        return LoginResult(
            access_token=token_pair.access_token,
            refresh_token=token_pair.refresh_token,
            token_type=token_pair.token_type,
            expires_in=token_pair.expires_in,
            user=user,
        )

    async def validate_access_token(self, access_token: str) -> TokenValidation:
        """
        Check an access token.

        Never raises for a bad token; failures come back as validated=False.
        """
        try:
            payload = self.jwt_manager.verify(TokenClass.ACCESS, access_token)
        except (TokenError, InvalidArgumentError) as exc:
            logger.debug("Access token rejected: %s", type(exc).__name__)
            return TokenValidation(user=None, validated=False)
        return TokenValidation(user=payload, validated=True)

    async def refresh_access_token(self, refresh_token: str) -> str:
        """
        Exchange a refresh token for a new access token.

        The refresh token must verify and still be on record. A token that
        fails either check is deleted from the store before the error is
        re-raised. The refresh token itself is not rotated.

        Raises:
            InvalidArgumentError: Empty or non-string token
            TokenExpiredError: Refresh token expired
            TokenInvalidError: Bad signature, wrong class or no longer on record
        """
        try:
            payload = self.jwt_manager.verify(TokenClass.REFRESH, refresh_token)
            if not await self.store.has_refresh_token(refresh_token):
                raise TokenInvalidError("refresh token is not on record")
        except TokenError as exc:
            await self.store.remove_refresh_token(refresh_token)
            logger.info("Refresh rejected, token purged: %s", type(exc).__name__)
            raise

        return self.jwt_manager.generate(TokenClass.ACCESS, payload)

    async def logout(self, refresh_token: str) -> None:
        """End one session. Unknown tokens are ignored."""
        if not isinstance(refresh_token, str) or not refresh_token:
            raise InvalidArgumentError("refresh token is required")
        await self.store.remove_refresh_token(refresh_token)

    async def logout_everywhere(
        self,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> int:
        """
        End every session of a principal.

        Returns:
            Number of refresh tokens removed

        Raises:
            InvalidArgumentError: Not exactly one of username/email
            NotFoundError: No such principal
        """
        principal = await self._find_principal(username, email)
        removed = await self.store.remove_refresh_tokens_by_owner(principal.user_id)
        logger.info(
            "Logged out everywhere",
            extra={"user_id": principal.user_id, "sessions": removed},
        )
        return removed
