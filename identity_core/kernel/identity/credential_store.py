"""
Credential store adapter over the user and refresh-token collections.
"""

from typing import Optional

from identity_core.kernel.identity.errors import (
    DuplicateRecordError,
    InvalidArgumentError,
    NotFoundError,
)
from identity_core.kernel.models import generate_user_id, utc_now
from identity_core.kernel.store.base import DocumentCollection
from identity_core.logging_config import get_logger
from identity_core.schemas import Principal, PrincipalDraft, normalize_email

logger = get_logger(__name__)


class CredentialStore:
    """
    Lookups and writes for principals and their refresh tokens.

    Usage:
        store = CredentialStore(users, refresh_tokens)
        principal = await store.find_by_username("alice")
    """

    def __init__(self, users: DocumentCollection, refresh_tokens: DocumentCollection):
        self.users = users
        self.refresh_tokens = refresh_tokens

    async def _find_user(self, field: str, value) -> Principal:
        if value is None or value == "":
            raise InvalidArgumentError(f"{field} is required")
        doc = await self.users.find_one({field: value})
        if doc is None:
            raise NotFoundError(f"no user found with {field}={value!r}")
        return Principal.model_validate(doc)

    async def find_by_username(self, username: str) -> Principal:
        """Find a user by username. Raises NotFoundError on a miss."""
        return await self._find_user("username", username)

    async def find_by_email(self, email: str) -> Principal:
        """
        Find a user by email. Raises NotFoundError on a miss.

        The address is normalized as on registration, so the exact string a
        principal registered with always finds it.
        """
        if not isinstance(email, str) or not email:
            raise InvalidArgumentError("email is required")
        try:
            email = normalize_email(email)
        except ValueError:
            # Registration never stores an invalid address
            raise NotFoundError(f"no user found with email={email!r}") from None
        return await self._find_user("email", email)

    async def find_by_id(self, user_id: str) -> Principal:
        """Find a user by public user_id. Raises NotFoundError on a miss."""
        if not user_id:
            raise InvalidArgumentError("user_id is required")
        doc = await self.users.find_by_id(user_id)
        if doc is None:
            raise NotFoundError(f"no user found with user_id={user_id!r}")
        return Principal.model_validate(doc)

    async def insert(self, draft: PrincipalDraft, password_hash: Optional[str] = None) -> Principal:
        """
        Create a new user record.

        Assigns user_id and timestamps; the password must already be hashed.

        Raises:
            InvalidArgumentError: If the username or email is already taken
        """
        now = utc_now()
        record = {
            **draft.profile(),
            "user_id": generate_user_id(),
            "password_hash": password_hash,
            "last_login": None,
            "last_password_reset": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            doc = await self.users.insert(record)
        except DuplicateRecordError as exc:
            raise InvalidArgumentError("username or email already registered") from exc

        logger.info("User created", extra={"user_id": doc["user_id"]})
        return Principal.model_validate(doc)

    async def record_login(self, user_id: str) -> Principal:
        """Stamp last_login and updated_at on a user."""
        now = utc_now()
        doc = await self.users.update_one(
            {"user_id": user_id},
            {"last_login": now, "updated_at": now},
        )
        if doc is None:
            raise NotFoundError(f"no user found with user_id={user_id!r}")
        return Principal.model_validate(doc)

    async def update_password_hash(self, user_id: str, password_hash: str) -> None:
        """Replace a user's stored password hash."""
        doc = await self.users.update_one(
            {"user_id": user_id},
            {"password_hash": password_hash, "updated_at": utc_now()},
        )
        if doc is None:
            raise NotFoundError(f"no user found with user_id={user_id!r}")

    async def add_refresh_token(self, user_id: str, token: str) -> None:
        """
        Store a refresh token against its owner.

        Raises:
            NotFoundError: If the owner does not exist
        """
        owner = await self.find_by_id(user_id)
        now = utc_now()
        await self.refresh_tokens.insert({
            "token": token,
            "user_id": owner.user_id,
            "created_at": now,
            "updated_at": now,
        })

    async def has_refresh_token(self, token: str) -> bool:
        """Whether the refresh token is still on record."""
        return await self.refresh_tokens.find_one({"token": token}) is not None

    async def remove_refresh_token(self, token: str) -> None:
        """Delete one refresh token. Absent tokens are ignored."""
        await self.refresh_tokens.delete_one({"token": token})

    async def remove_refresh_tokens_by_owner(self, user_id: str) -> int:
        """Delete every refresh token owned by a user. Returns the number removed."""
        if not user_id:
            raise InvalidArgumentError("user_id is required")
        return await self.refresh_tokens.delete_many({"user_id": user_id})

    async def count_refresh_tokens(self, user_id: str) -> int:
        """Number of refresh tokens on record for a user."""
        return await self.refresh_tokens.count({"user_id": user_id})
