"""
Identity schemas.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

USERNAME_PATTERN = re.compile(r"^[a-z][a-z0-9]*(_[a-z0-9]+)?$")

_email_adapter = TypeAdapter(EmailStr)


def normalize_email(email: str) -> str:
    """
    Normalize an email address the way registration stores it.

    Raises:
        ValueError: If the address is not a valid email
    """
    try:
        return _email_adapter.validate_python(email)
    except ValidationError as exc:
        raise ValueError(f"invalid email address: {email!r}") from exc


class PrincipalDraft(BaseModel):
    """Registration request. The password is hashed before it is stored."""

    model_config = ConfigDict(extra="forbid")

    username: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=1)

    name: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    nickname: Optional[str] = None
    permissions: Optional[str] = None
    phone_number: Optional[str] = None
    phone_verified: Optional[bool] = None
    picture: Optional[str] = None
    email_verified: bool = False
    identities: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not USERNAME_PATTERN.match(v):
            raise ValueError(
                "Username must start with a lowercase letter followed by lowercase "
                "letters or digits, with at most one underscore-delimited suffix"
            )
        return v

    @model_validator(mode="after")
    def require_login_name(self) -> "PrincipalDraft":
        if self.username is None and self.email is None:
            raise ValueError("username or email is required")
        return self

    def profile(self) -> Dict[str, Any]:
        """Stored fields of the draft, without the plaintext password."""
        return self.model_dump(exclude={"password"})


class PublicPrincipal(BaseModel):
    """Principal as returned to callers and embedded in tokens."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    username: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    nickname: Optional[str] = None
    permissions: Optional[str] = None
    phone_number: Optional[str] = None
    phone_verified: Optional[bool] = None
    picture: Optional[str] = None
    email_verified: bool = False
    identities: List[Dict[str, Any]] = Field(default_factory=list)
    last_login: Optional[datetime] = None
    last_password_reset: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def claims(self) -> Dict[str, Any]:
        """JSON-safe projection used as a token payload."""
        return self.model_dump(mode="json")


class Principal(PublicPrincipal):
    """Principal as stored, including the internal key and password hash."""

    id: Optional[int] = None
    password_hash: Optional[str] = Field(None, repr=False)

    def public(self) -> PublicPrincipal:
        """Drop the internal key and password hash."""
        return PublicPrincipal.model_validate(
            self.model_dump(exclude={"id", "password_hash"})
        )


class LoginResult(BaseModel):
    """Tokens issued by a successful login."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # Seconds until access token expires
    user: PublicPrincipal


class TokenValidation(BaseModel):
    """Outcome of an access token check."""

    user: Optional[Dict[str, Any]] = None
    validated: bool = False
