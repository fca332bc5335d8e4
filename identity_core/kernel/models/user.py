"""
User and refresh token models for identity management.
"""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from identity_core.kernel.models.base import Base, TimestampMixin, generate_user_id


class User(Base, TimestampMixin):
    """Registered principal."""

    __tablename__ = "users"

    # Internal store key; never placed in tokens
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36),
        unique=True,
        index=True,
        nullable=False,
        default=generate_user_id,
    )
    username: Mapped[Optional[str]] = mapped_column(String(255), unique=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255))

    # Profile
    name: Mapped[Optional[str]] = mapped_column(String(255))
    given_name: Mapped[Optional[str]] = mapped_column(String(255))
    family_name: Mapped[Optional[str]] = mapped_column(String(255))
    nickname: Mapped[Optional[str]] = mapped_column(String(255))
    permissions: Mapped[Optional[str]] = mapped_column(Text)
    phone_number: Mapped[Optional[str]] = mapped_column(String(64))
    phone_verified: Mapped[Optional[bool]] = mapped_column(Boolean)
    picture: Mapped[Optional[str]] = mapped_column(Text)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    identities: Mapped[List[Any]] = mapped_column(JSON, default=list, nullable=False)

    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_password_reset: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<User {self.username or self.email}>"


class RefreshToken(Base, TimestampMixin):
    """Issued refresh token; one row per login."""

    __tablename__ = "refresh_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.user_id"),
        index=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<RefreshToken user={self.user_id}>"
