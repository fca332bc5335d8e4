"""
Store schema for the identity core.
"""

from identity_core.kernel.models.base import Base, TimestampMixin, generate_user_id, utc_now
from identity_core.kernel.models.user import RefreshToken, User

__all__ = [
    "Base",
    "TimestampMixin",
    "generate_user_id",
    "utc_now",
    "User",
    "RefreshToken",
]
