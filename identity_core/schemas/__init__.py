"""
Pydantic schemas for identity-core inputs and results.
"""

from identity_core.schemas.identity import (
    USERNAME_PATTERN,
    LoginResult,
    Principal,
    PrincipalDraft,
    PublicPrincipal,
    TokenValidation,
    normalize_email,
)

__all__ = [
    "USERNAME_PATTERN",
    "LoginResult",
    "Principal",
    "PrincipalDraft",
    "PublicPrincipal",
    "TokenValidation",
    "normalize_email",
]
