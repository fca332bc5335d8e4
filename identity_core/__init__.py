"""
identity-core: credential issuance, verification and revocation.
"""

from identity_core.bootstrap import create_identity_service, identity_lifespan
from identity_core.config import Settings, get_settings
from identity_core.kernel.identity import IdentityService, TokenClass

__all__ = [
    "create_identity_service",
    "identity_lifespan",
    "Settings",
    "get_settings",
    "IdentityService",
    "TokenClass",
]

__version__ = "0.1.0"
