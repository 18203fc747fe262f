"""
Identity - resolves a caller to a stable user id.
"""

from src.kernel.identity.jwt import (
    TokenVerifier,
    AccessTokenPayload,
    create_access_token,
    verify_access_token,
)

__all__ = [
    "TokenVerifier",
    "AccessTokenPayload",
    "create_access_token",
    "verify_access_token",
]
