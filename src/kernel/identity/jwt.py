"""
Bearer token verification.

Tokens are issued by the platform's identity provider; this service only
needs the stable user id carried in the ``sub`` claim. ``create_access_token``
is kept for local tooling and tests.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from src.config import get_settings


class AccessTokenPayload(BaseModel):
    """Decoded access token."""

    sub: uuid.UUID  # User ID
    exp: datetime
    iat: Optional[datetime] = None
    jti: Optional[str] = None


class TokenVerifier:
    """JWT access token creation and verification."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        access_token_expire_minutes: Optional[int] = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm
        self.access_token_expire_minutes = (
            access_token_expire_minutes or settings.access_token_expire_minutes
        )

    def create_access_token(
        self,
        user_id: uuid.UUID,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """Create a signed access token for ``user_id``."""
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=self.access_token_expire_minutes))
        payload = {
            "sub": str(user_id),
            "exp": expire,
            "iat": now,
            "jti": str(uuid.uuid4()),
            "type": "access",
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_access_token(self, token: str) -> Optional[AccessTokenPayload]:
        """
        Verify and decode an access token.

        Returns:
            AccessTokenPayload if valid, None otherwise
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None

        if payload.get("type", "access") != "access":
            return None

        try:
            return AccessTokenPayload(
                sub=payload["sub"],
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc) if "iat" in payload else None,
                jti=payload.get("jti"),
            )
        except (KeyError, ValidationError):
            return None


_verifier: Optional[TokenVerifier] = None


def get_token_verifier() -> TokenVerifier:
    """Get or create the default verifier."""
    global _verifier
    if _verifier is None:
        _verifier = TokenVerifier()
    return _verifier


def create_access_token(user_id: uuid.UUID, expires_delta: Optional[timedelta] = None) -> str:
    """Create an access token."""
    return get_token_verifier().create_access_token(user_id, expires_delta)


def verify_access_token(token: str) -> Optional[AccessTokenPayload]:
    """Verify an access token."""
    return get_token_verifier().verify_access_token(token)
