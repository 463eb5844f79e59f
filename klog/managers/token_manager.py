"""Signing and verification of admin bearer tokens."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from jose import JWTError, jwt

from klog.configs import settings

TOKEN_TYPE = "access"


@dataclass(frozen=True, slots=True)
class TokenData:
    """Verified claims of an admin token."""

    username: str
    jti: str


def create_access_token(username: str, expires_delta: timedelta | None = None) -> str:
    """
    Sign a token for ``username``.

    Lifetime defaults to ``ACCESS_TOKEN_EXPIRE_MINUTES``; ``auto/issue_token.py``
    calls this to mint the admin token.
    """
    issued = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": username,
        "jti": uuid4().hex,
        "iat": issued,
        "exp": issued + lifetime,
        "iss": settings.JWT_ISSUER,
        "type": TOKEN_TYPE,
    }
    return jwt.encode(claims, settings.SECRET_KEY.get_secret_value(), algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> TokenData | None:
    """Return the claims of a valid, unexpired token from this issuer, else None."""
    try:
        claims = jwt.decode(
            token,
            settings.SECRET_KEY.get_secret_value(),
            algorithms=[settings.ALGORITHM],
            issuer=settings.JWT_ISSUER,
        )
    except JWTError:
        return None

    if claims.get("type") != TOKEN_TYPE:
        return None
    username, jti = claims.get("sub"), claims.get("jti")
    if not username or not jti:
        return None
    return TokenData(username=username, jti=jti)
