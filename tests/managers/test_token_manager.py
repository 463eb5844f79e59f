# tests/managers/test_token_manager.py
"""Tests for klog/managers/token_manager.py module."""

from datetime import timedelta

from jose import jwt

from klog.configs import settings
from klog.managers.token_manager import create_access_token, decode_access_token


class TestAccessToken:
    """Tests for admin access tokens."""

    def test_round_trip(self) -> None:
        token = create_access_token("admin")
        data = decode_access_token(token)
        assert data is not None
        assert data.username == "admin"
        assert data.jti

    def test_expired_token(self) -> None:
        token = create_access_token("admin", expires_delta=timedelta(seconds=-1))
        assert decode_access_token(token) is None

    def test_wrong_signature(self) -> None:
        token = jwt.encode(
            {"sub": "admin", "jti": "x", "type": "access", "iss": settings.JWT_ISSUER},
            "another-secret-key-that-is-long-enough",
            algorithm=settings.ALGORITHM,
        )
        assert decode_access_token(token) is None

    def test_wrong_token_type(self) -> None:
        token = jwt.encode(
            {"sub": "admin", "jti": "x", "type": "refresh", "iss": settings.JWT_ISSUER},
            settings.SECRET_KEY.get_secret_value(),
            algorithm=settings.ALGORITHM,
        )
        assert decode_access_token(token) is None

    def test_garbage(self) -> None:
        assert decode_access_token("not.a.jwt") is None
