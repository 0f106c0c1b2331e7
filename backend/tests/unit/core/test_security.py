"""
Unit Tests for Security Module
Tests for: password hashing, JWT tokens
"""
import pytest
from datetime import datetime, timedelta
from jose import jwt
from fastapi import HTTPException

from ohsurvey.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    create_refresh_token,
    decode_token,
)
from ohsurvey.core.config import settings


def _claims(token):
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


class TestPasswordHashing:
    """Test password hashing functions"""

    def test_hash_is_salted(self):
        password = "testpassword123"
        hash1 = get_password_hash(password)
        hash2 = get_password_hash(password)

        assert hash1 != password
        # Bcrypt generates different salts
        assert hash1 != hash2

    def test_verify_password(self):
        hashed = get_password_hash("testpassword123")

        assert verify_password("testpassword123", hashed) is True
        assert verify_password("wrongpassword", hashed) is False

    def test_long_password_truncated(self):
        """Bcrypt only looks at the first 72 bytes"""
        hashed = get_password_hash("a" * 100)
        assert verify_password("a" * 72, hashed) is True

    def test_unicode_password(self):
        password = "gehörschutz-überprüft"
        assert verify_password(password, get_password_hash(password)) is True


class TestTokens:
    """Test access and refresh tokens"""

    def test_access_token_claims(self):
        token = create_access_token({"sub": "user123", "email": "surveyor@example.com", "role": "surveyor"})
        payload = _claims(token)

        assert payload["type"] == "access"
        assert payload["sub"] == "user123"
        assert payload["role"] == "surveyor"

    def test_access_token_custom_expiry(self):
        token = create_access_token({"sub": "user123"}, expires_delta=timedelta(hours=1))
        remaining = (datetime.utcfromtimestamp(_claims(token)["exp"]) - datetime.utcnow()).total_seconds()

        assert 3500 < remaining < 3700

    def test_refresh_token_outlives_access_token(self):
        access = _claims(create_access_token({"sub": "user123"}))
        refresh = _claims(create_refresh_token({"sub": "user123"}))

        assert refresh["type"] == "refresh"
        assert refresh["exp"] > access["exp"]


class TestDecodeToken:
    """Test token decoding"""

    def test_decode_valid_token(self):
        payload = decode_token(create_access_token({"sub": "user123"}))
        assert payload["sub"] == "user123"

    @pytest.mark.parametrize("token", [
        "invalid_token_string",
        jwt.encode({"sub": "user123", "exp": datetime.utcnow() + timedelta(hours=1)}, "wrong_secret_key", algorithm="HS256"),
    ])
    def test_rejected_tokens(self, token):
        with pytest.raises(HTTPException) as exc_info:
            decode_token(token)

        assert exc_info.value.status_code == 401
        assert "Could not validate credentials" in exc_info.value.detail

    def test_expired_token(self):
        expired = jwt.encode(
            {"sub": "user123", "exp": datetime.utcnow() - timedelta(hours=1), "type": "access"},
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM
        )

        with pytest.raises(HTTPException) as exc_info:
            decode_token(expired)

        assert exc_info.value.status_code == 401
