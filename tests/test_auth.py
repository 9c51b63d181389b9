"""
Tests for bearer-token verification.
"""

import pytest
from jose import JWTError, jwt

from app.config import settings
from app.services.auth import create_access_token, verify_access_token


def test_token_roundtrip():
    assert verify_access_token(create_access_token("user_abc")) == "user_abc"


def test_expired_token_is_rejected():
    token = create_access_token("user_abc", expires_minutes=-1)
    with pytest.raises(JWTError):
        verify_access_token(token)


def test_wrong_token_type_is_rejected():
    token = jwt.encode({"sub": "user_abc", "type": "refresh"}, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(JWTError):
        verify_access_token(token)


def test_foreign_signature_is_rejected():
    token = jwt.encode({"sub": "user_abc", "type": "access"}, "other-secret", algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(JWTError):
        verify_access_token(token)
