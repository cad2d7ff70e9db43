from datetime import timedelta

from jose import jwt

from spice_ledger.config import settings
from spice_ledger.core.security import create_access_token, verify_access_token


def test_valid_token_returns_operator():
    assert verify_access_token(create_access_token("owner")) == "owner"


def test_expired_token():
    token = create_access_token("owner", expires_delta=timedelta(seconds=-1))
    assert verify_access_token(token) is None


def test_token_from_another_service():
    token = jwt.encode({"sub": "owner", "type": "access"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    assert verify_access_token(token) is None


def test_garbage_token():
    assert verify_access_token("not-a-jwt") is None
