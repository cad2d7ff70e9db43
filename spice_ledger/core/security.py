"""
Bearer tokens for the ledger API.

The ledger has a single operator (the shop owner). Tokens are HS256 JWTs
scoped to the ledger so a token minted for another service sharing the
secret is not accepted here.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Any
import uuid

from jose import JWTError, jwt

from spice_ledger.config import settings


TOKEN_SCOPE = "ledger"


def create_access_token(
    subject: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Mint a ledger-scoped access token for `subject`."""
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    claims = {
        "sub": subject,
        "scope": TOKEN_SCOPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def read_token_claims(token: str) -> Optional[dict[str, Any]]:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def verify_access_token(token: str) -> Optional[str]:
    """
    Return the operator name carried by a valid ledger token.

    Expired, tampered and out-of-scope tokens all yield None.
    """
    claims = read_token_claims(token)
    if not claims or claims.get("scope") != TOKEN_SCOPE:
        return None
    return claims.get("sub")
