from datetime import datetime, timedelta

from jose import JWTError, jwt

from app.config import settings
from app.services.clock import utcnow


def _now() -> datetime:
    return utcnow()


def create_access_token(user_id: str, expires_minutes: int = None) -> str:
    """Issue an access token; production tokens come from the identity provider with the same claims."""
    expire = _now() + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {"sub": str(user_id), "type": "access", "exp": int((expire - datetime(1970, 1, 1)).total_seconds())}
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return token


def _decode_token(token: str) -> dict:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


def verify_access_token(token: str) -> str:
    payload = _decode_token(token)
    if payload.get("type") != "access":
        raise JWTError("Invalid token type")
    sub = payload.get("sub")
    if not sub:
        raise JWTError("Missing subject")
    return str(sub)
