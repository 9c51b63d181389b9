from typing import List, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_session
from app.models.models import User
from app.services import auth as auth_service

# tokens are minted by the identity provider; there is no login route here
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail, headers={"WWW-Authenticate": "Bearer"})


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_session),
) -> User:
    if credentials is None:
        raise _unauthorized("Not authenticated")
    try:
        user_id = auth_service.verify_access_token(credentials.credentials)
    except JWTError:
        raise _unauthorized("Invalid authentication credentials")
    res = await db.execute(sa_select(User).where(User.id == user_id))
    user = res.scalars().first()
    if not user or not user.is_active:
        raise _unauthorized("User not found or inactive")
    return user


def role_required(allowed: List[str]):
    """Dependency factory: the current user, provided their role is in ``allowed``."""

    async def _dep(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user

    return _dep
