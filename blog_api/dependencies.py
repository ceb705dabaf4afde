from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.errors import Forbidden, Unauthorized
from blog_api.models import User
from blog_api.services import auth_service

# auto_error=False so anonymous requests reach the handlers that allow them.
bearer_scheme = HTTPBearer(auto_error=False)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """
    Resolve the caller from an ``Authorization: Bearer`` header.

    Returns None when no header was sent.  A header that is present but
    invalid is still rejected, so a client with an expired token finds out
    instead of silently browsing as a guest.
    """
    if credentials is None:
        return None
    token_data = auth_service.decode_token(credentials.credentials)
    if token_data is None:
        raise Unauthorized()
    user = await auth_service.get_user_by_id(db, token_data.user_id)
    if user is None:
        raise Unauthorized()
    return user


async def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    if user is None:
        raise Unauthorized("Not authenticated")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise Forbidden()
    return user
