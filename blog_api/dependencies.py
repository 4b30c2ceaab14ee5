from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.config import settings
from blog_api.database import get_db
from blog_api.errors import AuthenticationFailed, PermissionDenied
from blog_api.models import User
from blog_api.permissions import ActingUser
from blog_api.security import decode_access_token

bearer = HTTPBearer(auto_error=False)


class PaginationParams:
    """
    Reusable dependency that parses the list-endpoint query parameters.

    Attributes
    ----------
    limit:
        Page size.  Required, as in every list endpoint of this API, and
        clamped to ``settings.MAX_PAGE_SIZE``.
    page:
        1-based page number.
    keyword:
        Optional case-insensitive substring filter; blank means no filter.
    """

    def __init__(
        self,
        limit: int = Query(..., ge=1, le=100, description="Items per page (max 100)."),
        page: int = Query(1, ge=1, description="Page number (1-based)."),
        keyword: str | None = Query(None, max_length=255, description="Search text."),
    ) -> None:
        self.limit = min(limit, settings.MAX_PAGE_SIZE)
        self.page = page
        self.keyword = keyword.strip() if keyword and keyword.strip() else None


async def get_acting_user(
    cred: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> ActingUser:
    if cred is None:
        raise AuthenticationFailed("Unauthenticated.")
    user_id = decode_access_token(cred.credentials)
    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationFailed("Unauthenticated.")
    return ActingUser.from_user(user)


async def require_admin(actor: ActingUser = Depends(get_acting_user)) -> ActingUser:
    if not actor.is_admin:
        raise PermissionDenied("Only administrators can perform this action.")
    return actor
