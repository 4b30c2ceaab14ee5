"""
Helpers shared by the service modules: keyword patterns, pagination and the
plain-dict serialisers every endpoint returns.
"""
import math
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.models import Comment, Post, Tag, User
from blog_api.schemas import PaginatedResponse


def like_pattern(keyword: str) -> str:
    """``%keyword%`` with LIKE wildcards in *keyword* escaped (escape char ``\\``)."""
    escaped = keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


async def count_rows(db: AsyncSession, model, *criteria) -> int:
    q = select(func.count()).select_from(model).where(*criteria)
    return (await db.execute(q)).scalar_one()


def page_of(items: list, total: int, page: int, limit: int) -> dict:
    return PaginatedResponse(
        items=items,
        total=total,
        page=page,
        page_size=limit,
        pages=math.ceil(total / limit) if total > 0 else 0,
    ).model_dump()


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def user_to_dict(user: User | None) -> dict | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "is_admin": user.is_admin,
        "created_at": _iso(user.created_at),
        "updated_at": _iso(user.updated_at),
    }


def tag_to_dict(tag: Tag) -> dict:
    return {
        "id": tag.id,
        "name": tag.name,
        "created_at": _iso(tag.created_at),
        "updated_at": _iso(tag.updated_at),
    }


def post_to_dict(post: Post) -> dict:
    """Post columns only; callers attach author/tags/comments they loaded."""
    return {
        "id": post.id,
        "title": post.title,
        "body": post.body,
        "user_id": post.user_id,
        "created_at": _iso(post.created_at),
        "updated_at": _iso(post.updated_at),
        "deleted_at": _iso(post.deleted_at),
    }


def comment_to_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "body": comment.body,
        "post_id": comment.post_id,
        "user_id": comment.user_id,
        "is_pinned": comment.is_pinned,
        "created_at": _iso(comment.created_at),
        "updated_at": _iso(comment.updated_at),
    }
