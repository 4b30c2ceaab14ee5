"""
User service — registration, login and CRUD for the User entity.

Deleting a user does not touch the posts and comments they own; whether
those should cascade is still an open product decision.
"""
import logging

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload, with_loader_criteria

from blog_api.config import settings
from blog_api.database import atomic
from blog_api.errors import AuthenticationFailed, NotFound, PermissionDenied, ValidationFailed
from blog_api.models import Comment, Post, User
from blog_api.permissions import ActingUser, editable
from blog_api.schemas import LoginRequest, RegisterRequest, UserUpdate
from blog_api.security import create_access_token, hash_password, verify_password
from blog_api.services.common import count_rows, like_pattern, page_of, post_to_dict, user_to_dict

logger = logging.getLogger(__name__)

EMAIL_TAKEN = "Email already exists."


def _token_payload(user: User) -> dict:
    return {"token": create_access_token(user.id), "token_type": "bearer"}


async def _email_taken(db: AsyncSession, email: str, exclude_id: int | None = None) -> bool:
    q = select(User.id).where(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        q = q.where(User.id != exclude_id)
    return (await db.execute(q)).first() is not None


async def _load_target(db: AsyncSession, actor: ActingUser, user_id: int | None) -> User:
    user = await db.get(User, user_id if user_id is not None else actor.id)
    if user is None:
        raise NotFound("User not found.")
    return user


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def register(db: AsyncSession, data: RegisterRequest) -> dict:
    """
    Create an account and return a bearer token for it.

    The email pre-check gives the friendly 422; a concurrent registration
    that slips past it is caught by the unique constraint and becomes 409.
    """
    if await _email_taken(db, data.email):
        raise ValidationFailed({"email": [EMAIL_TAKEN]})

    user = User(name=data.name, email=data.email, password_hash=hash_password(data.password))
    async with atomic(db, conflict_message=EMAIL_TAKEN):
        db.add(user)
        await db.flush()

    logger.info("Registered user id=%d", user.id)
    return _token_payload(user)


async def login(db: AsyncSession, data: LoginRequest) -> dict:
    result = await db.execute(select(User).where(func.lower(User.email) == data.email.lower()))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(data.password, user.password_hash):
        raise AuthenticationFailed("Invalid credentials")
    return _token_payload(user)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def get_users(
    db: AsyncSession,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    keyword: str | None = None,
) -> dict:
    """
    Paginated user list with per-user ``posts_count`` (live posts only) and
    ``comments_count``, optionally filtered by name or email.
    """
    criteria = []
    if keyword:
        pattern = like_pattern(keyword)
        criteria.append(or_(
            User.name.ilike(pattern, escape="\\"),
            User.email.ilike(pattern, escape="\\"),
        ))

    posts_count = (
        select(func.count(Post.id))
        .where(Post.user_id == User.id, Post.deleted_at.is_(None))
        .correlate(User)
        .scalar_subquery()
    )
    comments_count = (
        select(func.count(Comment.id))
        .where(Comment.user_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )

    total = await count_rows(db, User, *criteria)
    q = (
        select(User, posts_count.label("posts_count"), comments_count.label("comments_count"))
        .where(*criteria)
        .order_by(User.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = (await db.execute(q)).all()

    items = []
    for user, n_posts, n_comments in rows:
        data = user_to_dict(user)
        data["posts_count"] = n_posts
        data["comments_count"] = n_comments
        items.append(data)
    return page_of(items, total, page, limit)


async def get_user(db: AsyncSession, user_id: int) -> dict:
    """User detail including their live (not soft-deleted) posts."""
    q = (
        select(User)
        .where(User.id == user_id)
        .options(
            selectinload(User.posts),
            with_loader_criteria(Post, Post.deleted_at.is_(None)),
        )
        .execution_options(populate_existing=True)
    )
    user = (await db.execute(q)).scalar_one_or_none()
    if user is None:
        raise NotFound("User not found.")

    data = user_to_dict(user)
    data["posts"] = [post_to_dict(p) for p in sorted(user.posts, key=lambda p: p.id, reverse=True)]
    return data


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

async def update_user(db: AsyncSession, actor: ActingUser, data: UserUpdate) -> dict:
    """
    Replace name, email and password of the target user (the caller unless
    an admin names another ``user_id``) and issue a fresh token.
    """
    user = await _load_target(db, actor, data.user_id)
    if not editable(actor, user):
        logger.warning("User %d denied update of user %d", actor.id, user.id)
        raise PermissionDenied("You are not authorized to update this user.")
    if await _email_taken(db, data.email, exclude_id=user.id):
        raise ValidationFailed({"email": [EMAIL_TAKEN]})

    async with atomic(db, conflict_message=EMAIL_TAKEN):
        user.name = data.name
        user.email = data.email
        user.password_hash = hash_password(data.password)
        await db.flush()

    payload = _token_payload(user)
    payload["user"] = user_to_dict(user)
    return payload


async def delete_user(db: AsyncSession, actor: ActingUser, user_id: int | None = None) -> None:
    user = await _load_target(db, actor, user_id)
    if not editable(actor, user):
        logger.warning("User %d denied deletion of user %d", actor.id, user.id)
        raise PermissionDenied("You are not authorized to delete this user.")

    # Stores that enforce the posts/comments foreign keys refuse this while
    # the user still owns content; that surfaces as a 409.
    async with atomic(db, conflict_message="User still owns posts or comments."):
        await db.delete(user)
    logger.info("User %d deleted user %d", actor.id, user.id)
