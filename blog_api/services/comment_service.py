"""
Comment service — CRUD for comments and the pin-status transition.

Pinning
-------
A post has at most one pinned comment.  ``change_pin_status`` keeps that
true across concurrent requests by running the whole read-unpin-pin
sequence in one ``atomic`` block that first locks the parent post row
(``SELECT ... FOR UPDATE``), so two pin requests for the same post are
serialised.  The ``uq_comments_post_id_pinned`` partial unique index backs
the rule up at the store level; that is why the previous pin is flushed
before the new one is written.

Pinning is a moderation action on the post: it is authorised against the
parent post, not the comment.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from blog_api.config import settings
from blog_api.database import atomic
from blog_api.errors import NotFound, PermissionDenied
from blog_api.models import Comment, Post
from blog_api.permissions import ActingUser, editable
from blog_api.schemas import CommentCreate, CommentUpdate
from blog_api.services.common import (
    comment_to_dict,
    count_rows,
    page_of,
    post_to_dict,
    user_to_dict,
)

logger = logging.getLogger(__name__)


async def _get_comment(db: AsyncSession, comment_id: int) -> Comment:
    comment = await db.get(Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found.")
    return comment


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def get_user_comments(
    db: AsyncSession,
    actor: ActingUser,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
) -> dict:
    """The caller's own comments, pinned first, then newest first."""
    total = await count_rows(db, Comment, Comment.user_id == actor.id)
    q = (
        select(Comment)
        .where(Comment.user_id == actor.id)
        .options(joinedload(Comment.author), joinedload(Comment.post))
        .order_by(Comment.is_pinned.desc(), Comment.created_at.desc(), Comment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    comments = (await db.execute(q)).unique().scalars().all()

    items = []
    for comment in comments:
        data = comment_to_dict(comment)
        data["author"] = user_to_dict(comment.author)
        data["post"] = post_to_dict(comment.post) if comment.post else None
        items.append(data)
    return page_of(items, total, page, limit)


async def get_comment(db: AsyncSession, comment_id: int) -> dict:
    """Comment detail with its author and its post (with the post's author)."""
    q = (
        select(Comment)
        .where(Comment.id == comment_id)
        .options(
            joinedload(Comment.author),
            joinedload(Comment.post).joinedload(Post.author),
        )
        .execution_options(populate_existing=True)
    )
    comment = (await db.execute(q)).unique().scalar_one_or_none()
    if comment is None:
        raise NotFound("Comment not found.")

    data = comment_to_dict(comment)
    data["author"] = user_to_dict(comment.author)
    data["post"] = None
    if comment.post is not None:
        data["post"] = post_to_dict(comment.post)
        data["post"]["author"] = user_to_dict(comment.post.author)
    return data


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

async def create_comment(db: AsyncSession, actor: ActingUser, data: CommentCreate) -> dict:
    """
    Add a comment to a live post.  New comments are never pinned.

    The post row stays locked until commit, so a concurrent post delete
    either runs first (and this raises ``NotFound``) or sees the comment in
    its cascade.
    """
    async with atomic(db):
        q = (
            select(Post)
            .where(Post.id == data.post_id, Post.deleted_at.is_(None))
            .with_for_update()
        )
        post = (await db.execute(q)).scalar_one_or_none()
        if post is None:
            raise NotFound("Post not found.")

        comment = Comment(body=data.comment, post_id=post.id, user_id=actor.id)
        db.add(comment)
        await db.flush()
    return comment_to_dict(comment)


async def update_comment(db: AsyncSession, actor: ActingUser, data: CommentUpdate) -> dict:
    comment = await _get_comment(db, data.comment_id)
    if not editable(actor, comment):
        logger.warning("User %d denied update of comment %d", actor.id, comment.id)
        raise PermissionDenied("You are not authorized to update this comment.")

    async with atomic(db):
        comment.body = data.comment
        await db.flush()
    return comment_to_dict(comment)


async def delete_comment(db: AsyncSession, actor: ActingUser, comment_id: int) -> None:
    comment = await _get_comment(db, comment_id)
    if not editable(actor, comment):
        logger.warning("User %d denied deletion of comment %d", actor.id, comment.id)
        raise PermissionDenied("You are not authorized to delete this comment.")

    async with atomic(db):
        await db.delete(comment)


async def change_pin_status(
    db: AsyncSession,
    actor: ActingUser,
    comment_id: int,
    pin_status: bool,
) -> dict:
    """
    Pin or unpin *comment_id*.

    Pinning unpins whichever other comment of the same post was pinned, in
    the same transaction.  Unpinning just clears the flag.  Raises
    ``NotFound`` for an unknown comment, ``PermissionDenied`` when *actor*
    cannot edit the parent post; either way nothing is written.
    """
    comment = await _get_comment(db, comment_id)

    async with atomic(db):
        post = (
            await db.execute(select(Post).where(Post.id == comment.post_id).with_for_update())
        ).scalar_one()
        if not editable(actor, post):
            logger.warning(
                "User %d denied pin change of comment %d on post %d",
                actor.id, comment.id, post.id,
            )
            raise PermissionDenied("You are not authorized to update comment pinning.")

        if pin_status:
            q = (
                select(Comment)
                .where(
                    Comment.post_id == post.id,
                    Comment.is_pinned.is_(True),
                    Comment.id != comment.id,
                )
                .execution_options(populate_existing=True)
            )
            previously_pinned = (await db.execute(q)).scalars().all()
            for other in previously_pinned:
                other.is_pinned = False
            if previously_pinned:
                await db.flush()

        comment.is_pinned = pin_status
        await db.flush()

    logger.info(
        "User %d %s comment %d on post %d",
        actor.id, "pinned" if pin_status else "unpinned", comment.id, comment.post_id,
    )
    return comment_to_dict(comment)
