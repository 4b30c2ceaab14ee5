"""
Post service — business logic for the Post entity.

Design notes
------------
- Posts are soft-deleted: ``deleted_at`` is set and the post disappears
  from every read path.  The delete runs the cascade explicitly in the same
  unit of work (comments removed, tag associations detached); tags
  themselves are shared vocabulary and stay.
- Eager loading via ``joinedload`` (many-to-one: author) and
  ``selectinload`` (collections: tags, comments) keeps every endpoint at a
  fixed number of queries.
- Tag resolution and the post write share one ``atomic`` block so a failure
  partway never leaves a half-tagged post.
"""
import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from blog_api.config import settings
from blog_api.database import atomic
from blog_api.errors import NotFound, PermissionDenied, ValidationFailed
from blog_api.models import Comment, Post, Tag, User, post_tag, utcnow
from blog_api.permissions import ActingUser, editable
from blog_api.schemas import PostCreate, PostUpdate
from blog_api.services.common import (
    comment_to_dict,
    count_rows,
    like_pattern,
    page_of,
    post_to_dict,
    tag_to_dict,
    user_to_dict,
)

logger = logging.getLogger(__name__)

LIVE = Post.deleted_at.is_(None)


# ---------------------------------------------------------------------------
# Tag resolution helper (used by create / update)
# ---------------------------------------------------------------------------

async def _resolve_tags(db: AsyncSession, tag_names: list[str], tag_ids: list[int]) -> list[Tag]:
    """
    Return the Tag rows for *tag_names* plus *tag_ids*, deduplicated and in
    first-seen order.

    Names are matched case-sensitively and created when unseen; inserts are
    flushed within the caller's transaction.  Unknown ids are rejected
    before anything is written.
    """
    explicit: dict[int, Tag] = {}
    if tag_ids:
        result = await db.execute(select(Tag).where(Tag.id.in_(set(tag_ids))))
        explicit = {t.id: t for t in result.scalars().all()}
        missing = [i for i in dict.fromkeys(tag_ids) if i not in explicit]
        if missing:
            raise ValidationFailed(
                {"tag_ids": [f"Tag Id {i} doesn't exist." for i in missing]}
            )

    resolved: dict[int, Tag] = {}
    for name in dict.fromkeys(tag_names):
        result = await db.execute(select(Tag).where(Tag.name == name))
        tag = result.scalar_one_or_none()
        if tag is None:
            tag = Tag(name=name)
            db.add(tag)
            await db.flush()
        resolved.setdefault(tag.id, tag)

    for tag_id in tag_ids:
        resolved.setdefault(tag_id, explicit[tag_id])
    return list(resolved.values())


async def _load_post_detail(db: AsyncSession, post_id: int) -> Post | None:
    q = (
        select(Post)
        .where(Post.id == post_id, LIVE)
        .options(
            joinedload(Post.author),
            selectinload(Post.tags),
            selectinload(Post.comments).joinedload(Comment.author),
        )
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


def _post_detail_to_dict(post: Post) -> dict:
    data = post_to_dict(post)
    data["author"] = user_to_dict(post.author)
    data["tags"] = [tag_to_dict(t) for t in post.tags]
    comments = sorted(
        post.comments, key=lambda c: (c.is_pinned, c.created_at, c.id), reverse=True
    )
    data["comments"] = []
    for comment in comments:
        item = comment_to_dict(comment)
        item["author"] = user_to_dict(comment.author)
        data["comments"].append(item)
    return data


async def _load_editable_post(
    db: AsyncSession, actor: ActingUser, post_id: int, action: str, with_tags: bool = False
) -> Post:
    q = select(Post).where(Post.id == post_id, LIVE).with_for_update()
    if with_tags:
        # The tag collection must be loaded for a full sync to diff against it.
        q = q.options(selectinload(Post.tags)).execution_options(populate_existing=True)
    post = (await db.execute(q)).scalar_one_or_none()
    if post is None:
        raise NotFound("Post not found.")
    if not editable(actor, post):
        logger.warning("User %d denied %s of post %d", actor.id, action, post.id)
        raise PermissionDenied(f"You are not authorized to {action} this post.")
    return post


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_posts(
    db: AsyncSession,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    keyword: str | None = None,
) -> dict:
    """
    Return a page of live posts, newest first.

    *keyword* matches case-insensitively against title, body, author name,
    author email and tag name.  Each item carries its author plus
    ``comments_count`` and ``tags_count``.
    """
    criteria = [LIVE]
    if keyword:
        pattern = like_pattern(keyword)
        criteria.append(or_(
            Post.title.ilike(pattern, escape="\\"),
            Post.body.ilike(pattern, escape="\\"),
            Post.author.has(or_(
                User.name.ilike(pattern, escape="\\"),
                User.email.ilike(pattern, escape="\\"),
            )),
            Post.tags.any(Tag.name.ilike(pattern, escape="\\")),
        ))

    comments_count = (
        select(func.count(Comment.id))
        .where(Comment.post_id == Post.id)
        .correlate(Post)
        .scalar_subquery()
    )
    tags_count = (
        select(func.count())
        .select_from(post_tag)
        .where(post_tag.c.post_id == Post.id)
        .correlate(Post)
        .scalar_subquery()
    )

    total = await count_rows(db, Post, *criteria)
    q = (
        select(Post, comments_count.label("comments_count"), tags_count.label("tags_count"))
        .where(*criteria)
        .options(joinedload(Post.author))
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = (await db.execute(q)).unique().all()

    items = []
    for post, n_comments, n_tags in rows:
        data = post_to_dict(post)
        data["author"] = user_to_dict(post.author)
        data["comments_count"] = n_comments
        data["tags_count"] = n_tags
        items.append(data)
    return page_of(items, total, page, limit)


async def get_post(db: AsyncSession, post_id: int) -> dict:
    """Full post detail: author, tags and comments (pinned first, then newest)."""
    post = await _load_post_detail(db, post_id)
    if post is None:
        raise NotFound("Post not found.")
    return _post_detail_to_dict(post)


async def create_post(db: AsyncSession, actor: ActingUser, data: PostCreate) -> dict:
    async with atomic(db):
        post = Post(title=data.title, body=data.body, user_id=actor.id)
        post.tags = await _resolve_tags(db, data.tags, data.tag_ids)
        db.add(post)
        await db.flush()
        post_id = post.id

    logger.info("User %d created post %d", actor.id, post_id)
    return _post_detail_to_dict(await _load_post_detail(db, post_id))


async def update_post(db: AsyncSession, actor: ActingUser, data: PostUpdate) -> dict:
    """
    Replace title, body and the full tag set of a post.

    Associations not in the new set are removed; the post row is locked for
    the duration of the write.
    """
    async with atomic(db):
        post = await _load_editable_post(db, actor, data.post_id, "update", with_tags=True)
        post.title = data.title
        post.body = data.body
        post.tags = await _resolve_tags(db, data.tags, data.tag_ids)
        await db.flush()

    return _post_detail_to_dict(await _load_post_detail(db, data.post_id))


async def delete_post(db: AsyncSession, actor: ActingUser, post_id: int) -> None:
    """Soft-delete a post, removing its comments and detaching its tags."""
    async with atomic(db):
        post = await _load_editable_post(db, actor, post_id, "delete")
        await db.execute(delete(Comment).where(Comment.post_id == post.id))
        await db.execute(delete(post_tag).where(post_tag.c.post_id == post.id))
        post.deleted_at = utcnow()

    logger.info("User %d deleted post %d", actor.id, post_id)
