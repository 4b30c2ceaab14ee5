"""
Tag service — the shared tag vocabulary.

Tags are usually created on demand by post writes; these functions back the
admin endpoints for managing them directly.
"""
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.config import settings
from blog_api.database import atomic
from blog_api.errors import NotFound, ValidationFailed
from blog_api.models import Tag, post_tag
from blog_api.schemas import TagCreate
from blog_api.services.common import count_rows, like_pattern, page_of, tag_to_dict

logger = logging.getLogger(__name__)

TAG_TAKEN = "Tag name already exists."


async def get_tags(
    db: AsyncSession,
    page: int = 1,
    limit: int = settings.DEFAULT_PAGE_SIZE,
    keyword: str | None = None,
) -> dict:
    """Tags oldest first, optionally filtered by a name substring."""
    criteria = []
    if keyword:
        criteria.append(Tag.name.ilike(like_pattern(keyword), escape="\\"))

    total = await count_rows(db, Tag, *criteria)
    q = (
        select(Tag)
        .where(*criteria)
        .order_by(Tag.created_at, Tag.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    tags = (await db.execute(q)).scalars().all()
    return page_of([tag_to_dict(t) for t in tags], total, page, limit)


async def _name_taken(db: AsyncSession, name: str) -> bool:
    return (await db.execute(select(Tag.id).where(Tag.name == name))).first() is not None


async def create_tag(db: AsyncSession, data: TagCreate) -> dict:
    if await _name_taken(db, data.name):
        raise ValidationFailed({"name": [TAG_TAKEN]})

    tag = Tag(name=data.name)
    async with atomic(db, conflict_message=TAG_TAKEN):
        db.add(tag)
        await db.flush()

    logger.info("Created tag %d (%s)", tag.id, tag.name)
    return tag_to_dict(tag)


async def delete_tag(db: AsyncSession, tag_id: int) -> None:
    """Detach the tag from every post, then delete it."""
    tag = await db.get(Tag, tag_id)
    if tag is None:
        raise NotFound("Tag not found.")

    async with atomic(db):
        await db.execute(delete(post_tag).where(post_tag.c.tag_id == tag.id))
        await db.delete(tag)

    logger.info("Deleted tag %d", tag_id)
