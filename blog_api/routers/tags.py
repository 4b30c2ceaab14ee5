from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.dependencies import PaginationParams, get_acting_user, require_admin
from blog_api.responses import success
from blog_api.schemas import TagCreate, TagDestroy
from blog_api.services import tag_service

router = APIRouter(tags=["tags"])


@router.get("/tags", dependencies=[Depends(get_acting_user)])
async def list_tags(
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    tags = await tag_service.get_tags(db, pagination.page, pagination.limit, pagination.keyword)
    return success("Tags fetched successfully.", tags)


@router.post("/tag/create", status_code=201, dependencies=[Depends(require_admin)])
async def create_tag(data: TagCreate, db: AsyncSession = Depends(get_db)):
    tag = await tag_service.create_tag(db, data)
    return success("Tag added successfully.", tag)


@router.post("/tag/destroy", dependencies=[Depends(require_admin)])
async def destroy_tag(data: TagDestroy, db: AsyncSession = Depends(get_db)):
    await tag_service.delete_tag(db, data.tag_id)
    return success("Tag deleted successfully.")
