from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.dependencies import PaginationParams, get_acting_user
from blog_api.permissions import ActingUser
from blog_api.responses import success
from blog_api.schemas import PostCreate, PostDestroy, PostUpdate
from blog_api.services import post_service

router = APIRouter(tags=["posts"], dependencies=[Depends(get_acting_user)])


@router.get("/posts")
async def list_posts(
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    posts = await post_service.get_posts(
        db, pagination.page, pagination.limit, pagination.keyword
    )
    return success("Posts fetched successfully.", posts)


@router.post("/post/create", status_code=201)
async def create_post(
    data: PostCreate,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    post = await post_service.create_post(db, actor, data)
    return success("Post created successfully.", post)


@router.get("/post/details")
async def get_post(post_id: int, db: AsyncSession = Depends(get_db)):
    post = await post_service.get_post(db, post_id)
    return success("Post fetched successfully.", post)


@router.post("/post/update")
async def update_post(
    data: PostUpdate,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    post = await post_service.update_post(db, actor, data)
    return success("Post updated successfully.", post)


@router.post("/post/destroy")
async def destroy_post(
    data: PostDestroy,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    await post_service.delete_post(db, actor, data.post_id)
    return success("Post deleted successfully.")
