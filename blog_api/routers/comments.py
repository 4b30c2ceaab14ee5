from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.dependencies import get_acting_user
from blog_api.permissions import ActingUser
from blog_api.responses import success
from blog_api.schemas import CommentCreate, CommentDestroy, CommentUpdate, PinStatusChange
from blog_api.services import comment_service

router = APIRouter(tags=["comments"], dependencies=[Depends(get_acting_user)])


@router.get("/user/comments")
async def list_user_comments(
    limit: int = Query(..., ge=1, le=100),
    page: int = Query(1, ge=1),
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    comments = await comment_service.get_user_comments(db, actor, page, limit)
    return success("Comments fetched successfully.", comments)


@router.post("/comment/create", status_code=201)
async def create_comment(
    data: CommentCreate,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.create_comment(db, actor, data)
    return success("Comment created successfully.", comment)


@router.post("/comment/update")
async def update_comment(
    data: CommentUpdate,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.update_comment(db, actor, data)
    return success("Comment updated successfully.", comment)


@router.get("/comment/details")
async def get_comment(comment_id: int, db: AsyncSession = Depends(get_db)):
    comment = await comment_service.get_comment(db, comment_id)
    return success("Comment fetched successfully.", comment)


@router.post("/comment/destroy")
async def destroy_comment(
    data: CommentDestroy,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    await comment_service.delete_comment(db, actor, data.comment_id)
    return success("Comment deleted successfully.")


@router.post("/comment/changePinStatus")
async def change_pin_status(
    data: PinStatusChange,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await comment_service.change_pin_status(db, actor, data.comment_id, data.pin_status)
    message = "Comment pinned successfully." if data.pin_status else "Comment unpinned successfully."
    return success(message, comment)
