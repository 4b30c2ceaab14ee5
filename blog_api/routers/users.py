from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.dependencies import PaginationParams, get_acting_user
from blog_api.permissions import ActingUser
from blog_api.responses import success
from blog_api.schemas import UserDestroy, UserUpdate
from blog_api.services import user_service

router = APIRouter(tags=["users"], dependencies=[Depends(get_acting_user)])


@router.get("/users")
async def list_users(
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    users = await user_service.get_users(
        db, pagination.page, pagination.limit, pagination.keyword
    )
    return success("Users fetched successfully.", users)


@router.post("/user/update")
async def update_user(
    data: UserUpdate,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    result = await user_service.update_user(db, actor, data)
    return success("User updated successfully.", result)


@router.get("/user/details")
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    user = await user_service.get_user(db, user_id)
    return success("User fetched successfully.", user)


@router.post("/user/destroy")
async def destroy_user(
    data: UserDestroy | None = None,
    actor: ActingUser = Depends(get_acting_user),
    db: AsyncSession = Depends(get_db),
):
    await user_service.delete_user(db, actor, data.user_id if data else None)
    return success("User deleted successfully.")
