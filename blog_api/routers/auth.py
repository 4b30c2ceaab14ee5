from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from blog_api.database import get_db
from blog_api.responses import success
from blog_api.schemas import LoginRequest, RegisterRequest
from blog_api.services import user_service

router = APIRouter(tags=["auth"])


@router.post("/register", status_code=201)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    token = await user_service.register(db, data)
    return success("User created successfully.", token)


@router.post("/login")
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    token = await user_service.login(db, data)
    return success("Login successful", token)
