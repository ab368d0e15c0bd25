from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import require_user_id
from conduit.schemas import UserCreateRequest, UserResponse, UserUpdateRequest
from conduit.services import user_service

router = APIRouter(prefix="/api/users", tags=["users"])

# The caller's own account
current_user_router = APIRouter(prefix="/api/user", tags=["users"])


@router.post("", status_code=201, response_model=UserResponse)
async def create_user(data: UserCreateRequest, db: AsyncSession = Depends(get_db)):
    return {"user": await user_service.create_user(db, data.user)}


@current_user_router.get("", response_model=UserResponse)
async def get_current_user(
    user_id: int = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    return {"user": await user_service.get_current_user(db, user_id)}


@current_user_router.put("", response_model=UserResponse)
async def update_current_user(
    data: UserUpdateRequest,
    user_id: int = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
):
    return {"user": await user_service.update_user(db, user_id, data.user)}
