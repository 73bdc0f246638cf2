from typing import List

from fastapi import APIRouter, Depends, status

from app.auth import require_auth
from app.dependencies import get_user_service
from app.services.user_service import UserService, to_user_read
from common.core.errors import ForbiddenError
from common.models.schemas import PasswordChange, User, UserCreate, UserRead, UserUpdate

users_router = APIRouter(prefix="/users", dependencies=[Depends(require_auth)])


def _read_all(users: List[User]) -> List[UserRead]:
    return [to_user_read(user) for user in users]


@users_router.get("")
async def list_users(service: UserService = Depends(get_user_service)):
    users = await service.list_users()
    return {
        "success": True,
        "data": _read_all(users),
        "message": f"Found {len(users)} users",
    }


@users_router.get("/{user_id}")
async def get_user(user_id: str, service: UserService = Depends(get_user_service)):
    return {"success": True, "data": to_user_read(await service.get_user(user_id))}


@users_router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreate, service: UserService = Depends(get_user_service)):
    user = await service.create_user(payload)
    return {
        "success": True,
        "data": to_user_read(user),
        "message": "User created successfully",
    }


@users_router.put("/{user_id}")
async def update_user(
    user_id: str,
    payload: UserUpdate,
    service: UserService = Depends(get_user_service),
    current: User = Depends(require_auth),
):
    user = await service.update_user(user_id, payload, acting_user=current)
    return {
        "success": True,
        "data": to_user_read(user),
        "message": "User updated successfully",
    }


@users_router.delete("/{user_id}")
async def deactivate_user(
    user_id: str,
    service: UserService = Depends(get_user_service),
    current: User = Depends(require_auth),
):
    user = await service.deactivate_user(user_id, acting_user=current)
    return {
        "success": True,
        "data": to_user_read(user),
        "message": "User deactivated successfully",
    }


@users_router.post("/{user_id}/change-password")
async def change_password(
    user_id: str,
    payload: PasswordChange,
    service: UserService = Depends(get_user_service),
    current: User = Depends(require_auth),
):
    if current.id != user_id:
        raise ForbiddenError("You can only change your own password")
    await service.change_password(user_id, payload.current_password, payload.new_password)
    return {"success": True, "message": "Password changed successfully"}
