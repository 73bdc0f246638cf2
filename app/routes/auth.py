import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm

from app.auth import create_user_token, optional_auth, require_auth
from app.dependencies import get_user_service
from app.services.user_service import UserService, to_user_read
from common.core.config import settings
from common.core.errors import AuthenticationError
from common.models.schemas import PasswordChange, Token, User, UserCreate

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/auth")


@auth_router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    service: UserService = Depends(get_user_service),
):
    user = await service.authenticate(form_data.username, form_data.password)
    if user is None:
        logger.warning(f"Failed login attempt for {form_data.username!r}")
        raise AuthenticationError("Invalid credentials")
    logger.info(f"User logged in: {user.username}")
    return Token(access_token=create_user_token(user), user=to_user_read(user))


@auth_router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    payload: UserCreate,
    service: UserService = Depends(get_user_service),
    user: Optional[User] = Depends(optional_auth),
):
    # closed sign-up: only an authenticated user may add accounts
    if user is None and not settings.allow_registration:
        raise AuthenticationError("Authentication required")
    created = await service.create_user(payload)
    return {
        "success": True,
        "data": Token(access_token=create_user_token(created), user=to_user_read(created)),
        "message": "User registered successfully",
    }


@auth_router.get("/me")
async def me(user: User = Depends(require_auth)):
    return {"success": True, "data": to_user_read(user)}


@auth_router.post("/logout")
async def logout(user: User = Depends(require_auth)):
    # tokens are stateless; the client drops its copy
    logger.info(f"User logged out: {user.username}")
    return {"success": True, "message": "Logged out successfully"}


@auth_router.post("/change-password")
async def change_password(
    payload: PasswordChange,
    user: User = Depends(require_auth),
    service: UserService = Depends(get_user_service),
):
    await service.change_password(user.id, payload.current_password, payload.new_password)
    return {"success": True, "message": "Password changed successfully"}
