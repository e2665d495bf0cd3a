"""Auth router — register, login, current user profile, password change."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth import service
from leavedesk.auth.dependencies import get_current_user
from leavedesk.auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    TokenResponse,
)
from leavedesk.common.rate_limit import limiter
from leavedesk.config import settings
from leavedesk.database import get_db
from leavedesk.users.models import User
from leavedesk.users.schemas import UserOut
from leavedesk.users.service import UserService

router = APIRouter(prefix="", tags=["auth"])


# ── POST /register ──────────────────────────────────────────────────

@router.post("/register", response_model=TokenResponse, status_code=201)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def register(
    request: Request,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    """Create an employee account and return an access token."""
    return await service.register_user(db, body)


# ── POST /login ─────────────────────────────────────────────────────

@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    return await service.authenticate(db, body.email, body.password)


# ── GET /me ─────────────────────────────────────────────────────────

@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    return UserService.build_user_response(user)


# ── PUT /profile ────────────────────────────────────────────────────

@router.put("/profile", response_model=UserOut)
async def update_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await service.update_profile(db, user, body)
    return UserService.build_user_response(updated)


# ── PUT /change-password ────────────────────────────────────────────

@router.put("/change-password", response_model=TokenResponse)
async def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Change password; the response carries a fresh token."""
    return await service.change_password(db, user, body)
