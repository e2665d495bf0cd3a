"""Auth service — password hashing, JWT issuance, registration and login."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from fastapi.exceptions import HTTPException
from jose import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.schemas import (
    MAX_PASSWORD_BYTES,
    ChangePasswordRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    TokenResponse,
)
from leavedesk.common.audit import create_audit_entry
from leavedesk.common.constants import UserRole
from leavedesk.common.exceptions import (
    ConflictError,
    ForbiddenException,
    ValidationException,
)
from leavedesk.config import settings
from leavedesk.users.models import User
from leavedesk.users.service import UserService

logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12


# ── Passwords ───────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return bcrypt.hashpw(
        password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS),
    ).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    raw = password.encode("utf-8")
    # nothing longer can have been hashed
    if len(raw) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(raw, password_hash.encode("utf-8"))


# ── JWT helpers ─────────────────────────────────────────────────────

def create_access_token(user_id: uuid.UUID, role: UserRole) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


def build_token_response(user: User) -> TokenResponse:
    token, expires_in = create_access_token(user.id, user.role)
    return TokenResponse(
        access_token=token,
        expires_in=expires_in,
        user=UserService.build_user_response(user),
    )


# ── Lookup ──────────────────────────────────────────────────────────

async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.lower()))
    return result.scalars().first()


# ── Registration / login ────────────────────────────────────────────

async def register_user(db: AsyncSession, data: RegisterRequest) -> TokenResponse:
    """Create an employee account with default balances and return a token."""
    if await get_user_by_email(db, data.email) is not None:
        raise ConflictError("email", data.email)

    user = User(
        name=data.name,
        email=data.email.lower(),
        password_hash=hash_password(data.password),
        role=UserRole.employee,
        department=data.department or "General",
        position=data.position or "Staff",
        phone=data.phone,
        manager=None,
    )
    db.add(user)
    await db.flush()

    await create_audit_entry(
        db,
        action="register",
        entity_type="user",
        entity_id=user.id,
        actor_id=user.id,
        new_values={"email": user.email, "role": user.role.value},
    )
    logger.info("Registered user %s", user.id)
    return build_token_response(user)


async def authenticate(db: AsyncSession, email: str, password: str) -> TokenResponse:
    """Verify credentials; unknown email and wrong password look the same."""
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password.")
    if not user.is_active:
        raise ForbiddenException("Your account has been deactivated. Please contact HR.")

    user = await UserService.find_user(db, user.id)
    logger.info("User %s logged in", user.id)
    return build_token_response(user)


# ── Self-service profile ────────────────────────────────────────────

async def update_profile(
    db: AsyncSession,
    user: User,
    data: ProfileUpdateRequest,
) -> User:
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(user, field, value)
    user.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("User %s updated their profile", user.id)
    return user


async def change_password(
    db: AsyncSession,
    user: User,
    data: ChangePasswordRequest,
) -> TokenResponse:
    """Replace the password after verifying the current one; returns a fresh token."""
    if not verify_password(data.current_password, user.password_hash):
        raise ValidationException(
            {"current_password": ["Current password is incorrect."]}
        )
    if data.current_password == data.new_password:
        raise ValidationException(
            {"new_password": ["New password must be different from current password."]}
        )

    user.password_hash = hash_password(data.new_password)
    user.updated_at = datetime.now(timezone.utc)
    await db.flush()

    await create_audit_entry(
        db,
        action="change_password",
        entity_type="user",
        entity_id=user.id,
        actor_id=user.id,
    )
    logger.info("User %s changed their password", user.id)
    return build_token_response(user)
