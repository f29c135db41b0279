# backend/fellowship/api/v1/auth.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.deps.session import get_current_principal, get_current_user, get_principal
from fellowship.auth.permissions import Principal, get_all_user_permissions
from fellowship.core.config import settings
from fellowship.core.errors import Forbidden, StorageFailure, ValidationFailed, storage_errors
from fellowship.core.security import (
    burn_password_check,
    create_access_token,
    hash_password,
    password_strength_problems,
    verify_password,
)
from fellowship.crud import password_reset, roles as roles_crud, users as users_crud
from fellowship.crud.groups import get_user_group_role
from fellowship.db.session import get_db
from fellowship.models.user import User
from fellowship.schemas.auth import (
    AvatarResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    PermissionsResponse,
    ProfileUpdateRequest,
    RegisterRequest,
    ResetPasswordRequest,
    RoleOut,
    TokenResponse,
)
from fellowship.storage.blob import LocalBlobStore, get_blob_store, new_blob_pathname, read_image_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

INVALID_CREDENTIALS = "Invalid email or password"
REGISTERED_MESSAGE = "Registration received. If the email is available you can now log in."
RESET_REQUESTED_MESSAGE = "If an account exists for that email, a password reset link has been sent."


def _should_return_reset_token_in_response() -> bool:
    """
    - In prod, never return the reset token in API responses.
    - Elsewhere it is returned to simplify Swagger testing, unless
      RETURN_RESET_TOKEN_IN_RESPONSE says otherwise.
    """
    if settings.is_production:
        return False
    flag = settings.RETURN_RESET_TOKEN_IN_RESPONSE
    if isinstance(flag, bool):
        return flag
    return True


def _check_strength(password: str) -> None:
    problems = password_strength_problems(password)
    if problems:
        raise ValidationFailed("Password must contain " + ", ".join(problems) + ".")


def _to_me_response(user: User, roles: list) -> MeResponse:
    return MeResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        status=user.status,
        is_active=user.is_active,
        phone_e164=user.phone_e164,
        address=user.address,
        bio=user.bio,
        avatar=user.avatar,
        nationality=user.nationality,
        roles=[RoleOut(id=r.id, name=r.name) for r in roles],
    )


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
) -> MessageResponse:
    """
    Creates a Member account. The response is the same whether or not the
    email was already registered.
    """
    if principal is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Already logged in")

    _check_strength(payload.password)

    # hash up front so both branches cost the same
    password_hash = hash_password(payload.password)

    existing = await users_crud.get_user_by_email(db, payload.email)
    if existing is not None:
        logger.info("Registration attempted for an existing email")
        return MessageResponse(message=REGISTERED_MESSAGE)

    member_role = await roles_crud.get_role_by_name(db, roles_crud.DEFAULT_ROLE)
    user = await users_crud.create_user(
        db,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=str(payload.email),
        password_hash=password_hash,
        role_id=member_role.id if member_role is not None else None,
    )
    if member_role is None:
        logger.warning("Default role %s missing; user %s registered without a role", roles_crud.DEFAULT_ROLE, user.id)

    logger.info("Registered user %s", user.id)
    return MessageResponse(message=REGISTERED_MESSAGE)


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    """
    Body: {"email": "...", "password": "..."}
    Unknown email, password-less account and wrong password all answer 401
    with the same message.
    """
    user = await users_crud.get_user_by_email(db, payload.email)

    if user is None or not user.password_hash:
        burn_password_check(payload.password)
        logger.info("Failed login (no usable account)")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

    if not verify_password(payload.password, user.password_hash):
        logger.info("Failed login for user %s", user.id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

    # only reachable with the right password, so this reveals nothing new
    if not user.is_active:
        raise Forbidden("Account is inactive")

    access_token = create_access_token(
        subject=user.id,
        expires_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    )
    return TokenResponse(access_token=access_token)


@router.post("/forgot-password")
async def forgot_password(payload: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    """
    Always answers with the same body. A single-use token valid for
    PASSWORD_RESET_EXPIRE_MINUTES is created when the account exists.

    NOTE: In production the token is never returned in the response.
    """
    resp: dict = {"status": "ok", "message": RESET_REQUESTED_MESSAGE}

    user = await users_crud.get_user_by_email(db, payload.email)
    if user is None or not user.is_active:
        logger.info("Password reset requested for an unknown or inactive email")
        return resp

    with storage_errors("Failed to create reset token"):
        record = await password_reset.issue_token(db, user.id)
        await db.commit()

    logger.info("Password reset token issued for user %s", user.id)
    if _should_return_reset_token_in_response():
        resp["reset_token"] = record.token
    return resp


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(payload: ResetPasswordRequest, db: AsyncSession = Depends(get_db)) -> MessageResponse:
    token = payload.token.strip()

    record = await password_reset.find_valid_token(db, token)
    if record is None:
        raise ValidationFailed("Invalid or expired reset token")

    _check_strength(payload.password)

    user = await users_crud.get_user(db, record.user_id)
    if user is None:
        raise ValidationFailed("Invalid or expired reset token")

    with storage_errors("Failed to reset password"):
        await users_crud.set_password(db, user, hash_password(payload.password))
        await password_reset.consume_token(db, record)
        await db.commit()

    logger.info("Password reset completed for user %s", user.id)
    return MessageResponse(message="Password has been reset. You can now log in.")


@router.get("/me", response_model=MeResponse)
async def me(
    user: User = Depends(get_current_user),
    principal: Principal = Depends(get_current_principal),
) -> MeResponse:
    return _to_me_response(user, list(principal.roles))


@router.patch("/me", response_model=MeResponse)
async def update_me(
    payload: ProfileUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    principal: Principal = Depends(get_current_principal),
) -> MeResponse:
    data = payload.model_dump(exclude_unset=True)

    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields provided to update.")

    for key in ("first_name", "last_name"):
        if key in data and data[key] is None:
            raise HTTPException(status_code=422, detail=f"{key} cannot be cleared")

    user = await users_crud.update_profile(db, user, data)
    return _to_me_response(user, list(principal.roles))


@router.put("/me/avatar", response_model=AvatarResponse)
async def upload_avatar(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    store: LocalBlobStore = Depends(get_blob_store),
    user: User = Depends(get_current_user),
) -> AvatarResponse:
    """
    multipart/form-data: file (jpeg, png or webp).
    Replaces the profile picture; the previous uploaded one is removed.
    """
    content_type, data = await read_image_upload(
        file,
        allowed_types=settings.AVATAR_ALLOWED_CONTENT_TYPES,
        max_bytes=settings.AVATAR_MAX_UPLOAD_BYTES,
    )

    previous = user.avatar
    pathname = new_blob_pathname("avatars", user.id, content_type)
    await store.put(pathname, data)

    try:
        user = await users_crud.set_avatar(db, user, pathname)
    except StorageFailure:
        await store.delete(pathname)
        raise

    # only this user's uploaded blobs are removed; external avatar URLs stay
    if previous and previous.startswith(f"avatars/{user.id}/"):
        try:
            await store.delete(previous)
        except ValueError:
            logger.warning("Skipped removing invalid avatar pathname %r for user %s", previous, user.id)

    logger.info("User %s uploaded profile picture %s", user.id, pathname)
    return AvatarResponse(
        message="Profile picture updated",
        avatar=pathname,
        url=f"/api/v1/files/{pathname}",
    )


@router.get("/me/permissions", response_model=PermissionsResponse)
async def my_permissions(
    group_id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> PermissionsResponse:
    group_role = None
    if group_id is not None:
        group_role = await get_user_group_role(db, principal.id, group_id)

    perms = get_all_user_permissions(principal, group_role)
    return PermissionsResponse(
        fellowship=perms["fellowship"],
        group=perms["group"],
        group_id=group_id,
        group_role=group_role,
    )
