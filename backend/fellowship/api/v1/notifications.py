from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.deps.session import get_current_principal
from fellowship.auth.guards import require_owner_or_admin
from fellowship.auth.permissions import Principal
from fellowship.core.errors import NotFound
from fellowship.crud import notifications as notifications_crud
from fellowship.db.session import get_db
from fellowship.models.content import Notification
from fellowship.schemas.content import NotificationOut

router = APIRouter(prefix="/notifications", tags=["notifications"])


async def _get_own_notification(db: AsyncSession, notification_id: int, principal: Principal) -> Notification:
    notification = await notifications_crud.get_notification(db, notification_id)
    if notification is None:
        raise NotFound("Notification not found")
    require_owner_or_admin(principal, notification.user_id)
    return notification


@router.get("/me", response_model=List[NotificationOut])
async def my_notifications(
    unread: bool = Query(default=False),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await notifications_crud.list_for_user(db, principal.id, unread_only=unread)


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    notification = await _get_own_notification(db, notification_id, principal)
    return await notifications_crud.mark_read(db, notification)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    notification = await _get_own_notification(db, notification_id, principal)
    await notifications_crud.delete_notification(db, notification)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
