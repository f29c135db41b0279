# backend/fellowship/api/v1/groups.py
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.deps.permissions import group_manager_required
from fellowship.api.deps.session import get_current_principal, get_principal
from fellowship.auth.guards import (
    GroupAccess,
    is_owner_or_admin_check,
    require_action,
    require_authenticated,
    require_group_permission,
)
from fellowship.auth.permissions import (
    FellowshipPermission,
    GroupPermission,
    Principal,
    can_manage_group,
    has_fellowship_permission,
    has_group_permission,
    is_admin,
    is_pastor,
)
from fellowship.auth.policies import Action, ResourceType
from fellowship.core.errors import Forbidden, NotFound
from fellowship.crud import group_applications as applications_crud
from fellowship.crud import group_invitations as invitations_crud
from fellowship.crud import groups as groups_crud
from fellowship.crud.users import get_user
from fellowship.db.session import get_db
from fellowship.models.group import Group
from fellowship.schemas.groups import (
    AddMemberRequest,
    ApplicationOut,
    ApplyRequest,
    ApplyResponse,
    GroupCreate,
    GroupMemberOut,
    GroupOut,
    GroupUpdate,
    GroupWithMembers,
    InvitationOut,
    InviteRequest,
    RespondRequest,
    ReviewRequest,
    UpdateMemberRequest,
)
from fellowship.schemas.users import UserSummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups", tags=["groups"])


async def _get_group_or_404(db: AsyncSession, group_id: int) -> Group:
    group = await groups_crud.get_group(db, group_id)
    if group is None:
        raise NotFound("Group not found")
    return group


def _group_out(group: Group, counts: dict[int, int]) -> GroupOut:
    return GroupOut(
        id=group.id,
        name=group.name,
        description=group.description,
        member_count=counts.get(group.id, 0),
        created_at=group.created_at,
    )


def _members_out(rows) -> list[GroupMemberOut]:
    return [GroupMemberOut(user=UserSummary.model_validate(user), role=role) for user, role in rows]


async def _ensure_can_review(db: AsyncSession, principal: Principal, group_id: int, permission: GroupPermission) -> None:
    """Fellowship-wide reviewers first, then the group's own leaders."""
    if has_fellowship_permission(principal, FellowshipPermission.REVIEW_GROUP_APPLICATIONS):
        return
    await require_group_permission(db, principal, group_id, permission)


# =========================================================
# LIST / READ (public)
# =========================================================
@router.get("", response_model=List[GroupOut])
async def list_groups(db: AsyncSession = Depends(get_db)):
    groups = await groups_crud.list_groups(db)
    counts = await groups_crud.member_counts(db)
    return [_group_out(g, counts) for g in groups]


@router.get("/with-members", response_model=List[GroupWithMembers])
async def list_groups_with_members(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Admins, pastors and manage_all_groups holders see every group; everyone
    else sees only the groups they belong to.
    """
    sees_all = (
        is_admin(principal)
        or is_pastor(principal)
        or has_fellowship_permission(principal, FellowshipPermission.MANAGE_ALL_GROUPS)
    )
    groups = await groups_crud.list_groups(db, user_id=None if sees_all else principal.id)
    members = await groups_crud.list_members_by_group(db, [g.id for g in groups])

    out = []
    for g in groups:
        rows = members.get(g.id, [])
        out.append(
            GroupWithMembers(
                **_group_out(g, {g.id: len(rows)}).model_dump(),
                members=_members_out(rows),
            )
        )
    return out


# =========================================================
# APPLICATIONS (static paths before /{group_id})
# =========================================================
@router.post("/applications", response_model=ApplyResponse, status_code=status.HTTP_201_CREATED)
async def apply_to_groups(
    payload: ApplyRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Body: {"group_ids": [1, 2]}
    Groups already applied to or joined are skipped and reported back.
    """
    result = await applications_crud.apply_to_groups(db, principal.id, payload.group_ids)
    return ApplyResponse(
        created=[ApplicationOut.model_validate(a) for a in result.created],
        already_applied=result.already_applied,
        already_member=result.already_member,
    )


@router.get("/applications/me", response_model=List[ApplicationOut])
async def my_applications(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await applications_crud.list_for_user(db, principal.id)


@router.post("/applications/{application_id}/review", response_model=ApplicationOut)
async def review_application(
    application_id: int,
    payload: ReviewRequest,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    principal = require_authenticated(principal)

    application = await applications_crud.get_application(db, application_id)
    if application is None:
        raise NotFound("Application not found")

    await _ensure_can_review(db, principal, application.group_id, GroupPermission.APPROVE_APPLICATIONS)

    return await applications_crud.review_application(
        db,
        application,
        status=payload.status,
        reviewer_id=principal.id,
    )


# =========================================================
# INVITATIONS (invitee side)
# =========================================================
@router.get("/invitations/me", response_model=List[InvitationOut])
async def my_invitations(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return await invitations_crud.list_for_user(db, principal.id)


@router.post("/invitations/{invitation_id}/respond", response_model=InvitationOut)
async def respond_to_invitation(
    invitation_id: int,
    payload: RespondRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    invitation = await invitations_crud.get_invitation(db, invitation_id)
    if invitation is None:
        raise NotFound("Invitation not found")

    if not is_owner_or_admin_check(principal, invitation.invited_user_id):
        raise Forbidden("Forbidden - This invitation is not addressed to you")

    return await invitations_crud.respond_to_invitation(db, invitation, payload.status)


# =========================================================
# GROUP CRUD
# =========================================================
@router.get("/{group_id}", response_model=GroupOut)
async def get_group(group_id: int, db: AsyncSession = Depends(get_db)):
    group = await _get_group_or_404(db, group_id)
    counts = await groups_crud.member_counts(db)
    return _group_out(group, counts)


@router.post("", response_model=GroupOut, status_code=status.HTTP_201_CREATED)
async def create_group(
    payload: GroupCreate,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    """The creator becomes the group's leader."""
    principal = require_action(principal, Action.CREATE, ResourceType.GROUP)
    group = await groups_crud.create_group(
        db,
        name=payload.name,
        description=payload.description,
        creator_id=principal.id,
    )
    return _group_out(group, {group.id: 1})


@router.patch("/{group_id}", response_model=GroupOut)
async def update_group(
    group_id: int,
    payload: GroupUpdate,
    db: AsyncSession = Depends(get_db),
    _access: GroupAccess = Depends(group_manager_required),
):
    group = await _get_group_or_404(db, group_id)
    group = await groups_crud.update_group(db, group, payload.model_dump(exclude_unset=True))
    counts = await groups_crud.member_counts(db)
    return _group_out(group, counts)


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group(
    group_id: int,
    db: AsyncSession = Depends(get_db),
    access: GroupAccess = Depends(group_manager_required),
):
    await _get_group_or_404(db, group_id)
    await groups_crud.delete_group(db, group_id)
    logger.info("Group %s deleted by %s", group_id, access.principal.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =========================================================
# MEMBERS
# =========================================================
@router.get("/{group_id}/members", response_model=List[GroupMemberOut])
async def list_members(
    group_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    """Visible to the group's members and to anyone who may manage it."""
    principal = require_authenticated(principal)
    await _get_group_or_404(db, group_id)

    group_role = await groups_crud.get_user_group_role(db, principal.id, group_id)
    if not can_manage_group(principal, group_role):
        await require_group_permission(db, principal, group_id, GroupPermission.VIEW_ATTENDANCE)

    return _members_out(await groups_crud.list_members(db, group_id))


@router.post("/{group_id}/members", response_model=GroupMemberOut, status_code=status.HTTP_201_CREATED)
async def add_member(
    group_id: int,
    payload: AddMemberRequest,
    db: AsyncSession = Depends(get_db),
    _access: GroupAccess = Depends(group_manager_required),
):
    await _get_group_or_404(db, group_id)
    user = await get_user(db, payload.user_id)
    if user is None:
        raise NotFound("User not found")

    membership = await groups_crud.add_member(db, group_id, user.id, payload.role)
    return GroupMemberOut(user=UserSummary.model_validate(user), role=membership.role)


@router.patch("/{group_id}/members/{user_id}", response_model=GroupMemberOut)
async def update_member(
    group_id: int,
    user_id: str,
    payload: UpdateMemberRequest,
    db: AsyncSession = Depends(get_db),
    _access: GroupAccess = Depends(group_manager_required),
):
    membership = await groups_crud.update_member_role(db, group_id, user_id, payload.role)
    user = await get_user(db, user_id)
    return GroupMemberOut(user=UserSummary.model_validate(user), role=membership.role)


@router.delete("/{group_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    group_id: int,
    user_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    """Members may leave on their own; removing someone else needs management rights."""
    principal = require_authenticated(principal)
    if principal.id != user_id:
        group_role = await groups_crud.get_user_group_role(db, principal.id, group_id)
        if not (can_manage_group(principal, group_role) or has_group_permission(group_role, GroupPermission.REMOVE_MEMBERS)):
            raise Forbidden("Forbidden - Group management access required")

    await groups_crud.remove_member(db, group_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =========================================================
# APPLICATIONS + INVITATIONS (group side)
# =========================================================
@router.get("/{group_id}/applications", response_model=List[ApplicationOut])
async def list_group_applications(
    group_id: int,
    status_filter: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    principal = require_authenticated(principal)
    await _get_group_or_404(db, group_id)
    await _ensure_can_review(db, principal, group_id, GroupPermission.REVIEW_APPLICATIONS)
    return await applications_crud.list_for_group(db, group_id, status=status_filter)


@router.post("/{group_id}/invitations", response_model=InvitationOut, status_code=status.HTTP_201_CREATED)
async def invite_to_group(
    group_id: int,
    payload: InviteRequest,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    principal = require_authenticated(principal)
    group = await _get_group_or_404(db, group_id)

    if not has_fellowship_permission(principal, FellowshipPermission.MANAGE_INVITATIONS):
        await require_group_permission(db, principal, group_id, GroupPermission.INVITE_MEMBERS)

    return await invitations_crud.create_invitation(
        db,
        group,
        invited_user_id=payload.user_id,
        inviter_user_id=principal.id,
    )
