from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.deps.session import get_principal
from fellowship.auth.guards import require_action, require_authenticated
from fellowship.auth.permissions import FellowshipPermission, Principal, has_fellowship_permission, is_admin
from fellowship.auth.policies import Action, ResourceType
from fellowship.core.errors import Forbidden, NotFound
from fellowship.crud import posts as posts_crud
from fellowship.db.session import get_db
from fellowship.models.content import Post
from fellowship.schemas.content import PostCreate, PostOut, PostUpdate

router = APIRouter(prefix="/posts", tags=["posts"])


def _can_see_unpublished(principal: Optional[Principal]) -> bool:
    return has_fellowship_permission(principal, FellowshipPermission.MANAGE_POSTS)


def _require_publish(principal: Principal) -> None:
    if not (is_admin(principal) or has_fellowship_permission(principal, FellowshipPermission.PUBLISH_POSTS)):
        raise Forbidden("Forbidden - Publishing requires the publish_posts permission")


async def _get_post_or_404(db: AsyncSession, post_id: int, principal: Optional[Principal]) -> Post:
    post = await posts_crud.get_post(db, post_id)
    if post is None:
        raise NotFound("Post not found")
    if post.status != posts_crud.PUBLISHED:
        is_author = principal is not None and post.author_id == principal.id
        # unpublished posts do not exist for anyone else
        if not (is_author or _can_see_unpublished(principal)):
            raise NotFound("Post not found")
    return post


@router.get("", response_model=List[PostOut])
async def list_posts(
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    return await posts_crud.list_posts(
        db,
        include_unpublished=_can_see_unpublished(principal),
        author_id=principal.id if principal is not None else None,
    )


@router.get("/{post_id}", response_model=PostOut)
async def get_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    return await _get_post_or_404(db, post_id, principal)


@router.post("", response_model=PostOut, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: PostCreate,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    principal = require_action(principal, Action.CREATE, ResourceType.POST)
    if payload.status == posts_crud.PUBLISHED:
        _require_publish(principal)

    return await posts_crud.create_post(
        db,
        title=payload.title,
        content=payload.content,
        status=payload.status,
        author_id=principal.id,
    )


@router.patch("/{post_id}", response_model=PostOut)
async def update_post(
    post_id: int,
    payload: PostUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    principal = require_authenticated(principal)
    post = await _get_post_or_404(db, post_id, principal)
    require_action(
        principal,
        Action.UPDATE,
        ResourceType.POST,
        is_owner=post.author_id == principal.id,
    )

    data = payload.model_dump(exclude_unset=True)
    if data.get("status") == posts_crud.PUBLISHED and post.status != posts_crud.PUBLISHED:
        _require_publish(principal)

    return await posts_crud.update_post(db, post, data)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    principal = require_authenticated(principal)
    post = await _get_post_or_404(db, post_id, principal)
    require_action(
        principal,
        Action.DELETE,
        ResourceType.POST,
        is_owner=post.author_id == principal.id,
    )
    await posts_crud.delete_post(db, post)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
