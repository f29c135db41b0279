from __future__ import annotations

import enum
from types import MappingProxyType
from typing import Callable, Mapping, Union

from fellowship.auth.permissions import (
    FellowshipPermission,
    GroupRoleLike,
    MaybePrincipal,
    coerce_enum,
    can_manage_group,
    has_fellowship_permission,
    is_admin,
)


class Action(str, enum.Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class ResourceType(str, enum.Enum):
    USER = "user"
    GROUP = "group"
    EVENT = "event"
    POST = "post"
    GALLERY = "gallery"


_MODIFY = {Action.UPDATE, Action.DELETE}

Rule = Callable[[MaybePrincipal, Action, GroupRoleLike], bool]


def _user_rule(principal: MaybePrincipal, action: Action, group_role: GroupRoleLike) -> bool:
    if action in {Action.CREATE, Action.READ}:
        return True
    return has_fellowship_permission(principal, FellowshipPermission.MANAGE_USERS)


def _group_rule(principal: MaybePrincipal, action: Action, group_role: GroupRoleLike) -> bool:
    if action is Action.READ:
        return True
    if action is Action.CREATE:
        return has_fellowship_permission(principal, FellowshipPermission.CREATE_GROUPS)
    return can_manage_group(principal, group_role)


def _event_rule(principal: MaybePrincipal, action: Action, group_role: GroupRoleLike) -> bool:
    if action is Action.READ:
        return True
    if action is Action.CREATE:
        return has_fellowship_permission(principal, FellowshipPermission.CREATE_EVENTS)
    return has_fellowship_permission(principal, FellowshipPermission.EDIT_ALL_EVENTS)


def _content_rule(principal: MaybePrincipal, action: Action, group_role: GroupRoleLike) -> bool:
    if action is Action.READ:
        return True
    return has_fellowship_permission(principal, FellowshipPermission.MANAGE_POSTS)


RESOURCE_RULES: Mapping[ResourceType, Rule] = MappingProxyType(
    {
        ResourceType.USER: _user_rule,
        ResourceType.GROUP: _group_rule,
        ResourceType.EVENT: _event_rule,
        ResourceType.POST: _content_rule,
        # ownership is not consulted for gallery items
        ResourceType.GALLERY: _content_rule,
    }
)

_unruled = set(ResourceType) - set(RESOURCE_RULES)
if _unruled:
    raise RuntimeError(f"No authorization rule for resource types: {sorted(r.value for r in _unruled)}")


def can_perform_action(
    principal: MaybePrincipal,
    action: Union[Action, str],
    resource_type: Union[ResourceType, str],
    *,
    is_owner: bool = False,
    group_role: GroupRoleLike = None,
) -> bool:
    """
    Order matters:
      1. admin may do anything
      2. owners may update/delete their own resource whatever their roles
      3. resource-specific rule
      4. everything else is denied
    """
    if is_admin(principal):
        return True

    act = coerce_enum(Action, action)
    if act is None:
        return False

    if is_owner and act in _MODIFY:
        return True

    resource = coerce_enum(ResourceType, resource_type)
    if resource is None:
        return False

    return RESOURCE_RULES[resource](principal, act, group_role)
