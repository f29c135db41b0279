"""
Fellowship permission tables and the pure permission evaluator.

Two independent authority sources exist:

  - fellowship roles (admin, pastor, editor, deacon, member) attached to a
    user through role-assignment rows; each role maps to a fixed bundle of
    FellowshipPermission values.
  - group roles (leader, member) held per (user, group) membership; each maps
    to a fixed bundle of GroupPermission values.

The bundles are process-wide constants. Role *assignments* are data rows and
change at runtime; the bundles never do.

Every function here is total: unknown roles, unknown permission strings and
missing principals simply grant nothing.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import FrozenSet, Iterable, Mapping, Optional, Sequence, TypeVar, Union


class FellowshipPermission(str, enum.Enum):
    # users
    MANAGE_USERS = "manage_users"
    VIEW_USERS = "view_users"
    DELETE_USERS = "delete_users"

    # roles
    MANAGE_ROLES = "manage_roles"
    ASSIGN_ROLES = "assign_roles"

    # groups
    CREATE_GROUPS = "create_groups"
    DELETE_GROUPS = "delete_groups"
    MANAGE_ALL_GROUPS = "manage_all_groups"

    # events
    CREATE_EVENTS = "create_events"
    EDIT_ALL_EVENTS = "edit_all_events"
    DELETE_EVENTS = "delete_events"

    # content
    MANAGE_POSTS = "manage_posts"
    PUBLISH_POSTS = "publish_posts"
    DELETE_POSTS = "delete_posts"

    # applications / invitations
    REVIEW_GROUP_APPLICATIONS = "review_group_applications"
    MANAGE_INVITATIONS = "manage_invitations"

    # system
    VIEW_ANALYTICS = "view_analytics"
    MANAGE_SETTINGS = "manage_settings"


class GroupPermission(str, enum.Enum):
    INVITE_MEMBERS = "invite_members"
    REMOVE_MEMBERS = "remove_members"
    MANAGE_MEMBERS = "manage_members"

    EDIT_GROUP = "edit_group"
    DELETE_GROUP = "delete_group"

    REVIEW_APPLICATIONS = "review_applications"
    APPROVE_APPLICATIONS = "approve_applications"

    CREATE_GROUP_EVENTS = "create_group_events"
    MANAGE_GROUP_EVENTS = "manage_group_events"

    MARK_ATTENDANCE = "mark_attendance"
    VIEW_ATTENDANCE = "view_attendance"


class FellowshipRole(str, enum.Enum):
    ADMIN = "admin"
    PASTOR = "pastor"
    EDITOR = "editor"
    DEACON = "deacon"
    MEMBER = "member"


class GroupRole(str, enum.Enum):
    LEADER = "leader"
    MEMBER = "member"


@dataclass(frozen=True)
class RoleDefinition:
    name: str
    description: str
    permissions: FrozenSet[enum.Enum]


_FP = FellowshipPermission
_GP = GroupPermission

FELLOWSHIP_ROLES: Mapping[FellowshipRole, RoleDefinition] = MappingProxyType(
    {
        FellowshipRole.ADMIN: RoleDefinition(
            name="Admin",
            description="Full system access",
            permissions=frozenset(FellowshipPermission),
        ),
        FellowshipRole.PASTOR: RoleDefinition(
            name="Pastor",
            description="Church leadership with broad permissions",
            permissions=frozenset(
                {
                    _FP.VIEW_USERS,
                    _FP.ASSIGN_ROLES,
                    _FP.CREATE_GROUPS,
                    _FP.MANAGE_ALL_GROUPS,
                    _FP.CREATE_EVENTS,
                    _FP.EDIT_ALL_EVENTS,
                    _FP.DELETE_EVENTS,
                    _FP.MANAGE_POSTS,
                    _FP.PUBLISH_POSTS,
                    _FP.REVIEW_GROUP_APPLICATIONS,
                    _FP.MANAGE_INVITATIONS,
                    _FP.VIEW_ANALYTICS,
                }
            ),
        ),
        FellowshipRole.EDITOR: RoleDefinition(
            name="Content Editor",
            description="Can manage posts and content",
            permissions=frozenset(
                {
                    _FP.VIEW_USERS,
                    _FP.MANAGE_POSTS,
                    _FP.PUBLISH_POSTS,
                    _FP.CREATE_EVENTS,
                }
            ),
        ),
        FellowshipRole.DEACON: RoleDefinition(
            name="Deacon",
            description="Ministry coordinator",
            permissions=frozenset(
                {
                    _FP.VIEW_USERS,
                    _FP.CREATE_GROUPS,
                    _FP.CREATE_EVENTS,
                    _FP.REVIEW_GROUP_APPLICATIONS,
                }
            ),
        ),
        FellowshipRole.MEMBER: RoleDefinition(
            name="Member",
            description="Regular fellowship member",
            permissions=frozenset({_FP.VIEW_USERS}),
        ),
    }
)

GROUP_ROLES: Mapping[GroupRole, RoleDefinition] = MappingProxyType(
    {
        GroupRole.LEADER: RoleDefinition(
            name="Group Leader",
            description="Full control over the group",
            permissions=frozenset(GroupPermission),
        ),
        GroupRole.MEMBER: RoleDefinition(
            name="Group Member",
            description="Regular group member",
            permissions=frozenset({_GP.VIEW_ATTENDANCE}),
        ),
    }
)


# -----------------------------
# Principal
# -----------------------------
@dataclass(frozen=True)
class RoleRef:
    id: int
    name: str


@dataclass(frozen=True)
class Principal:
    """The authenticated actor of one request, with its attached roles."""

    id: str
    roles: tuple[RoleRef, ...] = field(default_factory=tuple)

    @classmethod
    def build(cls, id: str, roles: Iterable[RoleRef] = ()) -> "Principal":
        seen: set[int] = set()
        unique: list[RoleRef] = []
        for role in roles:
            if role.id in seen:
                continue
            seen.add(role.id)
            unique.append(role)
        return cls(id=str(id), roles=tuple(unique))

    @property
    def role_names(self) -> list[str]:
        return [r.name for r in self.roles]


MaybePrincipal = Optional[Principal]
PermissionLike = Union[FellowshipPermission, str]
GroupPermissionLike = Union[GroupPermission, str]
GroupRoleLike = Union[GroupRole, str, None]

_E = TypeVar("_E", bound=enum.Enum)


def coerce_enum(enum_cls: type[_E], value: object) -> Optional[_E]:
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        return None


def _role_definitions(principal: MaybePrincipal) -> list[RoleDefinition]:
    if principal is None or not principal.roles:
        return []
    definitions: list[RoleDefinition] = []
    for role in principal.roles:
        key = coerce_enum(FellowshipRole, role.name)
        # roles that only exist on the data side grant nothing
        if key is not None:
            definitions.append(FELLOWSHIP_ROLES[key])
    return definitions


# -----------------------------
# Fellowship-wide checks
# -----------------------------
def has_fellowship_permission(principal: MaybePrincipal, permission: PermissionLike) -> bool:
    wanted = coerce_enum(FellowshipPermission, permission)
    if wanted is None:
        return False
    return any(wanted in definition.permissions for definition in _role_definitions(principal))


def has_any_fellowship_permission(
    principal: MaybePrincipal,
    permissions: Sequence[PermissionLike],
) -> bool:
    return any(has_fellowship_permission(principal, p) for p in permissions)


def has_all_fellowship_permissions(
    principal: MaybePrincipal,
    permissions: Sequence[PermissionLike],
) -> bool:
    return all(has_fellowship_permission(principal, p) for p in permissions)


def has_role(principal: MaybePrincipal, role_name: Union[FellowshipRole, str]) -> bool:
    if principal is None or not principal.roles:
        return False
    wanted = role_name.value if isinstance(role_name, FellowshipRole) else str(role_name)
    wanted = wanted.strip().lower()
    return any(r.name.strip().lower() == wanted for r in principal.roles)


def is_admin(principal: MaybePrincipal) -> bool:
    return has_role(principal, FellowshipRole.ADMIN)


def is_pastor(principal: MaybePrincipal) -> bool:
    return has_role(principal, FellowshipRole.PASTOR)


# -----------------------------
# Group-scoped checks
# -----------------------------
def has_group_permission(group_role: GroupRoleLike, permission: GroupPermissionLike) -> bool:
    role = coerce_enum(GroupRole, group_role)
    wanted = coerce_enum(GroupPermission, permission)
    if role is None or wanted is None:
        return False
    return wanted in GROUP_ROLES[role].permissions


def is_group_leader(group_role: GroupRoleLike) -> bool:
    return coerce_enum(GroupRole, group_role) is GroupRole.LEADER


def can_manage_group(principal: MaybePrincipal, group_role: GroupRoleLike = None) -> bool:
    """
    Global override first (role data only), then local leadership.
    """
    if has_fellowship_permission(principal, FellowshipPermission.MANAGE_ALL_GROUPS):
        return True
    return is_group_leader(group_role)


def get_all_user_permissions(
    principal: MaybePrincipal,
    group_role: GroupRoleLike = None,
) -> dict[str, list[str]]:
    fellowship: dict[str, None] = {}
    for definition in _role_definitions(principal):
        for permission in FellowshipPermission:
            if permission in definition.permissions:
                fellowship.setdefault(permission.value, None)

    group: dict[str, None] = {}
    role = coerce_enum(GroupRole, group_role)
    if role is not None:
        for permission in GroupPermission:
            if permission in GROUP_ROLES[role].permissions:
                group.setdefault(permission.value, None)

    return {"fellowship": list(fellowship), "group": list(group)}
