from __future__ import annotations

import pytest

from fellowship.auth.permissions import Principal, RoleRef
from fellowship.auth.policies import RESOURCE_RULES, Action, ResourceType, can_perform_action


def principal(*role_names: str) -> Principal:
    return Principal.build("user_1", [RoleRef(id=i + 1, name=n) for i, n in enumerate(role_names)])


ADMIN = principal("Admin")
PASTOR = principal("Pastor")
EDITOR = principal("Editor")
MEMBER = principal("Member")


def test_every_resource_type_has_a_rule():
    assert set(RESOURCE_RULES) == set(ResourceType)


@pytest.mark.parametrize("resource", list(ResourceType))
@pytest.mark.parametrize("action", list(Action))
def test_admin_may_do_anything(resource, action):
    assert can_perform_action(ADMIN, action, resource)


@pytest.mark.parametrize("resource", list(ResourceType))
def test_owner_may_update_and_delete(resource):
    assert can_perform_action(MEMBER, Action.UPDATE, resource, is_owner=True)
    assert can_perform_action(MEMBER, Action.DELETE, resource, is_owner=True)


def test_ownership_does_not_grant_create():
    assert not can_perform_action(MEMBER, Action.CREATE, ResourceType.EVENT, is_owner=True)
    assert not can_perform_action(MEMBER, Action.CREATE, ResourceType.GROUP, is_owner=True)


@pytest.mark.parametrize("resource", list(ResourceType))
def test_everyone_may_read(resource):
    assert can_perform_action(MEMBER, Action.READ, resource)


def test_user_rules():
    assert can_perform_action(None, "create", "user")
    assert not can_perform_action(MEMBER, Action.UPDATE, ResourceType.USER)
    assert not can_perform_action(PASTOR, Action.DELETE, ResourceType.USER)


def test_group_rules():
    assert can_perform_action(PASTOR, Action.CREATE, ResourceType.GROUP)
    assert not can_perform_action(MEMBER, Action.CREATE, ResourceType.GROUP)
    assert can_perform_action(MEMBER, Action.UPDATE, ResourceType.GROUP, group_role="leader")
    assert not can_perform_action(MEMBER, Action.UPDATE, ResourceType.GROUP, group_role="member")
    assert can_perform_action(PASTOR, Action.DELETE, ResourceType.GROUP)


def test_event_rules():
    assert can_perform_action(EDITOR, Action.CREATE, ResourceType.EVENT)
    assert not can_perform_action(EDITOR, Action.UPDATE, ResourceType.EVENT)
    assert can_perform_action(PASTOR, Action.UPDATE, ResourceType.EVENT)
    assert not can_perform_action(MEMBER, Action.CREATE, ResourceType.EVENT)


def test_content_rules():
    assert can_perform_action(EDITOR, Action.CREATE, ResourceType.POST)
    assert can_perform_action(EDITOR, Action.DELETE, ResourceType.GALLERY)
    assert not can_perform_action(MEMBER, Action.CREATE, ResourceType.POST)
    assert not can_perform_action(MEMBER, Action.DELETE, ResourceType.GALLERY)


def test_unknown_action_or_resource_is_denied():
    assert not can_perform_action(MEMBER, "read", "spaceship")
    assert not can_perform_action(MEMBER, "publish", "post")
    assert not can_perform_action(None, "update", "event", is_owner=False)


def test_string_inputs_are_accepted():
    assert can_perform_action(PASTOR, "update", "event")
    assert can_perform_action(MEMBER, "DELETE", "Post", is_owner=True)
