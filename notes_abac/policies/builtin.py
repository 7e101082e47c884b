"""
Built-in policies for the notes service.

The engine loads this set at construction. For every resource/action
pair the controlling rule is listed first, since the default combining
algorithm is first-match-wins in store order.
"""

from __future__ import annotations

from notes_abac.types import (
    Action,
    AttributeRef,
    Condition,
    ConditionOperator,
    Effect,
    Policy,
    ResourceType,
    Role,
)

# user.id == resource.ownerId
OWNER_CONDITION = Condition(
    attribute="user.id",
    operator=ConditionOperator.EQUALS,
    value=AttributeRef("resource.ownerId"),
)

AUTHENTICATED_ROLES = [Role.USER, Role.ADMIN]


def _owner_only(policy_id: str, name: str, resource: ResourceType, action: Action) -> Policy:
    return Policy(
        id=policy_id,
        name=name,
        resource=resource,
        action=action,
        conditions=(OWNER_CONDITION,),
        effect=Effect.ALLOW,
    )


BUILTIN_POLICIES: tuple[Policy, ...] = (
    Policy(
        id="user-create-admin",
        name="Allow admin to create users",
        resource=ResourceType.USER,
        action=Action.CREATE,
        conditions=(
            Condition("user.role", ConditionOperator.EQUALS, Role.ADMIN),
        ),
    ),
    Policy(
        id="note-create-user",
        name="Allow users to create notes",
        resource=ResourceType.NOTE,
        action=Action.CREATE,
        conditions=(
            Condition("user.role", ConditionOperator.IN, AUTHENTICATED_ROLES),
        ),
    ),
    _owner_only(
        "note-read-owner",
        "Allow users to read their own notes",
        ResourceType.NOTE,
        Action.READ,
    ),
    _owner_only(
        "note-update-owner",
        "Allow users to update their own notes",
        ResourceType.NOTE,
        Action.UPDATE,
    ),
    _owner_only(
        "note-delete-owner",
        "Allow users to delete their own notes",
        ResourceType.NOTE,
        Action.DELETE,
    ),
    Policy(
        id="note-share-owner",
        name="Allow users to share their own notes",
        resource=ResourceType.NOTE,
        action=Action.SHARE,
        conditions=(
            OWNER_CONDITION,
            Condition("user.role", ConditionOperator.IN, AUTHENTICATED_ROLES),
        ),
    ),
    Policy(
        id="admin-notes-list",
        name="Allow admin to list all active notes",
        resource=ResourceType.ADMIN_NOTES,
        action=Action.LIST,
        conditions=(
            Condition("user.role", ConditionOperator.EQUALS, Role.ADMIN),
        ),
    ),
    _owner_only(
        "public-link-create-owner",
        "Allow users to create public links for their notes",
        ResourceType.PUBLIC_LINK,
        Action.CREATE,
    ),
    _owner_only(
        "public-link-delete-owner",
        "Allow users to delete their public links",
        ResourceType.PUBLIC_LINK,
        Action.DELETE,
    ),
    _owner_only(
        "public-link-list-owner",
        "Allow users to list their public links",
        ResourceType.PUBLIC_LINK,
        Action.LIST,
    ),
)


def default_policies() -> list[Policy]:
    """
    Get the built-in policy set.

    Returns:
        A new list of the built-in policies in their controlling order.
    """
    return list(BUILTIN_POLICIES)
