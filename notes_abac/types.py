"""
Core type definitions for notes-abac.

This module defines the data structures shared by the policy store, the
condition evaluator, the policy engine and the enforcement guard: the
enumerations for roles, resource types, actions and operators, the
authenticated principal, policies and their conditions, the per-request
policy context and the declarative requirement attached to operations.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    """Closed set of principal roles."""

    ADMIN = "admin"
    USER = "user"


class ResourceType(str, Enum):
    """Kinds of protected resources in the notes service."""

    USER = "user"
    NOTE = "note"
    PUBLIC_LINK = "public_link"
    ADMIN_NOTES = "admin_notes"


class Action(str, Enum):
    """Operation kinds a policy can govern."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    SHARE = "share"
    LIST = "list"


class ConditionOperator(str, Enum):
    """Comparison kinds supported by the condition evaluator."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"
    EXISTS = "exists"


class Effect(str, Enum):
    """Outcome a matching policy contributes."""

    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class Literal:
    """
    A condition value that is always compared as-is.

    Use this for values that contain a dot but must never be read as an
    attribute path, such as domain names.

    Example:
        >>> Condition("user.email", ConditionOperator.CONTAINS, Literal("@test.com"))
    """
    value: Any


@dataclass(frozen=True)
class AttributeRef:
    """
    A condition value that is always dereferenced against the context.

    Example:
        >>> Condition("user.id", ConditionOperator.EQUALS, AttributeRef("resource.ownerId"))
    """
    path: str


@dataclass(frozen=True)
class Principal:
    """
    The authenticated actor making a request.

    Created at authentication time and never mutated by the engine.

    Attributes:
        id: Unique identifier of the user.
        email: The user's email address.
        role: The user's role.

    Example:
        >>> alice = Principal(id="u1", email="alice@example.com", role=Role.USER)
    """
    id: str
    email: str
    role: Role

    def is_admin(self) -> bool:
        """Check if the principal holds the admin role."""
        return self.role == Role.ADMIN

    def to_dict(self) -> dict[str, Any]:
        """Convert to the ``user`` section of a policy context."""
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role.value if isinstance(self.role, Role) else self.role,
        }


@dataclass(frozen=True)
class Condition:
    """
    A single predicate over a context attribute.

    Attributes:
        attribute: Dotted path into the policy context
            (``user.*``, ``resource.*``, ``action`` or ``resourceType``).
        operator: The comparison to apply. Strings naming a known
            operator are converted; unknown strings are kept so the
            evaluator can flag them.
        value: The expected value. A ``Literal`` is compared as-is, an
            ``AttributeRef`` is resolved against the context, and an
            untagged dotted string is resolved when the path exists.
    """
    attribute: str
    operator: ConditionOperator | str
    value: Any = None

    def __post_init__(self) -> None:
        if not isinstance(self.operator, ConditionOperator):
            try:
                object.__setattr__(self, "operator", ConditionOperator(self.operator))
            except ValueError:
                pass

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging and explanations."""
        operator = self.operator
        if isinstance(operator, ConditionOperator):
            operator = operator.value
        return {
            "attribute": self.attribute,
            "operator": operator,
            "value": _describe_value(self.value),
        }


@dataclass(frozen=True)
class Policy:
    """
    A named rule pairing a resource/action match with conditions and an effect.

    Policies are immutable once created. An empty ``conditions`` list
    always matches.

    Attributes:
        id: Identifier used for lookup and removal.
        name: Human-readable description.
        resource: The resource type this policy governs.
        action: The action this policy governs.
        conditions: Conditions that must all hold for the policy to match.
        effect: ``allow`` or ``deny``.

    Example:
        >>> policy = Policy(
        ...     id="note-read-owner",
        ...     name="Allow users to read their own notes",
        ...     resource=ResourceType.NOTE,
        ...     action=Action.READ,
        ...     conditions=[
        ...         Condition("user.id", ConditionOperator.EQUALS,
        ...                   AttributeRef("resource.ownerId")),
        ...     ],
        ... )
    """
    id: str
    name: str
    resource: ResourceType
    action: Action
    conditions: tuple[Condition, ...] = ()
    effect: Effect = Effect.ALLOW

    def __post_init__(self) -> None:
        # Freeze the condition list so stored policies cannot change underneath the engine
        object.__setattr__(self, "conditions", tuple(self.conditions))
        object.__setattr__(self, "resource", ResourceType(self.resource))
        object.__setattr__(self, "action", Action(self.action))
        object.__setattr__(self, "effect", Effect(self.effect))

    def applies_to(self, resource_type: ResourceType | str, action: Action | str) -> bool:
        """Check if this policy governs the given resource type and action."""
        return self.resource == resource_type and self.action == action

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "resource": self.resource.value,
            "action": self.action.value,
            "conditions": [condition.to_dict() for condition in self.conditions],
            "effect": self.effect.value,
        }


@dataclass(frozen=True)
class PolicyContext:
    """
    The facts presented to the engine for one authorization decision.

    Built fresh for every request by the guard. Conditions address it
    through ``to_dict()``, whose keys are ``user``, ``action``,
    ``resourceType`` and, when present, ``resource``.

    Attributes:
        user: The authenticated principal.
        action: The action being attempted.
        resource_type: The kind of resource being accessed.
        resource: Optional resource attributes such as ``id``,
            ``ownerId`` and ``status``.

    Example:
        >>> context = PolicyContext(
        ...     user=alice,
        ...     action=Action.READ,
        ...     resource_type=ResourceType.NOTE,
        ...     resource={"id": "n1", "ownerId": "u1"},
        ... )
    """
    user: Principal
    action: Action
    resource_type: ResourceType
    resource: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "action", Action(self.action))
        object.__setattr__(self, "resource_type", ResourceType(self.resource_type))

    def to_dict(self) -> dict[str, Any]:
        """Convert to the nested mapping attribute paths are resolved against."""
        data: dict[str, Any] = {
            "user": self.user.to_dict(),
            "action": _plain(self.action),
            "resourceType": _plain(self.resource_type),
        }
        if self.resource is not None:
            data["resource"] = dict(self.resource)
        return data

    def with_resource(self, **attributes: Any) -> PolicyContext:
        """Create a new context with additional resource attributes."""
        resource = {**(self.resource or {}), **attributes}
        return PolicyContext(
            user=self.user,
            action=self.action,
            resource_type=self.resource_type,
            resource=resource,
        )


@dataclass(frozen=True)
class AbacRequirement:
    """
    Declarative authorization requirement attached to an operation.

    Attributes:
        action: The action the operation performs.
        resource: The resource type the operation touches.
        resource_id_param: Name of the path parameter holding the
            resource id, if any.
        ownership_check: Whether to populate ``resource.ownerId``.

    Example:
        >>> AbacRequirement(Action.READ, ResourceType.NOTE,
        ...                 resource_id_param="id", ownership_check=True)
    """
    action: Action
    resource: ResourceType
    resource_id_param: str | None = None
    ownership_check: bool = False

    @property
    def needs_resource(self) -> bool:
        """Whether the guard must build a resource section for this requirement."""
        return bool(self.resource_id_param) or self.ownership_check


@dataclass(frozen=True)
class AuthorizationResult:
    """
    Result of an authorization check.

    Captures whether the action was allowed, the reason for the decision,
    and which policies were evaluated. The reason and policy ids are for
    logs only and are never returned to end users.

    Attributes:
        allowed: Whether the action is authorized.
        reason: Human-readable explanation of the decision.
        policies_evaluated: Ids of the policies that were checked.
        metadata: Additional information about the decision
            (e.g. ``matched_policy``).
    """
    allowed: bool
    reason: str | None = None
    policies_evaluated: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def allow(cls, reason: str | None = None,
              policies: list[str] | None = None,
              metadata: dict[str, Any] | None = None) -> AuthorizationResult:
        """Create an allowed result."""
        return cls(
            allowed=True,
            reason=reason,
            policies_evaluated=policies or [],
            metadata=metadata or {},
        )

    @classmethod
    def deny(cls, reason: str,
             policies: list[str] | None = None,
             metadata: dict[str, Any] | None = None) -> AuthorizationResult:
        """Create a denied result."""
        return cls(
            allowed=False,
            reason=reason,
            policies_evaluated=policies or [],
            metadata=metadata or {},
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "policies_evaluated": self.policies_evaluated,
            "metadata": self.metadata,
        }


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _describe_value(value: Any) -> Any:
    if isinstance(value, AttributeRef):
        return {"ref": value.path}
    if isinstance(value, Literal):
        return {"literal": _plain(value.value)}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return _plain(value)
