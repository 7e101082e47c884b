"""
Enforcement guard for notes-abac.

The guard sits in front of protected operations. It looks up the
AbacRequirement registered for an operation, builds a PolicyContext from
the authenticated principal and the request data, asks the policy engine
for a verdict, and either lets the operation proceed or raises.

Requirements are attached explicitly: either registered in a
RequirementRegistry keyed by operation id, or declared with the
``require_abac`` decorator, which registers and wraps in one step.

Example:
    >>> engine = AbacPolicyEngine()
    >>> guard = AbacGuard(engine)
    >>>
    >>> @require_abac(guard, note_read_requirement())
    ... def get_note(params: dict, user: Principal = None):
    ...     return notes.find(params["id"])
    >>>
    >>> get_note(params={"id": "n1"}, user=alice)
"""

from __future__ import annotations

import contextvars
import functools
import inspect
import logging
import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, ParamSpec, TypeVar

from notes_abac.engines.base import PolicyEngine
from notes_abac.exceptions import AuthenticationRequired, AuthorizationDenied
from notes_abac.types import (
    AbacRequirement,
    Action,
    AuthorizationResult,
    PolicyContext,
    Principal,
    ResourceType,
)

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("notes_abac.audit")

P = ParamSpec("P")
T = TypeVar("T")

# Context variable for the authenticated principal of the current request
_current_principal: contextvars.ContextVar[Principal | None] = contextvars.ContextVar(
    "notes_abac_principal", default=None
)


def current_principal() -> Principal | None:
    """Get the principal bound to the current context."""
    return _current_principal.get()


@contextmanager
def principal_context(principal: Principal | None) -> Iterator[Principal | None]:
    """
    Bind a principal to the current context for the duration of a block.

    Example:
        >>> with principal_context(alice):
        ...     get_note(params={"id": "n1"})
    """
    token = _current_principal.set(principal)
    try:
        yield principal
    finally:
        _current_principal.reset(token)


@dataclass(frozen=True)
class GuardRequest:
    """
    The parts of an incoming request the guard reads.

    Attributes:
        operation: Id of the operation being invoked.
        principal: The authenticated principal, or None.
        params: Path parameters.
        body: Parsed request body, if any.
    """
    operation: str | None = None
    principal: Principal | None = None
    params: Mapping[str, Any] = field(default_factory=dict)
    body: Mapping[str, Any] | None = None


# Resolves resource ownership for a request; None falls back to the default rule
OwnerResolver = Callable[[GuardRequest, AbacRequirement], str | None]


class RequirementRegistry:
    """
    Lookup table of requirements keyed by operation id.

    Thread Safety:
        All operations are thread-safe via internal locking.
    """

    def __init__(self, requirements: Mapping[str, AbacRequirement] | None = None) -> None:
        self._requirements: dict[str, AbacRequirement] = dict(requirements or {})
        self._lock = threading.RLock()

    def register(self, operation: str, requirement: AbacRequirement) -> None:
        """
        Attach a requirement to an operation.

        Args:
            operation: The operation id.
            requirement: The requirement to enforce.
        """
        with self._lock:
            if operation in self._requirements:
                logger.warning(f"Overwriting ABAC requirement for operation '{operation}'")
            self._requirements[operation] = requirement
        logger.debug(
            f"Registered requirement for '{operation}': "
            f"{requirement.action.value} on {requirement.resource.value}"
        )

    def get(self, operation: str | None) -> AbacRequirement | None:
        """Get the requirement for an operation, or None."""
        if operation is None:
            return None
        with self._lock:
            return self._requirements.get(operation)

    def unregister(self, operation: str) -> bool:
        """Remove an operation's requirement. Returns True if one was removed."""
        with self._lock:
            return self._requirements.pop(operation, None) is not None

    def operations(self) -> list[str]:
        """List the operation ids that carry a requirement."""
        with self._lock:
            return list(self._requirements)

    def __contains__(self, operation: object) -> bool:
        with self._lock:
            return operation in self._requirements


class AbacGuard:
    """
    Authorization pre-condition for protected operations.

    Per request:
        - no requirement for the operation: proceed;
        - requirement but no principal: raise AuthenticationRequired;
        - otherwise evaluate; a negative verdict raises AuthorizationDenied.

    Every decision is written to the ``notes_abac.audit`` logger with the
    actor id, action and resource type. The deciding policy is only ever
    logged at debug level.

    Example:
        >>> guard = AbacGuard(AbacPolicyEngine())
        >>> guard.requirements.register("notes.read", note_read_requirement())
        >>> guard.check(GuardRequest(
        ...     operation="notes.read",
        ...     principal=alice,
        ...     params={"id": "n1"},
        ... ))
    """

    def __init__(
        self,
        engine: PolicyEngine,
        requirements: RequirementRegistry | None = None,
        owner_resolver: OwnerResolver | None = None,
    ) -> None:
        """
        Initialize the guard.

        Args:
            engine: The policy engine that decides.
            requirements: Registry of operation requirements. A new one is
                created if not provided.
            owner_resolver: Optional lookup of the resource owner for a
                request. When it returns None the owner defaults to the
                body's ``ownerId`` or the principal's own id.
        """
        self._engine = engine
        self.requirements = requirements if requirements is not None else RequirementRegistry()
        self._owner_resolver = owner_resolver

    @property
    def engine(self) -> PolicyEngine:
        """The policy engine this guard consults."""
        return self._engine

    def check(
        self,
        request: GuardRequest,
        requirement: AbacRequirement | None = None,
    ) -> AuthorizationResult | None:
        """
        Authorize a request.

        Args:
            request: The incoming request.
            requirement: Requirement to enforce. Defaults to the one
                registered for ``request.operation``.

        Returns:
            The engine's result when allowed, or None when the operation
            carries no requirement.

        Raises:
            AuthenticationRequired: If no principal is present.
            AuthorizationDenied: If the engine denies the request.
        """
        if requirement is None:
            requirement = self.requirements.get(request.operation)
        if requirement is None:
            logger.warning(
                f"No ABAC requirement for operation '{request.operation}', allowing access"
            )
            return None

        principal = request.principal
        if principal is None:
            logger.warning("No user found in request, denying access")
            raise AuthenticationRequired(request.operation)

        context = self.build_context(requirement, principal, request)
        result = self._engine.check(context)
        self._audit(result, principal, requirement, request.operation)

        if not result.allowed:
            raise AuthorizationDenied(
                user_id=principal.id,
                action=requirement.action.value,
                resource_type=requirement.resource.value,
            )
        return result

    def can_activate(self, request: GuardRequest) -> bool:
        """
        Pipeline hook: True to proceed, otherwise raises.

        Raises:
            AuthenticationRequired: If no principal is present.
            AuthorizationDenied: If the engine denies the request.
        """
        self.check(request)
        return True

    def build_context(
        self,
        requirement: AbacRequirement,
        principal: Principal,
        request: GuardRequest | None = None,
    ) -> PolicyContext:
        """
        Build the policy context for one decision.

        Only the principal's id, email and role are copied into the
        context. A resource section is added only when the requirement
        names a resource id parameter or asks for an ownership check.

        Args:
            requirement: The requirement being enforced.
            principal: The authenticated principal.
            request: The request carrying path parameters and body.

        Returns:
            A fresh PolicyContext.
        """
        request = request or GuardRequest(principal=principal)
        user = Principal(id=principal.id, email=principal.email, role=principal.role)

        resource: dict[str, Any] | None = None
        if requirement.needs_resource:
            resource = {}
            if requirement.resource_id_param:
                resource_id = request.params.get(requirement.resource_id_param)
                if resource_id:
                    resource["id"] = resource_id
            if requirement.ownership_check:
                resource["ownerId"] = self._resolve_owner(request, requirement, user)

        return PolicyContext(
            user=user,
            action=requirement.action,
            resource_type=requirement.resource,
            resource=resource,
        )

    def _resolve_owner(
        self,
        request: GuardRequest,
        requirement: AbacRequirement,
        principal: Principal,
    ) -> str:
        """Determine the resource owner; defaults to the acting principal."""
        if self._owner_resolver is not None:
            owner_id = self._owner_resolver(request, requirement)
            if owner_id is not None:
                return owner_id

        if request.body and request.body.get("ownerId"):
            return request.body["ownerId"]

        return principal.id

    def _audit(
        self,
        result: AuthorizationResult,
        principal: Principal,
        requirement: AbacRequirement,
        operation: str | None,
    ) -> None:
        decision = "allow" if result.allowed else "deny"
        extra = {
            "decision": decision,
            "user_id": principal.id,
            "action": requirement.action.value,
            "resource_type": requirement.resource.value,
            "operation": operation,
        }
        message = (
            f"Access {'granted' if result.allowed else 'denied'} for user {principal.id} "
            f"to perform {requirement.action.value} on {requirement.resource.value}"
        )
        if result.allowed:
            audit_logger.info(message, extra=extra)
        else:
            audit_logger.warning(message, extra=extra)
        logger.debug(f"Decision detail for '{operation}': {result.reason}")

    def require(
        self,
        requirement: AbacRequirement,
        operation: str | None = None,
        user_param: str = "user",
        params_param: str = "params",
        body_param: str = "body",
    ) -> Callable[[Callable[P, T]], Callable[P, T]]:
        """Decorator form bound to this guard; see ``require_abac``."""
        return require_abac(
            self,
            requirement,
            operation=operation,
            user_param=user_param,
            params_param=params_param,
            body_param=body_param,
        )


def require_abac(
    guard: AbacGuard,
    requirement: AbacRequirement,
    operation: str | None = None,
    user_param: str = "user",
    params_param: str = "params",
    body_param: str = "body",
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Register a requirement for a handler and enforce it on every call.

    Works with both sync and async handlers. The principal is read from
    the ``user_param`` keyword argument, falling back to the principal
    bound with ``principal_context``.

    Args:
        guard: The guard that enforces the requirement.
        requirement: The requirement to attach.
        operation: Operation id (defaults to the handler's qualified name).
        user_param: Keyword argument holding the Principal.
        params_param: Keyword argument holding path parameters.
        body_param: Keyword argument holding the request body.

    Returns:
        A decorator function.

    Example:
        >>> @require_abac(guard, note_create_requirement())
        ... async def create_note(body: dict, user: Principal = None):
        ...     return await notes.create(body, owner=user.id)
    """
    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        operation_id = operation or f"{func.__module__}.{func.__qualname__}"
        guard.requirements.register(operation_id, requirement)

        def build_request(kwargs: dict[str, Any]) -> GuardRequest:
            return GuardRequest(
                operation=operation_id,
                principal=kwargs.get(user_param) or current_principal(),
                params=kwargs.get(params_param) or {},
                body=kwargs.get(body_param),
            )

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
                guard.check(build_request(kwargs), requirement)
                return await func(*args, **kwargs)  # type: ignore[misc]

            async_wrapper.abac_operation = operation_id  # type: ignore[attr-defined]
            return async_wrapper  # type: ignore
        else:
            @functools.wraps(func)
            def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
                guard.check(build_request(kwargs), requirement)
                return func(*args, **kwargs)

            sync_wrapper.abac_operation = operation_id  # type: ignore[attr-defined]
            return sync_wrapper  # type: ignore

    return decorator


# Requirements for the notes service operations


def admin_role_requirement() -> AbacRequirement:
    """User management: only admins may create users."""
    return AbacRequirement(action=Action.CREATE, resource=ResourceType.USER)


def note_create_requirement() -> AbacRequirement:
    return AbacRequirement(
        action=Action.CREATE,
        resource=ResourceType.NOTE,
        ownership_check=True,
    )


def note_ownership_requirement(action: Action, resource_id_param: str = "id") -> AbacRequirement:
    """Note operations that act on an existing note owned by the caller."""
    return AbacRequirement(
        action=action,
        resource=ResourceType.NOTE,
        resource_id_param=resource_id_param,
        ownership_check=True,
    )


def note_read_requirement(resource_id_param: str = "id") -> AbacRequirement:
    return note_ownership_requirement(Action.READ, resource_id_param)


def note_update_requirement(resource_id_param: str = "id") -> AbacRequirement:
    return note_ownership_requirement(Action.UPDATE, resource_id_param)


def note_delete_requirement(resource_id_param: str = "id") -> AbacRequirement:
    return note_ownership_requirement(Action.DELETE, resource_id_param)


def note_share_requirement(resource_id_param: str = "id") -> AbacRequirement:
    return note_ownership_requirement(Action.SHARE, resource_id_param)


def public_link_requirement(action: Action) -> AbacRequirement:
    return AbacRequirement(
        action=action,
        resource=ResourceType.PUBLIC_LINK,
        ownership_check=True,
    )


def public_link_create_requirement() -> AbacRequirement:
    return public_link_requirement(Action.CREATE)


def public_link_delete_requirement() -> AbacRequirement:
    return public_link_requirement(Action.DELETE)


def public_link_list_requirement() -> AbacRequirement:
    return public_link_requirement(Action.LIST)


def admin_notes_list_requirement() -> AbacRequirement:
    return AbacRequirement(action=Action.LIST, resource=ResourceType.ADMIN_NOTES)
