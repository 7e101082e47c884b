"""
notes-abac: attribute-based access control for a multi-tenant notes service.

notes-abac decides, for every protected operation, whether a user may
perform an action on a resource. Decisions come from declarative policies
whose conditions are evaluated against request-derived facts: the user's
attributes, the resource's ownership and the resource's state.

Basic Usage:
    >>> from notes_abac import (
    ...     AbacGuard, AbacPolicyEngine, GuardRequest, Principal, Role,
    ...     note_read_requirement,
    ... )
    >>>
    >>> engine = AbacPolicyEngine()
    >>> guard = AbacGuard(engine)
    >>> guard.requirements.register("notes.read", note_read_requirement())
    >>>
    >>> alice = Principal(id="u1", email="alice@example.com", role=Role.USER)
    >>> guard.check(GuardRequest(
    ...     operation="notes.read",
    ...     principal=alice,
    ...     params={"id": "n1"},
    ... ))
"""

__version__ = "0.1.0"

from notes_abac.engines import (
    AbacPolicyEngine,
    BasePolicyEngine,
    ConditionEvaluator,
    PolicyEngine,
    PolicyEngineError,
    PolicyLoadError,
    create_engine,
    resolve_attribute,
)
from notes_abac.exceptions import (
    AbacError,
    AuthenticationRequired,
    AuthorizationDenied,
    ConfigurationDefect,
    ConfigurationError,
)
from notes_abac.guard import (
    AbacGuard,
    GuardRequest,
    RequirementRegistry,
    admin_notes_list_requirement,
    admin_role_requirement,
    current_principal,
    note_create_requirement,
    note_delete_requirement,
    note_ownership_requirement,
    note_read_requirement,
    note_share_requirement,
    note_update_requirement,
    principal_context,
    public_link_create_requirement,
    public_link_delete_requirement,
    public_link_list_requirement,
    public_link_requirement,
    require_abac,
)
from notes_abac.policies import PolicyStore, default_policies
from notes_abac.types import (
    AbacRequirement,
    Action,
    AttributeRef,
    AuthorizationResult,
    Condition,
    ConditionOperator,
    Effect,
    Literal,
    Policy,
    PolicyContext,
    Principal,
    ResourceType,
    Role,
)

__all__ = [
    # Version
    "__version__",
    # Core types
    "Role",
    "ResourceType",
    "Action",
    "ConditionOperator",
    "Effect",
    "Literal",
    "AttributeRef",
    "Principal",
    "Condition",
    "Policy",
    "PolicyContext",
    "AbacRequirement",
    "AuthorizationResult",
    # Policies
    "PolicyStore",
    "default_policies",
    # Engines
    "PolicyEngine",
    "BasePolicyEngine",
    "AbacPolicyEngine",
    "ConditionEvaluator",
    "create_engine",
    "resolve_attribute",
    # Guard
    "AbacGuard",
    "GuardRequest",
    "RequirementRegistry",
    "require_abac",
    "current_principal",
    "principal_context",
    "admin_role_requirement",
    "note_create_requirement",
    "note_ownership_requirement",
    "note_read_requirement",
    "note_update_requirement",
    "note_delete_requirement",
    "note_share_requirement",
    "public_link_requirement",
    "public_link_create_requirement",
    "public_link_delete_requirement",
    "public_link_list_requirement",
    "admin_notes_list_requirement",
    # Exceptions
    "AbacError",
    "AuthenticationRequired",
    "AuthorizationDenied",
    "ConfigurationDefect",
    "ConfigurationError",
    "PolicyEngineError",
    "PolicyLoadError",
]
