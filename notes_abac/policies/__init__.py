"""
Policy definitions for notes-abac.

Policies are declarative rules: a resource/action match, a list of
conditions that must all hold, and an allow or deny effect. They are kept
in an ordered PolicyStore.

Quick Start:
    >>> from notes_abac.policies import PolicyStore, default_policies
    >>>
    >>> store = PolicyStore(default_policies())
    >>> store.find_applicable(ResourceType.NOTE, Action.READ)

Policy documents (``notes_abac.policies.loader``) need the optional
pydantic extra and are imported on demand.
"""

from notes_abac.policies.builtin import (
    AUTHENTICATED_ROLES,
    BUILTIN_POLICIES,
    OWNER_CONDITION,
    default_policies,
)
from notes_abac.policies.store import PolicyStore

__all__ = [
    "PolicyStore",
    "BUILTIN_POLICIES",
    "OWNER_CONDITION",
    "AUTHENTICATED_ROLES",
    "default_policies",
]
