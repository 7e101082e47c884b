"""
Policy engines for notes-abac.

This module provides the policy engine abstraction and the attribute-based
engine used by the enforcement guard.

Quick Start:
    >>> from notes_abac.engines import create_engine
    >>>
    >>> engine = create_engine()
    >>>
    >>> # Or with an order-independent deny precedence
    >>> engine = create_engine({"combining_algorithm": "deny_overrides"})
"""

from __future__ import annotations

from typing import Any

from notes_abac.engines.abac import (
    COMBINING_ALGORITHMS,
    DENY_OVERRIDES,
    FIRST_MATCH,
    AbacPolicyEngine,
)
from notes_abac.engines.base import (
    BasePolicyEngine,
    PolicyEngine,
    PolicyEngineError,
    PolicyLoadError,
)
from notes_abac.engines.evaluator import (
    UNDEFINED,
    ConditionEvaluator,
    resolve_attribute,
)
from notes_abac.policies.store import PolicyStore


def create_engine(
    config: dict[str, Any] | None = None,
    store: PolicyStore | None = None,
) -> AbacPolicyEngine:
    """
    Create a policy engine instance.

    Args:
        config: Engine configuration. See ``AbacPolicyEngine``.
        store: Optional pre-populated policy store.

    Returns:
        An initialized AbacPolicyEngine.

    Raises:
        ConfigurationError: If the configuration is invalid.

    Example:
        >>> from notes_abac.engines import create_engine
        >>> engine = create_engine({"load_builtin_policies": False})
    """
    return AbacPolicyEngine(config, store=store)


__all__ = [
    # Protocol and base classes
    "PolicyEngine",
    "BasePolicyEngine",
    # Engines
    "AbacPolicyEngine",
    "create_engine",
    "COMBINING_ALGORITHMS",
    "FIRST_MATCH",
    "DENY_OVERRIDES",
    # Evaluation
    "ConditionEvaluator",
    "resolve_attribute",
    "UNDEFINED",
    # Exceptions
    "PolicyEngineError",
    "PolicyLoadError",
]
