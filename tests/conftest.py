"""
Pytest fixtures for notes-abac tests.

Provides common fixtures used across all test modules.
"""

from __future__ import annotations

import pytest

from notes_abac import (
    AbacGuard,
    AbacPolicyEngine,
    Action,
    ConditionEvaluator,
    PolicyContext,
    PolicyStore,
    Principal,
    ResourceType,
    Role,
)


# ============================================================================
# Principal Fixtures
# ============================================================================


@pytest.fixture
def basic_user() -> Principal:
    """Create a regular user principal."""
    return Principal(id="u1", email="user@example.com", role=Role.USER)


@pytest.fixture
def other_user() -> Principal:
    """Create a second regular user who owns nothing of basic_user's."""
    return Principal(id="u2", email="other@example.com", role=Role.USER)


@pytest.fixture
def admin_user() -> Principal:
    """Create an admin principal."""
    return Principal(id="admin_1", email="admin@example.com", role=Role.ADMIN)


@pytest.fixture
def test_domain_user() -> Principal:
    """Create a user on the test.com domain."""
    return Principal(id="u3", email="user@test.com", role=Role.USER)


# ============================================================================
# Context Fixtures
# ============================================================================


@pytest.fixture
def own_note_context(basic_user: Principal) -> PolicyContext:
    """basic_user reading their own note."""
    return PolicyContext(
        user=basic_user,
        action=Action.READ,
        resource_type=ResourceType.NOTE,
        resource={"id": "n1", "ownerId": "u1"},
    )


@pytest.fixture
def foreign_note_context(basic_user: Principal) -> PolicyContext:
    """basic_user reading someone else's note."""
    return PolicyContext(
        user=basic_user,
        action=Action.READ,
        resource_type=ResourceType.NOTE,
        resource={"id": "n1", "ownerId": "u2"},
    )


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def engine() -> AbacPolicyEngine:
    """Create an engine with the built-in policy set."""
    return AbacPolicyEngine()


@pytest.fixture
def empty_engine() -> AbacPolicyEngine:
    """Create an engine with no policies."""
    return AbacPolicyEngine(config={"load_builtin_policies": False})


@pytest.fixture
def evaluator() -> ConditionEvaluator:
    """Create a condition evaluator with default settings."""
    return ConditionEvaluator()


@pytest.fixture
def store() -> PolicyStore:
    """Create an empty policy store."""
    return PolicyStore()


@pytest.fixture
def guard(engine: AbacPolicyEngine) -> AbacGuard:
    """Create a guard over the built-in engine."""
    return AbacGuard(engine)
