"""
Attribute-based policy engine for notes-abac.

This module provides the AbacPolicyEngine, which combines the policy
store and the condition evaluator into a single authorization decision.
"""

from __future__ import annotations

import logging
from typing import Any

from notes_abac.engines.base import BasePolicyEngine, PolicyLoadError
from notes_abac.engines.evaluator import ConditionEvaluator
from notes_abac.exceptions import ConfigurationError
from notes_abac.policies.builtin import default_policies
from notes_abac.policies.store import PolicyStore
from notes_abac.types import AuthorizationResult, Effect, Policy, PolicyContext

logger = logging.getLogger(__name__)

FIRST_MATCH = "first_match"
DENY_OVERRIDES = "deny_overrides"
COMBINING_ALGORITHMS = (FIRST_MATCH, DENY_OVERRIDES)


class AbacPolicyEngine(BasePolicyEngine):
    """
    Policy engine evaluating declarative attribute-based policies.

    The decision procedure:
        1. Find the policies whose resource and action match the context.
        2. If there are none, deny.
        3. Scan them in store order. A policy matches when every one of
           its conditions holds (no conditions always matches).
        4. With ``first_match`` the first matching policy decides: a deny
           returns False, an allow returns True. With ``deny_overrides``
           any matching deny wins, otherwise any matching allow grants.
        5. If nothing matched, deny.

    Example:
        >>> engine = AbacPolicyEngine()
        >>> context = PolicyContext(
        ...     user=Principal(id="u1", email="u1@example.com", role=Role.USER),
        ...     action=Action.READ,
        ...     resource_type=ResourceType.NOTE,
        ...     resource={"id": "n1", "ownerId": "u1"},
        ... )
        >>> engine.evaluate(context)
        True

    Configuration:
        - combining_algorithm: ``"first_match"`` (default) or
            ``"deny_overrides"``.
        - load_builtin_policies: Load the notes-service policy set at
            construction. Defaults to True.
        - infer_attribute_refs: Resolve untagged dotted string values as
            attribute paths when they exist. Defaults to True.
    """

    name = "abac"

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        store: PolicyStore | None = None,
    ) -> None:
        """
        Initialize the AbacPolicyEngine.

        Args:
            config: Engine configuration options.
            store: Optional PolicyStore to use. If not provided, a new
                store is created.

        Raises:
            ConfigurationError: If the combining algorithm is unknown.
        """
        super().__init__(config)

        self.combining_algorithm = self.get_config("combining_algorithm", FIRST_MATCH)
        if self.combining_algorithm not in COMBINING_ALGORITHMS:
            raise ConfigurationError(
                config_key="combining_algorithm",
                expected=f"one of: {', '.join(repr(a) for a in COMBINING_ALGORITHMS)}",
                received=self.combining_algorithm,
            )
        self.load_builtin_policies = self.get_config("load_builtin_policies", True)

        self.evaluator = ConditionEvaluator(
            infer_attribute_refs=self.get_config("infer_attribute_refs", True),
        )
        self._store = store if store is not None else PolicyStore()

        if self.load_builtin_policies:
            self._store.extend(default_policies())
        logger.info(f"Initialized {len(self._store)} policies")

        self._initialized = True

    @property
    def store(self) -> PolicyStore:
        """The policy store backing this engine."""
        return self._store

    def check(self, context: PolicyContext) -> AuthorizationResult:
        """
        Evaluate an authorization request.

        Args:
            context: The policy context.

        Returns:
            AuthorizationResult with the decision. ``metadata`` carries the
            deciding policy id under ``matched_policy``.
        """
        logger.debug(
            f"Evaluating policy for action: {context.action.value} "
            f"on resource: {context.resource_type.value}"
        )

        applicable = self._store.find_applicable(context.resource_type, context.action)
        if not applicable:
            logger.warning(
                f"No policies found for action: {context.action.value} "
                f"on resource: {context.resource_type.value}"
            )
            return AuthorizationResult.deny("No applicable policy")

        facts = context.to_dict()
        evaluated: list[str] = []
        matched_allow: Policy | None = None

        for policy in applicable:
            evaluated.append(policy.id)
            if not self._matches(policy, facts):
                continue

            if policy.effect is Effect.DENY:
                logger.debug(f"Policy {policy.name} denied access")
                return AuthorizationResult.deny(
                    f"Denied by policy '{policy.id}'",
                    policies=evaluated,
                    metadata={"matched_policy": policy.id},
                )

            if self.combining_algorithm == FIRST_MATCH:
                logger.debug(f"Policy {policy.name} allowed access")
                return self._allowed(policy, evaluated)

            if matched_allow is None:
                matched_allow = policy

        if matched_allow is not None:
            logger.debug(f"Policy {matched_allow.name} allowed access")
            return self._allowed(matched_allow, evaluated)

        logger.debug("No matching allow policies found, denying access")
        return AuthorizationResult.deny("No matching policy", policies=evaluated)

    def _matches(self, policy: Policy, facts: dict[str, Any]) -> bool:
        """Check that every condition of the policy holds."""
        for condition in policy.conditions:
            if not self.evaluator.evaluate(condition, facts, policy_id=policy.id):
                logger.debug(
                    f"Policy {policy.id}: condition on '{condition.attribute}' failed"
                )
                return False
        return True

    @staticmethod
    def _allowed(policy: Policy, evaluated: list[str]) -> AuthorizationResult:
        return AuthorizationResult.allow(
            f"Allowed by policy '{policy.id}'",
            policies=evaluated,
            metadata={"matched_policy": policy.id},
        )

    def explain(self, context: PolicyContext) -> dict[str, Any]:
        """
        Explain an authorization decision.

        Provides per-policy and per-condition results, useful for
        debugging. Not meant to be shown to the end user.

        Args:
            context: The policy context.

        Returns:
            Dictionary containing explanation details.
        """
        result = self.check(context)
        facts = context.to_dict()

        policies = []
        for policy in self._store.find_applicable(context.resource_type, context.action):
            conditions = [
                {
                    **condition.to_dict(),
                    "result": self.evaluator.evaluate(condition, facts, policy_id=policy.id),
                }
                for condition in policy.conditions
            ]
            policies.append({
                "id": policy.id,
                "name": policy.name,
                "effect": policy.effect.value,
                "matched": all(c["result"] for c in conditions),
                "conditions": conditions,
            })

        return {
            "decision": "ALLOW" if result.allowed else "DENY",
            "reason": result.reason,
            "combining_algorithm": self.combining_algorithm,
            "request": {
                "user_id": context.user.id,
                "action": context.action.value,
                "resource_type": context.resource_type.value,
            },
            "policies": policies,
        }

    # Administrative interface

    def add_policy(self, policy: Policy) -> None:
        """Append a policy to the store."""
        self._store.add(policy)

    def remove_policy(self, policy_id: str) -> bool:
        """Remove the first policy with the given id. No-op if absent."""
        return self._store.remove(policy_id)

    def list_policies(self) -> list[Policy]:
        """List all policies in store order."""
        return self._store.list()

    def get_policy(self, policy_id: str) -> Policy | None:
        """Get the first policy with the given id."""
        return self._store.get(policy_id)

    def reset_policies(self) -> None:
        """Clear the store and reload the built-in set if configured."""
        self._store.clear()
        if self.load_builtin_policies:
            self._store.extend(default_policies())
        logger.info(f"Reset to {len(self._store)} policies")

    def load_policies(self, source: Any) -> None:
        """
        Append policies declared as documents.

        Args:
            source: A list of dicts, a JSON string, or a path to a JSON
                file. See ``notes_abac.policies.loader``.

        Raises:
            PolicyLoadError: If pydantic is missing or a document is invalid.
            ConfigurationDefect: If a condition names an unknown operator.
        """
        try:
            from notes_abac.policies.loader import parse_policies
        except ImportError:
            raise PolicyLoadError(
                "Policy documents require the 'pydantic' package. "
                "Install with: pip install notes-abac[pydantic]",
                engine_name=self.name,
            ) from None

        policies = parse_policies(source)
        self._store.extend(policies)
        logger.info(f"Loaded {len(policies)} policies")
