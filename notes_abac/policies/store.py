"""
Policy store for notes-abac.

This module provides the PolicyStore class, the ordered in-memory
collection the policy engine consults. Order is significant: the engine
scans applicable policies in insertion order.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from notes_abac.types import Action, Policy, ResourceType

logger = logging.getLogger(__name__)


class PolicyStore:
    """
    Ordered collection of policies.

    Policies are kept in insertion order. Ids are not required to be
    unique; lookups and removals by id act on the first match.

    Example:
        >>> store = PolicyStore()
        >>> store.add(policy)
        >>> store.find_applicable(ResourceType.NOTE, Action.READ)
        [Policy(id='note-read-owner', ...)]

    Thread Safety:
        All operations are thread-safe via internal locking. Readers get
        copies, so evaluation never observes a list that is being mutated.
    """

    def __init__(self, policies: Iterable[Policy] | None = None) -> None:
        """
        Initialize the store.

        Args:
            policies: Optional initial policies, stored in the given order.
        """
        self._policies: list[Policy] = list(policies or [])
        self._lock = threading.RLock()

    def add(self, policy: Policy) -> None:
        """
        Append a policy to the end of the store.

        Args:
            policy: The policy to add.
        """
        with self._lock:
            self._policies.append(policy)
        logger.info(f"Added policy: {policy.name} ({policy.id})")

    def extend(self, policies: Iterable[Policy]) -> None:
        """Append several policies, preserving their order."""
        for policy in policies:
            self.add(policy)

    def remove(self, policy_id: str) -> bool:
        """
        Remove the first policy with the given id.

        Args:
            policy_id: The id to remove.

        Returns:
            True if a policy was removed, False if none matched.
        """
        with self._lock:
            for index, policy in enumerate(self._policies):
                if policy.id == policy_id:
                    removed = self._policies.pop(index)
                    break
            else:
                logger.debug(f"No policy with id '{policy_id}' to remove")
                return False
        logger.info(f"Removed policy: {removed.name} ({removed.id})")
        return True

    def get(self, policy_id: str) -> Policy | None:
        """Get the first policy with the given id, or None."""
        with self._lock:
            for policy in self._policies:
                if policy.id == policy_id:
                    return policy
        return None

    def list(self) -> list[Policy]:
        """
        List all stored policies.

        Returns:
            A new list; mutating it does not affect the store.
        """
        with self._lock:
            return list(self._policies)

    def find_applicable(
        self,
        resource_type: ResourceType | str,
        action: Action | str,
    ) -> list[Policy]:
        """
        Find the policies governing a resource type and action.

        Args:
            resource_type: The resource type being accessed.
            action: The action being attempted.

        Returns:
            Matching policies in insertion order.
        """
        with self._lock:
            return [
                policy for policy in self._policies
                if policy.applies_to(resource_type, action)
            ]

    def clear(self) -> None:
        """Remove every policy."""
        with self._lock:
            self._policies.clear()
        logger.debug("Cleared all policies")

    def __len__(self) -> int:
        with self._lock:
            return len(self._policies)
