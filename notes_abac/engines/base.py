"""
Policy engine base classes and protocols for notes-abac.

This module defines the PolicyEngine protocol the enforcement guard
depends on, and a BasePolicyEngine with the configuration handling and
async wrapper shared by engine implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from notes_abac.types import AuthorizationResult, PolicyContext


@runtime_checkable
class PolicyEngine(Protocol):
    """
    Protocol defining the interface the guard relies on.

    Example:
        >>> class AllowOwnersEngine:
        ...     def evaluate(self, context: PolicyContext) -> bool:
        ...         return self.check(context).allowed
        ...
        ...     def check(self, context: PolicyContext) -> AuthorizationResult:
        ...         owner = (context.resource or {}).get("ownerId")
        ...         return AuthorizationResult(allowed=owner == context.user.id)
    """

    def evaluate(self, context: PolicyContext) -> bool:
        """
        Decide whether the context is authorized.

        Args:
            context: The per-request policy context.

        Returns:
            True if allowed, False otherwise.
        """
        ...

    def check(self, context: PolicyContext) -> AuthorizationResult:
        """
        Decide and return the detailed result.

        Args:
            context: The per-request policy context.

        Returns:
            AuthorizationResult with the decision and its reason.
        """
        ...


class BasePolicyEngine(ABC):
    """
    Abstract base class for policy engines.

    Attributes:
        name: Human-readable name for the engine.
        config: Configuration dictionary passed during initialization.
    """

    name: str = "base"

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        """
        Initialize the policy engine.

        Args:
            config: Engine-specific configuration options.
        """
        self.config = config or {}
        self._initialized = False

    @abstractmethod
    def check(self, context: PolicyContext) -> AuthorizationResult:
        """
        Evaluate an authorization request.

        Subclasses must implement this method.

        Args:
            context: The policy context.

        Returns:
            AuthorizationResult with the decision.
        """
        pass

    def evaluate(self, context: PolicyContext) -> bool:
        """Evaluate and return only the boolean verdict."""
        return self.check(context).allowed

    async def evaluate_async(self, context: PolicyContext) -> bool:
        """
        Async version of evaluate.

        Evaluation does no I/O, so this runs the synchronous path inline.
        """
        return self.evaluate(context)

    def load_policies(self, source: Any) -> None:
        """
        Load policies from a source.

        Default implementation does nothing. Override in subclasses
        that support external policy loading.

        Args:
            source: Policy definitions or a path to them.
        """
        pass

    def is_initialized(self) -> bool:
        """Check if the engine has been initialized."""
        return self._initialized

    def get_config(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        return self.config.get(key, default)


class PolicyEngineError(Exception):
    """Base exception for policy engine errors."""

    def __init__(self, message: str, engine_name: str | None = None) -> None:
        self.engine_name = engine_name
        super().__init__(f"[{engine_name or 'unknown'}] {message}")


class PolicyLoadError(PolicyEngineError):
    """Raised when policies fail to load."""

    def __init__(
        self,
        message: str,
        engine_name: str | None = None,
        source: str | Path | None = None,
    ) -> None:
        self.source = source
        super().__init__(message, engine_name)
