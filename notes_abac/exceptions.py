"""
Custom exceptions for notes-abac.

This module defines the exception hierarchy raised at the enforcement
boundary. Callers see two categories: a missing principal
(``AuthenticationRequired``) and a negative verdict
(``AuthorizationDenied``). Neither message reveals which policy or
condition produced the outcome.
"""

from __future__ import annotations

from typing import Any

GENERIC_DENIAL_MESSAGE = "You do not have permission to perform this action"


class AbacError(Exception):
    """
    Base exception for all notes-abac errors.

    Attributes:
        message: Human-readable error description.
        details: Additional context about the error.

    Example:
        >>> try:
        ...     guard.check(request)
        ... except AbacError as e:
        ...     logger.error(f"Access control error: {e}")
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class AuthenticationRequired(AbacError):
    """
    Raised when a protected operation is reached without a principal.

    Distinct from ``AuthorizationDenied``: the request never reached the
    policy engine.

    Attributes:
        operation: The operation that required authentication.
    """

    def __init__(self, operation: str | None = None) -> None:
        self.operation = operation
        details = {"operation": operation} if operation else None
        super().__init__("Authentication required", details)


class AuthorizationDenied(AbacError):
    """
    Raised when the policy engine's verdict is negative.

    The message is always generic. The action and resource type are kept
    for handlers that translate the error into a response; the deciding
    policy is only ever written to logs.

    Attributes:
        user_id: The principal that was denied.
        action: The action that was attempted.
        resource_type: The resource type the action targeted.
    """

    def __init__(self, user_id: str, action: str, resource_type: str) -> None:
        self.user_id = user_id
        self.action = action
        self.resource_type = resource_type
        super().__init__(
            GENERIC_DENIAL_MESSAGE,
            {"action": action, "resource_type": resource_type},
        )

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to the caller-safe dictionary form."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "action": self.action,
            "resource_type": self.resource_type,
        }


class ConfigurationDefect(AbacError):
    """
    Describes a condition whose operator is not recognised.

    During evaluation this is logged and the condition evaluates to
    ``False``. The policy loader raises it for documents that name an
    unknown operator.

    Attributes:
        operator: The unrecognised operator.
        attribute: The attribute the condition addressed.
        policy_id: The policy carrying the condition, if known.
    """

    def __init__(
        self,
        operator: Any,
        attribute: str | None = None,
        policy_id: str | None = None,
    ) -> None:
        self.operator = operator
        self.attribute = attribute
        self.policy_id = policy_id

        message = f"Unknown condition operator: {operator!r}"
        details = {
            "operator": str(operator),
            "attribute": attribute,
            "policy_id": policy_id,
        }
        super().__init__(message, details)


class ConfigurationError(AbacError):
    """
    Raised when the engine is configured with invalid options.

    Attributes:
        config_key: The configuration key that has an issue.
        expected: What was expected for this configuration.
        received: What was actually provided.

    Example:
        >>> raise ConfigurationError(
        ...     config_key="combining_algorithm",
        ...     expected="one of: 'first_match', 'deny_overrides'",
        ...     received="majority"
        ... )
    """

    def __init__(
        self,
        config_key: str,
        expected: str | None = None,
        received: Any = None,
    ) -> None:
        self.config_key = config_key
        self.expected = expected
        self.received = received

        message = f"Configuration error for '{config_key}'"
        if expected:
            message += f": expected {expected}"
        if received is not None:
            message += f", got {received!r}"

        details = {
            "config_key": config_key,
            "expected": expected,
            "received": str(received) if received is not None else None,
        }
        super().__init__(message, details)
