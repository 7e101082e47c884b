"""
Condition evaluation for notes-abac.

This module resolves dotted attribute paths against a policy context and
tests a single condition against it. Evaluation is pure: it performs no
I/O, never mutates the context, and never raises for missing attributes.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from notes_abac.exceptions import ConfigurationDefect
from notes_abac.types import (
    AttributeRef,
    Condition,
    ConditionOperator,
    Literal,
    PolicyContext,
)

logger = logging.getLogger(__name__)


class _Undefined:
    """Marker for an attribute path that is absent from the context."""

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False


# Distinguishes "path not present" from a present None value
UNDEFINED: Any = _Undefined()


def _as_mapping(context: PolicyContext | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(context, PolicyContext):
        return context.to_dict()
    return context


def resolve_attribute(path: str, context: PolicyContext | Mapping[str, Any]) -> Any:
    """
    Resolve a dotted attribute path against a context.

    Args:
        path: A dotted path such as ``"resource.ownerId"``.
        context: A PolicyContext or its mapping form.

    Returns:
        The value at the path, or ``UNDEFINED`` if any segment is absent.

    Example:
        >>> resolve_attribute("user.role", context)
        'admin'
        >>> resolve_attribute("resource.status", context)
        UNDEFINED
    """
    value: Any = _as_mapping(context)
    for part in path.split("."):
        if isinstance(value, Mapping) and part in value:
            value = value[part]
        else:
            return UNDEFINED
    return value


def _strict_equals(actual: Any, expected: Any) -> bool:
    if actual is UNDEFINED or expected is UNDEFINED:
        return False
    # bool is an int subclass; True must not equal 1
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    return bool(actual == expected)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _contains_strict(items: Any, actual: Any) -> bool:
    return any(_strict_equals(actual, item) for item in items)


def _op_equals(actual: Any, expected: Any) -> bool:
    return _strict_equals(actual, expected)


def _op_not_equals(actual: Any, expected: Any) -> bool:
    return not _strict_equals(actual, expected)


def _op_in(actual: Any, expected: Any) -> bool:
    return _is_sequence(expected) and _contains_strict(expected, actual)


def _op_not_in(actual: Any, expected: Any) -> bool:
    return _is_sequence(expected) and not _contains_strict(expected, actual)


def _op_contains(actual: Any, expected: Any) -> bool:
    return isinstance(actual, str) and isinstance(expected, str) and expected in actual


def _op_exists(actual: Any, expected: Any) -> bool:
    return actual is not UNDEFINED and actual is not None


_OPERATORS: dict[ConditionOperator, Callable[[Any, Any], bool]] = {
    ConditionOperator.EQUALS: _op_equals,
    ConditionOperator.NOT_EQUALS: _op_not_equals,
    ConditionOperator.IN: _op_in,
    ConditionOperator.NOT_IN: _op_not_in,
    ConditionOperator.CONTAINS: _op_contains,
    ConditionOperator.EXISTS: _op_exists,
}


class ConditionEvaluator:
    """
    Evaluates single conditions against a policy context.

    Condition values are interpreted as follows:
        - ``Literal(x)`` is compared as ``x``.
        - ``AttributeRef(path)`` is resolved against the context; a missing
          path resolves to ``UNDEFINED``.
        - Any other string containing a ``.`` is resolved when the path
          exists in the context and used literally otherwise. Set
          ``infer_attribute_refs=False`` to always use such strings
          literally.

    Example:
        >>> evaluator = ConditionEvaluator()
        >>> condition = Condition("user.email", ConditionOperator.CONTAINS, "@test.com")
        >>> evaluator.evaluate(condition, context)
        True
    """

    def __init__(self, infer_attribute_refs: bool = True) -> None:
        """
        Initialize the evaluator.

        Args:
            infer_attribute_refs: Whether untagged dotted strings may be
                read as attribute references.
        """
        self.infer_attribute_refs = infer_attribute_refs

    def resolve_attribute(self, path: str, context: PolicyContext | Mapping[str, Any]) -> Any:
        """Resolve a dotted path; see ``resolve_attribute``."""
        return resolve_attribute(path, context)

    def resolve_expected(self, value: Any, context: PolicyContext | Mapping[str, Any]) -> Any:
        """
        Resolve a condition's value to the value it is compared against.

        Args:
            value: The condition value, tagged or untagged.
            context: The context to dereference references against.

        Returns:
            The expected value for the comparison.
        """
        if isinstance(value, Literal):
            return value.value
        if isinstance(value, AttributeRef):
            return resolve_attribute(value.path, context)
        if self.infer_attribute_refs and isinstance(value, str) and "." in value:
            resolved = resolve_attribute(value, context)
            if resolved is not UNDEFINED:
                return resolved
        return value

    def evaluate(
        self,
        condition: Condition,
        context: PolicyContext | Mapping[str, Any],
        policy_id: str | None = None,
    ) -> bool:
        """
        Evaluate one condition.

        Args:
            condition: The condition to test.
            context: The PolicyContext or its mapping form.
            policy_id: Id of the policy carrying the condition, for logs.

        Returns:
            True if the condition holds. Unknown operators yield False.
        """
        ctx = _as_mapping(context)
        handler = _OPERATORS.get(condition.operator)  # type: ignore[call-overload]
        if handler is None:
            defect = ConfigurationDefect(
                operator=condition.operator,
                attribute=condition.attribute,
                policy_id=policy_id,
            )
            logger.warning(f"Configuration defect, condition evaluates to false: {defect}")
            return False

        actual = resolve_attribute(condition.attribute, ctx)
        expected = self.resolve_expected(condition.value, ctx)
        result = handler(actual, expected)

        logger.debug(
            f"Condition {condition.attribute} {condition.operator.value} -> {result} "
            f"(actual={actual!r}, expected={expected!r})"
        )
        return result
