"""
Policy documents for notes-abac.

Policies can be declared as plain data (a list of dicts, a JSON string or
a JSON file) and appended to an engine at runtime. Each document is
validated with pydantic before it becomes a ``Policy``.

Requires: pip install notes-abac[pydantic]

Document format:
    [
        {
            "id": "note-read-test-domain",
            "name": "Allow test accounts to read notes",
            "resource": "note",
            "action": "read",
            "effect": "allow",
            "conditions": [
                {"attribute": "user.email", "operator": "contains",
                 "value": {"literal": "@test.com"}},
                {"attribute": "user.id", "operator": "equals",
                 "value": {"ref": "resource.ownerId"}}
            ]
        }
    ]

A value of ``{"ref": path}`` becomes an ``AttributeRef``, ``{"literal": x}``
becomes a ``Literal``, and anything else is kept untagged.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from notes_abac.engines.base import PolicyLoadError
from notes_abac.exceptions import ConfigurationDefect
from notes_abac.types import (
    Action,
    AttributeRef,
    Condition,
    ConditionOperator,
    Effect,
    Literal,
    Policy,
    ResourceType,
)

logger = logging.getLogger(__name__)


def _to_value(value: Any) -> Any:
    if isinstance(value, dict) and len(value) == 1:
        if "ref" in value and isinstance(value["ref"], str):
            return AttributeRef(value["ref"])
        if "literal" in value:
            return Literal(value["literal"])
    return value


class ConditionDocument(BaseModel):
    """Validated form of one condition entry."""

    model_config = ConfigDict(extra="forbid")

    attribute: str = Field(min_length=1)
    operator: str
    value: Any = None

    def to_condition(self, policy_id: str | None = None) -> Condition:
        """
        Convert to a Condition.

        Raises:
            ConfigurationDefect: If the operator is not recognised.
        """
        try:
            operator = ConditionOperator(self.operator)
        except ValueError:
            raise ConfigurationDefect(
                operator=self.operator,
                attribute=self.attribute,
                policy_id=policy_id,
            ) from None
        return Condition(self.attribute, operator, _to_value(self.value))


class PolicyDocument(BaseModel):
    """Validated form of one policy entry."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    name: str
    resource: ResourceType
    action: Action
    conditions: list[ConditionDocument] = Field(default_factory=list)
    effect: Effect = Effect.ALLOW

    def to_policy(self) -> Policy:
        """Convert to an immutable Policy."""
        return Policy(
            id=self.id,
            name=self.name,
            resource=self.resource,
            action=self.action,
            conditions=tuple(c.to_condition(self.id) for c in self.conditions),
            effect=self.effect,
        )


def _read_source(source: Any) -> Any:
    if isinstance(source, Path):
        return _read_json_file(source)
    if isinstance(source, str):
        stripped = source.lstrip()
        if stripped.startswith(("[", "{")):
            try:
                return json.loads(source)
            except json.JSONDecodeError as e:
                raise PolicyLoadError(f"Invalid policy JSON: {e}", engine_name="abac") from e
        return _read_json_file(Path(source))
    return source


def _read_json_file(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise PolicyLoadError(
            f"Could not read policy file {path}: {e}",
            engine_name="abac",
            source=path,
        ) from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise PolicyLoadError(
            f"Invalid policy JSON in {path}: {e}",
            engine_name="abac",
            source=path,
        ) from e


def parse_policies(source: Any) -> list[Policy]:
    """
    Parse policy documents into Policy objects.

    Args:
        source: A list of dicts, a single dict, a JSON string, or a path
            (``str`` or ``Path``) to a JSON file.

    Returns:
        The policies in document order.

    Raises:
        PolicyLoadError: If the source cannot be read or a document is invalid.
        ConfigurationDefect: If a condition names an unknown operator.

    Example:
        >>> policies = parse_policies([{
        ...     "id": "note-read-admin",
        ...     "name": "Admins read any note",
        ...     "resource": "note",
        ...     "action": "read",
        ...     "conditions": [
        ...         {"attribute": "user.role", "operator": "equals", "value": "admin"}
        ...     ],
        ... }])
    """
    data = _read_source(source)
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, (list, tuple)):
        raise PolicyLoadError(
            f"Expected a list of policy documents, got {type(data).__name__}",
            engine_name="abac",
        )

    policies: list[Policy] = []
    for index, entry in enumerate(data):
        try:
            document = PolicyDocument.model_validate(entry)
        except ValidationError as e:
            raise PolicyLoadError(
                f"Invalid policy document at index {index}: {e}",
                engine_name="abac",
            ) from e
        policies.append(document.to_policy())

    logger.debug(f"Parsed {len(policies)} policy document(s)")
    return policies
