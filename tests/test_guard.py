"""
Tests for the enforcement guard.

Tests cover:
- Requirement lookup and pass-through
- Authentication and authorization failures
- Context building from principal, path parameters and body
- Audit logging
- The require_abac decorator (sync and async)
"""

from __future__ import annotations

import logging

import pytest

from notes_abac import (
    AbacGuard,
    AbacPolicyEngine,
    AbacRequirement,
    Action,
    AuthenticationRequired,
    AuthorizationDenied,
    AuthorizationResult,
    GuardRequest,
    Principal,
    RequirementRegistry,
    ResourceType,
    Role,
    admin_notes_list_requirement,
    admin_role_requirement,
    current_principal,
    note_create_requirement,
    note_delete_requirement,
    note_read_requirement,
    note_share_requirement,
    note_update_requirement,
    principal_context,
    public_link_create_requirement,
    public_link_delete_requirement,
    public_link_list_requirement,
    require_abac,
)
from notes_abac.exceptions import GENERIC_DENIAL_MESSAGE


def owners(mapping: dict[str, str]):
    """Owner resolver backed by a note-id to owner-id table."""
    def resolve(request: GuardRequest, requirement: AbacRequirement) -> str | None:
        resource_id = request.params.get(requirement.resource_id_param or "id")
        return mapping.get(resource_id)
    return resolve


class TestRequirementLookup:
    """Tests for requirement resolution."""

    def test_no_requirement_passes_through(self, guard: AbacGuard, caplog):
        request = GuardRequest(operation="health.check")
        with caplog.at_level(logging.WARNING, logger="notes_abac.guard"):
            assert guard.check(request) is None
        assert "No ABAC requirement for operation 'health.check'" in caplog.text

    def test_no_requirement_without_principal(self, guard: AbacGuard):
        assert guard.can_activate(GuardRequest(operation="public.page")) is True

    def test_registered_requirement_is_enforced(self, guard: AbacGuard, basic_user):
        guard.requirements.register("users.create", admin_role_requirement())
        request = GuardRequest(operation="users.create", principal=basic_user)

        with pytest.raises(AuthorizationDenied):
            guard.check(request)

    def test_explicit_requirement_overrides_registry(self, guard: AbacGuard, admin_user):
        result = guard.check(
            GuardRequest(operation="unregistered", principal=admin_user),
            admin_role_requirement(),
        )
        assert isinstance(result, AuthorizationResult)
        assert result.allowed is True


class TestAuthentication:
    """Tests for missing principals."""

    def test_missing_principal_raises(self, guard: AbacGuard):
        guard.requirements.register("notes.create", note_create_requirement())

        with pytest.raises(AuthenticationRequired) as exc_info:
            guard.check(GuardRequest(operation="notes.create"))
        assert exc_info.value.operation == "notes.create"
        assert str(exc_info.value).startswith("Authentication required")

    def test_authentication_is_not_authorization(self):
        assert not issubclass(AuthenticationRequired, AuthorizationDenied)


class TestAuthorization:
    """Tests for engine verdicts."""

    def test_user_cannot_create_user(self, guard: AbacGuard, basic_user):
        with pytest.raises(AuthorizationDenied) as exc_info:
            guard.check(GuardRequest(principal=basic_user), admin_role_requirement())

        error = exc_info.value
        assert str(error) == GENERIC_DENIAL_MESSAGE
        assert error.user_id == "u1"
        assert error.action == "create"
        assert error.resource_type == "user"

    def test_denial_does_not_leak_policy(self, guard: AbacGuard, basic_user):
        with pytest.raises(AuthorizationDenied) as exc_info:
            guard.check(GuardRequest(principal=basic_user), admin_notes_list_requirement())

        data = exc_info.value.to_dict()
        assert data == {
            "error_type": "AuthorizationDenied",
            "message": GENERIC_DENIAL_MESSAGE,
            "action": "list",
            "resource_type": "admin_notes",
        }
        assert "admin-notes-list" not in str(exc_info.value)

    def test_admin_can_list_all_notes(self, guard: AbacGuard, admin_user):
        assert guard.can_activate(
            GuardRequest(operation="admin.notes", principal=admin_user)
        ) is True  # unregistered
        guard.requirements.register("admin.notes", admin_notes_list_requirement())
        assert guard.can_activate(
            GuardRequest(operation="admin.notes", principal=admin_user)
        ) is True

    def test_owner_resolver_denies_foreign_note(self, engine, basic_user, other_user):
        guard = AbacGuard(engine, owner_resolver=owners({"n1": "u2"}))
        request_for = lambda user: GuardRequest(principal=user, params={"id": "n1"})  # noqa: E731

        with pytest.raises(AuthorizationDenied):
            guard.check(request_for(basic_user), note_read_requirement())
        assert guard.check(request_for(other_user), note_update_requirement()).allowed

    def test_body_owner_id_is_checked(self, guard: AbacGuard, basic_user):
        request = GuardRequest(principal=basic_user, body={"ownerId": "u2", "title": "x"})
        with pytest.raises(AuthorizationDenied):
            guard.check(request, public_link_create_requirement())

    def test_share_is_owner_only(self, engine, basic_user, admin_user):
        guard = AbacGuard(engine, owner_resolver=owners({"n1": "u1"}))
        request = GuardRequest(principal=basic_user, params={"id": "n1"})
        assert guard.check(request, note_share_requirement()).allowed

        with pytest.raises(AuthorizationDenied):
            guard.check(
                GuardRequest(principal=admin_user, params={"id": "n1"}),
                note_share_requirement(),
            )

    def test_empty_engine_denies(self, basic_user):
        guard = AbacGuard(AbacPolicyEngine(config={"load_builtin_policies": False}))
        with pytest.raises(AuthorizationDenied):
            guard.check(GuardRequest(principal=basic_user), note_create_requirement())


class TestBuildContext:
    """Tests for policy context construction."""

    def test_no_resource_without_resource_requirement(self, guard: AbacGuard, admin_user):
        context = guard.build_context(admin_role_requirement(), admin_user)

        assert context.resource is None
        assert context.action is Action.CREATE
        assert context.resource_type is ResourceType.USER

    def test_only_identity_fields_are_copied(self, guard: AbacGuard):
        principal = Principal(id="u1", email="u1@example.com", role=Role.USER)
        context = guard.build_context(admin_role_requirement(), principal)

        assert context.user == principal
        assert context.user is not principal
        assert set(context.to_dict()["user"]) == {"id", "email", "role"}

    def test_resource_id_from_params(self, guard: AbacGuard, basic_user):
        request = GuardRequest(principal=basic_user, params={"id": "n1"})
        context = guard.build_context(note_read_requirement(), basic_user, request)

        assert context.resource == {"id": "n1", "ownerId": "u1"}

    def test_custom_resource_id_param(self, guard: AbacGuard, basic_user):
        request = GuardRequest(principal=basic_user, params={"noteId": "n7", "id": "other"})
        context = guard.build_context(note_delete_requirement("noteId"), basic_user, request)

        assert context.resource["id"] == "n7"

    def test_empty_resource_id_is_omitted(self, guard: AbacGuard, basic_user):
        request = GuardRequest(principal=basic_user, params={"id": ""})
        context = guard.build_context(note_read_requirement(), basic_user, request)

        assert "id" not in context.resource

    def test_owner_defaults_to_principal(self, guard: AbacGuard, basic_user):
        context = guard.build_context(note_create_requirement(), basic_user)
        assert context.resource == {"ownerId": "u1"}

    def test_owner_from_body(self, guard: AbacGuard, basic_user):
        request = GuardRequest(principal=basic_user, body={"ownerId": "u9"})
        context = guard.build_context(note_create_requirement(), basic_user, request)
        assert context.resource["ownerId"] == "u9"

    def test_empty_body_owner_falls_back(self, guard: AbacGuard, basic_user):
        request = GuardRequest(principal=basic_user, body={"ownerId": ""})
        context = guard.build_context(note_create_requirement(), basic_user, request)
        assert context.resource["ownerId"] == "u1"

    def test_owner_resolver_takes_precedence(self, engine, basic_user):
        guard = AbacGuard(engine, owner_resolver=owners({"n1": "u2"}))
        request = GuardRequest(principal=basic_user, params={"id": "n1"}, body={"ownerId": "u9"})
        context = guard.build_context(note_read_requirement(), basic_user, request)
        assert context.resource == {"id": "n1", "ownerId": "u2"}

    def test_owner_resolver_none_falls_back(self, engine, basic_user):
        guard = AbacGuard(engine, owner_resolver=owners({}))
        request = GuardRequest(principal=basic_user, params={"id": "n1"})
        context = guard.build_context(note_read_requirement(), basic_user, request)
        assert context.resource["ownerId"] == "u1"

    def test_resource_id_without_ownership(self, guard: AbacGuard, basic_user):
        requirement = AbacRequirement(Action.READ, ResourceType.NOTE, resource_id_param="id")
        request = GuardRequest(principal=basic_user, params={"id": "n1"})
        context = guard.build_context(requirement, basic_user, request)
        assert context.resource == {"id": "n1"}


class TestAuditLogging:
    """Tests for decision audit records."""

    def test_allow_is_logged(self, guard: AbacGuard, admin_user, caplog):
        with caplog.at_level(logging.INFO, logger="notes_abac.audit"):
            guard.check(GuardRequest(operation="users.create", principal=admin_user),
                        admin_role_requirement())

        records = [r for r in caplog.records if r.name == "notes_abac.audit"]
        assert len(records) == 1
        record = records[0]
        assert record.levelno == logging.INFO
        assert record.getMessage() == "Access granted for user admin_1 to perform create on user"
        assert record.decision == "allow"
        assert record.user_id == "admin_1"
        assert record.action == "create"
        assert record.resource_type == "user"
        assert record.operation == "users.create"

    def test_deny_is_logged(self, guard: AbacGuard, basic_user, caplog):
        with caplog.at_level(logging.INFO, logger="notes_abac.audit"):
            with pytest.raises(AuthorizationDenied):
                guard.check(GuardRequest(principal=basic_user), admin_role_requirement())

        records = [r for r in caplog.records if r.name == "notes_abac.audit"]
        assert len(records) == 1
        assert records[0].levelno == logging.WARNING
        assert records[0].decision == "deny"
        assert "denied for user u1" in records[0].getMessage()

    def test_audit_omits_policy_id(self, guard: AbacGuard, admin_user, caplog):
        with caplog.at_level(logging.INFO, logger="notes_abac.audit"):
            guard.check(GuardRequest(principal=admin_user), admin_role_requirement())
        audit_text = " ".join(
            r.getMessage() for r in caplog.records if r.name == "notes_abac.audit"
        )
        assert "user-create-admin" not in audit_text

    def test_pass_through_is_not_audited(self, guard: AbacGuard, caplog):
        with caplog.at_level(logging.INFO, logger="notes_abac.audit"):
            guard.check(GuardRequest(operation="unprotected"))
        assert not [r for r in caplog.records if r.name == "notes_abac.audit"]


class TestRequirementRegistry:
    """Tests for RequirementRegistry."""

    def test_register_and_get(self):
        registry = RequirementRegistry()
        requirement = note_read_requirement()
        registry.register("notes.read", requirement)

        assert registry.get("notes.read") is requirement
        assert "notes.read" in registry
        assert registry.operations() == ["notes.read"]

    def test_get_unknown_and_none(self):
        registry = RequirementRegistry({"notes.read": note_read_requirement()})
        assert registry.get("notes.write") is None
        assert registry.get(None) is None

    def test_overwrite_warns(self, caplog):
        registry = RequirementRegistry()
        registry.register("op", note_read_requirement())
        with caplog.at_level(logging.WARNING, logger="notes_abac.guard"):
            registry.register("op", note_update_requirement())

        assert "Overwriting ABAC requirement for operation 'op'" in caplog.text
        assert registry.get("op").action is Action.UPDATE

    def test_unregister(self):
        registry = RequirementRegistry({"op": note_read_requirement()})
        assert registry.unregister("op") is True
        assert registry.unregister("op") is False
        assert "op" not in registry


class TestRequireAbacDecorator:
    """Tests for the require_abac decorator."""

    def test_sync_allowed(self, guard: AbacGuard, basic_user):
        @require_abac(guard, note_create_requirement(), operation="notes.create")
        def create_note(body: dict, user: Principal | None = None) -> dict:
            return {"title": body["title"], "ownerId": user.id}

        assert create_note(body={"title": "hello"}, user=basic_user) == {
            "title": "hello",
            "ownerId": "u1",
        }
        assert "notes.create" in guard.requirements
        assert create_note.abac_operation == "notes.create"

    def test_sync_denied_does_not_run_handler(self, guard: AbacGuard, basic_user):
        calls = []

        @require_abac(guard, admin_role_requirement())
        def create_user(user: Principal | None = None) -> None:
            calls.append(user)

        with pytest.raises(AuthorizationDenied):
            create_user(user=basic_user)
        assert calls == []

    def test_missing_user_raises_authentication(self, guard: AbacGuard):
        @require_abac(guard, note_create_requirement())
        def create_note(user: Principal | None = None) -> str:
            return "created"

        with pytest.raises(AuthenticationRequired):
            create_note()

    def test_default_operation_id(self, guard: AbacGuard):
        @require_abac(guard, admin_notes_list_requirement())
        def list_all_notes(user: Principal | None = None) -> list:
            return []

        assert list_all_notes.abac_operation.endswith("list_all_notes")
        assert list_all_notes.abac_operation in guard.requirements
        assert list_all_notes.__name__ == "list_all_notes"

    def test_params_are_used(self, engine, basic_user):
        guard = AbacGuard(engine, owner_resolver=owners({"n1": "u1", "n2": "u2"}))

        @guard.require(note_read_requirement())
        def get_note(params: dict, user: Principal | None = None) -> str:
            return params["id"]

        assert get_note(params={"id": "n1"}, user=basic_user) == "n1"
        with pytest.raises(AuthorizationDenied):
            get_note(params={"id": "n2"}, user=basic_user)

    def test_principal_from_context(self, guard: AbacGuard, admin_user):
        @require_abac(guard, admin_role_requirement())
        def create_user(email: str, user: Principal | None = None) -> str:
            return email

        with principal_context(admin_user):
            assert create_user(email="new@example.com") == "new@example.com"

    @pytest.mark.asyncio
    async def test_async_allowed(self, guard: AbacGuard, basic_user):
        @require_abac(guard, public_link_list_requirement())
        async def list_links(user: Principal | None = None) -> list[str]:
            return ["l1"]

        assert await list_links(user=basic_user) == ["l1"]

    @pytest.mark.asyncio
    async def test_async_denied(self, guard: AbacGuard, basic_user):
        @require_abac(guard, public_link_delete_requirement())
        async def delete_link(body: dict, user: Principal | None = None) -> None:
            return None

        with pytest.raises(AuthorizationDenied):
            await delete_link(body={"ownerId": "u2"}, user=basic_user)


class TestPrincipalContext:
    """Tests for principal_context."""

    def test_binds_and_restores(self, basic_user, admin_user):
        assert current_principal() is None
        with principal_context(basic_user):
            assert current_principal() is basic_user
            with principal_context(admin_user):
                assert current_principal() is admin_user
            assert current_principal() is basic_user
        assert current_principal() is None

    def test_restores_after_error(self, basic_user):
        with pytest.raises(RuntimeError):
            with principal_context(basic_user):
                raise RuntimeError("boom")
        assert current_principal() is None


class TestRequirementHelpers:
    """Tests for the notes-service requirement helpers."""

    @pytest.mark.parametrize(
        ("factory", "action", "resource", "id_param", "ownership"),
        [
            (admin_role_requirement, Action.CREATE, ResourceType.USER, None, False),
            (note_create_requirement, Action.CREATE, ResourceType.NOTE, None, True),
            (note_read_requirement, Action.READ, ResourceType.NOTE, "id", True),
            (note_update_requirement, Action.UPDATE, ResourceType.NOTE, "id", True),
            (note_delete_requirement, Action.DELETE, ResourceType.NOTE, "id", True),
            (note_share_requirement, Action.SHARE, ResourceType.NOTE, "id", True),
            (public_link_create_requirement, Action.CREATE, ResourceType.PUBLIC_LINK, None, True),
            (public_link_delete_requirement, Action.DELETE, ResourceType.PUBLIC_LINK, None, True),
            (public_link_list_requirement, Action.LIST, ResourceType.PUBLIC_LINK, None, True),
            (admin_notes_list_requirement, Action.LIST, ResourceType.ADMIN_NOTES, None, False),
        ],
    )
    def test_helper(self, factory, action, resource, id_param, ownership):
        requirement = factory()
        assert requirement.action is action
        assert requirement.resource is resource
        assert requirement.resource_id_param == id_param
        assert requirement.ownership_check is ownership
