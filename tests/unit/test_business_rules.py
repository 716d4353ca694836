"""
Unit tests for BusinessRuleValidationService and PermissionService checks.

Repositories are replaced per test; DatabaseService hands out a mock
session through the ``patch_database`` fixture.
"""

from itertools import combinations
from types import SimpleNamespace

import pytest

from src.database.models.enums import BypassType, PermissionAction, StaffStatus
from src.modules.guild.permission_service import PermissionService
from src.modules.staff.roles import StaffRoleHierarchy
from src.modules.validation.business_rules import BusinessRuleValidationService


@pytest.fixture
def permission_service(mocker):
    service = mocker.MagicMock()
    service.get_granted_actions = mocker.AsyncMock(return_value=[])
    return service


@pytest.fixture
def rules(mock_config_manager, mock_event_bus, mock_logger, permission_service, patch_database):
    return BusinessRuleValidationService(
        mock_config_manager,
        mock_event_bus,
        mock_logger,
        permission_service,
        role_hierarchy=StaffRoleHierarchy(),
    )


@pytest.mark.unit
class TestRoleLimit:
    """Active headcount against the role's max count."""

    async def test_owner_at_limit_gets_bypass(self, mocker, rules, owner_context):
        # Arrange: 10 of 10 Senior Associates already hired
        rules._staff_repo.count_active_by_role = mocker.AsyncMock(return_value=10)

        # Act
        result = await rules.validate_role_limit(owner_context, "Senior Associate")

        # Assert
        assert result.valid is False
        assert result.bypass_available is True
        assert result.bypass_type == BypassType.GUILD_OWNER
        assert result.current_count == 10
        assert result.max_count == 10
        assert result.errors == ["Cannot hire Senior Associate. Maximum limit of 10 reached (current: 10)"]

    async def test_member_at_limit_has_no_bypass(self, mocker, rules, member_context):
        rules._staff_repo.count_active_by_role = mocker.AsyncMock(return_value=1)

        result = await rules.validate_role_limit(member_context, "Managing Partner")

        assert result.valid is False
        assert result.bypass_available is False
        assert result.bypass_type is None

    async def test_under_limit_is_valid(self, mocker, rules, member_context):
        rules._staff_repo.count_active_by_role = mocker.AsyncMock(return_value=4)

        result = await rules.validate_role_limit(member_context, "Junior Partner")

        assert result.valid is True
        assert result.errors == []

    async def test_unknown_role_is_unlimited(self, mocker, rules, member_context):
        rules._staff_repo.count_active_by_role = mocker.AsyncMock()

        result = await rules.validate_role_limit(member_context, "Court Jester")

        assert result.valid is True
        assert result.metadata["unlimited"] is True
        rules._staff_repo.count_active_by_role.assert_not_called()

    async def test_repository_failure_is_generic(self, mocker, rules, owner_context):
        rules._staff_repo.count_active_by_role = mocker.AsyncMock(side_effect=RuntimeError("db down"))

        result = await rules.validate_role_limit(owner_context, "Paralegal")

        assert result.valid is False
        assert result.errors == ["Failed to validate role limits"]
        assert result.bypass_available is False


@pytest.mark.unit
class TestClientCaseLimit:
    """Open cases per client with a warning threshold."""

    async def test_at_limit_fails_without_bypass(self, mocker, rules, owner_context):
        rules._case_repo.count_active_for_client = mocker.AsyncMock(return_value=5)

        result = await rules.validate_client_case_limit(owner_context, 42)

        assert result.valid is False
        assert result.bypass_available is False
        assert "maximum active case limit (5)" in result.errors[0]

    async def test_warning_threshold(self, mocker, rules, member_context):
        rules._case_repo.count_active_for_client = mocker.AsyncMock(return_value=3)

        result = await rules.validate_client_case_limit(member_context, 42)

        assert result.valid is True
        assert result.warnings == ["Client has 3 active cases (limit: 5)"]


@pytest.mark.unit
class TestStaffMember:
    """The target must hold an active staff record."""

    async def test_missing_record(self, mocker, rules, member_context):
        rules._staff_repo.find_latest_by_user = mocker.AsyncMock(return_value=None)

        result = await rules.validate_staff_member(member_context, 9)

        assert result.valid is False
        assert result.errors == ["User is not an active staff member"]

    async def test_terminated_record(self, mocker, rules, member_context):
        staff = SimpleNamespace(status=StaffStatus.TERMINATED.value, role="Paralegal")
        rules._staff_repo.find_latest_by_user = mocker.AsyncMock(return_value=staff)

        result = await rules.validate_staff_member(member_context, 9)

        assert result.valid is False
        assert "status: terminated" in result.errors[0]

    async def test_role_level_grants_permissions(self, mocker, rules, member_context):
        staff = SimpleNamespace(status=StaffStatus.ACTIVE.value, role="Senior Associate")
        rules._staff_repo.find_latest_by_user = mocker.AsyncMock(return_value=staff)

        result = await rules.validate_staff_member(member_context, 9, required_permissions=["lawyer", "senior-staff"])

        assert result.valid is False
        assert result.is_active_staff is True
        assert result.metadata["granted_permissions"] == ["lawyer"]
        assert result.errors == ["User lacks required permissions: senior-staff"]


ALL_ACTIONS = [action.value for action in PermissionAction]


@pytest.mark.unit
class TestPermissionValidation:
    """A non-owner is permitted exactly when the action is among their granted actions."""

    @pytest.mark.parametrize("granted", [[], ["case"], ["admin", "lawyer"], ALL_ACTIONS])
    async def test_valid_iff_granted(self, rules, permission_service, member_context, granted):
        permission_service.get_granted_actions.return_value = granted

        for action in ALL_ACTIONS:
            result = await rules.validate_permission(member_context, action)
            assert result.valid is (action in granted)
            assert result.has_permission is (action in granted)

    async def test_owner_always_valid(self, rules, permission_service, owner_context):
        result = await rules.validate_permission(owner_context, "admin")

        assert result.valid is True
        assert result.bypass_type == BypassType.GUILD_OWNER
        permission_service.get_granted_actions.assert_not_called()

    async def test_unknown_permission(self, rules, member_context):
        result = await rules.validate_permission(member_context, "launch-rockets")

        assert result.valid is False
        assert result.errors == ["Unknown permission: launch-rockets"]

    async def test_lookup_failure_fails_closed(self, rules, permission_service, member_context):
        permission_service.get_granted_actions.side_effect = RuntimeError("boom")

        result = await rules.validate_permission(member_context, "case")

        assert result.valid is False
        assert result.errors == ["Failed to validate permissions"]


@pytest.mark.unit
class TestValidateMultiple:
    async def test_merges_without_short_circuit(self, rules, member_context, mocker):
        rules._staff_repo.count_active_by_role = mocker.AsyncMock(return_value=99)
        rules._case_repo.count_active_for_client = mocker.AsyncMock(return_value=4)

        result = await rules.validate_multiple(
            [
                rules.validate_role_limit(member_context, "Paralegal"),
                rules.validate_client_case_limit(member_context, 1),
            ]
        )

        assert result.valid is False
        assert len(result.errors) == 1
        assert len(result.warnings) == 1
        assert result.metadata["validation_count"] == 2


def _config(**overrides):
    values = {"admin_users": [], "admin_roles": [], "permissions": {}}
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def permissions(mock_config_manager, mock_event_bus, mock_logger):
    return PermissionService(mock_config_manager, mock_event_bus, mock_logger)


@pytest.mark.unit
class TestPermissionService:
    """Owner, configured admins, then per-action role grants."""

    async def test_owner_has_every_action(self, mocker, permissions, owner_context):
        permissions.get_guild_config = mocker.AsyncMock()

        assert await permissions.has_action_permission(owner_context, PermissionAction.REPAIR)
        assert await permissions.get_granted_actions(owner_context) == ALL_ACTIONS
        permissions.get_guild_config.assert_not_called()

    async def test_admin_user_has_every_action(self, mocker, permissions, member_context):
        permissions.get_guild_config = mocker.AsyncMock(return_value=_config(admin_users=[member_context.user_id]))

        assert await permissions.has_action_permission(member_context, PermissionAction.CONFIG)
        assert await permissions.is_admin(member_context)

    @pytest.mark.parametrize("granted_actions", [combo for size in (0, 1, 2) for combo in combinations(["case", "hr", "lawyer"], size)])
    async def test_role_grants_match_config(self, mocker, permissions, member_context, granted_actions):
        role_id = member_context.user_roles[0]
        config = _config(permissions={action: [role_id] for action in granted_actions})
        permissions.get_guild_config = mocker.AsyncMock(return_value=config)

        assert sorted(await permissions.get_granted_actions(member_context)) == sorted(granted_actions)
        for action in PermissionAction:
            assert await permissions.has_action_permission(member_context, action) is (action.value in granted_actions)

    async def test_config_failure_denies_checks_but_raises_from_listing(self, mocker, permissions, member_context):
        permissions.get_guild_config = mocker.AsyncMock(side_effect=RuntimeError("db"))

        assert await permissions.has_action_permission(member_context, PermissionAction.CASE) is False
        assert await permissions.is_admin(member_context) is False
        with pytest.raises(RuntimeError):
            await permissions.get_granted_actions(member_context)

    async def test_lookup_without_stored_row_writes_nothing(self, mocker, permissions, member_context, patch_database):
        # Arrange
        permissions._repo.find_by_guild = mocker.AsyncMock(return_value=None)
        permissions._repo.add = mocker.AsyncMock()

        # Act
        config = await permissions.get_guild_config(member_context.guild_id)
        granted = await permissions.get_granted_actions(member_context)

        # Assert
        assert config.guild_id == member_context.guild_id
        assert config.admin_users == []
        assert config.permissions == {action: [] for action in ALL_ACTIONS}
        assert granted == []
        permissions._repo.add.assert_not_called()
        patch_database.add.assert_not_called()
        patch_database.flush.assert_not_called()


@pytest.mark.unit
class TestPermissionLookupFailure:
    """A database failure behind the real PermissionService surfaces as a lookup error, not a denial."""

    async def test_config_error_reports_failed_validation(
        self, mocker, mock_config_manager, mock_event_bus, mock_logger, member_context
    ):
        # Arrange
        permissions = PermissionService(mock_config_manager, mock_event_bus, mock_logger)
        permissions.get_guild_config = mocker.AsyncMock(side_effect=RuntimeError("connection reset"))
        rules = BusinessRuleValidationService(
            mock_config_manager, mock_event_bus, mock_logger, permissions, role_hierarchy=StaffRoleHierarchy()
        )

        # Act
        result = await rules.validate_permission(member_context, "case")

        # Assert
        assert result.valid is False
        assert result.errors == ["Failed to validate permissions"]
        assert "Missing required permission: case" not in result.errors
