"""
Unit tests for CommandValidationService.

Business rules and cross-entity checks are mocked so each test controls
exactly which sub-results fail.
"""

import dataclasses

import pytest

from src.database.models.enums import AuditAction, BypassType
from src.modules.validation.command_validation import GENERIC_VALIDATION_ERROR, CommandValidationService
from src.modules.validation.context import CommandValidationContext
from src.modules.validation.pipeline import CustomRuleStep, ValidatorPipeline
from src.modules.validation.types import (
    CommandValidationOptions,
    CommandValidationRule,
    IssueSeverity,
    PermissionValidationResult,
    RoleLimitValidationResult,
    ValidationIssue,
    ValidationResult,
)

ROLE_LIMIT_ERROR = "Cannot hire Senior Associate. Maximum limit of 10 reached (current: 10)"


def _role_limit_failure(bypass: bool) -> RoleLimitValidationResult:
    return RoleLimitValidationResult(
        valid=False,
        errors=[ROLE_LIMIT_ERROR],
        bypass_available=bypass,
        bypass_type=BypassType.GUILD_OWNER if bypass else None,
        current_count=10,
        max_count=10,
        role_name="Senior Associate",
    )


@pytest.fixture
def business_rules(mocker):
    rules = mocker.MagicMock()
    rules.validate_permission = mocker.AsyncMock(
        return_value=PermissionValidationResult(valid=True, has_permission=True)
    )
    rules.validate_role_limit = mocker.AsyncMock(return_value=RoleLimitValidationResult(valid=True))
    rules.validate_client_case_limit = mocker.AsyncMock(return_value=ValidationResult.ok())
    rules.validate_staff_member = mocker.AsyncMock(return_value=ValidationResult.ok())
    return rules


@pytest.fixture
def cross_entity(mocker):
    service = mocker.MagicMock()
    service.validate_before_operation = mocker.AsyncMock(return_value=[])
    return service


@pytest.fixture
def audit(mocker):
    service = mocker.MagicMock()
    service.log_action = mocker.AsyncMock()
    return service


@pytest.fixture
def validation(mock_config_manager, mock_event_bus, mock_logger, business_rules, cross_entity, audit):
    return CommandValidationService(
        mock_config_manager, mock_event_bus, mock_logger, business_rules, cross_entity, audit_service=audit
    )


def _hire(permission_context, role="Senior Associate"):
    return CommandValidationContext.build(
        "staff",
        "hire",
        {"member": 3000, "role": role, "roblox_username": "rbx"},
        permission_context,
    )


@pytest.mark.unit
class TestAggregation:
    """Every sub-result is folded into one result."""

    async def test_errors_concatenated_in_order(self, validation, business_rules, member_context):
        # Arrange
        business_rules.validate_permission.return_value = PermissionValidationResult(
            valid=False, errors=["Missing required permission: senior-staff"]
        )
        business_rules.validate_role_limit.return_value = _role_limit_failure(bypass=False)

        # Act
        result = await validation.validate_command(_hire(member_context))

        # Assert
        assert result.is_valid is False
        assert result.errors == ["Missing required permission: senior-staff", ROLE_LIMIT_ERROR]
        assert result.requires_confirmation is False
        assert result.bypass_token is None

    async def test_warnings_do_not_invalidate(self, validation, business_rules, member_context):
        business_rules.validate_role_limit.return_value = RoleLimitValidationResult(valid=True, warnings=["close to limit"])

        result = await validation.validate_command(_hire(member_context))

        assert result.is_valid is True
        assert result.warnings == ["close to limit"]

    async def test_command_default_permission(self, validation, business_rules, member_context):
        await validation.validate_command(_hire(member_context))

        business_rules.validate_permission.assert_awaited_once_with(member_context, "senior-staff")

    async def test_explicit_permission_wins(self, validation, business_rules, member_context):
        await validation.validate_command(_hire(member_context), CommandValidationOptions(required_permission="hr"))

        business_rules.validate_permission.assert_awaited_once_with(member_context, "hr")

    async def test_unexpected_failure_is_generic(self, validation, business_rules, member_context):
        business_rules.validate_role_limit.side_effect = RuntimeError("boom")

        result = await validation.validate_command(_hire(member_context))

        assert result.is_valid is False
        assert result.errors == [GENERIC_VALIDATION_ERROR]

    async def test_entity_step_reports_critical_issues(self, validation, cross_entity, member_context):
        # Arrange
        cross_entity.validate_before_operation.return_value = [
            ValidationIssue(IssueSeverity.CRITICAL, "staff", "3000", "Staff member is lead attorney on 2 open case(s)"),
            ValidationIssue(IssueSeverity.WARNING, "staff", "3000", "Staff member has a heavy workload"),
        ]
        context = CommandValidationContext.build("staff", "fire", {"member": 3000}, member_context)

        # Act
        result = await validation.validate_command(context)

        # Assert
        cross_entity.validate_before_operation.assert_awaited_once_with(
            {"user_id": 3000}, "staff", "delete", member_context.guild_id
        )
        assert result.is_valid is False
        assert result.errors == ["Staff member is lead attorney on 2 open case(s)"]
        assert result.warnings == ["Staff member has a heavy workload"]


@pytest.mark.unit
class TestCustomRules:
    async def test_rules_run_highest_priority_first(self, validation, member_context):
        calls = []

        def _rule(name, priority):
            async def validate(context):
                calls.append(name)
                return ValidationResult.fail(f"{name} failed")

            return CommandValidationRule(name=name, validate=validate, priority=priority)

        options = ValidatorPipeline(CustomRuleStep(_rule("low", 1)), CustomRuleStep(_rule("high", 10))).build_options()
        context = CommandValidationContext.build("admin", "setup-server", {}, member_context)

        result = await validation.validate_command(context, options)

        assert calls == ["high", "low"]
        assert result.errors == ["high failed", "low failed"]

    async def test_bypassable_custom_rule_offers_owner_override(self, validation, owner_context):
        async def at_capacity(context):
            return ValidationResult.fail("Role is full")

        rule = CommandValidationRule(name="capacity", validate=at_capacity, bypassable=True)
        context = CommandValidationContext.build("staff", "promote", {"member": 5, "role": "Paralegal"}, owner_context)

        result = await validation.validate_command(context, ValidatorPipeline(CustomRuleStep(rule)).build_options())

        assert result.requires_confirmation is True
        assert [request.rule_name for request in result.bypass_requests] == ["capacity"]

    async def test_crashing_rule_fails_cleanly(self, validation, member_context):
        async def broken(context):
            raise KeyError("x")

        rule = CommandValidationRule(name="broken", validate=broken)
        context = CommandValidationContext.build("job", "list", {}, member_context)

        result = await validation.validate_command(context, ValidatorPipeline(CustomRuleStep(rule)).build_options())

        assert result.errors == ["Validation rule 'broken' failed to run"]


@pytest.mark.unit
class TestValidationCache:
    """Identical invocations within the TTL reuse the first result."""

    async def test_second_call_hits_cache(self, validation, business_rules, member_context):
        await validation.validate_command(_hire(member_context))
        await validation.validate_command(_hire(member_context))

        assert business_rules.validate_permission.await_count == 1
        assert business_rules.validate_role_limit.await_count == 1

    async def test_clear_cache_forces_reevaluation(self, validation, business_rules, member_context):
        await validation.validate_command(_hire(member_context))

        validation.clear_validation_cache()
        await validation.validate_command(_hire(member_context))

        assert business_rules.validate_role_limit.await_count == 2

    async def test_clear_single_context(self, validation, business_rules, member_context):
        await validation.validate_command(_hire(member_context))
        await validation.validate_command(_hire(member_context, role="Paralegal"))

        validation.clear_validation_cache(_hire(member_context))
        await validation.validate_command(_hire(member_context))
        await validation.validate_command(_hire(member_context, role="Paralegal"))

        assert business_rules.validate_role_limit.await_count == 3

    async def test_bypass_confirmed_skips_cache(self, validation, business_rules, member_context):
        options = CommandValidationOptions(bypass_confirmed=True)
        await validation.validate_command(_hire(member_context), options)
        await validation.validate_command(_hire(member_context), options)

        assert business_rules.validate_role_limit.await_count == 2

    def test_cache_key_includes_user_and_sorted_options(self, member_context, owner_context):
        first = CommandValidationContext.build("staff", "fire", {"reason": "x", "member": 1}, member_context)
        second = CommandValidationContext.build("staff", "fire", {"member": 1, "reason": "x"}, member_context)
        other_user = CommandValidationContext.build("staff", "fire", {"member": 1, "reason": "x"}, owner_context)

        key = CommandValidationService.get_cache_key(first)

        assert key == CommandValidationService.get_cache_key(second)
        assert key != CommandValidationService.get_cache_key(other_user)
        assert key.startswith(f"{member_context.guild_id}:staff:fire:{member_context.user_id}:")

    async def test_same_command_in_another_guild_is_not_served_from_cache(
        self, validation, business_rules, member_context
    ):
        other_guild = dataclasses.replace(member_context, guild_id=member_context.guild_id + 1)

        await validation.validate_command(_hire(member_context))
        await validation.validate_command(_hire(other_guild))

        assert business_rules.validate_role_limit.await_count == 2
        assert CommandValidationService.get_cache_key(_hire(member_context)) != CommandValidationService.get_cache_key(
            _hire(other_guild)
        )


@pytest.mark.unit
class TestGuildOwnerBypass:
    """Owner at a bypassable limit: prompt, confirm, replay once."""

    async def test_owner_at_limit_requires_confirmation(self, validation, business_rules, owner_context):
        business_rules.validate_role_limit.return_value = _role_limit_failure(bypass=True)

        result = await validation.validate_command(_hire(owner_context))

        assert result.is_valid is False
        assert result.requires_confirmation is True
        assert result.bypass_token
        assert len(result.bypass_requests) == 1
        assert validation.get_pending_bypasses(owner_context.user_id)[0].rule_name == "role_limit_check"

    async def test_member_at_limit_gets_no_prompt(self, validation, business_rules, member_context):
        business_rules.validate_role_limit.return_value = _role_limit_failure(bypass=True)

        result = await validation.validate_command(_hire(member_context))

        assert result.requires_confirmation is False
        assert result.bypass_token is None

    async def test_confirmation_then_single_replay(
        self, validation, business_rules, audit, owner_context, mock_interaction
    ):
        # Arrange
        business_rules.validate_role_limit.return_value = _role_limit_failure(bypass=True)
        result = await validation.validate_command(_hire(owner_context))

        # Act
        confirmed = await validation.handle_bypass_confirmation(
            mock_interaction, owner_context.user_id, "Seasonal hiring"
        )
        replayed = validation.replay_pending(result.bypass_token, owner_context.user_id)
        replayed_again = validation.replay_pending(result.bypass_token, owner_context.user_id)

        # Assert
        assert confirmed is True
        mock_interaction.response.send_message.assert_not_called()
        assert replayed is not None
        assert replayed.qualified_name == "staff.hire"
        assert replayed.options == _hire(owner_context).options
        assert replayed_again is None
        audit_kwargs = audit.log_action.await_args.kwargs
        assert audit_kwargs["action"] == AuditAction.GUILD_OWNER_BYPASS
        assert audit_kwargs["reason"] == "Seasonal hiring"
        assert audit_kwargs["bypass_info"]["rules"] == ["role_limit_check"]

    async def test_confirmation_without_pending_replies_ephemerally(
        self, validation, owner_context, mock_interaction
    ):
        confirmed = await validation.handle_bypass_confirmation(mock_interaction, owner_context.user_id)

        assert confirmed is False
        mock_interaction.response.send_message.assert_awaited_once()
        assert mock_interaction.response.send_message.await_args.kwargs["ephemeral"] is True

    async def test_replay_before_confirmation_is_none(self, validation, business_rules, owner_context):
        business_rules.validate_role_limit.return_value = _role_limit_failure(bypass=True)
        result = await validation.validate_command(_hire(owner_context))

        assert validation.replay_pending(result.bypass_token) is None

    async def test_confirmed_rerun_turns_errors_into_warnings(self, validation, business_rules, owner_context):
        business_rules.validate_role_limit.return_value = _role_limit_failure(bypass=True)
        options = ValidatorPipeline.standard().build_options(bypass_confirmed=True)

        result = await validation.validate_command(_hire(owner_context), options)

        assert result.is_valid is True
        assert result.warnings == [f"Overridden: {ROLE_LIMIT_ERROR}"]
        assert result.requires_confirmation is False

    async def test_audit_failure_does_not_block_confirmation(
        self, validation, business_rules, audit, owner_context, mock_interaction
    ):
        business_rules.validate_role_limit.return_value = _role_limit_failure(bypass=True)
        await validation.validate_command(_hire(owner_context))
        audit.log_action.side_effect = RuntimeError("audit down")

        assert await validation.handle_bypass_confirmation(mock_interaction, owner_context.user_id, "ok") is True

    async def test_confirmation_prompts_are_never_cached(self, validation, business_rules, owner_context):
        business_rules.validate_role_limit.return_value = _role_limit_failure(bypass=True)

        first = await validation.validate_command(_hire(owner_context))
        second = await validation.validate_command(_hire(owner_context))

        assert business_rules.validate_role_limit.await_count == 2
        assert first.bypass_token != second.bypass_token

    async def test_cancel_then_retry_gets_a_live_token(
        self, validation, business_rules, owner_context, mock_interaction
    ):
        # Arrange: the owner cancels the first prompt
        business_rules.validate_role_limit.return_value = _role_limit_failure(bypass=True)
        cancelled = await validation.validate_command(_hire(owner_context))
        assert validation.discard_pending(cancelled.bypass_token) is True

        # Act: the same command again within the cache TTL, then confirm
        retried = await validation.validate_command(_hire(owner_context))
        confirmed = await validation.handle_bypass_confirmation(mock_interaction, owner_context.user_id, "Retry")
        replayed = validation.replay_pending(retried.bypass_token, owner_context.user_id)

        # Assert
        assert retried.requires_confirmation is True
        assert retried.bypass_token != cancelled.bypass_token
        assert confirmed is True
        assert replayed is not None
        assert replayed.qualified_name == "staff.hire"
        assert validation.replay_pending(cancelled.bypass_token, owner_context.user_id) is None
        assert validation.discard_pending(cancelled.bypass_token) is False

    async def test_two_prompts_one_confirmation(
        self, mocker, validation, business_rules, owner_context, mock_interaction
    ):
        # Arrange: two bypass-eligible commands from the same owner, back to back
        business_rules.validate_role_limit.return_value = _role_limit_failure(bypass=True)
        first = await validation.validate_command(_hire(owner_context))
        second = await validation.validate_command(_hire(owner_context, role="Junior Associate"))
        second_interaction = mocker.MagicMock()
        second_interaction.response.is_done = mocker.MagicMock(return_value=False)
        second_interaction.response.send_message = mocker.AsyncMock()

        # Act: confirm through the first prompt, then through the second
        via_first = await validation.handle_bypass_confirmation(mock_interaction, owner_context.user_id, "Both")
        via_second = await validation.handle_bypass_confirmation(second_interaction, owner_context.user_id, "Both")

        # Assert
        assert via_first is True
        assert via_second is False
        second_interaction.response.send_message.assert_awaited_once()
        assert second_interaction.response.send_message.await_args.kwargs["ephemeral"] is True
        assert validation.replay_pending(first.bypass_token, owner_context.user_id) is not None
        replayed = validation.replay_pending(second.bypass_token, owner_context.user_id)
        assert replayed is not None
        assert replayed.raw_options["role"] == "Junior Associate"
