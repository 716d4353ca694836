"""
Unit tests for typed command options, the validation context and
validator pipelines.
"""

import pytest

from src.modules.shared.permission_context import PermissionContext
from src.modules.validation.context import CommandValidationContext, extract_validation_context
from src.modules.validation.options import (
    AdminRepairOptions,
    AdminRulesOptions,
    CaseAssignOptions,
    FeedbackSubmitOptions,
    GenericOptions,
    JobEditOptions,
    JobListOptions,
    JobReviewOptions,
    RemindCaseOptions,
    RetainerSignOptions,
    RulesRemoveRuleOptions,
    StaffHireOptions,
    parse_command_options,
)
from src.modules.validation.pipeline import (
    BusinessRuleStep,
    CustomRuleStep,
    EntityStep,
    PermissionStep,
    ValidatorPipeline,
)
from src.modules.validation.types import CommandValidationRule, ValidationResult


@pytest.mark.unit
class TestParseCommandOptions:
    """Flat option maps become typed variants."""

    def test_staff_hire_converts_snowflake(self):
        options = parse_command_options(
            "staff", "hire", {"member": "42", "role": "Paralegal", "roblox_username": "lawyer1"}
        )

        assert isinstance(options, StaffHireOptions)
        assert options.member_id == 42
        assert options.role == "Paralegal"
        assert options.reason is None

    def test_boolean_defaults(self):
        assert parse_command_options("job", "list", {}) == JobListOptions(open_only=True, page=1)
        assert parse_command_options("admin", "repair", {}) == AdminRepairOptions(dry_run=True)
        assert parse_command_options("admin", "repair", {"dry_run": "false"}).dry_run is False

    def test_case_assign_lead_flag(self):
        options = parse_command_options("case", "assign", {"case_number": "AA-2026-0001-x", "lawyer": 9, "lead": True})

        assert isinstance(options, CaseAssignOptions)
        assert options.lead is True
        assert options.lawyer_id == 9

    def test_rules_template_defaults_to_anarchy(self):
        options = parse_command_options("admin", "rules", {"channel": "77"})

        assert options == AdminRulesOptions(channel_id=77, template="anarchy")

    def test_unknown_command_is_generic(self):
        options = parse_command_options("staff", "hierarchy", {"x": 1})

        assert options == GenericOptions(values={"x": 1})

    def test_malformed_integer_becomes_none(self):
        options = parse_command_options("staff", "fire", {"member": "not-a-number"})

        assert options.member_id is None

    def test_job_edit_keeps_only_supplied_fields(self):
        options = parse_command_options("job", "edit", {"job_id": "4", "role": "Paralegal", "discord_role": "88"})

        assert isinstance(options, JobEditOptions)
        assert options.updates() == {"staff_role": "Paralegal", "role_id": 88}

    def test_job_review_decision(self):
        accept = parse_command_options("job", "review", {"application_id": "12", "decision": "accept"})
        reject = parse_command_options("job", "review", {"application_id": "12", "decision": "reject"})

        assert isinstance(accept, JobReviewOptions)
        assert accept.application_id == 12
        assert (accept.accept, reject.accept) == (True, False)

    def test_rules_and_retainer_snowflakes(self):
        rule = parse_command_options("rules", "removerule", {"channel": "77", "rule_id": "rule_ab12cd34"})
        retainer = parse_command_options("retainer", "sign", {"client": "4000"})

        assert rule == RulesRemoveRuleOptions(channel_id=77, rule_id="rule_ab12cd34")
        assert retainer == RetainerSignOptions(client_id=4000)

    def test_feedback_staff_is_optional(self):
        options = parse_command_options("feedback", "submit", {"rating": 5, "comment": "Great work"})

        assert options == FeedbackSubmitOptions(rating=5, comment="Great work", staff_id=None)

    def test_remind_case_shares_set_fields(self):
        options = parse_command_options("remind", "case", {"time": "2h", "message": "Call client"})

        assert isinstance(options, RemindCaseOptions)
        assert (options.time, options.message) == ("2h", "Call client")


def _interaction(mocker, data, root_name=None):
    interaction = mocker.MagicMock()
    interaction.data = data
    interaction.channel_id = 555
    if root_name is None:
        interaction.command = None
    else:
        interaction.command.root_parent.name = root_name
    return interaction


@pytest.mark.unit
class TestExtractValidationContext:
    """Interaction payloads flatten into command, subcommand and options."""

    def test_subcommand_options_are_flattened(self, mocker, member_context):
        # Arrange
        data = {
            "name": "staff",
            "options": [
                {
                    "type": 1,
                    "name": "hire",
                    "options": [
                        {"type": 6, "name": "member", "value": "123"},
                        {"type": 3, "name": "role", "value": "Paralegal"},
                        {"type": 3, "name": "roblox_username", "value": "rbx"},
                    ],
                }
            ],
        }

        # Act
        context = extract_validation_context(_interaction(mocker, data, "staff"), member_context)

        # Assert
        assert context.command_name == "staff"
        assert context.subcommand_name == "hire"
        assert context.qualified_name == "staff.hire"
        assert context.raw_options == {"member": 123, "role": "Paralegal", "roblox_username": "rbx"}
        assert isinstance(context.options, StaffHireOptions)
        assert context.metadata["channel_id"] == 555

    def test_top_level_command_without_subcommand(self, mocker, member_context):
        data = {"name": "ping", "options": []}

        context = extract_validation_context(_interaction(mocker, data), member_context)

        assert context.command_name == "ping"
        assert context.subcommand_name is None
        assert context.qualified_name == "ping"

    def test_payload_round_trip_preserves_identity(self, member_context):
        context = CommandValidationContext.build("staff", "fire", {"member": 5}, member_context, channel_id=1)

        restored = CommandValidationContext.from_payload(context.to_payload())

        assert restored.qualified_name == "staff.fire"
        assert restored.options == context.options
        assert restored.permission_context == member_context
        assert restored.metadata["timestamp"] == context.metadata["timestamp"]


@pytest.mark.unit
class TestValidatorPipeline:
    """Pipelines translate their steps into validation options."""

    def test_standard_pipeline_runs_everything(self):
        options = ValidatorPipeline.standard().build_options()

        assert not options.skip_permission_check
        assert not options.skip_business_rules
        assert not options.skip_entity_validation
        assert options.required_permission is None
        assert options.custom_rules == []

    def test_absent_steps_are_skipped(self):
        options = ValidatorPipeline(PermissionStep("lawyer")).build_options(bypass_confirmed=True)

        assert options.required_permission == "lawyer"
        assert options.skip_business_rules
        assert options.skip_entity_validation
        assert options.bypass_confirmed

    def test_custom_rules_and_names(self):
        async def always_ok(context):
            return ValidationResult.ok()

        rule = CommandValidationRule(name="owner_only", validate=always_ok, priority=5)
        pipeline = ValidatorPipeline(BusinessRuleStep(), EntityStep(), CustomRuleStep(rule))

        options = pipeline.build_options()

        assert options.skip_permission_check
        assert options.custom_rules == [rule]
        assert pipeline.step_names == ["business_rules", "entity_validation", "owner_only"]

    async def test_run_delegates_to_service(self, mocker, member_context):
        service = mocker.MagicMock()
        service.validate_command = mocker.AsyncMock(return_value="result")
        context = CommandValidationContext.build("job", "list", {}, member_context)

        result = await ValidatorPipeline(PermissionStep()).run(service, context, bypass_confirmed=True)

        assert result == "result"
        sent_context, sent_options = service.validate_command.call_args.args
        assert sent_context is context
        assert sent_options.bypass_confirmed is True
