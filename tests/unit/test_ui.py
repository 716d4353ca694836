"""
Unit tests for validation embeds and the override modal's input checks.
"""

import pytest

from src.modules.validation.types import BypassRequest, CommandValidationResult, ValidationResult
from src.ui.embeds import EmbedFactory
from src.ui.views.bypass import CONFIRMATION_WORD, check_bypass_submission


@pytest.mark.unit
class TestBypassSubmission:
    def test_valid_submission(self):
        assert check_bypass_submission("Hiring for the summer trial season", "OVERRIDE") == []

    def test_confirmation_must_match_exactly(self):
        problems = check_bypass_submission("Hiring for the summer trial season", "override")

        assert problems == [f"Type {CONFIRMATION_WORD} exactly to confirm."]

    @pytest.mark.parametrize("reason", ["short", "   padded   ", "x" * 501])
    def test_reason_length_bounds(self, reason):
        assert len(check_bypass_submission(reason, "OVERRIDE")) == 1

    def test_both_problems_reported(self):
        assert len(check_bypass_submission("", "")) == 2


@pytest.mark.unit
class TestValidationEmbeds:
    def test_failure_lists_errors_and_warnings(self):
        result = CommandValidationResult(is_valid=False, errors=["First", "Second"], warnings=["Careful"])

        embed = EmbedFactory.validation_failure(result)

        assert embed.title == "Validation Failed"
        assert "First" in embed.description and "Second" in embed.description
        assert embed.fields[0].name == "Warnings"

    def test_bypass_prompt_field_per_rule(self, owner_context, mocker):
        request = BypassRequest(
            validation_result=ValidationResult.fail("Role is full"),
            context=mocker.MagicMock(),
            rule_name="role_limit_check",
        )
        result = CommandValidationResult(
            is_valid=False, errors=["Role is full"], bypass_requests=[request], requires_confirmation=True
        )

        embed = EmbedFactory.bypass_prompt(result)

        assert [field.name for field in embed.fields] == ["role_limit_check"]
        assert "Role is full" in embed.fields[0].value
