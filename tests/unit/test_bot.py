"""
Unit tests for LawFirmBot error mapping and FeatureLoader discovery.
"""

import pytest
from discord import app_commands

from src.bot.bot import LawFirmBot
from src.bot.loader import FeatureLoader
from src.core.exceptions import ErrorSeverity
from src.modules.shared.exceptions import BusinessRuleViolationError, LawBotDomainException, NotFoundError


@pytest.mark.unit
class TestEmbedForError:
    """Every tree error maps to a user-facing embed."""

    def _invoke_error(self, mocker, exc):
        command = mocker.MagicMock()
        command.name = "hire"
        return app_commands.CommandInvokeError(command, exc)

    def test_no_private_message(self):
        embed = LawFirmBot.embed_for_error(app_commands.NoPrivateMessage())

        assert embed.title == "Server Only"

    def test_check_failure(self):
        embed = LawFirmBot.embed_for_error(app_commands.CheckFailure())

        assert embed.title == "Permission Denied"

    def test_cooldown_shows_retry(self, mocker):
        error = app_commands.CommandOnCooldown(mocker.MagicMock(), 2.5)

        embed = LawFirmBot.embed_for_error(error)

        assert embed.title == "Cooldown Active"
        assert "2.5s" in embed.description

    def test_unexpected_error_hides_details(self, mocker):
        embed = LawFirmBot.embed_for_error(self._invoke_error(mocker, RuntimeError("db password leaked")))

        assert embed.title == "Unexpected Error"
        assert "password" not in embed.description

    def test_informational_domain_error_is_notice(self, mocker):
        embed = LawFirmBot.embed_for_error(self._invoke_error(mocker, NotFoundError("Case", "AA-2026-0001-x")))

        assert embed.title == "Notice"
        assert embed.description == "Case not found: AA-2026-0001-x"

    def test_warning_domain_error_is_error(self, mocker):
        error = BusinessRuleViolationError("role_limit_check", ["Role is full"])

        embed = LawFirmBot.embed_for_error(self._invoke_error(mocker, error))

        assert embed.title == "Error"
        assert embed.description == "Role is full"

    def test_explicit_severity_respected(self, mocker):
        error = LawBotDomainException("Database unavailable", severity=ErrorSeverity.CRITICAL)

        assert LawFirmBot.embed_for_error(self._invoke_error(mocker, error)).title == "Error"


@pytest.mark.unit
class TestFeatureLoaderDiscovery:
    def test_discovers_feature_cogs(self, mocker, mock_config_manager):
        loader = FeatureLoader(mocker.MagicMock(), mock_config_manager)

        assert loader._discover_cogs() == [
            "src.features.admin.admin_cog",
            "src.features.cases.cases_cog",
            "src.features.feedback.feedback_cog",
            "src.features.jobs.jobs_cog",
            "src.features.reminders.reminder_cog",
            "src.features.retainers.retainer_cog",
            "src.features.rules.rules_cog",
            "src.features.staff.staff_cog",
        ]

    def test_load_timeout_from_config(self, mocker, mock_config_manager):
        loader = FeatureLoader(mocker.MagicMock(), mock_config_manager)

        assert loader.load_timeout_seconds == 30.0
