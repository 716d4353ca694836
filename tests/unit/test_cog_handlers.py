"""
Unit tests for command handlers: each one must call its service with the
parsed options and render the result.
"""

from types import SimpleNamespace

import pytest

from src.features.admin.admin_cog import AdminCog
from src.features.jobs.jobs_cog import JobsCog
from src.features.reminders.reminder_cog import ReminderCog
from src.features.rules.rules_cog import RulesCog
from src.features.staff.staff_cog import StaffCog
from src.modules.validation.options import (
    GenericOptions,
    JobEditOptions,
    RemindSetOptions,
    RulesAddRuleOptions,
    RulesRemoveOptions,
    RulesRemoveRuleOptions,
)
from tests.conftest import GUILD_ID


@pytest.fixture
def container(mocker):
    return mocker.MagicMock(name="service_container")


@pytest.fixture
def bot(mocker, container):
    bot = mocker.MagicMock(name="bot")
    bot.service_container = container
    return bot


def _context(permission_context, options=None):
    return SimpleNamespace(
        permission_context=permission_context,
        guild_id=permission_context.guild_id,
        user_id=permission_context.user_id,
        options=options or GenericOptions(values={}),
    )


def _sent_embed(interaction):
    return interaction.response.send_message.await_args.kwargs["embed"]


@pytest.mark.unit
class TestReadOnlyHandlers:
    async def test_mypermissions_renders_summary(self, bot, container, mock_interaction, member_context, mocker):
        # Arrange
        container.permissions.get_permission_summary = mocker.AsyncMock(
            return_value={"is_guild_owner": False, "is_admin": False, "permissions": {"case": True, "hr": False}}
        )

        # Act
        await AdminCog(bot)._mypermissions(mock_interaction, _context(member_context), None)

        # Assert
        container.permissions.get_permission_summary.assert_awaited_once_with(member_context)
        fields = {field.name: field.value for field in _sent_embed(mock_interaction).fields}
        assert fields == {"Server Owner": "No", "Bot Admin": "No", "case": "Yes", "hr": "No"}

    async def test_hierarchy_skips_empty_ranks(self, bot, container, mock_interaction, member_context, mocker):
        container.staff.get_staff_hierarchy = mocker.AsyncMock(
            return_value={"Managing Partner": [SimpleNamespace(user_id=1)], "Paralegal": []}
        )

        await StaffCog(bot)._hierarchy(mock_interaction, _context(member_context), None)

        fields = {field.name: field.value for field in _sent_embed(mock_interaction).fields}
        assert fields == {"Managing Partner": "<@1>"}

    async def test_cleanup_report(self, bot, container, mock_interaction, owner_context, mocker):
        container.job_cleanup.get_cleanup_report = mocker.AsyncMock(
            return_value={
                "total_jobs": 4,
                "open_jobs": 1,
                "closed_jobs": 3,
                "jobs_needing_role_cleanup": 2,
                "expired_jobs": 0,
                "max_days_open": 30,
            }
        )

        await JobsCog(bot)._cleanup_report(mock_interaction, _context(owner_context), None)

        container.job_cleanup.get_cleanup_report.assert_awaited_once_with(GUILD_ID)
        fields = {field.name: field.value for field in _sent_embed(mock_interaction).fields}
        assert fields["Roles To Remove"] == "2"
        assert fields["Open Over 30 Days"] == "0"

    async def test_rules_list_shows_rule_ids(self, bot, container, mock_interaction, owner_context, mocker):
        row = SimpleNamespace(channel_id=77, title="Firm Rules", rules=[{"id": "rule_1"}, {"id": "rule_2"}])
        container.rules.list_rules_channels = mocker.AsyncMock(return_value=[row])

        await RulesCog(bot)._list(mock_interaction, _context(owner_context), None)

        description = _sent_embed(mock_interaction).description
        assert "<#77> **Firm Rules** (2 rules)" in description
        assert "`rule_1`, `rule_2`" in description

    async def test_job_stats_combine_jobs_and_applications(self, bot, container, mock_interaction, owner_context, mocker):
        # Arrange
        container.jobs.get_job_statistics = mocker.AsyncMock(
            return_value={
                "total_jobs": 3,
                "open_jobs": 2,
                "closed_jobs": 1,
                "total_hired": 1,
                "jobs_by_role": {"Paralegal": 2, "Junior Associate": 1},
            }
        )
        container.applications.get_application_stats = mocker.AsyncMock(
            return_value={"total": 5, "pending": 2, "accepted": 1, "rejected": 2}
        )

        # Act
        await JobsCog(bot)._stats(mock_interaction, _context(owner_context), None)

        # Assert
        container.jobs.get_job_statistics.assert_awaited_once_with(owner_context)
        embed = _sent_embed(mock_interaction)
        fields = {field.name: field.value for field in embed.fields}
        assert fields["Open"] == "2"
        assert fields["Pending Review"] == "2"
        assert "- Paralegal: 2" in embed.description


@pytest.mark.unit
class TestMutatingHandlers:
    async def test_job_edit_passes_supplied_fields(self, bot, container, mock_interaction, owner_context, mocker):
        # Arrange
        container.jobs.update_job = mocker.AsyncMock(return_value={"success": True, "job": None})
        options = JobEditOptions(job_id=4, title="Hiring clerks")

        # Act
        await JobsCog(bot)._edit(mock_interaction, _context(owner_context, options), None)

        # Assert
        container.jobs.update_job.assert_awaited_once_with(owner_context, 4, {"title": "Hiring clerks"})
        assert _sent_embed(mock_interaction).title == "Job Updated"

    async def test_job_edit_without_fields_is_refused(self, bot, container, mock_interaction, owner_context, mocker):
        container.jobs.update_job = mocker.AsyncMock()

        await JobsCog(bot)._edit(mock_interaction, _context(owner_context, JobEditOptions(job_id=4)), None)

        container.jobs.update_job.assert_not_awaited()
        assert _sent_embed(mock_interaction).title == "Nothing to Change"

    async def test_case_reminder_requires_case(self, bot, container, mock_interaction, member_context, mocker):
        container.reminders.set_reminder = mocker.AsyncMock(
            return_value={"success": False, "error": "This command can only be used in a case channel"}
        )
        mock_interaction.channel_id = 8800

        await ReminderCog(bot)._case(mock_interaction, _context(member_context, RemindSetOptions("1h", "Call")), None)

        container.reminders.set_reminder.assert_awaited_once_with(
            member_context, "1h", "Call", channel_id=8800, require_case=True
        )
        assert _sent_embed(mock_interaction).title == "Reminder Not Set"

    async def test_addrule_appends_article(self, bot, container, mock_interaction, owner_context, mocker):
        # Arrange
        row = SimpleNamespace(rules=[{"id": "rule_1"}, {"id": "rule_2"}])
        container.rules.add_rule = mocker.AsyncMock(return_value=row)
        options = RulesAddRuleOptions(channel_id=77, title="Be civil", content="No insults.", severity="high")

        # Act
        await RulesCog(bot)._addrule(mock_interaction, _context(owner_context, options), None)

        # Assert
        container.rules.add_rule.assert_awaited_once_with(
            mock_interaction.guild,
            77,
            {"title": "Be civil", "content": "No insults.", "category": None, "severity": "high"},
            owner_context.user_id,
        )
        embed = _sent_embed(mock_interaction)
        assert embed.title == "Rule Added"
        assert "article 2" in embed.description

    async def test_addrule_outside_rules_channel(self, bot, container, mock_interaction, owner_context, mocker):
        container.rules.add_rule = mocker.AsyncMock(return_value=None)
        options = RulesAddRuleOptions(channel_id=77, title="Be civil", content="No insults.")

        await RulesCog(bot)._addrule(mock_interaction, _context(owner_context, options), None)

        assert _sent_embed(mock_interaction).title == "Not a Rules Channel"

    async def test_removerule_unknown_id_not_removed(self, bot, container, mock_interaction, owner_context, mocker):
        container.rules.get_rules_channel = mocker.AsyncMock(return_value=SimpleNamespace(rules=[{"id": "rule_1"}]))
        container.rules.remove_rule = mocker.AsyncMock()
        options = RulesRemoveRuleOptions(channel_id=77, rule_id="rule_9")

        await RulesCog(bot)._removerule(mock_interaction, _context(owner_context, options), None)

        container.rules.remove_rule.assert_not_awaited()
        assert _sent_embed(mock_interaction).title == "Rule Not Found"

    async def test_removerule_known_id(self, bot, container, mock_interaction, owner_context, mocker):
        container.rules.get_rules_channel = mocker.AsyncMock(return_value=SimpleNamespace(rules=[{"id": "rule_1"}]))
        container.rules.remove_rule = mocker.AsyncMock()
        options = RulesRemoveRuleOptions(channel_id=77, rule_id="rule_1")

        await RulesCog(bot)._removerule(mock_interaction, _context(owner_context, options), None)

        container.rules.remove_rule.assert_awaited_once_with(mock_interaction.guild, 77, "rule_1", owner_context.user_id)
        assert _sent_embed(mock_interaction).title == "Rule Removed"

    async def test_remove_rules_channel(self, bot, container, mock_interaction, owner_context, mocker):
        container.rules.delete_rules_channel = mocker.AsyncMock(return_value=True)

        await RulesCog(bot)._remove(mock_interaction, _context(owner_context, RulesRemoveOptions(channel_id=77)), None)

        container.rules.delete_rules_channel.assert_awaited_once_with(mock_interaction.guild, 77)
        assert _sent_embed(mock_interaction).title == "Rules Removed"
