"""
Integration tests for the client-facing services: retainer agreements,
feedback and staff reminders.
"""

from dataclasses import replace

import pytest

from src.core.database.service import DatabaseService
from src.core.logging.logger import get_logger
from src.database.models.enums import AuditAction, RetainerStatus
from src.modules.cases.repository import CaseRepository
from tests.conftest import ACTOR_ID, GUILD_ID, TARGET_ID

CLIENT_ID = 4000
CASE_CHANNEL_ID = 8800


@pytest.fixture
async def actor_is_staff(services, owner_context):
    await services.staff.hire_staff(owner_context, ACTOR_ID, "CounselActor", "Senior Associate")


@pytest.mark.integration
class TestRetainers:
    async def test_offer_then_sign(self, services, member_context):
        # Arrange
        offered = await services.retainers.create_retainer(member_context, CLIENT_ID)

        # Act
        signed = await services.retainers.sign_retainer(
            GUILD_ID, offered["retainer"].id, CLIENT_ID, "ClientName", "Jane Client"
        )

        # Assert
        retainer = signed["retainer"]
        assert retainer.status == RetainerStatus.SIGNED.value
        assert retainer.digital_signature == "Jane Client"
        assert retainer.client_roblox_username == "ClientName"
        assert retainer.signed_at is not None
        audit = await services.audit.search(GUILD_ID, action=AuditAction.RETAINER_SIGNED)
        assert [entry.actor_id for entry in audit] == [CLIENT_ID]

    async def test_one_open_agreement_per_client(self, services, member_context, owner_context):
        await services.retainers.create_retainer(member_context, CLIENT_ID)

        result = await services.retainers.create_retainer(owner_context, CLIENT_ID)

        assert result == {"success": False, "error": "Client already has a pending retainer agreement"}

    async def test_only_named_client_can_sign(self, services, member_context):
        offered = await services.retainers.create_retainer(member_context, CLIENT_ID)

        result = await services.retainers.sign_retainer(
            GUILD_ID, offered["retainer"].id, CLIENT_ID + 1, "ClientName", "Someone Else"
        )

        assert result == {"success": False, "error": "Retainer agreement not found"}

    async def test_staff_cannot_be_client(self, services, owner_context, member_context):
        await services.staff.hire_staff(owner_context, TARGET_ID, "StaffTarget", "Paralegal")

        result = await services.retainers.create_retainer(member_context, TARGET_ID)

        assert result == {"success": False, "error": "Staff members cannot be retained as clients"}

    async def test_cancel_allows_new_offer(self, services, member_context):
        offered = await services.retainers.create_retainer(member_context, CLIENT_ID)

        cancelled = await services.retainers.cancel_retainer(member_context, offered["retainer"].id)
        again = await services.retainers.create_retainer(member_context, CLIENT_ID)

        assert cancelled["retainer"].status == RetainerStatus.CANCELLED.value
        assert again["success"] is True

    async def test_signed_agreement_cannot_be_cancelled(self, services, member_context):
        offered = await services.retainers.create_retainer(member_context, CLIENT_ID)
        await services.retainers.sign_retainer(GUILD_ID, offered["retainer"].id, CLIENT_ID, "ClientName", "Jane Client")

        result = await services.retainers.cancel_retainer(member_context, offered["retainer"].id)

        assert result == {"success": False, "error": "Only pending retainers can be cancelled (current: signed)"}

    async def test_only_offering_lawyer_or_owner_cancels(self, services, member_context, owner_context):
        offered = await services.retainers.create_retainer(member_context, CLIENT_ID)
        other_lawyer = replace(member_context, user_id=ACTOR_ID + 1)

        refused = await services.retainers.cancel_retainer(other_lawyer, offered["retainer"].id)
        by_owner = await services.retainers.cancel_retainer(owner_context, offered["retainer"].id)

        assert refused["success"] is False
        assert by_owner["success"] is True

    async def test_list_filters_by_lawyer(self, services, member_context, owner_context):
        await services.retainers.create_retainer(member_context, CLIENT_ID)
        await services.retainers.create_retainer(owner_context, CLIENT_ID + 1)

        mine = await services.retainers.list_retainers(member_context, lawyer_id=ACTOR_ID)
        everyone = await services.retainers.list_retainers(member_context)

        assert [retainer.client_id for retainer in mine] == [CLIENT_ID]
        assert len(everyone) == 2


@pytest.mark.integration
class TestFeedback:
    async def test_staff_rating_summarized(self, services, owner_context, member_context):
        # Arrange
        await services.staff.hire_staff(owner_context, TARGET_ID, "RatedLawyer", "Paralegal")
        second_client = replace(member_context, user_id=CLIENT_ID)

        # Act
        await services.feedback.submit_feedback(member_context, 5, "Excellent counsel", target_staff_id=TARGET_ID)
        await services.feedback.submit_feedback(second_client, 2, "Slow to respond", target_staff_id=TARGET_ID)

        # Assert
        stats = await services.feedback.get_feedback_stats(owner_context, staff_id=TARGET_ID)
        assert stats["total"] == 2
        assert stats["average_rating"] == 3.5
        assert stats["distribution"][5] == 1
        assert stats["distribution"][2] == 1

    async def test_firm_feedback_has_no_target(self, services, member_context):
        result = await services.feedback.submit_feedback(member_context, 4, "Great firm overall")

        assert result["feedback"].is_for_firm is True
        assert result["feedback"].target_staff_id is None

    async def test_staff_cannot_submit(self, services, owner_context, member_context, actor_is_staff):
        result = await services.feedback.submit_feedback(member_context, 5, "Rating myself")

        assert result == {"success": False, "error": "Staff members cannot submit feedback"}

    async def test_target_must_be_staff(self, services, member_context):
        result = await services.feedback.submit_feedback(member_context, 3, "Who is this", target_staff_id=TARGET_ID)

        assert result == {"success": False, "error": "That member is not active staff"}

    async def test_rating_out_of_range(self, services, member_context):
        result = await services.feedback.submit_feedback(member_context, 6, "Too many stars")

        assert result["success"] is False


@pytest.mark.integration
class TestReminders:
    async def test_set_and_list(self, services, member_context, actor_is_staff):
        # Act
        result = await services.reminders.set_reminder(member_context, "2h", "File the motion", channel_id=1234)

        # Assert
        assert result["success"] is True
        assert result["case"] is None
        reminders = await services.reminders.list_reminders(member_context)
        assert [reminder.message for reminder in reminders] == ["File the motion"]
        audit = await services.audit.search(GUILD_ID, action=AuditAction.REMINDER_SET)
        assert len(audit) == 1

    async def test_non_staff_refused(self, services, member_context):
        result = await services.reminders.set_reminder(member_context, "10m", "Anything")

        assert result == {"success": False, "error": "Only active staff members can set reminders"}

    async def test_bad_time_string(self, services, member_context, actor_is_staff):
        result = await services.reminders.set_reminder(member_context, "3 weeks", "Too far")

        assert result["success"] is False
        assert result["error"].startswith("Invalid time format")

    async def test_case_reminder_needs_case_channel(self, services, member_context, actor_is_staff):
        result = await services.reminders.set_reminder(
            member_context, "1d", "Call the client", channel_id=CASE_CHANNEL_ID, require_case=True
        )

        assert result == {"success": False, "error": "This command can only be used in a case channel"}

    async def test_reminder_links_to_case(self, services, owner_context, member_context, actor_is_staff):
        # Arrange
        case = (await services.cases.create_case(owner_context, CLIENT_ID, "Jane.Client", "Contract dispute"))["case"]
        async with DatabaseService.get_transaction() as session:
            await CaseRepository(get_logger("tests")).update(session, case.id, {"channel_id": CASE_CHANNEL_ID})

        # Act
        result = await services.reminders.set_reminder(
            member_context, "1d", "Call the client", channel_id=CASE_CHANNEL_ID, require_case=True
        )

        # Assert
        assert result["case"].id == case.id
        assert result["reminder"].case_id == case.id

    async def test_cancel_only_own(self, services, owner_context, member_context, actor_is_staff):
        reminder = (await services.reminders.set_reminder(member_context, "1h", "Review filings"))["reminder"]

        by_other = await services.reminders.cancel_reminder(owner_context, reminder.id)
        by_owner = await services.reminders.cancel_reminder(member_context, reminder.id)
        again = await services.reminders.cancel_reminder(member_context, reminder.id)

        assert by_other == {"success": False, "error": "Reminder not found"}
        assert by_owner == {"success": True}
        assert again == {"success": False, "error": "Reminder has already been delivered or cancelled"}
        assert await services.reminders.list_reminders(member_context) == []

    async def test_active_limit(self, services, member_context, actor_is_staff, config_manager):
        config_manager.set_override("reminders.max_active_per_user", 1)
        await services.reminders.set_reminder(member_context, "1h", "First")

        result = await services.reminders.set_reminder(member_context, "1h", "Second")

        assert result == {"success": False, "error": "You already have 1 active reminders"}

    async def test_delivered_reminder_is_inactive(self, services, member_context, actor_is_staff, mocker):
        # Arrange
        reminder = (await services.reminders.set_reminder(member_context, "1m", "Check docket"))["reminder"]
        mocker.patch.object(services.reminders, "_send", mocker.AsyncMock())

        # Act
        first = await services.reminders.deliver_reminder(reminder.id)
        second = await services.reminders.deliver_reminder(reminder.id)

        # Assert
        assert (first, second) == (True, False)
        services.reminders._send.assert_awaited_once()
        assert await services.reminders.list_reminders(member_context) == []
