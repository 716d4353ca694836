"""
Integration tests for hiring, rank changes and termination against
PostgreSQL, including the guild owner's role-limit override.
"""

import pytest

from src.database.models.enums import AuditAction, StaffStatus
from src.modules.validation.context import CommandValidationContext
from tests.conftest import ACTOR_ID, GUILD_ID, OWNER_ID, TARGET_ID


async def _hire(services, context, user_id, role, username=None, **kwargs):
    return await services.staff.hire_staff(context, user_id, username or f"Lawyer{user_id}", role, **kwargs)


@pytest.mark.integration
class TestHireStaff:
    async def test_hire_creates_active_record(self, services, owner_context):
        # Act
        result = await _hire(services, owner_context, TARGET_ID, "Paralegal", reason="Strong interview")

        # Assert
        assert result["success"] is True
        staff = await services.staff.get_staff_info(owner_context, TARGET_ID)
        assert staff.status == StaffStatus.ACTIVE.value
        assert staff.hired_by == OWNER_ID
        assert staff.promotion_history[0]["action_type"] == "hire"

        audit = await services.audit.search(GUILD_ID, action=AuditAction.STAFF_HIRED)
        assert [entry.target_id for entry in audit] == [TARGET_ID]

    async def test_cannot_hire_twice(self, services, owner_context):
        await _hire(services, owner_context, TARGET_ID, "Paralegal")

        result = await _hire(services, owner_context, TARGET_ID, "Paralegal", username="OtherName")

        assert result == {"success": False, "error": "User is already an active staff member"}

    async def test_roblox_username_unique_per_guild(self, services, owner_context):
        await _hire(services, owner_context, TARGET_ID, "Paralegal", username="SharedName")

        result = await _hire(services, owner_context, TARGET_ID + 1, "Paralegal", username="SharedName")

        assert result["success"] is False
        assert "Roblox username" in result["error"]

    async def test_invalid_username_rejected(self, services, owner_context):
        result = await _hire(services, owner_context, TARGET_ID, "Paralegal", username="_bad_")

        assert result["success"] is False


@pytest.mark.integration
class TestRoleLimit:
    """Managing Partner is capped at one seat."""

    async def test_member_blocked_at_limit(self, services, owner_context, member_context):
        await _hire(services, owner_context, TARGET_ID, "Managing Partner")

        result = await _hire(services, member_context, TARGET_ID + 1, "Managing Partner")

        assert result["success"] is False
        assert result["error"] == "Cannot hire Managing Partner. Maximum limit of 1 reached (current: 1)"

    async def test_refused_hire_is_audited_as_violation(self, services, owner_context, member_context):
        # Arrange
        await _hire(services, owner_context, TARGET_ID, "Managing Partner")

        # Act
        await _hire(services, member_context, TARGET_ID + 1, "Managing Partner")

        # Assert
        violations = await services.audit.search(GUILD_ID, action=AuditAction.BUSINESS_RULE_VIOLATION)
        assert [entry.target_id for entry in violations] == [TARGET_ID + 1]
        assert violations[0].details["metadata"] == {"rule": "role_limit", "operation": "hire", "role": "Managing Partner"}

    async def test_override_is_not_a_violation(self, services, owner_context):
        await _hire(services, owner_context, TARGET_ID, "Managing Partner")

        await _hire(services, owner_context, TARGET_ID + 1, "Managing Partner", bypass_reason="Co-founder joining")

        assert await services.audit.search(GUILD_ID, action=AuditAction.BUSINESS_RULE_VIOLATION) == []

    async def test_owner_needs_confirmed_reason(self, services, owner_context):
        await _hire(services, owner_context, TARGET_ID, "Managing Partner")

        result = await _hire(services, owner_context, TARGET_ID + 1, "Managing Partner")

        assert result["success"] is False

    async def test_owner_override_is_audited(self, services, owner_context):
        # Arrange
        await _hire(services, owner_context, TARGET_ID, "Managing Partner")

        # Act
        result = await _hire(
            services, owner_context, TARGET_ID + 1, "Managing Partner", bypass_reason="Co-founder joining"
        )

        # Assert
        assert result["success"] is True
        assert result["bypassed"] is True
        bypasses = await services.audit.search(GUILD_ID, action=AuditAction.ROLE_LIMIT_BYPASSED)
        assert len(bypasses) == 1
        assert bypasses[0].details["reason"] == "Co-founder joining"

        counts = await services.staff.get_role_counts(owner_context)
        assert counts["Managing Partner"] == 2

    async def test_pipeline_asks_owner_to_confirm(self, services, owner_context):
        await _hire(services, owner_context, TARGET_ID, "Managing Partner")
        context = CommandValidationContext.build(
            "staff", "hire", {"member": TARGET_ID + 1, "role": "Managing Partner", "roblox_username": "Second"},
            owner_context,
        )

        result = await services.command_validation.validate_command(context)

        assert result.is_valid is False
        assert result.requires_confirmation is True
        assert result.bypass_token


@pytest.mark.integration
class TestRankChanges:
    async def test_owner_promotes_and_demotes(self, services, owner_context):
        await _hire(services, owner_context, TARGET_ID, "Paralegal")

        promoted = await services.staff.promote_staff(owner_context, TARGET_ID, "Junior Associate", reason="Good work")
        demoted = await services.staff.demote_staff(owner_context, TARGET_ID, "Paralegal")

        assert promoted["previous_role"] == "Paralegal"
        assert demoted["previous_role"] == "Junior Associate"
        staff = await services.staff.get_staff_info(owner_context, TARGET_ID)
        assert [entry["action_type"] for entry in staff.promotion_history] == ["hire", "promotion", "demotion"]

    async def test_promotion_must_go_up(self, services, owner_context):
        await _hire(services, owner_context, TARGET_ID, "Senior Associate")

        result = await services.staff.promote_staff(owner_context, TARGET_ID, "Paralegal")

        assert result["error"] == "New role must be higher than current role for promotion"

    async def test_junior_staff_cannot_promote(self, services, owner_context, member_context):
        await _hire(services, owner_context, ACTOR_ID, "Junior Partner")
        await _hire(services, owner_context, TARGET_ID, "Paralegal")

        result = await services.staff.promote_staff(member_context, TARGET_ID, "Junior Associate")

        assert result["success"] is False

    async def test_cannot_promote_self(self, services, owner_context):
        result = await services.staff.promote_staff(owner_context, OWNER_ID, "Paralegal")

        assert result["error"] == "Staff members cannot promote themselves"


@pytest.mark.integration
class TestFireStaff:
    async def test_fire_terminates(self, services, owner_context):
        await _hire(services, owner_context, TARGET_ID, "Paralegal")

        result = await services.staff.fire_staff(owner_context, TARGET_ID, reason="Inactivity")

        assert result["success"] is True
        staff = await services.staff.get_staff_info(owner_context, TARGET_ID)
        assert staff.status == StaffStatus.TERMINATED.value
        listing = await services.staff.get_staff_list(owner_context)
        assert listing["total"] == 0

    async def test_must_outrank_target(self, services, owner_context, member_context):
        await _hire(services, owner_context, ACTOR_ID, "Paralegal")
        await _hire(services, owner_context, TARGET_ID, "Senior Associate")

        result = await services.staff.fire_staff(member_context, TARGET_ID)

        assert result["error"] == "You can only fire staff members below your own role"

    async def test_fired_member_can_be_rehired(self, services, owner_context):
        await _hire(services, owner_context, TARGET_ID, "Paralegal", username="Returning")
        await services.staff.fire_staff(owner_context, TARGET_ID)

        result = await _hire(services, owner_context, TARGET_ID, "Paralegal", username="ReturningAgain")

        assert result["success"] is True
