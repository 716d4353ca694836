"""
Integration tests for cross-entity checks: pre-operation blocking,
guild-wide integrity scans and auto-repair.
"""

import pytest

from src.database.models.enums import AuditAction, StaffStatus
from src.database.models.staffing.staff import Staff
from src.modules.validation.context import CommandValidationContext
from src.modules.validation.types import IssueSeverity
from tests.conftest import GUILD_ID

LEAD_ID = 6000
ASSISTANT_ID = 6001


async def _open_case(services, context, title, lawyers):
    case = (await services.cases.create_case(context, 7000, "client", title))["case"]
    for lawyer in lawyers:
        await services.cases.assign_lawyer(context, case.case_number, lawyer)
    return case


@pytest.fixture
async def busy_lead(services, owner_context):
    """A Senior Partner leading two open cases, with a paralegal assisting."""
    await services.staff.hire_staff(owner_context, LEAD_ID, "LeadCounsel", "Senior Partner")
    await services.staff.hire_staff(owner_context, ASSISTANT_ID, "Assistant", "Paralegal")
    await _open_case(services, owner_context, "First matter", [LEAD_ID, ASSISTANT_ID])
    await _open_case(services, owner_context, "Second matter", [LEAD_ID])


@pytest.mark.integration
@pytest.mark.usefixtures("busy_lead")
class TestBeforeOperation:
    async def test_firing_lead_is_critical(self, services):
        issues = await services.cross_entity.validate_before_operation(
            {"user_id": LEAD_ID}, "staff", "delete", GUILD_ID
        )

        critical = [issue for issue in issues if issue.severity == IssueSeverity.CRITICAL]
        assert len(critical) == 1
        assert critical[0].message.startswith("Staff member is lead attorney on 2 open case(s)")

    async def test_firing_assistant_only_warns(self, services):
        issues = await services.cross_entity.validate_before_operation(
            {"user_id": ASSISTANT_ID}, "staff", "delete", GUILD_ID
        )

        assert [issue.severity for issue in issues] == [IssueSeverity.WARNING]

    async def test_promotion_does_not_run_firing_rule(self, services):
        issues = await services.cross_entity.validate_before_operation(
            {"user_id": LEAD_ID}, "staff", "update", GUILD_ID
        )

        assert all("open case(s)" not in issue.message for issue in issues)

    async def test_fire_command_blocked_by_pipeline(self, services, owner_context):
        context = CommandValidationContext.build("staff", "fire", {"member": LEAD_ID}, owner_context)

        result = await services.command_validation.validate_command(context)

        assert result.is_valid is False
        assert result.requires_confirmation is False
        assert "Reassign these cases first" in result.errors[0]

    async def test_firing_assistant_drops_assignment(self, services, owner_context):
        result = await services.staff.fire_staff(owner_context, ASSISTANT_ID)

        assert len(result["removed_from_cases"]) == 1
        listing = await services.cases.list_cases(owner_context)
        assert all(ASSISTANT_ID not in (case.assigned_lawyer_ids or []) for case in listing["cases"])


@pytest.mark.integration
class TestScanAndRepair:
    async def test_clean_guild_has_no_critical_issues(self, services, owner_context, busy_lead):
        report = await services.cross_entity.scan_for_integrity_issues(GUILD_ID)

        assert report.total_entities_scanned == 4
        assert report.issues_by_severity.get("critical", 0) == 0

    async def test_missing_lead_is_repaired(self, services, owner_context, database):
        # Arrange: a case whose lead has no staff record at all
        case = (await services.cases.create_case(owner_context, 7000, "client", "Orphaned matter"))["case"]
        await services.staff.hire_staff(owner_context, LEAD_ID, "GoneCounsel", "Senior Associate")
        await services.cases.assign_lawyer(owner_context, case.case_number, LEAD_ID)
        staff = await services.staff.get_staff_info(owner_context, LEAD_ID)
        async with database.get_transaction() as session:
            await session.delete(await session.get(Staff, staff.id))

        # Act
        report = await services.cross_entity.scan_for_integrity_issues(GUILD_ID)
        preview = await services.cross_entity.repair_integrity_issues(GUILD_ID, report.issues, dry_run=True)
        repaired = await services.cross_entity.repair_integrity_issues(GUILD_ID, report.issues)

        # Assert
        assert preview.issues_repaired == repaired.issues_repaired == 2
        rescanned = await services.cross_entity.scan_for_integrity_issues(GUILD_ID)
        assert rescanned.issues_by_severity.get("critical", 0) == 0
        audit = await services.audit.search(GUILD_ID, action=AuditAction.SYSTEM_REPAIR)
        assert len(audit) == 2

    async def test_terminated_lead_only_warns(self, services, owner_context):
        case = (await services.cases.create_case(owner_context, 7000, "client", "Stale matter"))["case"]
        await services.staff.hire_staff(owner_context, LEAD_ID, "LeftCounsel", "Senior Associate")
        await services.cases.assign_lawyer(owner_context, case.case_number, LEAD_ID)
        await services.staff.fire_staff(owner_context, LEAD_ID)

        report = await services.cross_entity.scan_for_integrity_issues(GUILD_ID)

        messages = [issue.message for issue in report.issues]
        assert f"Lead attorney {LEAD_ID} is not active (status: {StaffStatus.TERMINATED.value})" in messages
