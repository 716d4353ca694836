"""
Integration tests for the case lifecycle: pending -> in-progress -> closed.
"""

from datetime import datetime, timezone

import pytest

from src.database.models.enums import AuditAction, CaseStatus
from tests.conftest import GUILD_ID, TARGET_ID

CLIENT_ID = 4000
LAWYER_ID = 5000
PARALEGAL_ID = 5001


@pytest.fixture
async def lawyers(services, owner_context):
    await services.staff.hire_staff(owner_context, LAWYER_ID, "CounselOne", "Senior Associate")
    await services.staff.hire_staff(owner_context, PARALEGAL_ID, "HelperOne", "Paralegal")


async def _create(services, context, title="Contract dispute", client_id=CLIENT_ID):
    return await services.cases.create_case(context, client_id, "Jane.Client", title, "Details", "high")


@pytest.mark.integration
class TestCreateCase:
    async def test_numbers_are_sequential_per_year(self, services, owner_context):
        year = datetime.now(timezone.utc).year

        first = await _create(services, owner_context)
        second = await _create(services, owner_context, title="Second matter")

        assert first["case"].case_number == f"AA-{year}-0001-janeclient"
        assert second["case"].case_number == f"AA-{year}-0002-janeclient"
        assert first["case"].status == CaseStatus.PENDING.value

    async def test_invalid_priority(self, services, owner_context):
        result = await services.cases.create_case(owner_context, CLIENT_ID, "x", "Some title", priority="extreme")

        assert result == {"success": False, "error": "Invalid priority: extreme"}

    async def test_client_case_limit(self, services, owner_context):
        # Arrange
        for index in range(5):
            created = await _create(services, owner_context, title=f"Matter {index}")

        # Act
        blocked = await _create(services, owner_context, title="One too many")

        # Assert
        assert created["warnings"] == ["Client has 4 active cases (limit: 5)"]
        assert blocked["success"] is False
        assert "maximum active case limit (5)" in blocked["error"]

    async def test_limit_is_per_client(self, services, owner_context):
        for index in range(5):
            await _create(services, owner_context, title=f"Matter {index}")

        result = await _create(services, owner_context, client_id=TARGET_ID)

        assert result["success"] is True


@pytest.mark.integration
@pytest.mark.usefixtures("lawyers")
class TestAssignAndClose:
    async def test_first_qualified_lawyer_becomes_lead(self, services, owner_context):
        case = (await _create(services, owner_context))["case"]

        result = await services.cases.assign_lawyer(owner_context, case.case_number, LAWYER_ID)

        assert result["is_lead"] is True
        assert result["case"].lead_attorney_id == LAWYER_ID
        assert result["case"].status == CaseStatus.IN_PROGRESS.value

    async def test_paralegal_cannot_lead(self, services, owner_context):
        case = (await _create(services, owner_context))["case"]

        forced = await services.cases.assign_lawyer(owner_context, case.case_number, PARALEGAL_ID, as_lead=True)
        assisting = await services.cases.assign_lawyer(owner_context, case.case_number, PARALEGAL_ID)

        assert forced == {"success": False, "error": "Paralegal cannot be lead attorney on a case"}
        assert assisting["is_lead"] is False
        assert assisting["case"].assigned_lawyer_ids == [PARALEGAL_ID]

    async def test_non_staff_cannot_be_assigned(self, services, owner_context):
        case = (await _create(services, owner_context))["case"]

        result = await services.cases.assign_lawyer(owner_context, case.case_number, 999)

        assert result["error"] == "Lawyer must be an active staff member"

    async def test_close_records_result(self, services, owner_context):
        # Arrange
        case = (await _create(services, owner_context))["case"]
        await services.cases.assign_lawyer(owner_context, case.case_number, LAWYER_ID)

        # Act
        result = await services.cases.close_case(owner_context, case.case_number, "settlement", notes="Agreed terms")

        # Assert
        closed = result["case"]
        assert closed.status == CaseStatus.CLOSED.value
        assert closed.result == "settlement"
        assert closed.closed_by == owner_context.user_id
        audit = await services.audit.search(GUILD_ID, action=AuditAction.CASE_CLOSED)
        assert audit[0].details["reason"] == "Agreed terms"

    async def test_pending_case_cannot_close(self, services, owner_context):
        case = (await _create(services, owner_context))["case"]

        result = await services.cases.close_case(owner_context, case.case_number, "win")

        assert result["error"] == "Case cannot be closed - current status: pending"

    async def test_closed_case_frees_client_slot(self, services, owner_context):
        for index in range(5):
            case = (await _create(services, owner_context, title=f"Matter {index}"))["case"]
        await services.cases.assign_lawyer(owner_context, case.case_number, LAWYER_ID)
        await services.cases.close_case(owner_context, case.case_number, "win")

        result = await _create(services, owner_context, title="Fresh matter")

        assert result["success"] is True

    async def test_list_filters_by_status(self, services, owner_context):
        first = (await _create(services, owner_context))["case"]
        await _create(services, owner_context, title="Another matter")
        await services.cases.assign_lawyer(owner_context, first.case_number, LAWYER_ID)

        listing = await services.cases.list_cases(owner_context, status=CaseStatus.IN_PROGRESS.value)

        assert listing["total"] == 1
        assert listing["cases"][0].case_number == first.case_number
