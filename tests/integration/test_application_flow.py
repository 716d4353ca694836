"""
Integration tests for job applications: submitting answers, reviewing,
and the hire that follows an acceptance.
"""

from dataclasses import replace

import pytest

from src.database.models.enums import ApplicationStatus, AuditAction, StaffStatus
from tests.conftest import ACTOR_ID, GUILD_ID, OWNER_ID

DESCRIPTION = "Assist senior counsel with research and filings."

ANSWERS = {
    "roblox_username": "Applicant2000",
    "legal_experience": "Two years clerking for a roleplay court.",
    "availability": "12",
    "why_join": "The firm has the best reputation in the city.",
}


async def _open_job(services, context, role="Paralegal"):
    return (await services.jobs.create_job(context, f"Hiring {role}", DESCRIPTION, role))["job"]


async def _apply(services, context, job, **overrides):
    return await services.applications.submit_application(context, job.id, {**ANSWERS, **overrides})


@pytest.mark.integration
class TestSubmitApplication:
    async def test_submission_records_answers(self, services, owner_context, member_context):
        # Arrange
        job = await _open_job(services, owner_context)

        # Act
        result = await _apply(services, member_context, job)

        # Assert
        assert result["success"] is True
        application = result["application"]
        assert application.status == ApplicationStatus.PENDING.value
        assert application.roblox_username == "Applicant2000"
        assert {answer["question_id"] for answer in application.answers} == set(ANSWERS)

        details = await services.jobs.get_job_details(owner_context, job.id)
        assert details.application_count == 1
        audit = await services.audit.search(GUILD_ID, action=AuditAction.APPLICATION_SUBMITTED)
        assert [entry.actor_id for entry in audit] == [ACTOR_ID]

    async def test_questions_beyond_the_form_are_not_required(self, services, owner_context, member_context):
        # Arrange: defaults fill four inputs, so only the first custom question fits the modal
        custom = [
            {"id": "motivation", "question": "Why this role?", "type": "short", "required": True},
            {"id": "unasked", "question": "Never shown", "type": "short", "required": True},
        ]
        job = (
            await services.jobs.create_job(owner_context, "Hiring Paralegal", DESCRIPTION, "Paralegal", custom_questions=custom)
        )["job"]

        # Act
        result = await _apply(services, member_context, job, motivation="I enjoy paperwork")

        # Assert
        assert result["success"] is True
        assert [answer["question_id"] for answer in result["application"].answers][-1] == "motivation"

    async def test_second_pending_application_refused(self, services, owner_context, member_context):
        job = await _open_job(services, owner_context)
        await _apply(services, member_context, job)

        result = await _apply(services, member_context, job)

        assert result == {"success": False, "error": "You already have a pending application for this position"}

    async def test_invalid_answers_listed_together(self, services, owner_context, member_context):
        job = await _open_job(services, owner_context)

        result = await _apply(services, member_context, job, availability="500", why_join="")

        assert result["success"] is False
        assert "must be at most 168" in result["error"]
        assert "is required" in result["error"]

    async def test_closed_job_refuses_applications(self, services, owner_context, member_context):
        job = await _open_job(services, owner_context)
        await services.jobs.close_job(owner_context, job.id)

        result = await _apply(services, member_context, job)

        assert result["success"] is False
        assert await services.applications.get_open_job(GUILD_ID, job.id) is None

    async def test_staff_cannot_apply(self, services, owner_context, member_context):
        job = await _open_job(services, owner_context, role="Junior Associate")
        await services.staff.hire_staff(owner_context, ACTOR_ID, "AlreadyStaff", "Paralegal")

        result = await _apply(services, member_context, job)

        assert result == {"success": False, "error": "Active staff members cannot apply for positions"}


@pytest.mark.integration
class TestReviewApplication:
    async def test_accept_hires_applicant(self, services, owner_context, member_context):
        # Arrange
        job = await _open_job(services, owner_context)
        application = (await _apply(services, member_context, job))["application"]

        # Act
        result = await services.applications.review_application(owner_context, application.id, accept=True)

        # Assert
        assert result["success"] is True
        assert result["application"].status == ApplicationStatus.ACCEPTED.value
        assert result["application"].reviewed_by == OWNER_ID
        staff = await services.staff.get_staff_info(owner_context, ACTOR_ID)
        assert staff.status == StaffStatus.ACTIVE.value
        assert staff.role == "Paralegal"
        assert staff.roblox_username == "Applicant2000"
        assert (await services.jobs.get_job_details(owner_context, job.id)).hired_count == 1

    async def test_reject_leaves_applicant_unhired(self, services, owner_context, member_context):
        job = await _open_job(services, owner_context)
        application = (await _apply(services, member_context, job))["application"]

        result = await services.applications.review_application(
            owner_context, application.id, accept=False, reason="Not enough experience"
        )

        assert result["application"].status == ApplicationStatus.REJECTED.value
        assert result["application"].review_reason == "Not enough experience"
        assert await services.staff.get_staff_info(owner_context, ACTOR_ID) is None

    async def test_reviewed_application_is_final(self, services, owner_context, member_context):
        job = await _open_job(services, owner_context)
        application = (await _apply(services, member_context, job))["application"]
        await services.applications.review_application(owner_context, application.id, accept=False)

        result = await services.applications.review_application(owner_context, application.id, accept=True)

        assert result == {"success": False, "error": "Application has already been rejected"}

    async def test_failed_hire_keeps_application_pending(self, services, owner_context, member_context):
        # Arrange: the applicant's username is taken by a hire made after they applied
        job = await _open_job(services, owner_context)
        application = (await _apply(services, member_context, job))["application"]
        await services.staff.hire_staff(owner_context, ACTOR_ID + 1, "Applicant2000", "Paralegal")

        # Act
        result = await services.applications.review_application(owner_context, application.id, accept=True)

        # Assert
        assert result["success"] is False
        pending = await services.applications.list_applications(owner_context, status=ApplicationStatus.PENDING.value)
        assert [item.id for item in pending] == [application.id]

    async def test_cannot_review_own_application(self, services, owner_context, member_context):
        job = await _open_job(services, owner_context)
        application = (await _apply(services, member_context, job))["application"]

        result = await services.applications.review_application(member_context, application.id, accept=True)

        assert result == {"success": False, "error": "You cannot review your own application"}

    async def test_other_guild_cannot_review(self, services, owner_context, member_context):
        job = await _open_job(services, owner_context)
        application = (await _apply(services, member_context, job))["application"]

        result = await services.applications.review_application(
            replace(owner_context, guild_id=GUILD_ID + 1), application.id, accept=True
        )

        assert result == {"success": False, "error": "Application not found"}

    async def test_stats_count_by_status(self, services, owner_context, member_context):
        job = await _open_job(services, owner_context)
        first = (await _apply(services, member_context, job))["application"]
        await services.applications.review_application(owner_context, first.id, accept=False)
        await _apply(services, member_context, job)

        stats = await services.applications.get_application_stats(owner_context, job_id=job.id)

        assert stats == {"total": 2, "pending": 1, "accepted": 0, "rejected": 1}
