"""
Integration tests for job postings and their role cleanup bookkeeping.
"""

from dataclasses import replace

import pytest

from tests.conftest import GUILD_ID

DESCRIPTION = "Assist senior counsel with research and filings."


async def _post(services, context, role="Paralegal", role_id=None):
    return await services.jobs.create_job(context, f"Hiring {role}", DESCRIPTION, role, role_id=role_id)


@pytest.mark.integration
class TestJobPostings:
    async def test_limit_comes_from_role(self, services, owner_context):
        result = await _post(services, owner_context, role="Senior Partner")

        assert result["job"].limit == 3
        assert result["job"].is_open is True

    async def test_one_open_posting_per_role(self, services, owner_context):
        await _post(services, owner_context)

        result = await _post(services, owner_context)

        assert result["success"] is False
        assert result["error"].startswith("There is already an open job posting for Paralegal")

    async def test_close_then_repost(self, services, owner_context):
        job = (await _post(services, owner_context))["job"]

        closed = await services.jobs.close_job(owner_context, job.id)
        again = await services.jobs.close_job(owner_context, job.id)
        reposted = await _post(services, owner_context)

        assert closed["success"] is True
        assert again == {"success": False, "error": "Job not found or already closed"}
        assert reposted["success"] is True

    async def test_short_description_rejected(self, services, owner_context):
        result = await services.jobs.create_job(owner_context, "Hiring now", "too short", "Paralegal")

        assert result["success"] is False

    async def test_listing_hides_closed_by_default(self, services, owner_context):
        first = (await _post(services, owner_context))["job"]
        await _post(services, owner_context, role="Junior Associate")
        await services.jobs.close_job(owner_context, first.id)

        open_jobs = await services.jobs.list_jobs(owner_context)
        all_jobs = await services.jobs.list_jobs(owner_context, open_only=False)

        assert open_jobs["total"] == 1
        assert all_jobs["total"] == 2

    async def test_other_guild_cannot_see_job(self, services, owner_context, member_context):
        job = (await _post(services, owner_context))["job"]
        outsider = replace(member_context, guild_id=GUILD_ID + 1)

        assert await services.jobs.get_job_details(outsider, job.id) is None


@pytest.mark.integration
class TestRoleCleanupQueue:
    async def test_closed_job_with_role_needs_cleanup(self, services, owner_context):
        with_role = (await _post(services, owner_context, role_id=777))["job"]
        without_role = (await _post(services, owner_context, role="Junior Associate"))["job"]
        await services.jobs.close_job(owner_context, with_role.id)
        await services.jobs.close_job(owner_context, without_role.id)

        pending = await services.job_cleanup.find_jobs_needing_cleanup(GUILD_ID)

        assert [job["id"] for job in pending] == [with_role.id]
        assert pending[0]["role_id"] == 777

    async def test_expired_cleanup_dry_run_changes_nothing(self, services, owner_context):
        await _post(services, owner_context)

        result = await services.job_cleanup.cleanup_expired_jobs(GUILD_ID, max_days_open=0, dry_run=True)

        assert result.jobs_closed == 1
        assert (await services.jobs.list_jobs(owner_context))["total"] == 1

    async def test_expired_cleanup_closes(self, services, owner_context):
        await _post(services, owner_context)

        result = await services.job_cleanup.cleanup_expired_jobs(GUILD_ID, max_days_open=0)

        assert result.jobs_closed == 1
        assert (await services.jobs.list_jobs(owner_context))["total"] == 0
