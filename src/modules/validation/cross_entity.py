"""
CrossEntityValidationService - integrity checks spanning entity types
======================================================================

Entities reference each other by plain ids (no foreign keys), so a staff
member can be fired while still leading cases, an application can outlive
its job, and so on. This service finds those breaks:

- ``validate_before_operation``: run before a destructive or cascading
  command; ``critical`` findings block it, ``warning`` findings surface
- ``scan_for_integrity_issues`` / ``repair_integrity_issues``: guild-wide
  sweep and best-effort repair (each repair is its own transaction)
- ``validate_entity`` / ``batch_validate``: generic pre-write hooks

Rules run highest priority first. A rule that raises is logged and
skipped; the others still run.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    FrozenSet,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from cachetools import TTLCache

from src.core.database.base import Base, utc_now
from src.core.database.service import DatabaseService
from src.database.models.enums import (
    ApplicationStatus,
    AuditAction,
    AuditSeverity,
    CaseStatus,
    PromotionActionType,
    StaffStatus,
)
from src.database.models.legal.case import Case
from src.database.models.legal.feedback import Feedback
from src.database.models.legal.reminder import Reminder
from src.database.models.legal.retainer import Retainer
from src.database.models.staffing.application import Application
from src.database.models.staffing.job import Job
from src.database.models.staffing.staff import Staff
from src.modules.audit.service import SYSTEM_ACTOR_ID
from src.modules.cases.repository import (
    CaseRepository,
    FeedbackRepository,
    ReminderRepository,
    RetainerRepository,
)
from src.modules.jobs.repository import ApplicationRepository, JobRepository
from src.modules.shared.base_service import BaseService
from src.modules.staff.repository import StaffRepository
from src.modules.staff.roles import StaffRoleHierarchy
from src.modules.validation.types import IssueSeverity, ValidationIssue

if TYPE_CHECKING:
    from logging import Logger

    import discord
    from sqlalchemy.ext.asyncio import AsyncSession

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.audit.service import AuditLogService

LEAD_ATTORNEY_MIN_LEVEL = 3

ENTITY_MODELS: Dict[str, type] = {
    "staff": Staff,
    "case": Case,
    "application": Application,
    "job": Job,
    "retainer": Retainer,
    "feedback": Feedback,
    "reminder": Reminder,
}

_SEVERITY_ORDER = {IssueSeverity.CRITICAL: 0, IssueSeverity.WARNING: 1, IssueSeverity.INFO: 2}


@dataclass
class RuleContext:
    guild_id: int
    session: AsyncSession
    operation: str = "update"
    bot: Optional[discord.Client] = None


RuleCallable = Callable[[Any, RuleContext], Awaitable[List[ValidationIssue]]]


@dataclass
class CrossEntityRule:
    name: str
    description: str
    entity_type: str
    priority: int
    validate: RuleCallable
    # None: every operation
    operations: Optional[FrozenSet[str]] = None
    dependencies: Tuple[str, ...] = ()

    def applies_to(self, entity_type: str, operation: str) -> bool:
        if self.entity_type != entity_type:
            return False
        return self.operations is None or operation in self.operations


@dataclass
class IntegrityReport:
    guild_id: int
    scan_started_at: datetime
    scan_completed_at: Optional[datetime] = None
    total_entities_scanned: int = 0
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def issues_by_severity(self) -> Dict[str, int]:
        counts = {severity.value: 0 for severity in IssueSeverity}
        for issue in self.issues:
            counts[issue.severity.value] += 1
        return counts

    @property
    def issues_by_entity_type(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for issue in self.issues:
            counts[issue.entity_type] = counts.get(issue.entity_type, 0) + 1
        return counts

    @property
    def repairable_issues(self) -> int:
        return sum(1 for issue in self.issues if issue.can_auto_repair)


@dataclass
class RepairResult:
    total_issues_found: int
    issues_repaired: int = 0
    issues_failed: int = 0
    repaired_issues: List[ValidationIssue] = field(default_factory=list)
    failed_repairs: List[Tuple[ValidationIssue, str]] = field(default_factory=list)


def _entity_id(entity: Any) -> str:
    return str(getattr(entity, "id", None) or "unknown")


def _issue(
    severity: IssueSeverity,
    entity_type: str,
    entity: Any,
    message: str,
    field_name: Optional[str] = None,
    repair: Optional[Callable[["AsyncSession"], Awaitable[None]]] = None,
) -> ValidationIssue:
    return ValidationIssue(
        severity=severity,
        entity_type=entity_type,
        entity_id=_entity_id(entity),
        field=field_name,
        message=message,
        can_auto_repair=repair is not None,
        repair_action=repair,
    )


class CrossEntityValidationService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        audit_service: Optional[AuditLogService] = None,
        role_hierarchy: Optional[StaffRoleHierarchy] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._audit = audit_service
        self._roles = role_hierarchy or StaffRoleHierarchy.from_config(config_manager)

        self._staff_repo = StaffRepository(self.log)
        self._case_repo = CaseRepository(self.log)
        self._job_repo = JobRepository(self.log)
        self._application_repo = ApplicationRepository(self.log)
        self._retainer_repo = RetainerRepository(self.log)
        self._feedback_repo = FeedbackRepository(self.log)
        self._reminder_repo = ReminderRepository(self.log)

        self._rules: Dict[str, CrossEntityRule] = {}
        self._cache: TTLCache = TTLCache(
            maxsize=int(self.get_config("validation.cross_entity_cache_max_entries", 1000)),
            ttl=float(self.get_config("validation.cross_entity_cache_ttl_seconds", 300)),
            timer=clock,
        )
        self._register_default_rules()

    # ================================================================== #
    # Rule registry
    # ================================================================== #

    def add_custom_rule(self, rule: CrossEntityRule) -> None:
        self._rules[rule.name] = rule

    def get_validation_rules(self) -> List[CrossEntityRule]:
        return sorted(self._rules.values(), key=lambda rule: rule.priority, reverse=True)

    def clear_validation_cache(self) -> None:
        self._cache.clear()

    def _rules_for(self, entity_type: str, operation: str) -> List[CrossEntityRule]:
        return [rule for rule in self.get_validation_rules() if rule.applies_to(entity_type, operation)]

    def _register_default_rules(self) -> None:
        for rule in (
            CrossEntityRule("staff-active-check", "Staff status is a known value", "staff", 100,
                            self._check_staff_status),
            CrossEntityRule("circular-promotion-history", "Nobody promoted themselves", "staff", 100,
                            self._check_promotion_history),
            CrossEntityRule("staff-open-cases", "Firing does not orphan open cases", "staff", 98,
                            self._check_staff_open_cases, operations=frozenset({"delete"})),
            CrossEntityRule("staff-role-consistency", "Lead attorneys hold a senior enough role", "staff", 95,
                            self._check_staff_role_consistency, dependencies=("staff-active-check",)),
            CrossEntityRule("case-workload-balance", "Active case load within role limit", "staff", 85,
                            self._check_workload),
            CrossEntityRule("temporal-consistency", "Case dates agree with staff dates", "case", 92,
                            self._check_case_temporal),
            CrossEntityRule("case-staff-assignments", "Case lawyers are staff members", "case", 90,
                            self._check_case_assignments),
            CrossEntityRule("case-channel-existence", "Case channel exists in Discord", "case", 85,
                            self._check_case_channel),
            CrossEntityRule("application-integrity", "Application review data is coherent", "application", 88,
                            self._check_application_integrity, dependencies=("application-job-reference",)),
            CrossEntityRule("application-job-reference", "Applications reference existing jobs", "application", 80,
                            self._check_application_job),
            CrossEntityRule("application-reviewer-reference", "Reviewers are staff members", "application", 75,
                            self._check_application_reviewer),
            CrossEntityRule("job-open-applications", "Closing a job leaves no pending applications", "job", 70,
                            self._check_job_pending_applications, operations=frozenset({"update", "delete"})),
            CrossEntityRule("retainer-lawyer-reference", "Retainers reference staff lawyers", "retainer", 70,
                            self._check_retainer_lawyer),
            CrossEntityRule("feedback-staff-reference", "Feedback targets existing staff", "feedback", 65,
                            self._check_feedback_target),
            CrossEntityRule("reminder-case-reference", "Reminders reference existing cases", "reminder", 60,
                            self._check_reminder_case),
            CrossEntityRule("reminder-channel-existence", "Reminder channel exists in Discord", "reminder", 55,
                            self._check_reminder_channel),
        ):
            self.add_custom_rule(rule)

    # ================================================================== #
    # Staff rules
    # ================================================================== #

    async def _check_staff_status(self, staff: Staff, ctx: RuleContext) -> List[ValidationIssue]:
        if staff.status in {status.value for status in StaffStatus}:
            return []

        async def repair(session: AsyncSession) -> None:
            await self._staff_repo.update(session, staff.id, {"status": StaffStatus.INACTIVE.value})

        return [_issue(IssueSeverity.CRITICAL, "staff", staff, f"Invalid staff status: {staff.status}", "status", repair)]

    async def _check_promotion_history(self, staff: Staff, ctx: RuleContext) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        previous_promoter = None
        for entry in staff.promotion_history or []:
            action_type = entry.get("action_type")
            promoter = entry.get("promoted_by")
            if action_type != PromotionActionType.HIRE.value and promoter == staff.user_id:
                issues.append(
                    _issue(IssueSeverity.CRITICAL, "staff", staff,
                           "Circular reference detected in promotion history", "promotion_history")
                )
                break
            # Back-to-back promotions by one manager; hires and demotions break the run.
            if action_type != PromotionActionType.PROMOTION.value:
                previous_promoter = None
                continue
            if promoter is not None and promoter == previous_promoter:
                issues.append(
                    _issue(IssueSeverity.WARNING, "staff", staff,
                           "Duplicate promoter detected in promotion history", "promotion_history")
                )
            previous_promoter = promoter
        return issues

    async def _check_staff_open_cases(self, staff: Staff, ctx: RuleContext) -> List[ValidationIssue]:
        open_cases = await self._case_repo.find_open_for_attorney(ctx.session, ctx.guild_id, staff.user_id)
        lead_cases = [case for case in open_cases if case.lead_attorney_id == staff.user_id]
        assisting = [case for case in open_cases if case.lead_attorney_id != staff.user_id]

        issues: List[ValidationIssue] = []
        if lead_cases:
            numbers = ", ".join(case.case_number for case in lead_cases)
            issues.append(
                _issue(
                    IssueSeverity.CRITICAL,
                    "staff",
                    staff,
                    f"Staff member is lead attorney on {len(lead_cases)} open case(s): {numbers}. "
                    "Reassign these cases first",
                    "lead_attorney_id",
                )
            )
        if assisting:
            issues.append(
                _issue(
                    IssueSeverity.WARNING,
                    "staff",
                    staff,
                    f"Staff member is assigned to {len(assisting)} open case(s) and will be removed from them",
                    "assigned_lawyer_ids",
                )
            )
        return issues

    async def _check_staff_role_consistency(self, staff: Staff, ctx: RuleContext) -> List[ValidationIssue]:
        if staff.status != StaffStatus.ACTIVE.value:
            return []
        if self._roles.get_role_level(staff.role) >= LEAD_ATTORNEY_MIN_LEVEL:
            return []
        lead_cases = await self._case_repo.find_open_as_lead(ctx.session, ctx.guild_id, staff.user_id)
        if not lead_cases:
            return []
        return [
            _issue(
                IssueSeverity.CRITICAL,
                "staff",
                staff,
                f"Staff member with role {staff.role} cannot be lead attorney on {len(lead_cases)} cases",
                "role",
            )
        ]

    async def _check_workload(self, staff: Staff, ctx: RuleContext) -> List[ValidationIssue]:
        if staff.status != StaffStatus.ACTIVE.value:
            return []
        open_cases = await self._case_repo.find_open_for_attorney(ctx.session, ctx.guild_id, staff.user_id)
        in_progress = [case for case in open_cases if case.status == CaseStatus.IN_PROGRESS.value]
        limits = self.get_config("cases.workload_limits", {}) or {}
        limit = int(limits.get(staff.role, self.get_config("cases.default_workload_limit", 10)))
        if len(in_progress) <= limit:
            return []
        return [
            _issue(
                IssueSeverity.WARNING,
                "staff",
                staff,
                f"Staff member has {len(in_progress)} active cases, exceeding recommended limit of {limit}",
                "case_load",
            )
        ]

    # ================================================================== #
    # Case rules
    # ================================================================== #

    async def _check_case_assignments(self, case: Case, ctx: RuleContext) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []

        if case.lead_attorney_id:
            lead = await self._staff_repo.find_latest_by_user(ctx.session, ctx.guild_id, case.lead_attorney_id)
            if lead is None:
                async def clear_lead(session: AsyncSession) -> None:
                    await self._case_repo.update(session, case.id, {"lead_attorney_id": None})

                issues.append(_issue(
                    IssueSeverity.CRITICAL, "case", case,
                    f"Lead attorney {case.lead_attorney_id} not found in staff records",
                    "lead_attorney_id", clear_lead,
                ))
            elif lead.status != StaffStatus.ACTIVE.value:
                issues.append(_issue(
                    IssueSeverity.WARNING, "case", case,
                    f"Lead attorney {case.lead_attorney_id} is not active (status: {lead.status})",
                    "lead_attorney_id",
                ))

        for lawyer_id in list(case.assigned_lawyer_ids or []):
            lawyer = await self._staff_repo.find_latest_by_user(ctx.session, ctx.guild_id, lawyer_id)
            if lawyer is None:
                async def drop_lawyer(session: AsyncSession, lawyer_id: int = lawyer_id) -> None:
                    current = await self._case_repo.get(session, case.id)
                    if current is not None:
                        remaining = [value for value in (current.assigned_lawyer_ids or []) if value != lawyer_id]
                        await self._case_repo.update(session, case.id, {"assigned_lawyer_ids": remaining})

                issues.append(_issue(
                    IssueSeverity.CRITICAL, "case", case,
                    f"Assigned lawyer {lawyer_id} not found in staff records",
                    "assigned_lawyer_ids", drop_lawyer,
                ))
            elif lawyer.status != StaffStatus.ACTIVE.value:
                issues.append(_issue(
                    IssueSeverity.WARNING, "case", case,
                    f"Assigned lawyer {lawyer_id} is not active (status: {lawyer.status})",
                    "assigned_lawyer_ids",
                ))

        return issues

    async def _check_case_channel(self, case: Case, ctx: RuleContext) -> List[ValidationIssue]:
        if not case.channel_id or ctx.bot is None:
            return []
        guild = ctx.bot.get_guild(ctx.guild_id)
        if guild is None or guild.get_channel(case.channel_id) is not None:
            return []

        async def clear_channel(session: AsyncSession) -> None:
            await self._case_repo.update(session, case.id, {"channel_id": None})

        return [_issue(IssueSeverity.WARNING, "case", case,
                       f"Case channel {case.channel_id} not found in Discord", "channel_id", clear_channel)]

    async def _check_case_temporal(self, case: Case, ctx: RuleContext) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for lawyer_id in list(case.assigned_lawyer_ids or []):
            lawyer = await self._staff_repo.find_active_by_user(ctx.session, ctx.guild_id, lawyer_id)
            if lawyer and case.created_at and lawyer.hired_at and lawyer.hired_at > case.created_at:
                # Re-hired staff get a new record, so this is informational.
                issues.append(_issue(
                    IssueSeverity.INFO, "case", case,
                    f"Lawyer {lawyer_id} was hired after case was created", "assigned_lawyer_ids",
                ))

        if case.closed_at and case.created_at and case.closed_at < case.created_at:
            async def clear_closed(session: AsyncSession) -> None:
                await self._case_repo.update(session, case.id, {"closed_at": None})

            issues.append(_issue(IssueSeverity.CRITICAL, "case", case,
                                 "Case closed date is before creation date", "closed_at", clear_closed))

        if case.lead_attorney_id and case.lead_attorney_id not in (case.assigned_lawyer_ids or []):
            async def add_lead(session: AsyncSession) -> None:
                current = await self._case_repo.get(session, case.id)
                if current is not None and current.lead_attorney_id:
                    assigned = list(current.assigned_lawyer_ids or [])
                    if current.lead_attorney_id not in assigned:
                        await self._case_repo.update(
                            session, case.id, {"assigned_lawyer_ids": assigned + [current.lead_attorney_id]}
                        )

            issues.append(_issue(IssueSeverity.WARNING, "case", case,
                                 "Lead attorney is not in assigned lawyers list", "lead_attorney_id", add_lead))
        return issues

    # ================================================================== #
    # Application / job rules
    # ================================================================== #

    async def _check_application_job(self, application: Application, ctx: RuleContext) -> List[ValidationIssue]:
        job = await self._job_repo.find_in_guild(ctx.session, ctx.guild_id, application.job_id)
        if job is None:
            return [_issue(IssueSeverity.CRITICAL, "application", application,
                           f"Referenced job {application.job_id} not found", "job_id")]
        if not job.is_open and application.status == ApplicationStatus.PENDING.value:
            async def reject(session: AsyncSession) -> None:
                await self._application_repo.update(session, application.id, {
                    "status": ApplicationStatus.REJECTED.value,
                    "review_reason": "Job closed before review",
                    "reviewed_at": utc_now(),
                })

            return [_issue(IssueSeverity.WARNING, "application", application,
                           "Application is pending for a closed job", "status", reject)]
        return []

    async def _check_application_reviewer(self, application: Application, ctx: RuleContext) -> List[ValidationIssue]:
        if not application.reviewed_by:
            return []
        reviewer = await self._staff_repo.find_latest_by_user(ctx.session, ctx.guild_id, application.reviewed_by)
        if reviewer is not None:
            return []
        return [_issue(IssueSeverity.WARNING, "application", application,
                       f"Reviewer {application.reviewed_by} not found in staff records", "reviewed_by")]

    async def _check_application_integrity(self, application: Application, ctx: RuleContext) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        if application.reviewed_at and application.created_at and application.reviewed_at < application.created_at:
            async def clear_reviewed(session: AsyncSession) -> None:
                await self._application_repo.update(session, application.id, {"reviewed_at": None})

            issues.append(_issue(IssueSeverity.CRITICAL, "application", application,
                                 "Application reviewed before it was created", "reviewed_at", clear_reviewed))
        if application.status == ApplicationStatus.ACCEPTED.value and not application.reviewed_by:
            issues.append(_issue(IssueSeverity.WARNING, "application", application,
                                 "Accepted application has no reviewer", "reviewed_by"))
        return issues

    async def _check_job_pending_applications(self, job: Job, ctx: RuleContext) -> List[ValidationIssue]:
        if not job.is_open:
            return []
        pending = await self._application_repo.count_pending_for_job(ctx.session, ctx.guild_id, job.id)
        if not pending:
            return []
        return [_issue(IssueSeverity.WARNING, "job", job,
                       f"Job has {pending} pending application(s) that will no longer be reviewable", "is_open")]

    # ================================================================== #
    # Retainer / feedback / reminder rules
    # ================================================================== #

    async def _check_retainer_lawyer(self, retainer: Retainer, ctx: RuleContext) -> List[ValidationIssue]:
        lawyer = await self._staff_repo.find_latest_by_user(ctx.session, ctx.guild_id, retainer.lawyer_id)
        if lawyer is None:
            return [_issue(IssueSeverity.CRITICAL, "retainer", retainer,
                           f"Lawyer {retainer.lawyer_id} not found in staff records", "lawyer_id")]
        if lawyer.status != StaffStatus.ACTIVE.value:
            return [_issue(IssueSeverity.WARNING, "retainer", retainer,
                           f"Lawyer {retainer.lawyer_id} is not active (status: {lawyer.status})", "lawyer_id")]
        return []

    async def _check_feedback_target(self, feedback: Feedback, ctx: RuleContext) -> List[ValidationIssue]:
        if not feedback.target_staff_id or feedback.is_for_firm:
            return []
        staff = await self._staff_repo.find_latest_by_user(ctx.session, ctx.guild_id, feedback.target_staff_id)
        if staff is not None:
            return []

        async def retarget(session: AsyncSession) -> None:
            await self._feedback_repo.update(session, feedback.id, {"target_staff_id": None, "is_for_firm": True})

        return [_issue(IssueSeverity.WARNING, "feedback", feedback,
                       f"Target staff member {feedback.target_staff_id} not found", "target_staff_id", retarget)]

    async def _check_reminder_case(self, reminder: Reminder, ctx: RuleContext) -> List[ValidationIssue]:
        if not reminder.case_id:
            return []
        case = await self._case_repo.get(ctx.session, reminder.case_id)
        if case is not None and case.guild_id == ctx.guild_id:
            return []

        async def detach(session: AsyncSession) -> None:
            await self._reminder_repo.update(session, reminder.id, {"case_id": None})

        return [_issue(IssueSeverity.WARNING, "reminder", reminder,
                       f"Referenced case {reminder.case_id} not found", "case_id", detach)]

    async def _check_reminder_channel(self, reminder: Reminder, ctx: RuleContext) -> List[ValidationIssue]:
        if not reminder.channel_id or not reminder.is_active or ctx.bot is None:
            return []
        guild = ctx.bot.get_guild(ctx.guild_id)
        if guild is None or guild.get_channel(reminder.channel_id) is not None:
            return []

        async def deactivate(session: AsyncSession) -> None:
            await self._reminder_repo.update(session, reminder.id, {"is_active": False})

        return [_issue(IssueSeverity.WARNING, "reminder", reminder,
                       f"Reminder channel {reminder.channel_id} not found in Discord", "channel_id", deactivate)]

    # ================================================================== #
    # Evaluation
    # ================================================================== #

    async def _run_rules(self, entity: Any, rules: Sequence[CrossEntityRule], ctx: RuleContext) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for rule in rules:
            try:
                issues.extend(await rule.validate(entity, ctx))
            except Exception as exc:
                self.log.error(
                    f"Validation rule {rule.name} failed",
                    extra={"rule": rule.name, "entity_id": _entity_id(entity), "error": str(exc)},
                    exc_info=exc,
                )
        return issues

    async def _resolve_entity(
        self, session: AsyncSession, entity_type: str, payload: Any, guild_id: int
    ) -> Optional[Any]:
        if isinstance(payload, Base):
            return payload
        if not isinstance(payload, Mapping):
            return None

        entity_id = payload.get("id")
        if entity_type == "staff":
            user_id = payload.get("user_id")
            if user_id is not None:
                staff = await self._staff_repo.find_active_by_user(session, guild_id, int(user_id))
                return staff or await self._staff_repo.find_latest_by_user(session, guild_id, int(user_id))
        elif entity_type == "case" and payload.get("case_number"):
            return await self._case_repo.find_by_case_number(session, guild_id, str(payload["case_number"]))
        elif entity_type == "job":
            entity_id = payload.get("job_id", entity_id)

        if entity_id is None or entity_type not in ENTITY_MODELS:
            return None
        entity = await session.get(ENTITY_MODELS[entity_type], int(entity_id))
        if entity is not None and getattr(entity, "guild_id", guild_id) != guild_id:
            return None
        return entity

    async def validate_before_operation(
        self,
        payload: Any,
        entity_type: str,
        operation: str,
        guild_id: int,
        bot: Optional[discord.Client] = None,
    ) -> List[ValidationIssue]:
        """
        Findings for ``operation`` on the entity described by ``payload``
        (a model instance or a lookup dict such as ``{"user_id": ...}``).

        Never cached: the check must see the state the operation will act on.
        """
        async with DatabaseService.get_session() as session:
            entity = await self._resolve_entity(session, entity_type, payload, guild_id)
            if entity is None:
                return []
            ctx = RuleContext(guild_id=guild_id, session=session, operation=operation, bot=bot)
            issues = await self._run_rules(entity, self._rules_for(entity_type, operation), ctx)

        self.log.debug(
            "Pre-operation validation",
            extra={
                "entity_type": entity_type,
                "operation": operation,
                "guild_id": guild_id,
                "issues": len(issues),
            },
        )
        return issues

    async def validate_entity(
        self,
        entity: Any,
        entity_type: str,
        ctx: RuleContext,
    ) -> List[ValidationIssue]:
        """All rules for ``entity_type``; results cached per entity."""
        cache_key = f"{entity_type}:{_entity_id(entity)}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        issues = await self._run_rules(entity, self._rules_for(entity_type, ctx.operation), ctx)
        self._cache[cache_key] = issues
        return issues

    async def batch_validate(
        self,
        entities: Sequence[Tuple[str, Any]],
        guild_id: int,
        bot: Optional[discord.Client] = None,
    ) -> Dict[str, List[ValidationIssue]]:
        """
        Validate ``(entity_type, entity)`` pairs in fixed-size batches, one
        session per batch. Only entities with findings appear in the result.
        """
        batch_size = int(self.get_config("validation.cross_entity_batch_size", 50))
        results: Dict[str, List[ValidationIssue]] = {}

        for start in range(0, len(entities), batch_size):
            batch = entities[start:start + batch_size]
            async with DatabaseService.get_session() as session:
                ctx = RuleContext(guild_id=guild_id, session=session, bot=bot)
                for entity_type, entity in batch:
                    issues = await self.validate_entity(entity, entity_type, ctx)
                    if issues:
                        results[f"{entity_type}:{_entity_id(entity)}"] = issues
        return results

    async def scan_for_integrity_issues(
        self, guild_id: int, bot: Optional[discord.Client] = None
    ) -> IntegrityReport:
        report = IntegrityReport(guild_id=guild_id, scan_started_at=utc_now())

        try:
            entities: List[Tuple[str, Any]] = []
            async with DatabaseService.get_session() as session:
                scans: List[Tuple[str, Callable[[], Awaitable[List[Any]]]]] = [
                    ("staff", lambda: self._staff_repo.find_by_guild(session, guild_id)),
                    ("case", lambda: self._case_repo.find_by_guild(session, guild_id)),
                    ("application", lambda: self._application_repo.find_by_guild(session, guild_id)),
                    ("job", lambda: self._job_repo.find_by_guild(session, guild_id)),
                    ("retainer", lambda: self._retainer_repo.find_by_guild(session, guild_id)),
                    ("feedback", lambda: self._feedback_repo.find_by_guild(session, guild_id)),
                    ("reminder", lambda: self._reminder_repo.find_by_guild(session, guild_id)),
                ]
                for entity_type, load in scans:
                    loaded = await load()
                    entities.extend((entity_type, entity) for entity in loaded)
                    if entity_type == "staff":
                        report.issues.extend(self._self_hire_issues(loaded))

            report.total_entities_scanned = len(entities)
            for issues in (await self.batch_validate(entities, guild_id, bot)).values():
                report.issues.extend(issues)
        except Exception as exc:
            self.log_error("scan_for_integrity_issues", exc, guild_id=guild_id)

        report.scan_completed_at = utc_now()
        self.log.info(
            "Integrity scan completed",
            extra={
                "guild_id": guild_id,
                "entities_scanned": report.total_entities_scanned,
                "issues": len(report.issues),
                "by_severity": report.issues_by_severity,
            },
        )
        return report

    @staticmethod
    def _self_hire_issues(staff_members: Sequence[Staff]) -> List[ValidationIssue]:
        return [
            _issue(IssueSeverity.WARNING, "staff", member, "Staff member hired by themselves", "hired_by")
            for member in staff_members
            if member.hired_by == member.user_id
        ]

    async def repair_integrity_issues(
        self,
        guild_id: int,
        issues: Sequence[ValidationIssue],
        dry_run: bool = False,
    ) -> RepairResult:
        """
        Best-effort repair, most severe first. Each repair commits on its own;
        a failure is recorded and the rest continue.
        """
        result = RepairResult(total_issues_found=len(issues))
        ordered = sorted(issues, key=lambda issue: _SEVERITY_ORDER[issue.severity])

        for issue in ordered:
            if not issue.can_auto_repair or issue.repair_action is None:
                continue
            try:
                if not dry_run:
                    async with DatabaseService.get_transaction() as session:
                        await issue.repair_action(session)
                        if self._audit:
                            await self._audit.log_action(
                                guild_id=guild_id,
                                action=AuditAction.SYSTEM_REPAIR,
                                actor_id=SYSTEM_ACTOR_ID,
                                target_id=int(issue.entity_id) if issue.entity_id.isdigit() else None,
                                reason=f"Auto-repaired integrity issue: {issue.message}",
                                metadata={
                                    "entity_type": issue.entity_type,
                                    "severity": issue.severity.value,
                                    "field": issue.field,
                                },
                                severity=AuditSeverity.MEDIUM,
                                session=session,
                            )
                result.issues_repaired += 1
                result.repaired_issues.append(issue)
            except Exception as exc:
                result.issues_failed += 1
                result.failed_repairs.append((issue, str(exc)))
                self.log.error(
                    f"Failed to repair {issue.entity_type} {issue.entity_id}",
                    extra={"guild_id": guild_id, "issue": issue.to_dict(), "error": str(exc)},
                    exc_info=exc,
                )

        self.clear_validation_cache()
        self.log.info(
            "Integrity repair finished",
            extra={
                "guild_id": guild_id,
                "dry_run": dry_run,
                "repaired": result.issues_repaired,
                "failed": result.issues_failed,
            },
        )
        return result
