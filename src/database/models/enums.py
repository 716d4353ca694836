"""
Database Model Enums
====================

Categorical values stored as plain strings in the database. Services and
validators compare against ``.value``.
"""

from __future__ import annotations

import enum


class StaffStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    TERMINATED = "terminated"


class PromotionActionType(str, enum.Enum):
    HIRE = "hire"
    PROMOTION = "promotion"
    DEMOTION = "demotion"
    FIRE = "fire"


class CaseStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    CLOSED = "closed"


class CasePriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class CaseResult(str, enum.Enum):
    WIN = "win"
    LOSS = "loss"
    SETTLEMENT = "settlement"
    DISMISSED = "dismissed"
    WITHDRAWN = "withdrawn"


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class RetainerStatus(str, enum.Enum):
    PENDING = "pending"
    SIGNED = "signed"
    CANCELLED = "cancelled"


class QuestionType(str, enum.Enum):
    SHORT = "short"
    PARAGRAPH = "paragraph"
    NUMBER = "number"
    CHOICE = "choice"


class PermissionAction(str, enum.Enum):
    """Keys of ``GuildConfig.permissions``."""

    ADMIN = "admin"
    SENIOR_STAFF = "senior-staff"
    CASE = "case"
    CONFIG = "config"
    LAWYER = "lawyer"
    LEAD_ATTORNEY = "lead-attorney"
    REPAIR = "repair"
    HR = "hr"
    RETAINER = "retainer"


class AuditSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class BypassType(str, enum.Enum):
    GUILD_OWNER = "guild-owner"
    ADMIN = "admin"
    EMERGENCY = "emergency"


class AuditAction(str, enum.Enum):
    STAFF_HIRED = "staff_hired"
    STAFF_FIRED = "staff_fired"
    STAFF_PROMOTED = "staff_promoted"
    STAFF_DEMOTED = "staff_demoted"
    STAFF_INFO_VIEWED = "staff_info_viewed"
    STAFF_LIST_VIEWED = "staff_list_viewed"
    ROLE_SYNC_PERFORMED = "role_sync_performed"

    JOB_CREATED = "job_created"
    JOB_UPDATED = "job_updated"
    JOB_CLOSED = "job_closed"
    JOB_REMOVED = "job_removed"
    JOB_LIST_VIEWED = "job_list_viewed"
    JOB_INFO_VIEWED = "job_info_viewed"

    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_ACCEPTED = "application_accepted"
    APPLICATION_REJECTED = "application_rejected"

    GUILD_OWNER_BYPASS = "guild_owner_bypass"
    BUSINESS_RULE_VIOLATION = "business_rule_violation"
    ROLE_LIMIT_BYPASSED = "role_limit_bypassed"
    PERMISSION_OVERRIDE = "permission_override"

    CASE_CREATED = "case_created"
    CASE_ASSIGNED = "case_assigned"
    CASE_CLOSED = "case_closed"
    CASE_ARCHIVED = "case_archived"
    LEAD_ATTORNEY_CHANGED = "lead_attorney_changed"
    LEAD_ATTORNEY_REMOVED = "lead_attorney_removed"

    RETAINER_CREATED = "retainer_created"
    RETAINER_SIGNED = "retainer_signed"
    RETAINER_CANCELLED = "retainer_cancelled"
    FEEDBACK_SUBMITTED = "feedback_submitted"
    REMINDER_SET = "reminder_set"
    REMINDER_CANCELLED = "reminder_cancelled"

    CONFIG_UPDATED = "config_updated"
    SERVER_SETUP = "server_setup"
    SYSTEM_REPAIR = "system_repair"
