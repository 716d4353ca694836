"""
Typed slash-command options.

Each (command, subcommand) pair has its own frozen dataclass built from
the flat ``name -> value`` map Discord delivers. Business rules and the
entity step match on these types instead of reaching into a loose dict.
Unknown pairs parse to ``GenericOptions``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type


def _int(raw: Mapping[str, Any], name: str) -> Optional[int]:
    value = raw.get(name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _str(raw: Mapping[str, Any], name: str) -> Optional[str]:
    value = raw.get(name)
    return None if value is None else str(value)


def _bool(raw: Mapping[str, Any], name: str, default: bool = False) -> bool:
    value = raw.get(name)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "on"}
    return bool(value)


class CommandOptions:
    """Marker base for every option variant."""

    command: str = ""
    subcommand: Optional[str] = None


@dataclass(frozen=True)
class GenericOptions(CommandOptions):
    values: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "GenericOptions":
        return cls(values=dict(raw))


# ----------------------------------------------------------------------------
# /staff
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class StaffHireOptions(CommandOptions):
    command = "staff"
    subcommand = "hire"

    member_id: Optional[int]
    role: Optional[str]
    roblox_username: Optional[str]
    reason: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "StaffHireOptions":
        return cls(
            member_id=_int(raw, "member"),
            role=_str(raw, "role"),
            roblox_username=_str(raw, "roblox_username"),
            reason=_str(raw, "reason"),
        )


@dataclass(frozen=True)
class StaffFireOptions(CommandOptions):
    command = "staff"
    subcommand = "fire"

    member_id: Optional[int]
    reason: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "StaffFireOptions":
        return cls(member_id=_int(raw, "member"), reason=_str(raw, "reason"))


@dataclass(frozen=True)
class StaffPromoteOptions(CommandOptions):
    command = "staff"
    subcommand = "promote"

    member_id: Optional[int]
    role: Optional[str]
    reason: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "StaffPromoteOptions":
        return cls(member_id=_int(raw, "member"), role=_str(raw, "role"), reason=_str(raw, "reason"))


@dataclass(frozen=True)
class StaffDemoteOptions(CommandOptions):
    command = "staff"
    subcommand = "demote"

    member_id: Optional[int]
    role: Optional[str]
    reason: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "StaffDemoteOptions":
        return cls(member_id=_int(raw, "member"), role=_str(raw, "role"), reason=_str(raw, "reason"))


@dataclass(frozen=True)
class StaffInfoOptions(CommandOptions):
    command = "staff"
    subcommand = "info"

    member_id: Optional[int]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "StaffInfoOptions":
        return cls(member_id=_int(raw, "member"))


@dataclass(frozen=True)
class StaffListOptions(CommandOptions):
    command = "staff"
    subcommand = "list"

    role: Optional[str] = None
    page: int = 1

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "StaffListOptions":
        return cls(role=_str(raw, "role"), page=_int(raw, "page") or 1)


# ----------------------------------------------------------------------------
# /job
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class JobPostOptions(CommandOptions):
    command = "job"
    subcommand = "post"

    title: Optional[str]
    description: Optional[str]
    role: Optional[str]
    discord_role_id: Optional[int] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "JobPostOptions":
        return cls(
            title=_str(raw, "title"),
            description=_str(raw, "description"),
            role=_str(raw, "role"),
            discord_role_id=_int(raw, "discord_role"),
        )


@dataclass(frozen=True)
class JobCloseOptions(CommandOptions):
    command = "job"
    subcommand = "close"

    job_id: Optional[int]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "JobCloseOptions":
        return cls(job_id=_int(raw, "job_id"))


@dataclass(frozen=True)
class JobRemoveOptions(CommandOptions):
    command = "job"
    subcommand = "remove"

    job_id: Optional[int]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "JobRemoveOptions":
        return cls(job_id=_int(raw, "job_id"))


@dataclass(frozen=True)
class JobListOptions(CommandOptions):
    command = "job"
    subcommand = "list"

    open_only: bool = True
    page: int = 1

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "JobListOptions":
        return cls(open_only=_bool(raw, "open_only", True), page=_int(raw, "page") or 1)


@dataclass(frozen=True)
class JobInfoOptions(CommandOptions):
    command = "job"
    subcommand = "info"

    job_id: Optional[int]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "JobInfoOptions":
        return cls(job_id=_int(raw, "job_id"))


@dataclass(frozen=True)
class JobCleanupOptions(CommandOptions):
    command = "job"
    subcommand = "cleanup"

    dry_run: bool = False
    expired: bool = False

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "JobCleanupOptions":
        return cls(dry_run=_bool(raw, "dry_run"), expired=_bool(raw, "expired"))


@dataclass(frozen=True)
class JobEditOptions(CommandOptions):
    command = "job"
    subcommand = "edit"

    job_id: Optional[int]
    title: Optional[str] = None
    description: Optional[str] = None
    role: Optional[str] = None
    discord_role_id: Optional[int] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "JobEditOptions":
        return cls(
            job_id=_int(raw, "job_id"),
            title=_str(raw, "title"),
            description=_str(raw, "description"),
            role=_str(raw, "role"),
            discord_role_id=_int(raw, "discord_role"),
        )

    def updates(self) -> Dict[str, Any]:
        """Only the fields the caller supplied."""
        fields = {
            "title": self.title,
            "description": self.description,
            "staff_role": self.role,
            "role_id": self.discord_role_id,
        }
        return {key: value for key, value in fields.items() if value is not None}


@dataclass(frozen=True)
class JobApplyOptions(CommandOptions):
    command = "job"
    subcommand = "apply"

    job_id: Optional[int]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "JobApplyOptions":
        return cls(job_id=_int(raw, "job_id"))


@dataclass(frozen=True)
class JobApplicationsOptions(CommandOptions):
    command = "job"
    subcommand = "applications"

    job_id: Optional[int] = None
    status: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "JobApplicationsOptions":
        return cls(job_id=_int(raw, "job_id"), status=_str(raw, "status"))


@dataclass(frozen=True)
class JobReviewOptions(CommandOptions):
    command = "job"
    subcommand = "review"

    application_id: Optional[int]
    decision: Optional[str]
    reason: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "JobReviewOptions":
        return cls(
            application_id=_int(raw, "application_id"),
            decision=_str(raw, "decision"),
            reason=_str(raw, "reason"),
        )

    @property
    def accept(self) -> bool:
        return self.decision == "accept"


# ----------------------------------------------------------------------------
# /case
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class CaseCreateOptions(CommandOptions):
    command = "case"
    subcommand = "create"

    client_id: Optional[int]
    title: Optional[str]
    description: Optional[str] = None
    priority: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "CaseCreateOptions":
        return cls(
            client_id=_int(raw, "client"),
            title=_str(raw, "title"),
            description=_str(raw, "description"),
            priority=_str(raw, "priority"),
        )


@dataclass(frozen=True)
class CaseAssignOptions(CommandOptions):
    command = "case"
    subcommand = "assign"

    case_number: Optional[str]
    lawyer_id: Optional[int]
    lead: bool = False

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "CaseAssignOptions":
        return cls(case_number=_str(raw, "case_number"), lawyer_id=_int(raw, "lawyer"), lead=_bool(raw, "lead"))


@dataclass(frozen=True)
class CaseCloseOptions(CommandOptions):
    command = "case"
    subcommand = "close"

    case_number: Optional[str]
    result: Optional[str]
    notes: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "CaseCloseOptions":
        return cls(case_number=_str(raw, "case_number"), result=_str(raw, "result"), notes=_str(raw, "notes"))


@dataclass(frozen=True)
class CaseListOptions(CommandOptions):
    command = "case"
    subcommand = "list"

    status: Optional[str] = None
    page: int = 1

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "CaseListOptions":
        return cls(status=_str(raw, "status"), page=_int(raw, "page") or 1)


# ----------------------------------------------------------------------------
# /admin
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class AdminAddOptions(CommandOptions):
    command = "admin"
    subcommand = "add"

    user_id: Optional[int] = None
    role_id: Optional[int] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "AdminAddOptions":
        return cls(user_id=_int(raw, "user"), role_id=_int(raw, "role"))


@dataclass(frozen=True)
class AdminRemoveOptions(CommandOptions):
    command = "admin"
    subcommand = "remove"

    user_id: Optional[int] = None
    role_id: Optional[int] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "AdminRemoveOptions":
        return cls(user_id=_int(raw, "user"), role_id=_int(raw, "role"))


@dataclass(frozen=True)
class AdminSetPermissionOptions(CommandOptions):
    command = "admin"
    subcommand = "setpermission"

    action: Optional[str]
    role_id: Optional[int]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "AdminSetPermissionOptions":
        return cls(action=_str(raw, "action"), role_id=_int(raw, "role"))


@dataclass(frozen=True)
class AdminRulesOptions(CommandOptions):
    command = "admin"
    subcommand = "rules"

    channel_id: Optional[int]
    template: str = "anarchy"

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "AdminRulesOptions":
        return cls(channel_id=_int(raw, "channel"), template=_str(raw, "template") or "anarchy")


@dataclass(frozen=True)
class AdminRepairOptions(CommandOptions):
    command = "admin"
    subcommand = "repair"

    dry_run: bool = True

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "AdminRepairOptions":
        return cls(dry_run=_bool(raw, "dry_run", True))


# ----------------------------------------------------------------------------
# /rules
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class RulesSetOptions(CommandOptions):
    command = "rules"
    subcommand = "set"

    channel_id: Optional[int]
    title: Optional[str] = None
    content: Optional[str] = None
    template: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "RulesSetOptions":
        return cls(
            channel_id=_int(raw, "channel"),
            title=_str(raw, "title"),
            content=_str(raw, "content"),
            template=_str(raw, "template"),
        )


@dataclass(frozen=True)
class RulesAddRuleOptions(CommandOptions):
    command = "rules"
    subcommand = "addrule"

    channel_id: Optional[int]
    title: Optional[str]
    content: Optional[str]
    category: Optional[str] = None
    severity: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "RulesAddRuleOptions":
        return cls(
            channel_id=_int(raw, "channel"),
            title=_str(raw, "title"),
            content=_str(raw, "content"),
            category=_str(raw, "category"),
            severity=_str(raw, "severity"),
        )


@dataclass(frozen=True)
class RulesRemoveRuleOptions(CommandOptions):
    command = "rules"
    subcommand = "removerule"

    channel_id: Optional[int]
    rule_id: Optional[str]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "RulesRemoveRuleOptions":
        return cls(channel_id=_int(raw, "channel"), rule_id=_str(raw, "rule_id"))


@dataclass(frozen=True)
class RulesRemoveOptions(CommandOptions):
    command = "rules"
    subcommand = "remove"

    channel_id: Optional[int]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "RulesRemoveOptions":
        return cls(channel_id=_int(raw, "channel"))


@dataclass(frozen=True)
class RulesSyncOptions(CommandOptions):
    command = "rules"
    subcommand = "sync"

    channel_id: Optional[int]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "RulesSyncOptions":
        return cls(channel_id=_int(raw, "channel"))


# ----------------------------------------------------------------------------
# /retainer
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class RetainerSignOptions(CommandOptions):
    command = "retainer"
    subcommand = "sign"

    client_id: Optional[int]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "RetainerSignOptions":
        return cls(client_id=_int(raw, "client"))


@dataclass(frozen=True)
class RetainerListOptions(CommandOptions):
    command = "retainer"
    subcommand = "list"

    status: Optional[str] = None
    mine: bool = False

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "RetainerListOptions":
        return cls(status=_str(raw, "status"), mine=_bool(raw, "mine"))


@dataclass(frozen=True)
class RetainerCancelOptions(CommandOptions):
    command = "retainer"
    subcommand = "cancel"

    retainer_id: Optional[int]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "RetainerCancelOptions":
        return cls(retainer_id=_int(raw, "retainer_id"))


# ----------------------------------------------------------------------------
# /feedback
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class FeedbackSubmitOptions(CommandOptions):
    command = "feedback"
    subcommand = "submit"

    rating: Optional[int]
    comment: Optional[str]
    staff_id: Optional[int] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "FeedbackSubmitOptions":
        return cls(rating=_int(raw, "rating"), comment=_str(raw, "comment"), staff_id=_int(raw, "staff"))


@dataclass(frozen=True)
class FeedbackViewOptions(CommandOptions):
    command = "feedback"
    subcommand = "view"

    staff_id: Optional[int] = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "FeedbackViewOptions":
        return cls(staff_id=_int(raw, "staff"))


# ----------------------------------------------------------------------------
# /remind
# ----------------------------------------------------------------------------


@dataclass(frozen=True)
class RemindSetOptions(CommandOptions):
    command = "remind"
    subcommand = "set"

    time: Optional[str]
    message: Optional[str]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "RemindSetOptions":
        return cls(time=_str(raw, "time"), message=_str(raw, "message"))


@dataclass(frozen=True)
class RemindCaseOptions(RemindSetOptions):
    subcommand = "case"


@dataclass(frozen=True)
class RemindCancelOptions(CommandOptions):
    command = "remind"
    subcommand = "cancel"

    reminder_id: Optional[int]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "RemindCancelOptions":
        return cls(reminder_id=_int(raw, "reminder_id"))


OPTION_TYPES: Dict[Tuple[str, Optional[str]], Type[CommandOptions]] = {
    (option_type.command, option_type.subcommand): option_type
    for option_type in (
        StaffHireOptions,
        StaffFireOptions,
        StaffPromoteOptions,
        StaffDemoteOptions,
        StaffInfoOptions,
        StaffListOptions,
        JobPostOptions,
        JobCloseOptions,
        JobRemoveOptions,
        JobListOptions,
        JobInfoOptions,
        JobCleanupOptions,
        JobEditOptions,
        JobApplyOptions,
        JobApplicationsOptions,
        JobReviewOptions,
        CaseCreateOptions,
        CaseAssignOptions,
        CaseCloseOptions,
        CaseListOptions,
        AdminAddOptions,
        AdminRemoveOptions,
        AdminSetPermissionOptions,
        AdminRulesOptions,
        AdminRepairOptions,
        RulesSetOptions,
        RulesAddRuleOptions,
        RulesRemoveRuleOptions,
        RulesRemoveOptions,
        RulesSyncOptions,
        RetainerSignOptions,
        RetainerListOptions,
        RetainerCancelOptions,
        FeedbackSubmitOptions,
        FeedbackViewOptions,
        RemindSetOptions,
        RemindCaseOptions,
        RemindCancelOptions,
    )
}


def parse_command_options(
    command: str,
    subcommand: Optional[str],
    raw: Mapping[str, Any],
) -> CommandOptions:
    """
    Example:
        >>> parse_command_options("staff", "fire", {"member": "42"})
        StaffFireOptions(member_id=42, reason=None)
        >>> parse_command_options("staff", "hierarchy", {"x": 1})
        GenericOptions(values={'x': 1})
    """
    option_type = OPTION_TYPES.get((command, subcommand))
    factory: Callable[[Mapping[str, Any]], CommandOptions] = (
        option_type.from_raw if option_type is not None else GenericOptions.from_raw  # type: ignore[attr-defined]
    )
    return factory(raw)
