"""
Database Models Package
=======================

SQLAlchemy ORM models, schema only, grouped by domain:

- staffing: Staff, Job, Application
- legal: Case, CaseCounter, Retainer, Feedback, Reminder
- guild: GuildConfig, RulesChannel, AuditLog
- enums: categorical string values shared with services

References between entities (a case's lead attorney, an application's
job) are plain columns; integrity across them is checked by the
cross-entity validation service rather than by foreign keys.
"""

from src.core.database.base import Base

from .guild import AuditLog, GuildConfig, RulesChannel
from .legal import Case, CaseCounter, Feedback, Reminder, Retainer
from .staffing import Application, Job, Staff

__all__ = [
    "Base",
    "Staff",
    "Job",
    "Application",
    "Case",
    "CaseCounter",
    "Retainer",
    "Feedback",
    "Reminder",
    "GuildConfig",
    "RulesChannel",
    "AuditLog",
]
