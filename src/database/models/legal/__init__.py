"""Legal practice models: cases, case numbering, retainers, feedback, reminders."""

from .case import Case, CaseCounter
from .feedback import Feedback
from .reminder import Reminder
from .retainer import Retainer

__all__ = ["Case", "CaseCounter", "Feedback", "Reminder", "Retainer"]
