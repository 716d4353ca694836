"""
UI Views package.
"""

from src.ui.views.application import JobApplicationModal
from src.ui.views.base import BaseView
from src.ui.views.bypass import BypassConfirmationView, BypassReasonModal
from src.ui.views.confirmation import ConfirmationView
from src.ui.views.retainer import RetainerSignModal, RetainerSignView

__all__ = [
    "BaseView",
    "ConfirmationView",
    "BypassConfirmationView",
    "BypassReasonModal",
    "JobApplicationModal",
    "RetainerSignModal",
    "RetainerSignView",
]
