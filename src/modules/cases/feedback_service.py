"""
FeedbackService - client ratings for staff members and for the firm.

Clients rate 1 to 5 stars. Feedback naming no staff member is firm-wide.
Staff cannot leave feedback and a named target must be active staff.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from src.core.database.service import DatabaseService
from src.database.models.enums import AuditAction
from src.database.models.legal.feedback import Feedback
from src.modules.cases.repository import FeedbackRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import ValidationError
from src.modules.shared.validators import validate_length, validate_range
from src.modules.staff.repository import StaffRepository

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.audit.service import AuditLogService
    from src.modules.shared.permission_context import PermissionContext

MIN_RATING = 1
MAX_RATING = 5


def _failure(error: str) -> Dict[str, Any]:
    return {"success": False, "error": error}


def summarize_ratings(feedback: List[Feedback]) -> Dict[str, Any]:
    """
    >>> summarize_ratings([])["average_rating"]
    0.0
    """
    distribution = {rating: 0 for rating in range(MIN_RATING, MAX_RATING + 1)}
    for entry in feedback:
        distribution[entry.rating] = distribution.get(entry.rating, 0) + 1
    total = len(feedback)
    average = round(sum(entry.rating for entry in feedback) / total, 2) if total else 0.0
    return {"total": total, "average_rating": average, "distribution": distribution}


class FeedbackService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        audit_service: AuditLogService,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._audit = audit_service
        self._repo = FeedbackRepository(self.log)
        self._staff_repo = StaffRepository(self.log)

    async def submit_feedback(
        self,
        context: PermissionContext,
        rating: int,
        comment: str,
        target_staff_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        try:
            validate_range(rating, "Rating", MIN_RATING, MAX_RATING)
            validate_length(comment, "Comment", 5, 1000)
        except ValidationError as exc:
            return _failure(exc.message)

        async with DatabaseService.get_transaction() as session:
            if await self._staff_repo.find_active_by_user(session, context.guild_id, context.user_id):
                return _failure("Staff members cannot submit feedback")
            if target_staff_id is not None and not await self._staff_repo.find_active_by_user(
                session, context.guild_id, target_staff_id
            ):
                return _failure("That member is not active staff")

            feedback = await self._repo.add(
                session,
                Feedback(
                    guild_id=context.guild_id,
                    submitter_id=context.user_id,
                    target_staff_id=target_staff_id,
                    rating=rating,
                    comment=comment.strip(),
                    is_for_firm=target_staff_id is None,
                ),
            )
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.FEEDBACK_SUBMITTED,
                actor_id=context.user_id,
                target_id=target_staff_id,
                metadata={"feedback_id": feedback.id, "rating": rating},
                session=session,
            )

        self.log_operation("submit_feedback", guild_id=context.guild_id, feedback_id=feedback.id, rating=rating)
        await self.emit_event(
            "feedback.submitted",
            {"guild_id": context.guild_id, "feedback_id": feedback.id, "rating": rating, "target_staff_id": target_staff_id},
        )
        return {"success": True, "feedback": feedback}

    async def get_feedback_stats(self, context: PermissionContext, staff_id: Optional[int] = None) -> Dict[str, Any]:
        """Rating summary for ``staff_id``, or for all feedback in the guild."""
        async with DatabaseService.get_session() as session:
            if staff_id is None:
                feedback = await self._repo.find_by_guild(session, context.guild_id)
            else:
                feedback = await self._repo.find_for_staff(session, context.guild_id, staff_id)

        stats = summarize_ratings(feedback)
        stats["recent"] = sorted(feedback, key=lambda entry: entry.created_at, reverse=True)[:5]
        return stats
