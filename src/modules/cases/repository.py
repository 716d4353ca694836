"""
Case-side repositories: cases, the per-guild case counter, retainers,
feedback and reminders.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import or_
from sqlalchemy.dialects.postgresql import insert as pg_insert

from src.database.models.enums import CaseStatus, RetainerStatus
from src.database.models.legal.case import Case, CaseCounter
from src.database.models.legal.feedback import Feedback
from src.database.models.legal.reminder import Reminder
from src.database.models.legal.retainer import Retainer
from src.modules.shared.base_repository import BaseRepository

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy.ext.asyncio import AsyncSession

OPEN_CASE_STATUSES = (CaseStatus.PENDING.value, CaseStatus.IN_PROGRESS.value)


class CaseRepository(BaseRepository[Case]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(Case, logger)

    async def count_active_for_client(self, session: AsyncSession, guild_id: int, client_id: int) -> int:
        return await self.count(
            session,
            Case.guild_id == guild_id,
            Case.client_id == client_id,
            Case.status.in_(OPEN_CASE_STATUSES),
        )

    async def find_open_for_attorney(self, session: AsyncSession, guild_id: int, user_id: int) -> List[Case]:
        """
        Open cases where ``user_id`` is lead attorney or assigned lawyer.

        Assignment lives in a JSON list, so that half of the match is done
        in Python over the guild's open cases.
        """
        open_cases = await self.find_open_by_guild(session, guild_id)
        return [
            case
            for case in open_cases
            if case.lead_attorney_id == user_id or user_id in (case.assigned_lawyer_ids or [])
        ]

    async def find_open_as_lead(self, session: AsyncSession, guild_id: int, user_id: int) -> List[Case]:
        return await self.find_many_where(
            session,
            Case.guild_id == guild_id,
            Case.lead_attorney_id == user_id,
            Case.status.in_(OPEN_CASE_STATUSES),
        )

    async def find_open_by_guild(self, session: AsyncSession, guild_id: int) -> List[Case]:
        return await self.find_many_where(
            session,
            Case.guild_id == guild_id,
            Case.status.in_(OPEN_CASE_STATUSES),
            order_by=[Case.created_at.asc()],
        )

    async def find_by_guild(
        self,
        session: AsyncSession,
        guild_id: int,
        status: Optional[str] = None,
        client_id: Optional[int] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Case]:
        conditions = [Case.guild_id == guild_id]
        if status:
            conditions.append(Case.status == status)
        if client_id is not None:
            conditions.append(Case.client_id == client_id)
        return await self.find_many_where(
            session,
            *conditions,
            order_by=[Case.created_at.desc(), Case.id.desc()],
            limit=limit,
            offset=offset,
        )

    async def find_by_case_number(self, session: AsyncSession, guild_id: int, case_number: str) -> Optional[Case]:
        return await self.find_one_where(session, Case.guild_id == guild_id, Case.case_number == case_number)

    async def find_by_channel(self, session: AsyncSession, guild_id: int, channel_id: int) -> Optional[Case]:
        return await self.find_one_where(session, Case.guild_id == guild_id, Case.channel_id == channel_id)

    async def find_referencing_user(self, session: AsyncSession, guild_id: int, user_id: int) -> List[Case]:
        """Cases of any status where ``user_id`` is client or lead attorney."""
        return await self.find_many_where(
            session,
            Case.guild_id == guild_id,
            or_(Case.client_id == user_id, Case.lead_attorney_id == user_id),
        )


class CaseCounterRepository(BaseRepository[CaseCounter]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(CaseCounter, logger)

    async def next_value(self, session: AsyncSession, guild_id: int, year: int) -> int:
        """
        Atomically increment and return the counter for ``(guild_id, year)``.

        Uses ``INSERT .. ON CONFLICT DO UPDATE .. RETURNING`` so concurrent
        case creations never share a number.
        """
        stmt = (
            pg_insert(CaseCounter)
            .values(guild_id=guild_id, year=year, counter=1)
            .on_conflict_do_update(
                index_elements=[CaseCounter.guild_id, CaseCounter.year],
                set_={"counter": CaseCounter.counter + 1},
            )
            .returning(CaseCounter.counter)
        )
        result = await session.execute(stmt)
        value = int(result.scalar_one())
        self.log.debug(
            "Repository.next_value: CaseCounter",
            extra={"guild_id": guild_id, "year": year, "counter": value},
        )
        return value


class RetainerRepository(BaseRepository[Retainer]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(Retainer, logger)

    async def find_by_guild(self, session: AsyncSession, guild_id: int) -> List[Retainer]:
        return await self.find_many_where(session, Retainer.guild_id == guild_id)

    async def find_active_for_lawyer(self, session: AsyncSession, guild_id: int, lawyer_id: int) -> List[Retainer]:
        return await self.find_many_where(
            session,
            Retainer.guild_id == guild_id,
            Retainer.lawyer_id == lawyer_id,
            Retainer.status != RetainerStatus.CANCELLED.value,
        )

    async def find_in_guild(
        self, session: AsyncSession, guild_id: int, retainer_id: int, for_update: bool = False
    ) -> Optional[Retainer]:
        return await self.find_one_where(
            session, Retainer.guild_id == guild_id, Retainer.id == retainer_id, for_update=for_update
        )

    async def find_open_for_client(self, session: AsyncSession, guild_id: int, client_id: int) -> Optional[Retainer]:
        """A pending or signed agreement held by ``client_id``."""
        return await self.find_one_where(
            session,
            Retainer.guild_id == guild_id,
            Retainer.client_id == client_id,
            Retainer.status != RetainerStatus.CANCELLED.value,
        )

    async def find_filtered(
        self,
        session: AsyncSession,
        guild_id: int,
        status: Optional[str] = None,
        lawyer_id: Optional[int] = None,
    ) -> List[Retainer]:
        conditions = [Retainer.guild_id == guild_id]
        if status:
            conditions.append(Retainer.status == status)
        if lawyer_id is not None:
            conditions.append(Retainer.lawyer_id == lawyer_id)
        return await self.find_many_where(session, *conditions, order_by=[Retainer.created_at.desc()])


class FeedbackRepository(BaseRepository[Feedback]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(Feedback, logger)

    async def find_by_guild(self, session: AsyncSession, guild_id: int) -> List[Feedback]:
        return await self.find_many_where(session, Feedback.guild_id == guild_id)

    async def find_for_staff(self, session: AsyncSession, guild_id: int, staff_user_id: int) -> List[Feedback]:
        return await self.find_many_where(
            session, Feedback.guild_id == guild_id, Feedback.target_staff_id == staff_user_id
        )


class ReminderRepository(BaseRepository[Reminder]):
    def __init__(self, logger: Logger) -> None:
        super().__init__(Reminder, logger)

    async def find_by_guild(self, session: AsyncSession, guild_id: int, active_only: bool = False) -> List[Reminder]:
        conditions = [Reminder.guild_id == guild_id]
        if active_only:
            conditions.append(Reminder.is_active.is_(True))
        return await self.find_many_where(session, *conditions, order_by=[Reminder.scheduled_for.asc()])

    async def find_for_case(self, session: AsyncSession, guild_id: int, case_id: int) -> List[Reminder]:
        return await self.find_many_where(session, Reminder.guild_id == guild_id, Reminder.case_id == case_id)

    async def find_in_guild(self, session: AsyncSession, guild_id: int, reminder_id: int) -> Optional[Reminder]:
        return await self.find_one_where(session, Reminder.guild_id == guild_id, Reminder.id == reminder_id)

    async def find_active_for_user(self, session: AsyncSession, guild_id: int, user_id: int) -> List[Reminder]:
        return await self.find_many_where(
            session,
            Reminder.guild_id == guild_id,
            Reminder.user_id == user_id,
            Reminder.is_active.is_(True),
            order_by=[Reminder.scheduled_for.asc()],
        )

    async def count_active_for_user(self, session: AsyncSession, guild_id: int, user_id: int) -> int:
        return await self.count(
            session, Reminder.guild_id == guild_id, Reminder.user_id == user_id, Reminder.is_active.is_(True)
        )

    async def find_all_active(self, session: AsyncSession) -> List[Reminder]:
        """Undelivered reminders in every guild, soonest first."""
        return await self.find_many_where(
            session, Reminder.is_active.is_(True), order_by=[Reminder.scheduled_for.asc()]
        )
