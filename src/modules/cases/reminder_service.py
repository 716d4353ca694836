"""
ReminderService - staff reminders delivered after a delay.

Staff set a reminder with a short time string (``10m``, ``2h``, ``1d``; at
least one minute, at most seven days). It is posted in the channel it was
set from, mentioning the member, or sent by DM when that channel is gone.
A reminder set inside a case channel is linked to that case.

Each active reminder has one asyncio task. ``start(client)`` re-schedules
undelivered reminders after a restart; overdue ones fire immediately.
A reminder is marked delivered even when Discord refuses the message, so
it never fires twice.
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import discord

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.database.models.enums import AuditAction
from src.database.models.legal.reminder import Reminder
from src.modules.cases.repository import CaseRepository, ReminderRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import ValidationError
from src.modules.shared.validators import validate_length
from src.modules.staff.repository import StaffRepository

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.audit.service import AuditLogService
    from src.modules.shared.permission_context import PermissionContext

TIME_PATTERN = re.compile(r"^(\d+)\s*(m|min|mins|minute|minutes|h|hr|hrs|hour|hours|d|day|days)$", re.IGNORECASE)
MIN_DELAY = timedelta(minutes=1)
MAX_DELAY = timedelta(days=7)
INVALID_TIME_MESSAGE = "Invalid time format. Use formats like: 10m, 2h, 1d (max 7 days)"


def _failure(error: str) -> Dict[str, Any]:
    return {"success": False, "error": error}


def parse_time_string(value: str) -> Optional[timedelta]:
    """
    The delay described by ``value``, or None when it is malformed or out of range.

    >>> parse_time_string("90m")
    datetime.timedelta(seconds=5400)
    >>> parse_time_string("8d") is None
    True
    """
    match = TIME_PATTERN.match((value or "").strip())
    if not match:
        return None
    amount, unit = int(match.group(1)), match.group(2).lower()
    if unit.startswith("d"):
        delay = timedelta(days=amount)
    elif unit.startswith("h"):
        delay = timedelta(hours=amount)
    else:
        delay = timedelta(minutes=amount)
    if delay < MIN_DELAY or delay > MAX_DELAY:
        return None
    return delay


class ReminderService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        audit_service: AuditLogService,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._audit = audit_service
        self._clock = clock
        self._repo = ReminderRepository(self.log)
        self._case_repo = CaseRepository(self.log)
        self._staff_repo = StaffRepository(self.log)
        self._client: Optional[discord.Client] = None
        self._tasks: Dict[int, asyncio.Task] = {}

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #

    async def set_reminder(
        self,
        context: PermissionContext,
        time_string: str,
        message: str,
        channel_id: Optional[int] = None,
        require_case: bool = False,
    ) -> Dict[str, Any]:
        """
        Store and schedule a reminder for the invoking staff member.

        With ``require_case`` the channel must belong to a case.
        """
        delay = parse_time_string(time_string)
        if delay is None:
            return _failure(INVALID_TIME_MESSAGE)
        try:
            validate_length(message, "Message", 1, 1000)
        except ValidationError as exc:
            return _failure(exc.message)

        max_active = int(self.get_config("reminders.max_active_per_user", 10))
        async with DatabaseService.get_transaction() as session:
            if not await self._staff_repo.find_active_by_user(session, context.guild_id, context.user_id):
                return _failure("Only active staff members can set reminders")
            if await self._repo.count_active_for_user(session, context.guild_id, context.user_id) >= max_active:
                return _failure(f"You already have {max_active} active reminders")

            case = None
            if channel_id is not None:
                case = await self._case_repo.find_by_channel(session, context.guild_id, channel_id)
            if require_case and case is None:
                return _failure("This command can only be used in a case channel")

            reminder = await self._repo.add(
                session,
                Reminder(
                    guild_id=context.guild_id,
                    user_id=context.user_id,
                    message=message.strip(),
                    scheduled_for=self._clock() + delay,
                    channel_id=channel_id,
                    case_id=case.id if case else None,
                    is_active=True,
                ),
            )
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.REMINDER_SET,
                actor_id=context.user_id,
                metadata={
                    "reminder_id": reminder.id,
                    "scheduled_for": reminder.scheduled_for.isoformat(),
                    "case_number": case.case_number if case else None,
                },
                session=session,
            )

        self.log_operation("set_reminder", guild_id=context.guild_id, reminder_id=reminder.id, delay_seconds=delay.total_seconds())
        self.schedule(reminder)
        return {"success": True, "reminder": reminder, "case": case}

    async def list_reminders(self, context: PermissionContext) -> List[Reminder]:
        async with DatabaseService.get_session() as session:
            return await self._repo.find_active_for_user(session, context.guild_id, context.user_id)

    async def cancel_reminder(self, context: PermissionContext, reminder_id: int) -> Dict[str, Any]:
        async with DatabaseService.get_transaction() as session:
            reminder = await self._repo.find_in_guild(session, context.guild_id, reminder_id)
            if reminder is None or reminder.user_id != context.user_id:
                return _failure("Reminder not found")
            if not reminder.is_active:
                return _failure("Reminder has already been delivered or cancelled")

            await self._repo.update(session, reminder.id, {"is_active": False})
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.REMINDER_CANCELLED,
                actor_id=context.user_id,
                metadata={"reminder_id": reminder_id},
                session=session,
            )

        self._cancel_task(reminder_id)
        self.log_operation("cancel_reminder", guild_id=context.guild_id, reminder_id=reminder_id)
        return {"success": True}

    # ------------------------------------------------------------------ #
    # Delivery
    # ------------------------------------------------------------------ #

    async def deliver_reminder(self, reminder_id: int) -> bool:
        """Send one reminder and mark it delivered. False if it was no longer active."""
        async with DatabaseService.get_transaction() as session:
            reminder = await self._repo.find_one_where(
                session, Reminder.id == reminder_id, Reminder.is_active.is_(True), for_update=True
            )
            if reminder is None:
                return False
            await self._repo.update(session, reminder.id, {"is_active": False, "delivered_at": self._clock()})

        try:
            await self._send(reminder)
        except discord.HTTPException as exc:
            self.log_side_effect_failure(
                "reminder_delivery", exc, guild_id=reminder.guild_id, reminder_id=reminder_id, user_id=reminder.user_id
            )

        self.log_operation("deliver_reminder", guild_id=reminder.guild_id, reminder_id=reminder_id)
        await self.emit_event(
            "reminder.delivered",
            {"guild_id": reminder.guild_id, "reminder_id": reminder_id, "user_id": reminder.user_id},
        )
        return True

    async def _send(self, reminder: Reminder) -> None:
        if self._client is None:
            raise RuntimeError("ReminderService.start() has not been called")

        text = f"Reminder: {reminder.message}"
        channel = self._client.get_channel(reminder.channel_id) if reminder.channel_id else None
        if isinstance(channel, discord.abc.Messageable):
            await channel.send(f"<@{reminder.user_id}> {text}")
            return

        user = self._client.get_user(reminder.user_id) or await self._client.fetch_user(reminder.user_id)
        await user.send(text)

    # ------------------------------------------------------------------ #
    # Scheduling
    # ------------------------------------------------------------------ #

    async def start(self, client: discord.Client) -> int:
        """Attach the Discord client and schedule every undelivered reminder."""
        self._client = client
        async with DatabaseService.get_session() as session:
            pending = await self._repo.find_all_active(session)
        for reminder in pending:
            self.schedule(reminder)
        self.log.info("Reminders restored", extra={"count": len(pending)})
        return len(pending)

    def schedule(self, reminder: Reminder) -> Optional[asyncio.Task]:
        """One task per reminder; nothing is scheduled before ``start``."""
        if self._client is None:
            return None
        existing = self._tasks.get(reminder.id)
        if existing is not None and not existing.done():
            return existing

        delay = max((reminder.scheduled_for - self._clock()).total_seconds(), 0.0)
        task = asyncio.create_task(self._wait_and_deliver(reminder.id, delay))
        self._tasks[reminder.id] = task
        return task

    async def _wait_and_deliver(self, reminder_id: int, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
            await self.deliver_reminder(reminder_id)
        except asyncio.CancelledError:
            self.log.debug("Reminder task cancelled", extra={"reminder_id": reminder_id})
        except Exception as exc:
            self.log_error("deliver_reminder", exc, reminder_id=reminder_id)
        finally:
            if self._tasks.get(reminder_id) is asyncio.current_task():
                del self._tasks[reminder_id]

    def _cancel_task(self, reminder_id: int) -> None:
        task = self._tasks.pop(reminder_id, None)
        if task is not None:
            task.cancel()

    @property
    def scheduled_count(self) -> int:
        return len(self._tasks)

    async def stop_all(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
