"""
RetainerService - client retainer agreements.

A lawyer offers an agreement (``pending``); the client signs it with their
Roblox username and full name (``signed``). Only pending agreements can
be signed or cancelled, and a client holds at most one pending or signed
agreement per guild.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from src.core.database.base import utc_now
from src.core.database.service import DatabaseService
from src.database.models.enums import AuditAction, RetainerStatus
from src.database.models.legal.retainer import Retainer
from src.modules.cases.repository import RetainerRepository
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import ValidationError
from src.modules.shared.validators import roblox_username_error, validate_length
from src.modules.staff.repository import StaffRepository

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.audit.service import AuditLogService
    from src.modules.shared.permission_context import PermissionContext

FALLBACK_TEMPLATE = (
    "RETAINER AGREEMENT\n\n"
    "[CLIENT_NAME] retains Anarchy & Associates, represented by [LAWYER_NAME].\n\n"
    "Signed: [SIGNATURE]\nDate: [DATE]"
)


def _failure(error: str) -> Dict[str, Any]:
    return {"success": False, "error": error}


def format_agreement(
    template: str,
    client_name: str,
    lawyer_name: str,
    signature: Optional[str] = None,
    signed_at: Optional[datetime] = None,
) -> str:
    """
    Fill the agreement placeholders. Unsigned agreements keep a blank line.

    >>> format_agreement("[CLIENT_NAME] / [LAWYER_NAME] / [SIGNATURE]", "Ann", "Bo")
    'Ann / Bo / ____________________'
    """
    return (
        template.replace("[CLIENT_NAME]", client_name)
        .replace("[LAWYER_NAME]", lawyer_name)
        .replace("[SIGNATURE]", signature or "_" * 20)
        .replace("[DATE]", (signed_at or utc_now()).strftime("%Y-%m-%d"))
    )


class RetainerService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        audit_service: AuditLogService,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._audit = audit_service
        self._repo = RetainerRepository(self.log)
        self._staff_repo = StaffRepository(self.log)

    @property
    def agreement_template(self) -> str:
        return self.get_config("retainers.agreement_template") or FALLBACK_TEMPLATE

    async def create_retainer(self, context: PermissionContext, client_id: int) -> Dict[str, Any]:
        if client_id == context.user_id:
            return _failure("You cannot offer a retainer to yourself")

        async with DatabaseService.get_transaction() as session:
            if await self._staff_repo.find_active_by_user(session, context.guild_id, client_id):
                return _failure("Staff members cannot be retained as clients")

            existing = await self._repo.find_open_for_client(session, context.guild_id, client_id)
            if existing is not None:
                return _failure(f"Client already has a {existing.status} retainer agreement")

            retainer = await self._repo.add(
                session,
                Retainer(
                    guild_id=context.guild_id,
                    client_id=client_id,
                    lawyer_id=context.user_id,
                    status=RetainerStatus.PENDING.value,
                    agreement_template=self.agreement_template,
                ),
            )
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.RETAINER_CREATED,
                actor_id=context.user_id,
                target_id=client_id,
                after={"status": RetainerStatus.PENDING.value},
                metadata={"retainer_id": retainer.id},
                session=session,
            )

        self.log_operation("create_retainer", guild_id=context.guild_id, retainer_id=retainer.id, client_id=client_id)
        await self.emit_event(
            "retainer.created",
            {"guild_id": context.guild_id, "retainer_id": retainer.id, "client_id": client_id, "lawyer_id": context.user_id},
        )
        return {"success": True, "retainer": retainer}

    async def sign_retainer(
        self,
        guild_id: int,
        retainer_id: int,
        client_id: int,
        roblox_username: str,
        signature: str,
    ) -> Dict[str, Any]:
        """Client-side signing; runs from a DM, so there is no PermissionContext."""
        username_error = roblox_username_error(roblox_username)
        if username_error:
            return _failure(username_error)
        try:
            validate_length(signature, "Signature", 2, 100)
        except ValidationError as exc:
            return _failure(exc.message)

        async with DatabaseService.get_transaction() as session:
            retainer = await self._repo.find_in_guild(session, guild_id, retainer_id, for_update=True)
            if retainer is None or retainer.client_id != client_id:
                return _failure("Retainer agreement not found")
            if retainer.status != RetainerStatus.PENDING.value:
                return _failure(f"Retainer agreement is already {retainer.status}")

            updated = await self._repo.update(
                session,
                retainer.id,
                {
                    "status": RetainerStatus.SIGNED.value,
                    "client_roblox_username": roblox_username,
                    "digital_signature": signature.strip(),
                    "signed_at": utc_now(),
                },
            )
            await self._audit.log_action(
                guild_id=guild_id,
                action=AuditAction.RETAINER_SIGNED,
                actor_id=client_id,
                target_id=retainer.lawyer_id,
                before={"status": RetainerStatus.PENDING.value},
                after={"status": RetainerStatus.SIGNED.value},
                metadata={"retainer_id": retainer_id, "roblox_username": roblox_username},
                session=session,
            )

        self.log_operation("sign_retainer", guild_id=guild_id, retainer_id=retainer_id)
        await self.emit_event(
            "retainer.signed",
            {"guild_id": guild_id, "retainer_id": retainer_id, "client_id": client_id, "lawyer_id": updated.lawyer_id},
        )
        return {"success": True, "retainer": updated}

    async def cancel_retainer(self, context: PermissionContext, retainer_id: int) -> Dict[str, Any]:
        """The offering lawyer, or the guild owner, withdraws a pending agreement."""
        async with DatabaseService.get_transaction() as session:
            retainer = await self._repo.find_in_guild(session, context.guild_id, retainer_id, for_update=True)
            if retainer is None:
                return _failure("Retainer agreement not found")
            if retainer.lawyer_id != context.user_id and not context.is_guild_owner:
                return _failure("Only the lawyer who offered this retainer can cancel it")
            if retainer.status != RetainerStatus.PENDING.value:
                return _failure(f"Only pending retainers can be cancelled (current: {retainer.status})")

            updated = await self._repo.update(session, retainer.id, {"status": RetainerStatus.CANCELLED.value})
            await self._audit.log_action(
                guild_id=context.guild_id,
                action=AuditAction.RETAINER_CANCELLED,
                actor_id=context.user_id,
                target_id=retainer.client_id,
                before={"status": RetainerStatus.PENDING.value},
                after={"status": RetainerStatus.CANCELLED.value},
                metadata={"retainer_id": retainer_id},
                session=session,
            )

        self.log_operation("cancel_retainer", guild_id=context.guild_id, retainer_id=retainer_id)
        return {"success": True, "retainer": updated}

    async def list_retainers(
        self,
        context: PermissionContext,
        status: Optional[str] = None,
        lawyer_id: Optional[int] = None,
    ) -> List[Retainer]:
        async with DatabaseService.get_session() as session:
            return await self._repo.find_filtered(session, context.guild_id, status=status, lawyer_id=lawyer_id)

    async def get_retainer(self, guild_id: int, retainer_id: int) -> Optional[Retainer]:
        async with DatabaseService.get_session() as session:
            return await self._repo.find_in_guild(session, guild_id, retainer_id)
