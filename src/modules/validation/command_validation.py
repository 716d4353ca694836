"""
CommandValidationService - the single pre-mutation gate for commands
=====================================================================

``validate_command`` runs, in order:
1. permission check (action derived from the command name unless given)
2. business rules chosen by the typed command options
3. cross-entity checks for destructive or cascading operations
4. caller-supplied custom rules, highest priority first

and folds every sub-result into one ``CommandValidationResult``: invalid
iff any error was collected, errors and warnings concatenated in order.

Guild-owner bypass
------------------
A failing sub-result that reports ``bypass_available`` becomes a
``BypassRequest``. When the actor owns the guild the aggregate asks for
confirmation and the serialized context is parked in a
``PendingBypassStore`` under a token. ``handle_bypass_confirmation``
consumes the user's pending entries; ``replay_pending(token)`` hands the
context back once so the cog can re-run with ``bypass_confirmed=True``.

Results are memoized for a few seconds in a bounded cache. Nothing here
raises: any unexpected failure becomes a generic invalid result.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from src.database.models.enums import AuditAction, AuditSeverity, BypassType, PermissionAction
from src.modules.shared.base_service import BaseService
from src.modules.validation.cache import ValidationResultCache
from src.modules.validation.context import CommandValidationContext, extract_validation_context
from src.modules.validation.options import (
    CaseAssignOptions,
    CaseCloseOptions,
    CaseCreateOptions,
    JobCloseOptions,
    JobRemoveOptions,
    JobReviewOptions,
    StaffDemoteOptions,
    StaffFireOptions,
    StaffHireOptions,
    StaffPromoteOptions,
)
from src.modules.validation.pending import PendingBypassStore
from src.modules.validation.types import (
    BypassRequest,
    CommandValidationOptions,
    CommandValidationResult,
    IssueSeverity,
    ValidationResult,
)
from src.ui.embeds import EmbedFactory

if TYPE_CHECKING:
    from logging import Logger

    import discord

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.audit.service import AuditLogService
    from src.modules.shared.permission_context import PermissionContext
    from src.modules.validation.business_rules import BusinessRuleValidationService
    from src.modules.validation.cross_entity import CrossEntityValidationService

GENERIC_VALIDATION_ERROR = "An error occurred during validation. Please try again."

# Root command name -> permission action required to run it.
COMMAND_PERMISSIONS: Dict[str, str] = {
    "staff": PermissionAction.SENIOR_STAFF.value,
    "case": PermissionAction.CASE.value,
    "admin": PermissionAction.ADMIN.value,
    "retainer": PermissionAction.RETAINER.value,
    "job": PermissionAction.SENIOR_STAFF.value,
    "role": PermissionAction.ADMIN.value,
    "repair": PermissionAction.ADMIN.value,
    "rules": PermissionAction.ADMIN.value,
}

# (command, subcommand) -> (entity type, operation) checked before mutating.
ENTITY_OPERATIONS: Dict[Tuple[str, str], Tuple[str, str]] = {
    ("staff", "fire"): ("staff", "delete"),
    ("staff", "promote"): ("staff", "update"),
    ("staff", "demote"): ("staff", "update"),
    ("case", "close"): ("case", "update"),
    ("case", "assign"): ("case", "update"),
    ("job", "close"): ("job", "update"),
    ("job", "remove"): ("job", "delete"),
    ("job", "review"): ("application", "update"),
}

NamedResult = Tuple[str, ValidationResult]


class CommandValidationService(BaseService):
    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        business_rules: BusinessRuleValidationService,
        cross_entity: CrossEntityValidationService,
        audit_service: Optional[AuditLogService] = None,
        cache: Optional[ValidationResultCache[CommandValidationResult]] = None,
        pending: Optional[PendingBypassStore] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._business_rules = business_rules
        self._cross_entity = cross_entity
        self._audit = audit_service
        self._cache: ValidationResultCache[CommandValidationResult] = cache or ValidationResultCache(
            ttl_seconds=float(self.get_config("validation.cache_ttl_seconds", 5)),
            max_entries=int(self.get_config("validation.cache_max_entries", 100)),
            evict_batch=int(self.get_config("validation.cache_evict_batch", 20)),
        )
        self._pending = pending or PendingBypassStore(
            ttl_seconds=float(self.get_config("validation.bypass_ttl_seconds", 300)),
            max_entries=int(self.get_config("validation.max_pending_bypasses", 500)),
        )

    # ================================================================== #
    # Entry point
    # ================================================================== #

    async def validate_command(
        self,
        context: CommandValidationContext,
        options: Optional[CommandValidationOptions] = None,
    ) -> CommandValidationResult:
        options = options or CommandValidationOptions()
        cache_key = self.get_cache_key(context)

        if not options.bypass_confirmed:
            cached = self._cache.get(cache_key)
            if cached is not None:
                self.log.debug("Validation cache hit", extra={"command": context.qualified_name})
                return cached

        try:
            results = await self._collect_results(context, options)
            result = await self._aggregate(context, results, options)
        except Exception as exc:
            self.log_error(
                "validate_command",
                exc,
                command=context.qualified_name,
                guild_id=context.guild_id,
                user_id=context.user_id,
            )
            return CommandValidationResult(is_valid=False, errors=[GENERIC_VALIDATION_ERROR])

        # A confirmation prompt carries a single-use token; never serve it twice.
        if not options.bypass_confirmed and not result.requires_confirmation:
            self._cache.set(cache_key, result)

        self.log.info(
            "Command validation completed",
            extra={
                "command": context.qualified_name,
                "guild_id": context.guild_id,
                "user_id": context.user_id,
                "is_valid": result.is_valid,
                "errors": len(result.errors),
                "warnings": len(result.warnings),
                "requires_confirmation": result.requires_confirmation,
            },
        )
        return result

    async def _collect_results(
        self, context: CommandValidationContext, options: CommandValidationOptions
    ) -> List[NamedResult]:
        results: List[NamedResult] = []
        actor = context.permission_context

        if not options.skip_permission_check:
            required = options.required_permission or COMMAND_PERMISSIONS.get(context.command_name)
            if required:
                results.append(("permission", await self._business_rules.validate_permission(actor, required)))

        if not options.skip_business_rules:
            results.extend(await self._business_rule_results(context))

        if not options.skip_entity_validation:
            entity_result = await self._entity_result(context)
            if entity_result is not None:
                results.append(("entity_validation", entity_result))

        for rule in sorted(options.custom_rules, key=lambda item: item.priority, reverse=True):
            try:
                rule_result = await rule.validate(context)
            except Exception as exc:
                self.log_error("custom_rule", exc, rule=rule.name, command=context.qualified_name)
                rule_result = ValidationResult.fail(f"Validation rule '{rule.name}' failed to run")
            if rule.bypassable and not rule_result.valid and not rule_result.bypass_available:
                rule_result = dataclasses.replace(
                    rule_result,
                    bypass_available=actor.is_guild_owner,
                    bypass_type=BypassType.GUILD_OWNER if actor.is_guild_owner else None,
                )
            results.append((rule.name, rule_result))

        return results

    async def _business_rule_results(self, context: CommandValidationContext) -> List[NamedResult]:
        actor = context.permission_context
        opts = context.options
        results: List[NamedResult] = []

        if isinstance(opts, StaffHireOptions) and opts.role:
            results.append(("role_limit_check", await self._business_rules.validate_role_limit(actor, opts.role)))
        elif isinstance(opts, CaseCreateOptions) and opts.client_id is not None:
            results.append(
                ("client_case_limit", await self._business_rules.validate_client_case_limit(actor, opts.client_id))
            )
        elif isinstance(opts, (StaffFireOptions, StaffPromoteOptions, StaffDemoteOptions)) and opts.member_id:
            results.append(
                ("staff_member_validation", await self._business_rules.validate_staff_member(actor, opts.member_id))
            )
        return results

    @staticmethod
    def _entity_payload(context: CommandValidationContext) -> Optional[Dict[str, Any]]:
        opts = context.options
        if isinstance(opts, (StaffFireOptions, StaffPromoteOptions, StaffDemoteOptions)) and opts.member_id:
            return {"user_id": opts.member_id}
        if isinstance(opts, (CaseCloseOptions, CaseAssignOptions)) and opts.case_number:
            return {"case_number": opts.case_number}
        if isinstance(opts, (JobCloseOptions, JobRemoveOptions)) and opts.job_id is not None:
            return {"job_id": opts.job_id}
        if isinstance(opts, JobReviewOptions) and opts.application_id is not None:
            return {"id": opts.application_id}
        return None

    async def _entity_result(self, context: CommandValidationContext) -> Optional[ValidationResult]:
        target = ENTITY_OPERATIONS.get((context.command_name, context.subcommand_name or ""))
        payload = self._entity_payload(context)
        if target is None or payload is None:
            return None

        entity_type, operation = target
        issues = await self._cross_entity.validate_before_operation(
            payload, entity_type, operation, context.guild_id
        )
        errors = [issue.message for issue in issues if issue.severity == IssueSeverity.CRITICAL]
        warnings = [issue.message for issue in issues if issue.severity == IssueSeverity.WARNING]
        return ValidationResult(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            metadata={
                "rule_type": "entity-validation",
                "entity_type": entity_type,
                "operation": operation,
                "issues": [issue.to_dict() for issue in issues],
            },
        )

    async def _aggregate(
        self,
        context: CommandValidationContext,
        results: List[NamedResult],
        options: CommandValidationOptions,
    ) -> CommandValidationResult:
        errors: List[str] = []
        warnings: List[str] = []
        bypass_requests: List[BypassRequest] = []

        for name, result in results:
            warnings.extend(result.warnings)
            if result.valid:
                continue
            if options.bypass_confirmed and result.bypass_available:
                warnings.extend(f"Overridden: {error}" for error in result.errors)
                continue
            errors.extend(result.errors or [f"Validation failed: {name}"])
            if result.bypass_available:
                bypass_requests.append(BypassRequest(validation_result=result, context=context, rule_name=name))

        requires_confirmation = bool(bypass_requests) and context.permission_context.is_guild_owner
        token: Optional[str] = None
        if requires_confirmation:
            token = self._pending.store(context.user_id, bypass_requests, context.to_payload())
            self.log.info(
                "Guild owner bypass requested",
                extra={
                    "command": context.qualified_name,
                    "guild_id": context.guild_id,
                    "user_id": context.user_id,
                    "rules": [request.rule_name for request in bypass_requests],
                },
            )
            await self.emit_event(
                "validation.bypass_requested",
                {
                    "guild_id": context.guild_id,
                    "user_id": context.user_id,
                    "command": context.qualified_name,
                    "rules": [request.rule_name for request in bypass_requests],
                    "token": token,
                },
            )

        return CommandValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            bypass_requests=bypass_requests,
            requires_confirmation=requires_confirmation,
            bypass_token=token,
        )

    # ================================================================== #
    # Bypass confirmation
    # ================================================================== #

    async def handle_bypass_confirmation(
        self,
        interaction: discord.Interaction,
        user_id: int,
        reason: Optional[str] = None,
    ) -> bool:
        """
        Consume ``user_id``'s pending bypasses.

        Returns False, after an ephemeral reply, when nothing was pending.
        """
        requests = self._pending.consume_for_user(user_id, reason)
        if not requests:
            embed = EmbedFactory.error("No Pending Bypass", "No validation bypass is pending for your action.")
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
            return False

        first = requests[0].context
        rules = [request.rule_name for request in requests]
        self.log.warning(
            "Guild owner bypass confirmed",
            extra={
                "guild_id": first.guild_id,
                "user_id": user_id,
                "command": first.qualified_name,
                "rules": rules,
                "reason": reason,
            },
        )

        if self._audit:
            try:
                await self._audit.log_action(
                    guild_id=first.guild_id,
                    action=AuditAction.GUILD_OWNER_BYPASS,
                    actor_id=user_id,
                    reason=reason,
                    metadata={"command": first.qualified_name},
                    bypass_info={
                        "bypass_type": BypassType.GUILD_OWNER.value,
                        "rules": rules,
                        "errors": [error for request in requests for error in request.validation_result.errors],
                    },
                    severity=AuditSeverity.HIGH,
                )
            except Exception as exc:
                self.log_side_effect_failure("audit_bypass_confirmation", exc, guild_id=first.guild_id)

        await self.emit_event(
            "validation.bypass_confirmed",
            {"guild_id": first.guild_id, "user_id": user_id, "rules": rules, "reason": reason},
        )
        return True

    def replay_pending(self, token: str, user_id: Optional[int] = None) -> Optional[CommandValidationContext]:
        """Stored context for a confirmed token; a second call returns None."""
        entry = self._pending.replay(token, user_id)
        if entry is None:
            return None
        context = CommandValidationContext.from_payload(entry.context_payload)
        self._cache.delete(self.get_cache_key(context))
        return context

    def discard_pending(self, token: str) -> bool:
        """Drop a pending bypass and forget the cached result of its command."""
        entry = self._pending.discard(token)
        if entry is None:
            return False
        self._cache.delete(self.get_cache_key(CommandValidationContext.from_payload(entry.context_payload)))
        return True

    def get_pending_bypasses(self, user_id: int) -> List[BypassRequest]:
        return self._pending.get_for_user(user_id)

    # ================================================================== #
    # Cache
    # ================================================================== #

    @staticmethod
    def get_cache_key(context: CommandValidationContext) -> str:
        options = "|".join(f"{key}:{value}" for key, value in sorted(context.raw_options.items()))
        subcommand = context.subcommand_name or "none"
        return f"{context.guild_id}:{context.command_name}:{subcommand}:{context.user_id}:{options}"

    def clear_validation_cache(self, context: Optional[CommandValidationContext] = None) -> None:
        if context is None:
            self._cache.clear()
        else:
            self._cache.delete(self.get_cache_key(context))

    @staticmethod
    def extract_validation_context(
        interaction: discord.Interaction,
        permission_context: PermissionContext,
    ) -> CommandValidationContext:
        return extract_validation_context(interaction, permission_context)
