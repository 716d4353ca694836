"""
Service Container
=================

Builds every domain service once, in dependency order, and hands them to
the bot and its cogs.

All services share the constructor prefix ``(config_manager, event_bus,
logger)``; extra collaborators are passed as keyword arguments. Nothing is
created lazily, so a wiring mistake fails at startup rather than on the
first command.

Usage:
    container = ServiceContainer(ConfigManager, event_bus, logger)
    await container.initialize()
    container.staff.hire_staff(...)
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.core.logging.logger import get_logger
from src.modules.audit.service import AuditLogService
from src.modules.cases.feedback_service import FeedbackService
from src.modules.cases.reminder_service import ReminderService
from src.modules.cases.retainer_service import RetainerService
from src.modules.cases.service import CaseService
from src.modules.guild.permission_service import PermissionService
from src.modules.jobs.application_service import ApplicationService
from src.modules.jobs.cleanup_service import JobCleanupService
from src.modules.jobs.service import JobService
from src.modules.rules.service import RulesChannelService
from src.modules.setup.service import AnarchyServerSetupService
from src.modules.staff.roles import StaffRoleHierarchy
from src.modules.staff.service import StaffService
from src.modules.validation.business_rules import BusinessRuleValidationService
from src.modules.validation.command_validation import CommandValidationService
from src.modules.validation.cross_entity import CrossEntityValidationService

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.config_manager import ConfigManager
    from src.core.event.bus import EventBus


class ServiceContainer:
    def __init__(self, config_manager: ConfigManager, event_bus: EventBus, logger: Logger) -> None:
        self._config_manager = config_manager
        self._event_bus = event_bus
        self._logger = logger
        self._services: Dict[str, Any] = {}
        self._service_init_times: Dict[str, float] = {}
        self._initialized = False
        self._init_start: Optional[float] = None
        self._init_end: Optional[float] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def initialize(self) -> None:
        if self._initialized:
            self._logger.warning("ServiceContainer already initialized")
            return

        self._init_start = time.perf_counter()
        self._logger.info("Service container initialization starting...")

        roles = StaffRoleHierarchy.from_config(self._config_manager)
        self._services["role_hierarchy"] = roles

        audit = self._create_service("audit", AuditLogService)
        permissions = self._create_service("permissions", PermissionService, audit_service=audit)
        business_rules = self._create_service(
            "business_rules",
            BusinessRuleValidationService,
            permission_service=permissions,
            role_hierarchy=roles,
        )
        cross_entity = self._create_service(
            "cross_entity",
            CrossEntityValidationService,
            audit_service=audit,
            role_hierarchy=roles,
        )
        self._create_service(
            "command_validation",
            CommandValidationService,
            business_rules=business_rules,
            cross_entity=cross_entity,
            audit_service=audit,
        )
        staff = self._create_service(
            "staff",
            StaffService,
            audit_service=audit,
            business_rules=business_rules,
            role_hierarchy=roles,
        )
        self._create_service("jobs", JobService, audit_service=audit, role_hierarchy=roles)
        self._create_service("job_cleanup", JobCleanupService, audit_service=audit)
        self._create_service("applications", ApplicationService, audit_service=audit, staff_service=staff)
        self._create_service(
            "cases",
            CaseService,
            audit_service=audit,
            business_rules=business_rules,
            role_hierarchy=roles,
        )
        self._create_service("retainers", RetainerService, audit_service=audit)
        self._create_service("feedback", FeedbackService, audit_service=audit)
        self._create_service("reminders", ReminderService, audit_service=audit)
        rules = self._create_service("rules", RulesChannelService)
        self._create_service(
            "server_setup",
            AnarchyServerSetupService,
            audit_service=audit,
            rules_service=rules,
            role_hierarchy=roles,
        )

        self._initialized = True
        self._init_end = time.perf_counter()
        self._logger.info(
            "Service container initialized",
            extra={
                "service_count": len(self._service_init_times),
                "duration_seconds": round(self._init_end - self._init_start, 3),
            },
        )

    def _create_service(self, name: str, cls: type, **dependencies: Any) -> Any:
        start = time.perf_counter()
        try:
            instance = cls(
                config_manager=self._config_manager,
                event_bus=self._event_bus,
                logger=get_logger(f"{cls.__module__}.{cls.__name__}"),
                **dependencies,
            )
        except Exception:
            self._logger.error(f"Failed to initialize {name}", exc_info=True)
            raise

        duration = time.perf_counter() - start
        self._service_init_times[name] = duration
        self._services[name] = instance
        self._logger.debug(f"Initialized {name} in {duration:.3f}s")
        return instance

    async def shutdown(self) -> None:
        if not self._initialized:
            return
        self._logger.info("Shutting down service container...")
        await self.job_cleanup.stop_automatic_cleanup()
        await self.reminders.stop_all()
        self._initialized = False
        self._logger.info("Service container shut down")

    async def health_check(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "service_count": len(self._service_init_times),
            "total_init_time_seconds": (
                round(self._init_end - self._init_start, 3) if self._init_start and self._init_end else None
            ),
        }

    def _get(self, name: str) -> Any:
        service = self._services.get(name)
        if not self._initialized or service is None:
            raise RuntimeError("ServiceContainer not initialized. Call initialize() first.")
        return service

    # ========================================================================
    # Services
    # ========================================================================

    @property
    def role_hierarchy(self) -> StaffRoleHierarchy:
        return self._get("role_hierarchy")

    @property
    def audit(self) -> AuditLogService:
        return self._get("audit")

    @property
    def permissions(self) -> PermissionService:
        return self._get("permissions")

    @property
    def business_rules(self) -> BusinessRuleValidationService:
        return self._get("business_rules")

    @property
    def cross_entity(self) -> CrossEntityValidationService:
        return self._get("cross_entity")

    @property
    def command_validation(self) -> CommandValidationService:
        return self._get("command_validation")

    @property
    def staff(self) -> StaffService:
        return self._get("staff")

    @property
    def jobs(self) -> JobService:
        return self._get("jobs")

    @property
    def job_cleanup(self) -> JobCleanupService:
        return self._get("job_cleanup")

    @property
    def applications(self) -> ApplicationService:
        return self._get("applications")

    @property
    def cases(self) -> CaseService:
        return self._get("cases")

    @property
    def retainers(self) -> RetainerService:
        return self._get("retainers")

    @property
    def feedback(self) -> FeedbackService:
        return self._get("feedback")

    @property
    def reminders(self) -> ReminderService:
        return self._get("reminders")

    @property
    def rules(self) -> RulesChannelService:
        return self._get("rules")

    @property
    def server_setup(self) -> AnarchyServerSetupService:
        return self._get("server_setup")

    @property
    def is_initialized(self) -> bool:
        return self._initialized
