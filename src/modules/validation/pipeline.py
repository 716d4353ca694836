"""
Validator pipelines attached to command registrations.

Each command declares the ordered steps it needs instead of decorating
the handler:

    HIRE_PIPELINE = ValidatorPipeline(PermissionStep(), BusinessRuleStep())
    ...
    result = await HIRE_PIPELINE.run(validation_service, context)

Steps that are absent are skipped. The pipeline only decides *which*
checks run; ``CommandValidationService`` evaluates and aggregates them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Tuple, Union

from src.modules.validation.types import CommandValidationOptions, CommandValidationRule

if TYPE_CHECKING:
    from src.modules.validation.command_validation import CommandValidationService
    from src.modules.validation.context import CommandValidationContext
    from src.modules.validation.types import CommandValidationResult


@dataclass(frozen=True)
class PermissionStep:
    """Require ``action``; None uses the command's default action."""

    action: Optional[str] = None
    name: str = "permission"


@dataclass(frozen=True)
class BusinessRuleStep:
    name: str = "business_rules"


@dataclass(frozen=True)
class EntityStep:
    name: str = "entity_validation"


@dataclass(frozen=True)
class CustomRuleStep:
    rule: CommandValidationRule

    @property
    def name(self) -> str:
        return self.rule.name


ValidatorStep = Union[PermissionStep, BusinessRuleStep, EntityStep, CustomRuleStep]


class ValidatorPipeline:
    def __init__(self, *steps: ValidatorStep) -> None:
        self.steps: Tuple[ValidatorStep, ...] = steps

    @classmethod
    def standard(cls, action: Optional[str] = None, *extra: ValidatorStep) -> "ValidatorPipeline":
        """Permission, business rules and entity checks, plus ``extra`` steps."""
        return cls(PermissionStep(action), BusinessRuleStep(), EntityStep(), *extra)

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self.steps]

    def build_options(self, bypass_confirmed: bool = False) -> CommandValidationOptions:
        permission_steps = [step for step in self.steps if isinstance(step, PermissionStep)]
        return CommandValidationOptions(
            skip_permission_check=not permission_steps,
            skip_business_rules=not any(isinstance(step, BusinessRuleStep) for step in self.steps),
            skip_entity_validation=not any(isinstance(step, EntityStep) for step in self.steps),
            required_permission=permission_steps[0].action if permission_steps else None,
            custom_rules=[step.rule for step in self.steps if isinstance(step, CustomRuleStep)],
            bypass_confirmed=bypass_confirmed,
        )

    async def run(
        self,
        service: CommandValidationService,
        context: CommandValidationContext,
        bypass_confirmed: bool = False,
    ) -> CommandValidationResult:
        return await service.validate_command(context, self.build_options(bypass_confirmed))

    def __repr__(self) -> str:
        return f"ValidatorPipeline({', '.join(self.step_names)})"
