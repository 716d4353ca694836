# src/ui/embeds.py
"""
Embed factory for every message the bot sends.

Features:
- Consistent branding and colors
- Automatic Discord limits enforcement
- Builders for validation failures and guild-owner bypass prompts

Usage:
    >>> from src.ui.embeds import EmbedFactory
    >>> embed = EmbedFactory.success("Staff Hired", "Welcome aboard!")
    >>> embed = EmbedFactory.validation_failure(result)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, Iterable, Optional

import discord

from src.ui.colors import ColorTheme

if TYPE_CHECKING:
    from src.modules.validation.types import CommandValidationResult

TITLE_LIMIT = 256
DESCRIPTION_LIMIT = 4096
FIELD_VALUE_LIMIT = 1024
FOOTER_LIMIT = 2048
MAX_FIELDS = 25

DEFAULT_FOOTER = "Anarchy & Associates"


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _bullets(lines: Iterable[str]) -> str:
    return "\n".join(f"• {line}" for line in lines)


class EmbedFactory:
    """
    Factory for standardized embeds.

    All embeds include a timestamp and respect Discord's size limits.
    """

    @staticmethod
    def _base_embed(
        title: str,
        description: str,
        color: int,
        footer: Optional[str] = None,
    ) -> discord.Embed:
        embed = discord.Embed(
            title=truncate(title, TITLE_LIMIT),
            description=truncate(description, DESCRIPTION_LIMIT),
            color=color,
            timestamp=datetime.now(timezone.utc),
        )
        if footer:
            embed.set_footer(text=truncate(footer, FOOTER_LIMIT))
        return embed

    # =========================================================================
    # CORE TYPES
    # =========================================================================

    @staticmethod
    def primary(title: str, description: str, footer: Optional[str] = None) -> discord.Embed:
        """Default embed for neutral/system messages."""
        return EmbedFactory._base_embed(title, description, ColorTheme.get_color("legal"), footer or DEFAULT_FOOTER)

    @staticmethod
    def success(title: str, description: str, footer: Optional[str] = None) -> discord.Embed:
        return EmbedFactory._base_embed(title, description, ColorTheme.get_color("success"), footer or DEFAULT_FOOTER)

    @staticmethod
    def error(title: str, description: str, help_text: Optional[str] = None) -> discord.Embed:
        """
        Error embeds with optional help text.

        Args:
            title: Error title
            description: Error description
            help_text: Optional suggestion for the user
        """
        desc = description
        if help_text:
            desc += f"\n\n**Help:** {help_text}"
        return EmbedFactory._base_embed(title, desc, ColorTheme.get_color("error"))

    @staticmethod
    def warning(title: str, description: str, footer: Optional[str] = None) -> discord.Embed:
        return EmbedFactory._base_embed(title, description, ColorTheme.get_color("warning"), footer or DEFAULT_FOOTER)

    @staticmethod
    def info(title: str, description: str, footer: Optional[str] = None) -> discord.Embed:
        return EmbedFactory._base_embed(title, description, ColorTheme.get_color("info"), footer or DEFAULT_FOOTER)

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @staticmethod
    def validation_failure(result: CommandValidationResult) -> discord.Embed:
        """Every error and warning from one aggregate validation result."""
        embed = EmbedFactory._base_embed(
            "Validation Failed",
            _bullets(result.errors) or "The command could not be validated.",
            ColorTheme.get_color("error"),
        )
        if result.warnings:
            embed.add_field(
                name="Warnings",
                value=truncate(_bullets(result.warnings), FIELD_VALUE_LIMIT),
                inline=False,
            )
        return embed

    @staticmethod
    def bypass_prompt(result: CommandValidationResult) -> discord.Embed:
        embed = EmbedFactory._base_embed(
            "Guild Owner Override Available",
            "This action breaks the following rules. As the server owner you may "
            "override them after giving a reason.",
            ColorTheme.get_color("bypass"),
            footer="Overrides are recorded in the audit log",
        )
        for request in result.bypass_requests[:MAX_FIELDS]:
            embed.add_field(
                name=request.rule_name or "Rule",
                value=truncate(_bullets(request.validation_result.errors) or "Failed", FIELD_VALUE_LIMIT),
                inline=False,
            )
        return embed

    @staticmethod
    def key_values(title: str, values: Dict[str, object], description: str = "") -> discord.Embed:
        """Primary embed with one inline field per entry."""
        embed = EmbedFactory.primary(title, description)
        for name, value in list(values.items())[:MAX_FIELDS]:
            embed.add_field(name=name, value=truncate(str(value), FIELD_VALUE_LIMIT) or "-", inline=True)
        return embed
