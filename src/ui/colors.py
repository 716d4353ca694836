"""
Centralized color palette for Discord embeds.

Single source of truth for all embed colors. ``ColorTheme.get_color``
lets ``ui.colors.<name>`` in YAML config override a palette entry.

Usage:
    >>> from src.ui.colors import ColorTheme
    >>> color = ColorTheme.get_color("success")
"""

from typing import Optional

from src.core.config.config_manager import ConfigManager


class ColorPalette:
    """Discord-compatible integers (0xRRGGBB)."""

    DEFAULT = 0x5865F2  # Discord Blurple
    SUCCESS = 0x57F287
    ERROR = 0xED4245
    WARNING = 0xFEE75C
    INFO = 0x3498DB

    LEGAL = 0x2C3E50  # firm branding
    BYPASS = 0xE67E22
    RULES = 0xFF0000


class ColorTheme:
    @staticmethod
    def get_color(name: str, default: Optional[int] = None) -> int:
        configured = ConfigManager.get(f"ui.colors.{name}")
        if isinstance(configured, int):
            return configured
        if isinstance(configured, str):
            try:
                return int(configured.lstrip("#"), 16)
            except ValueError:
                pass
        return getattr(ColorPalette, name.upper(), default if default is not None else ColorPalette.DEFAULT)
